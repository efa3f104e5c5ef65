"""HTTP middleware for the control API: metrics, correlation IDs, request logs."""

import logging
import re
import time
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from video_processor.core.logging import clear_correlation_id, log_error, set_correlation_id
from video_processor.core.metrics import (
    HTTP_REQUEST_DURATION_SECONDS,
    HTTP_REQUESTS_IN_PROGRESS,
    HTTP_REQUESTS_TOTAL,
)

CORRELATION_ID_HEADER = "X-Correlation-ID"

# Probe endpoints scraped every few seconds
UNLOGGED_PATHS = frozenset({"/health", "/metrics"})

_JOB_STATUS_RE = re.compile(r"/status/[^/]+$")
_NUMERIC_SEGMENT_RE = re.compile(r"/\d+(?=/|$)")

request_logger = logging.getLogger("video_processor.requests")


def normalize_path(path: str) -> str:
    """Collapse job IDs and numeric segments to keep label cardinality low."""
    path = _JOB_STATUS_RE.sub("/status/{id}", path)
    return _NUMERIC_SEGMENT_RE.sub("/{id}", path)


class MetricsMiddleware(BaseHTTPMiddleware):
    """Records request counts, durations and in-flight requests."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        method = request.method
        endpoint = normalize_path(request.url.path)

        HTTP_REQUESTS_IN_PROGRESS.labels(method=method, endpoint=endpoint).inc()
        start_time = time.perf_counter()
        status_code = 500

        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            HTTP_REQUEST_DURATION_SECONDS.labels(method=method, endpoint=endpoint).observe(
                time.perf_counter() - start_time
            )
            HTTP_REQUESTS_TOTAL.labels(
                method=method, endpoint=endpoint, status_code=str(status_code)
            ).inc()
            HTTP_REQUESTS_IN_PROGRESS.labels(method=method, endpoint=endpoint).dec()


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Binds the request's correlation ID and echoes it on the response."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = request.headers.get(CORRELATION_ID_HEADER) or str(uuid.uuid4())
        set_correlation_id(correlation_id)

        try:
            response = await call_next(request)
            response.headers[CORRELATION_ID_HEADER] = correlation_id
            return response
        finally:
            clear_correlation_id()


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs one line per completed control API request."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path in UNLOGGED_PATHS:
            return await call_next(request)

        start_time = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as e:
            log_error(
                request_logger,
                "Request failed",
                exception=e,
                method=request.method,
                path=request.url.path,
                duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
            )
            raise

        request_logger.info(
            "Request completed",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": round((time.perf_counter() - start_time) * 1000, 2),
                "client_ip": request.client.host if request.client else None,
            },
        )
        return response
