"""Prometheus metrics for the API and the transcode worker.

Exposes HTTP request metrics and transcode job counters/durations.
"""

from prometheus_client import (
    Counter,
    Gauge,
    Histogram,
    Info,
    CollectorRegistry,
    generate_latest,
    CONTENT_TYPE_LATEST,
    multiprocess,
    start_http_server,
)
import os

# Create a custom registry for our metrics
REGISTRY = CollectorRegistry()


def is_multiprocess_mode() -> bool:
    return "prometheus_multiproc_dir" in os.environ or "PROMETHEUS_MULTIPROC_DIR" in os.environ


# Multiprocess mode (gunicorn workers, Celery prefork children)
if is_multiprocess_mode():
    multiprocess.MultiProcessCollector(REGISTRY)


# ============================================
# Application Info
# ============================================
APP_INFO = Info(
    "video_processor_app",
    "Application information",
    registry=REGISTRY,
)


# ============================================
# HTTP Request Metrics
# ============================================
HTTP_REQUESTS_TOTAL = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
    registry=REGISTRY,
)

HTTP_REQUEST_DURATION_SECONDS = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
    registry=REGISTRY,
)

HTTP_REQUESTS_IN_PROGRESS = Gauge(
    "http_requests_in_progress",
    "Number of HTTP requests currently in progress",
    ["method", "endpoint"],
    registry=REGISTRY,
)


# ============================================
# Transcode Job Metrics
# ============================================
TRANSCODE_JOBS_ENQUEUED_TOTAL = Counter(
    "transcode_jobs_enqueued_total",
    "Transcode jobs admitted to the queue",
    ["preset", "source"],
    registry=REGISTRY,
)

TRANSCODE_JOBS_TOTAL = Counter(
    "transcode_jobs_total",
    "Transcode jobs finished by terminal state",
    ["preset", "status"],
    registry=REGISTRY,
)

TRANSCODE_DURATION_SECONDS = Histogram(
    "transcode_duration_seconds",
    "Wall time spent processing a transcode job",
    ["preset"],
    buckets=[1, 5, 15, 30, 60, 120, 300, 600, 1800, 3600],
    registry=REGISTRY,
)

TRANSCODE_JOBS_IN_PROGRESS = Gauge(
    "transcode_jobs_in_progress",
    "Transcode jobs currently being processed by this worker",
    multiprocess_mode="livesum",
    registry=REGISTRY,
)

PATH_REJECTIONS_TOTAL = Counter(
    "path_rejections_total",
    "Filesystem paths rejected for falling outside the allowed roots",
    ["operation"],
    registry=REGISTRY,
)


def get_metrics() -> bytes:
    """Generate Prometheus metrics output.

    Returns:
        Metrics in Prometheus text format
    """
    return generate_latest(REGISTRY)


def get_content_type() -> str:
    """Get Prometheus content type."""
    return CONTENT_TYPE_LATEST


def set_app_info(version: str, environment: str) -> None:
    """Set application info metric.

    Args:
        version: Application version
        environment: Deployment environment
    """
    APP_INFO.info({
        "version": version,
        "environment": environment,
    })


def start_metrics_server(port: int) -> None:
    """Serve metrics over HTTP from a worker process.

    Prefork pool children are only visible when PROMETHEUS_MULTIPROC_DIR is
    set; without it the server reports the current process (solo/threads pool).

    Args:
        port: TCP port for the ``/metrics`` listener
    """
    registry = REGISTRY
    if is_multiprocess_mode():
        registry = CollectorRegistry()
        multiprocess.MultiProcessCollector(registry)
    start_http_server(port, registry=registry)
