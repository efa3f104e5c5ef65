"""FastAPI application entry point."""

from contextlib import asynccontextmanager
import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from video_processor.core.config import Settings, settings as default_settings
from video_processor.core.logging import log_error, setup_logging
from video_processor.core.metrics import get_content_type, get_metrics, set_app_info
from video_processor.core.middleware import (
    CorrelationIdMiddleware,
    MetricsMiddleware,
    RequestLoggingMiddleware,
)
from video_processor.modules.transcoding.documents import DocumentClient, RestDocumentClient
from video_processor.modules.transcoding.exceptions import VideoProcessingError
from video_processor.modules.transcoding.options import VideoProcessorOptions, load_options
from video_processor.modules.transcoding.queue import JobQueue, create_job_queue
from video_processor.modules.transcoding.router import router as video_queue_router
from video_processor.modules.transcoding.service import VideoProcessingService

logger = logging.getLogger(__name__)


GENERIC_ERROR_MESSAGE = "Unexpected error while processing the request."


async def video_processing_error_handler(request: Request, exc: VideoProcessingError) -> JSONResponse:
    if exc.status_code >= 500:
        # Upstream detail (store responses, tool output) stays in the logs
        log_error(
            logger,
            "Request failed",
            exception=exc,
            method=request.method,
            path=request.url.path,
        )
        return JSONResponse(status_code=exc.status_code, content={"error": GENERIC_ERROR_MESSAGE})
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


async def request_validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    issues = jsonable_encoder(exc.errors())
    message = issues[0]["msg"] if issues else "Invalid request body."
    return JSONResponse(status_code=400, content={"error": message, "issues": issues})


async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    log_error(
        logger,
        "Unhandled error",
        exception=exc,
        method=request.method,
        path=request.url.path,
    )
    return JSONResponse(
        status_code=500,
        content={"error": GENERIC_ERROR_MESSAGE},
    )


def create_app(
    options: VideoProcessorOptions,
    documents: DocumentClient,
    settings: Optional[Settings] = None,
    queue: Optional[JobQueue] = None,
) -> FastAPI:
    """Build the control API application.

    Args:
        options: Video processor options
        documents: Document store client
        settings: Process settings
        queue: Job queue; built from options and settings when omitted

    Returns:
        The FastAPI app. Its queue is closed on shutdown.
    """
    settings = settings or default_settings
    queue = queue or create_job_queue(options, settings)

    setup_logging(
        level="DEBUG" if settings.DEBUG else settings.LOG_LEVEL,
        json_format=settings.LOG_JSON,
        include_stack_trace=True,
    )
    set_app_info(
        version=settings.VERSION,
        environment="development" if settings.DEBUG else "production",
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await app.state.queue.close()
        aclose = getattr(app.state.documents, "aclose", None)
        if aclose is not None:
            await aclose()

    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.VERSION,
        description="Queue video transcodes and manage their variants.",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.options = options
    app.state.documents = documents
    app.state.queue = queue
    app.state.video_service = VideoProcessingService(options, documents, queue, settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(CorrelationIdMiddleware)
    app.add_middleware(MetricsMiddleware)

    app.add_exception_handler(VideoProcessingError, video_processing_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)

    @app.get("/health", tags=["health"])
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "healthy"}

    @app.get("/metrics", include_in_schema=False)
    async def metrics() -> Response:
        """Prometheus metrics."""
        return Response(content=get_metrics(), media_type=get_content_type())

    @app.get(f"{settings.API_PREFIX}/video-queue/presets", tags=["video-queue"])
    async def list_presets() -> dict[str, dict]:
        """Preset labels and crop support for admin clients."""
        return options.admin_preset_map()

    app.include_router(video_queue_router, prefix=settings.API_PREFIX)

    return app


def create_app_from_env() -> FastAPI:
    """App factory for ``uvicorn --factory video_processor.main:create_app_from_env``.

    Loads options from ``VIDEO_WORKER_CONFIG`` and talks to the document
    store over REST.
    """
    if not default_settings.VIDEO_WORKER_CONFIG:
        raise RuntimeError("VIDEO_WORKER_CONFIG must point to a module exporting VideoProcessorOptions.")

    options = load_options(default_settings.VIDEO_WORKER_CONFIG)
    documents = RestDocumentClient.from_settings(default_settings, collections=options.collections)
    return create_app(options, documents)
