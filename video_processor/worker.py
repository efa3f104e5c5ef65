"""Celery worker entry point."""

import logging
from typing import Optional

from celery import Celery

from video_processor.core.celery_app import create_celery_app
from video_processor.core.config import Settings, settings as default_settings
from video_processor.core.logging import setup_logging
from video_processor.core.metrics import start_metrics_server
from video_processor.modules.transcoding.options import VideoProcessorOptions
from video_processor.modules.transcoding.tasks import DocumentsFactory, register_transcode_task

logger = logging.getLogger(__name__)


def create_worker(
    options: VideoProcessorOptions,
    settings: Optional[Settings] = None,
    documents_factory: Optional[DocumentsFactory] = None,
    concurrency: Optional[int] = None,
) -> Celery:
    """Build the worker Celery app with the transcode task registered.

    Concurrency resolves from the argument, then the options, then
    ``WORKER_CONCURRENCY``. With ``WORKER_METRICS_PORT`` set, transcode
    metrics are served on that port.
    """
    settings = settings or default_settings
    setup_logging(
        level="DEBUG" if settings.DEBUG else settings.LOG_LEVEL,
        json_format=settings.LOG_JSON,
        include_stack_trace=True,
    )

    queue_name = options.queue.name or settings.QUEUE_NAME
    app = create_celery_app(
        settings,
        queue_name=queue_name,
        redis_url=options.queue.redis_url,
        concurrency=concurrency or options.queue.concurrency,
    )
    register_transcode_task(app, options, settings, documents_factory)

    if settings.WORKER_METRICS_PORT:
        start_metrics_server(settings.WORKER_METRICS_PORT)

    logger.info(
        "Video worker configured",
        extra={
            "queue": queue_name,
            "concurrency": app.conf.worker_concurrency,
            "metrics_port": settings.WORKER_METRICS_PORT,
            "presets": list(options.presets),
        },
    )
    return app
