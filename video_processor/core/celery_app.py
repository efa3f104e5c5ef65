"""Celery application configuration."""

from typing import Optional

from celery import Celery

from video_processor.core.config import Settings, settings as default_settings


def create_celery_app(
    settings: Optional[Settings] = None,
    queue_name: Optional[str] = None,
    redis_url: Optional[str] = None,
    concurrency: Optional[int] = None,
) -> Celery:
    """Build a Celery app bound to the transcode queue.

    Each caller (API process, worker process) owns the app it creates;
    nothing here is shared at module level.
    """
    settings = settings or default_settings
    queue_name = queue_name or settings.QUEUE_NAME
    broker_url = redis_url or settings.REDIS_URL

    app = Celery(
        "video_processor",
        broker=broker_url,
        backend=broker_url,
    )

    app.conf.update(
        task_serializer="json",
        accept_content=["json"],
        result_serializer="json",
        timezone="UTC",
        enable_utc=True,
        task_track_started=True,
        task_time_limit=settings.TASK_TIME_LIMIT,
        task_default_queue=queue_name,
        # Results live in the job store; Celery's own result keys expire
        # alongside completed job records.
        result_expires=settings.COMPLETED_JOB_TTL_SECONDS,
        worker_concurrency=concurrency or settings.WORKER_CONCURRENCY,
        worker_prefetch_multiplier=1,
        task_acks_late=True,
        task_reject_on_worker_lost=True,
    )

    return app
