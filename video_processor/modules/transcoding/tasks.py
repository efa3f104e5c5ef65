"""Celery task consuming the transcode queue.

The task body is async; each invocation runs on a fresh event loop with its
own Redis and document store handles, closed when the job ends.
"""

import asyncio
import logging
from typing import Callable, Optional

from celery import Celery, Task

from video_processor.core.config import Settings, settings as default_settings
from video_processor.core.logging import clear_correlation_id, log_warning, set_correlation_id
from video_processor.modules.transcoding.documents import DocumentClient, RestDocumentClient
from video_processor.modules.transcoding.options import VideoProcessorOptions
from video_processor.modules.transcoding.queue import TRANSCODE_TASK_NAME, JobQueue, create_job_queue
from video_processor.modules.transcoding.schemas import VideoJob
from video_processor.modules.transcoding.worker import TranscodeProcessor

logger = logging.getLogger(__name__)

DocumentsFactory = Callable[[], DocumentClient]


class TranscodeTask(Task):
    """Base task for transcode jobs.

    Failures are recorded on the job record by the task body; Celery only
    logs them here.
    """
    abstract = True

    def on_failure(self, exc, task_id, args, kwargs, einfo):
        logger.error(
            "Transcode task failed",
            extra={"job_id": task_id, "error": str(exc)},
        )


async def run_transcode_job(
    payload: dict,
    job_id: str,
    queue: JobQueue,
    processor: TranscodeProcessor,
) -> dict:
    """Process one payload and keep its job record in step.

    ``active`` on pickup, ``completed`` on success, ``failed`` with the
    reason on any error, which is re-raised. Progress writes are
    best-effort.
    """
    async def report_progress(progress: float) -> None:
        try:
            await queue.update_progress(job_id, progress)
        except Exception as e:
            log_warning(logger, "Failed to record job progress", job_id=job_id, error=str(e))

    try:
        await queue.mark_active(job_id)
        job = VideoJob.model_validate(payload)
        variant = await processor.process(job, job_id, report_progress)
    except Exception as e:
        await queue.mark_failed(job_id, str(e) or type(e).__name__)
        raise

    await queue.mark_completed(job_id)
    return variant


def register_transcode_task(
    celery_app: Celery,
    options: VideoProcessorOptions,
    settings: Optional[Settings] = None,
    documents_factory: Optional[DocumentsFactory] = None,
) -> Task:
    """Register the transcode task on ``celery_app``.

    Args:
        celery_app: Worker Celery app
        options: Video processor options
        settings: Process settings
        documents_factory: Builds a document client per job, defaults to the
            REST client configured from settings

    Returns:
        The registered task
    """
    settings = settings or default_settings

    def default_documents() -> DocumentClient:
        return RestDocumentClient.from_settings(settings, collections=options.collections)

    make_documents = documents_factory or default_documents

    async def execute(payload: dict, job_id: str) -> dict:
        queue = create_job_queue(options, settings, celery_app=celery_app)
        documents = make_documents()
        try:
            processor = TranscodeProcessor(options, documents, settings)
            return await run_transcode_job(payload, job_id, queue, processor)
        finally:
            await queue.close()
            aclose = getattr(documents, "aclose", None)
            if aclose is not None:
                await aclose()

    @celery_app.task(bind=True, base=TranscodeTask, name=TRANSCODE_TASK_NAME)
    def transcode_video_task(self: TranscodeTask, payload: dict) -> dict:
        """Transcode one queued video job."""
        job_id = self.request.id
        set_correlation_id(job_id)
        try:
            return asyncio.run(execute(payload, job_id))
        finally:
            clear_correlation_id()

    return transcode_video_task
