"""Lifecycle hooks the host calls on video documents.

``after_read`` adds derived playback fields; ``after_create`` enqueues the
configured preset for new uploads when auto-enqueue is on.
"""

import logging
from typing import Any, Optional

from video_processor.core.logging import log_error, log_info
from video_processor.modules.transcoding.documents import DocumentClient
from video_processor.modules.transcoding.models import PROCESSING_STATUS_FIELD, ProcessingState
from video_processor.modules.transcoding.options import (
    AccessArgs,
    CollectionConfig,
    VideoProcessorOptions,
)
from video_processor.modules.transcoding.playback import (
    build_inline_placeholder_poster,
    build_playback_poster_url,
    build_playback_sources,
    infer_poster_from_filesystem,
)
from video_processor.modules.transcoding.queue import JobQueue
from video_processor.modules.transcoding.schemas import VideoJob, build_processing_status
from video_processor.modules.transcoding.service import check_access

logger = logging.getLogger(__name__)


def accepts_video_uploads(collection: Optional[CollectionConfig]) -> bool:
    """True if the collection accepts any ``video/*`` MIME type."""
    if collection is None:
        return False
    return any(mime.startswith("video/") for mime in collection.mime_types)


def is_video_document(doc: dict) -> bool:
    mime_type = doc.get("mimeType")
    return isinstance(mime_type, str) and mime_type.startswith("video/")


def get_document_id(doc: dict) -> Optional[str]:
    value = doc.get("id")
    if isinstance(value, bool):
        return None
    if isinstance(value, (str, int)):
        return str(value)
    return None


def after_read(doc: dict, request_origin: Optional[str] = None) -> dict:
    """Add ``playbackSources`` and poster fields to a video document in place."""
    if not is_video_document(doc):
        return doc

    doc["playbackSources"] = [
        source.model_dump(exclude_none=True)
        for source in build_playback_sources(doc, request_origin)
    ]

    inferred = infer_poster_from_filesystem(doc)
    poster_url = build_playback_poster_url(doc, request_origin) or (inferred or {}).get("url")
    thumbnail_url = poster_url or build_inline_placeholder_poster()

    doc["thumbnailURL"] = thumbnail_url
    doc["playbackPosterUrl"] = thumbnail_url
    if inferred:
        doc["playbackPosterPath"] = inferred["path"]

    return doc


async def after_create(
    doc: dict,
    collection: str,
    queue: JobQueue,
    documents: DocumentClient,
    options: VideoProcessorOptions,
    request: Any = None,
) -> Optional[str]:
    """Enqueue the auto-enqueue preset for a newly created video document.

    Never raises; enqueue failures are logged.

    Returns:
        The job id, or None if nothing was enqueued
    """
    if not options.auto_enqueue or not options.auto_enqueue_preset:
        return None
    if not is_video_document(doc):
        return None

    document_id = get_document_id(doc)
    if not document_id:
        return None

    preset = options.auto_enqueue_preset

    try:
        allowed = await check_access(
            options.access.enqueue,
            AccessArgs(request=request, collection=collection, document_id=document_id, preset=preset),
        )
        if not allowed:
            return None

        job = VideoJob(
            collection=collection,
            document_id=document_id,
            preset=preset,
            auto_replace_original=options.auto_replace_original,
        )
        job_id = await queue.enqueue(
            job,
            dedupe_key=f"{collection}:{document_id}:{preset}",
            source="auto",
        )
        await documents.update(
            collection,
            document_id,
            {
                PROCESSING_STATUS_FIELD: build_processing_status(
                    job_id, preset, ProcessingState.QUEUED, 0
                )
            },
        )
    except Exception as e:
        log_error(
            logger,
            "Auto-enqueue failed",
            exception=e,
            collection=collection,
            document_id=document_id,
            preset=preset,
        )
        return None

    log_info(logger, "Auto-enqueued transcode job", job_id=job_id, preset=preset)
    return job_id
