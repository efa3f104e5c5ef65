"""Transcoding module.

Queues ffmpeg transcodes of uploaded videos into named presets and records
the resulting variants on the owning document.
"""

from video_processor.modules.transcoding.documents import DocumentClient, RestDocumentClient
from video_processor.modules.transcoding.options import (
    AccessArgs,
    AccessControl,
    CollectionConfig,
    QueueConfig,
    VideoProcessorOptions,
    load_options,
)
from video_processor.modules.transcoding.paths import (
    ResolvePathsArgs,
    ResolvedPaths,
    default_resolve_paths,
)
from video_processor.modules.transcoding.queue import JobQueue, RedisJobStore, create_job_queue
from video_processor.modules.transcoding.router import router as video_queue_router
from video_processor.modules.transcoding.schemas import Preset, VariantRecord, VideoJob
from video_processor.modules.transcoding.service import VideoProcessingService

__all__ = [
    "AccessArgs",
    "AccessControl",
    "CollectionConfig",
    "DocumentClient",
    "JobQueue",
    "Preset",
    "QueueConfig",
    "RedisJobStore",
    "ResolvePathsArgs",
    "ResolvedPaths",
    "RestDocumentClient",
    "VariantRecord",
    "VideoJob",
    "VideoProcessingService",
    "VideoProcessorOptions",
    "create_job_queue",
    "default_resolve_paths",
    "load_options",
    "video_queue_router",
]
