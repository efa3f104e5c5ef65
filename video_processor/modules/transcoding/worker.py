"""Transcode job processing.

:class:`TranscodeProcessor` runs one job end to end: load the document,
probe, run ffmpeg, probe the output and record the variant (or promote it
over the original). The processing status on the document is updated at
each checkpoint; those writes never fail the job.
"""

import logging
import os
import time
from typing import Awaitable, Callable, Optional

from video_processor.core.config import Settings, settings as default_settings
from video_processor.core.logging import log_error, log_info
from video_processor.core.metrics import (
    TRANSCODE_DURATION_SECONDS,
    TRANSCODE_JOBS_IN_PROGRESS,
    TRANSCODE_JOBS_TOTAL,
)
from video_processor.modules.transcoding.documents import DocumentClient, resolve_collection_config
from video_processor.modules.transcoding.exceptions import DocumentNotFound, ValidationError
from video_processor.modules.transcoding.ffmpeg import Dimensions, FFmpegTranscoder, build_ffmpeg_args
from video_processor.modules.transcoding.models import (
    PROCESSING_STATUS_FIELD,
    PROGRESS_DONE,
    PROGRESS_PICKED_UP,
    PROGRESS_PROBED,
    PROGRESS_TOOL_CEILING,
    PROGRESS_TOOL_SCALE,
    VARIANTS_FIELD,
    ProcessingState,
)
from video_processor.modules.transcoding.options import VideoProcessorOptions
from video_processor.modules.transcoding.paths import (
    ResolvePathsArgs,
    build_stored_path,
    build_write_path,
    default_resolve_paths,
)
from video_processor.modules.transcoding.probe import probe_video
from video_processor.modules.transcoding.replace import get_variants, replace_original
from video_processor.modules.transcoding.schemas import (
    VariantRecord,
    VideoJob,
    build_processing_status,
)

logger = logging.getLogger(__name__)

ProgressReporter = Callable[[float], Awaitable[object]]


def map_tool_progress(percent: float) -> float:
    """Map ffmpeg's 0-100 progress into the 15-95 band of the job."""
    return min(PROGRESS_TOOL_CEILING, PROGRESS_PROBED + percent * PROGRESS_TOOL_SCALE)


def merge_variant(variants: list[dict], variant: dict) -> list[dict]:
    """Replace any variant of the same preset with ``variant``."""
    return [item for item in variants if item.get("preset") != variant.get("preset")] + [variant]


class TranscodeProcessor:
    """Processes transcode jobs against a document store.

    Args:
        options: Video processor options (presets, resolver ...)
        documents: Document store client
        settings: Process settings (tool binaries, roots, default CRF)
        transcoder: ffmpeg runner, defaults to ``FFmpegTranscoder``
    """

    def __init__(
        self,
        options: VideoProcessorOptions,
        documents: DocumentClient,
        settings: Optional[Settings] = None,
        transcoder: Optional[FFmpegTranscoder] = None,
    ):
        self.options = options
        self.documents = documents
        self.settings = settings or default_settings
        self.transcoder = transcoder or FFmpegTranscoder(self.settings.FFMPEG_BIN)

    async def process(
        self,
        job: VideoJob,
        job_id: str,
        report_progress: Optional[ProgressReporter] = None,
    ) -> dict:
        """Run one job.

        Args:
            job: The queued job
            job_id: Queue id, recorded on the processing status
            report_progress: Receives job-level progress (0-100)

        Returns:
            The stored variant record

        Raises:
            Any failure, after the ``failed`` status has been written
        """
        started = time.monotonic()
        TRANSCODE_JOBS_IN_PROGRESS.inc()
        try:
            variant = await self._run(job, job_id, report_progress)
        except Exception as e:
            TRANSCODE_JOBS_TOTAL.labels(preset=job.preset, status="failed").inc()
            log_error(
                logger,
                "Transcode job failed",
                exception=e,
                job_id=job_id,
                collection=job.collection,
                document_id=job.document_id,
                preset=job.preset,
            )
            await self._write_status(job, job_id, ProcessingState.FAILED)
            raise
        finally:
            TRANSCODE_JOBS_IN_PROGRESS.dec()
            TRANSCODE_DURATION_SECONDS.labels(preset=job.preset).observe(time.monotonic() - started)

        TRANSCODE_JOBS_TOTAL.labels(preset=job.preset, status="completed").inc()
        return variant

    async def _run(
        self,
        job: VideoJob,
        job_id: str,
        report_progress: Optional[ProgressReporter],
    ) -> dict:
        async def report(progress: float) -> None:
            if report_progress is not None:
                await report_progress(progress)

        await self._write_status(job, job_id, ProcessingState.PROCESSING, PROGRESS_PICKED_UP)
        await report(PROGRESS_PICKED_UP)

        preset = self.options.get_preset(job.preset)
        if preset is None:
            raise ValidationError(f"Unknown preset `{job.preset}`.")

        doc = await self.documents.find_by_id(job.collection, job.document_id)
        if not doc:
            raise DocumentNotFound(
                f"Document {job.document_id} in collection {job.collection} not found"
            )

        original_path = doc.get("path")
        if not isinstance(original_path, str) or not original_path.strip():
            raise DocumentNotFound("Source document does not expose a `path` property.")
        original_path = original_path.strip()

        input_path = (
            original_path
            if os.path.isabs(original_path)
            else os.path.join(os.getcwd(), original_path)
        )

        source = await probe_video(input_path, self.settings.FFPROBE_BIN)
        await self._write_status(job, job_id, ProcessingState.PROCESSING, PROGRESS_PROBED)
        await report(PROGRESS_PROBED)

        collection_config = resolve_collection_config(
            self.documents, job.collection, self.options.collections
        )
        resolver = self.options.resolve_paths or default_resolve_paths
        resolved = resolver(
            ResolvePathsArgs(
                original_filename=doc.get("filename") or os.path.basename(original_path),
                original_path=original_path,
                original_url=doc.get("url") or "",
                preset_name=job.preset,
                collection=job.collection,
                collection_config=collection_config,
                doc=doc,
            )
        )
        write_path = build_write_path(resolved.dir, resolved.filename)
        os.makedirs(resolved.dir, exist_ok=True)

        args = build_ffmpeg_args(
            preset.args,
            crop=job.crop,
            dimensions=Dimensions(width=source.width, height=source.height),
            default_crf=self.options.default_crf or self.settings.DEFAULT_CRF,
        )

        async def on_tool_progress(percent: float) -> None:
            await report(map_tool_progress(percent))

        await self.transcoder.transcode(
            input_path,
            write_path,
            args,
            duration=source.duration,
            progress_callback=on_tool_progress,
        )

        size = os.stat(write_path).st_size
        output = await probe_video(write_path, self.settings.FFPROBE_BIN)

        variant = VariantRecord(
            preset=job.preset,
            url=resolved.url,
            path=build_stored_path(original_path, resolved.filename),
            size=size,
            duration=output.duration if output.duration is not None else source.duration,
            width=output.width if output.width is not None else source.width,
            height=output.height if output.height is not None else source.height,
            bitrate=output.bitrate,
        ).to_document()

        if job.auto_replace_original:
            await replace_original(
                self.documents,
                job.collection,
                doc,
                variant,
                document_id=job.document_id,
                collection_config=collection_config,
                settings=self.settings,
            )
        else:
            await self.documents.update(
                job.collection,
                job.document_id,
                {VARIANTS_FIELD: merge_variant(get_variants(doc), variant)},
            )

        await self._write_status(job, job_id, ProcessingState.COMPLETED, PROGRESS_DONE)
        await report(PROGRESS_DONE)

        log_info(
            logger,
            "Transcode job completed",
            job_id=job_id,
            collection=job.collection,
            document_id=job.document_id,
            preset=job.preset,
            size=size,
            replaced_original=job.auto_replace_original,
        )
        return variant

    async def _write_status(
        self,
        job: VideoJob,
        job_id: str,
        state: ProcessingState,
        progress: Optional[float] = None,
    ) -> None:
        status = build_processing_status(job_id, job.preset, state, progress)
        try:
            await self.documents.update(
                job.collection,
                job.document_id,
                {PROCESSING_STATUS_FIELD: status},
            )
        except Exception as e:
            log_error(
                logger,
                "Failed to write processing status",
                exception=e,
                job_id=job_id,
                state=state.value,
            )
