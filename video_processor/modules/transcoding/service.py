"""Service layer for the video queue control API."""

import inspect
import logging
import os
from typing import Any, Optional

from video_processor.core.config import Settings, settings as default_settings
from video_processor.core.logging import log_error, log_info, log_warning
from video_processor.modules.transcoding.documents import DocumentClient, resolve_collection_config
from video_processor.modules.transcoding.exceptions import (
    AuthorizationError,
    DocumentNotFound,
    JobNotFound,
    PathSecurityError,
    ValidationError,
    VariantNotFound,
)
from video_processor.modules.transcoding.filesystem import (
    gather_allowed_roots,
    resolve_absolute_path,
)
from video_processor.modules.transcoding.models import (
    PROCESSING_STATUS_FIELD,
    VARIANTS_FIELD,
    ProcessingState,
)
from video_processor.modules.transcoding.options import AccessArgs, AccessHook, VideoProcessorOptions
from video_processor.modules.transcoding.queue import JobQueue
from video_processor.modules.transcoding.replace import get_variants, replace_original, select_variant
from video_processor.modules.transcoding.schemas import (
    EnqueueRequest,
    EnqueueResponse,
    JobStatusResponse,
    RemoveVariantRequest,
    ReplaceOriginalRequest,
    VideoJob,
    build_processing_status,
)

logger = logging.getLogger(__name__)


async def check_access(hook: Optional[AccessHook], args: AccessArgs) -> bool:
    """Run an access hook; a missing hook allows the operation."""
    if hook is None:
        return True
    allowed = hook(args)
    if inspect.isawaitable(allowed):
        allowed = await allowed
    return bool(allowed)


def _variant_file_fallback(variant: dict) -> str:
    # Last URL segment, without query string
    url = variant.get("url")
    if not isinstance(url, str):
        return ""
    return url.split("?", 1)[0].split("/")[-1]


class VideoProcessingService:
    """Enqueue, status, remove-variant and replace-original operations.

    Args:
        options: Video processor options
        documents: Document store client
        queue: Transcode job queue
        settings: Process settings (allowed root overrides)
    """

    def __init__(
        self,
        options: VideoProcessorOptions,
        documents: DocumentClient,
        queue: JobQueue,
        settings: Optional[Settings] = None,
    ):
        self.options = options
        self.documents = documents
        self.queue = queue
        self.settings = settings or default_settings

    def _allowed_roots(self, collection: str, doc: dict) -> list[str]:
        return gather_allowed_roots(
            resolve_collection_config(self.documents, collection, self.options.collections),
            doc,
            static_dir=self.settings.STATIC_DIR,
            uploads_dir=self.settings.UPLOADS_DIR,
        )

    async def _load_document(self, collection: str, document_id: str) -> dict:
        """Load a document, treating store errors as not found."""
        try:
            doc = await self.documents.find_by_id(collection, document_id)
        except Exception as e:
            log_error(
                logger,
                "Failed to load document",
                exception=e,
                collection=collection,
                document_id=document_id,
            )
            doc = None

        if not doc:
            raise DocumentNotFound("Document not found.")
        return doc

    async def enqueue(self, data: EnqueueRequest, request: Any = None) -> EnqueueResponse:
        """Queue a transcode of one document into one preset.

        Raises:
            ValidationError: Unknown preset
            AuthorizationError: Access hook denied the request
            DocumentNotFound: Document does not exist
        """
        if self.options.get_preset(data.preset) is None:
            raise ValidationError(f"Unknown preset `{data.preset}`.")

        allowed = await check_access(
            self.options.access.enqueue,
            AccessArgs(
                request=request,
                collection=data.collection,
                document_id=data.document_id,
                preset=data.preset,
            ),
        )
        if not allowed:
            raise AuthorizationError("Not allowed to enqueue video processing jobs.")

        doc = await self.documents.find_by_id(data.collection, data.document_id)
        if not doc:
            raise DocumentNotFound("Document not found.")

        job = VideoJob(
            collection=data.collection,
            document_id=data.document_id,
            preset=data.preset,
            crop=data.crop,
        )
        job_id = await self.queue.enqueue(job)

        try:
            await self.documents.update(
                data.collection,
                data.document_id,
                {
                    PROCESSING_STATUS_FIELD: build_processing_status(
                        job_id, data.preset, ProcessingState.QUEUED, 0
                    )
                },
            )
        except Exception as e:
            log_error(logger, "Failed to write queued status", exception=e, job_id=job_id)

        return EnqueueResponse(id=job_id)

    async def get_status(self, job_id: Optional[str]) -> JobStatusResponse:
        """Report a job's queue state.

        Raises:
            ValidationError: Missing job id
            JobNotFound: The queue holds no record for the job
        """
        if not job_id:
            raise ValidationError("jobId parameter is required.")

        record = await self.queue.get_status(job_id)
        if record is None:
            raise JobNotFound("Job not found.")

        return JobStatusResponse(id=record.id, state=record.state, progress=record.progress)

    async def remove_variant(self, data: RemoveVariantRequest, request: Any = None) -> dict:
        """Delete a variant's file and drop it from the document.

        The target is picked by explicit index, then variant id, then
        preset. Deleting the file is best-effort.

        Returns:
            The updated document

        Raises:
            AuthorizationError: Access hook denied the request
            DocumentNotFound: Document does not exist
            VariantNotFound: No variant matches the selector
            PathSecurityError: Stored path lies outside the allowed roots
        """
        allowed = await check_access(
            self.options.access.remove_variant,
            AccessArgs(
                request=request,
                collection=data.collection,
                document_id=data.document_id,
                preset=data.preset,
                variant_id=data.variant_id,
                variant_index=data.variant_index,
            ),
        )
        if not allowed:
            raise AuthorizationError("Not allowed to remove video variants.")

        doc = await self._load_document(data.collection, data.document_id)
        raw_variants = doc.get(VARIANTS_FIELD)
        variants = raw_variants if isinstance(raw_variants, list) else []

        target_index = -1
        if data.variant_index is not None:
            target_index = data.variant_index
        elif data.variant_id:
            target_index = next(
                (
                    index
                    for index, variant in enumerate(variants)
                    if isinstance(variant, dict) and str(variant.get("id")) == data.variant_id
                ),
                -1,
            )
        elif data.preset:
            target_index = next(
                (
                    index
                    for index, variant in enumerate(variants)
                    if isinstance(variant, dict) and variant.get("preset") == data.preset
                ),
                -1,
            )

        if target_index < 0 or target_index >= len(variants) or not isinstance(
            variants[target_index], dict
        ):
            raise VariantNotFound("Variant not found.")

        target = variants[target_index]
        roots = self._allowed_roots(data.collection, doc)

        stored_path = target.get("path")
        stored_path = stored_path.strip() if isinstance(stored_path, str) else ""
        if stored_path:
            file_path = resolve_absolute_path(stored_path, roots, operation="remove_variant")
            if not file_path:
                raise PathSecurityError("Variant path is outside allowed directories.")
        else:
            fallback = _variant_file_fallback(target)
            file_path = (
                resolve_absolute_path(fallback, roots, operation="remove_variant")
                if fallback
                else None
            )

        if file_path:
            try:
                os.remove(file_path)
            except OSError as e:
                log_warning(
                    logger,
                    "Could not remove variant file",
                    file_path=file_path,
                    error=str(e),
                )

        remaining = [variant for index, variant in enumerate(variants) if index != target_index]
        document_id = str(doc.get("id") or data.document_id)
        updated = await self.documents.update(
            data.collection,
            document_id,
            {VARIANTS_FIELD: remaining},
        )

        log_info(
            logger,
            "Removed video variant",
            collection=data.collection,
            document_id=document_id,
            preset=target.get("preset"),
        )
        return updated

    async def replace_original_file(self, data: ReplaceOriginalRequest, request: Any = None) -> dict:
        """Promote a variant over the document's original file.

        Returns:
            The updated document

        Raises:
            AuthorizationError: Access hook denied the request
            DocumentNotFound: Document does not exist
            ValidationError: Document has no variants or paths are unusable
            VariantNotFound: Requested variant does not exist
            PathSecurityError: A path lies outside the allowed roots
        """
        allowed = await check_access(
            self.options.access.replace_original,
            AccessArgs(
                request=request,
                collection=data.collection,
                document_id=data.document_id,
                preset=data.preset,
                variant_id=data.variant_id,
            ),
        )
        if not allowed:
            raise AuthorizationError("Not allowed to replace original video.")

        doc = await self._load_document(data.collection, data.document_id)

        variants = get_variants(doc)
        if not variants:
            raise ValidationError("No variants are available for replacement.")

        target = select_variant(variants, preset=data.preset, variant_id=data.variant_id)
        if target is None:
            raise VariantNotFound("Requested variant was not found.")

        return await replace_original(
            self.documents,
            data.collection,
            doc,
            target,
            document_id=str(doc.get("id") or data.document_id),
            collection_config=resolve_collection_config(
                self.documents, data.collection, self.options.collections
            ),
            settings=self.settings,
        )
