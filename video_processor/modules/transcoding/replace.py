"""Promote a variant file to be the document's original."""

import logging
import os
from typing import Any, Optional

from video_processor.core.config import Settings, settings as default_settings
from video_processor.core.logging import log_info, log_warning
from video_processor.modules.transcoding.documents import DocumentClient
from video_processor.modules.transcoding.exceptions import PathSecurityError, ValidationError
from video_processor.modules.transcoding.filesystem import (
    gather_allowed_roots,
    resolve_absolute_path,
)
from video_processor.modules.transcoding.models import REPLACE_ORIGINAL_FIELDS, VARIANTS_FIELD
from video_processor.modules.transcoding.options import CollectionConfig

logger = logging.getLogger(__name__)


def get_variants(doc: dict) -> list[dict]:
    """The document's variant list; malformed entries are skipped."""
    variants = doc.get(VARIANTS_FIELD)
    if not isinstance(variants, list):
        return []
    return [variant for variant in variants if isinstance(variant, dict)]


def select_variant(
    variants: list[dict],
    preset: Optional[str] = None,
    variant_id: Optional[str] = None,
) -> Optional[dict]:
    """Pick the variant to promote.

    Matches on variant id first, then preset; with neither given the first
    variant is used.
    """
    if variant_id:
        return next((v for v in variants if str(v.get("id")) == variant_id), None)
    if preset:
        return next((v for v in variants if v.get("preset") == preset), None)
    return variants[0] if variants else None


def _string_field(doc: dict, key: str) -> str:
    value = doc.get(key)
    return value.strip() if isinstance(value, str) else ""


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


async def replace_original(
    documents: DocumentClient,
    collection: str,
    doc: dict,
    variant: dict,
    *,
    document_id: Optional[str] = None,
    collection_config: Optional[CollectionConfig] = None,
    settings: Optional[Settings] = None,
) -> dict:
    """Move ``variant``'s file over the original and update the document.

    Every variant with the same preset is dropped from the list; the
    variant's size, duration, width, height and bitrate are copied onto the
    document where present.

    Raises:
        ValidationError: The variant has no path or the original path is unknown
        PathSecurityError: Either path resolves outside the allowed roots

    Returns:
        The updated document
    """
    settings = settings or default_settings
    roots = gather_allowed_roots(
        collection_config,
        doc,
        static_dir=settings.STATIC_DIR,
        uploads_dir=settings.UPLOADS_DIR,
    )

    variant_path = _string_field(variant, "path")
    if not variant_path:
        raise ValidationError("Variant does not expose a file path.")

    source = resolve_absolute_path(variant_path, roots, operation="replace_original")
    if not source:
        raise PathSecurityError("Variant path is outside allowed directories.")

    original_path = _string_field(doc, "path") or _string_field(doc, "filename")
    target = (
        resolve_absolute_path(original_path, roots, operation="replace_original")
        if original_path
        else None
    )
    if not target:
        raise ValidationError("Original file path could not be resolved.")

    try:
        os.remove(target)
    except FileNotFoundError:
        pass
    except OSError as e:
        log_warning(logger, "Could not remove original file", file_path=target, error=str(e))

    os.makedirs(os.path.dirname(target), exist_ok=True)
    os.replace(source, target)

    data: dict[str, Any] = {
        VARIANTS_FIELD: [
            item for item in get_variants(doc) if item.get("preset") != variant.get("preset")
        ],
    }
    for variant_field, doc_field in REPLACE_ORIGINAL_FIELDS.items():
        if _is_number(variant.get(variant_field)):
            data[doc_field] = variant[variant_field]

    document_id = document_id or str(doc.get("id"))
    updated = await documents.update(collection, document_id, data)

    log_info(
        logger,
        "Replaced original with variant",
        collection=collection,
        document_id=document_id,
        preset=variant.get("preset"),
        file_path=target,
    )
    return updated
