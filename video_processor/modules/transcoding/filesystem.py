"""Filesystem guard for variant and original files.

Paths stored on documents are client-influenceable. Every delete or rename
goes through :func:`resolve_absolute_path` against the roots returned by
:func:`gather_allowed_roots` first.
"""

import logging
import os
from typing import Any, Optional

from video_processor.core.logging import log_warning
from video_processor.core.metrics import PATH_REJECTIONS_TOTAL
from video_processor.modules.transcoding.options import CollectionConfig

logger = logging.getLogger(__name__)


def _normalize(path: str) -> str:
    return os.path.normpath(os.path.abspath(path))


def _with_trailing_sep(path: str) -> str:
    return path if path.endswith(os.sep) else path + os.sep


def is_within_root(candidate: str, root: str) -> bool:
    """True if ``candidate`` equals ``root`` or lies beneath it."""
    normalized_candidate = _normalize(candidate)
    normalized_root = _normalize(root)
    # The trailing separator keeps /var/media from matching /var/media-evil
    return (
        normalized_candidate == normalized_root
        or normalized_candidate.startswith(_with_trailing_sep(normalized_root))
    )


def _non_empty(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def gather_allowed_roots(
    collection: Optional[CollectionConfig],
    doc: Optional[dict],
    *,
    cwd: Optional[str] = None,
    static_dir: Optional[str] = None,
    uploads_dir: Optional[str] = None,
) -> list[str]:
    """Directories a document's files may live under.

    Args:
        collection: Upload config of the owning collection, if known
        doc: The document; its ``path`` contributes its directory
        cwd: Working directory, defaults to ``os.getcwd()``
        static_dir: ``STATIC_DIR`` override
        uploads_dir: ``UPLOADS_DIR`` override

    Returns:
        Normalized absolute directories, deduplicated, in insertion order
    """
    base_dir = cwd or os.getcwd()
    roots: list[str] = []

    def add(path: str) -> None:
        normalized = _normalize(path)
        if normalized not in roots:
            roots.append(normalized)

    add(base_dir)

    for override in (static_dir, uploads_dir):
        value = _non_empty(override)
        if value:
            add(value)

    configured_static = _non_empty(collection.static_dir) if collection else None
    if configured_static:
        add(os.path.join(base_dir, configured_static))

    doc_path = _non_empty((doc or {}).get("path"))
    if doc_path:
        doc_dir = os.path.dirname(doc_path)
        if os.path.isabs(doc_path):
            add(doc_dir)
        else:
            # Stored paths may be relative to the cwd or to the static dir
            add(os.path.join(base_dir, doc_dir))
            if configured_static:
                add(os.path.join(base_dir, configured_static, doc_dir))

    return roots


def resolve_absolute_path(
    candidate: Optional[str],
    allowed_roots: list[str],
    operation: str = "resolve",
) -> Optional[str]:
    """Resolve ``candidate`` to an absolute path inside the allowed roots.

    Absolute candidates must already sit inside a root. Relative candidates
    are joined under each root in turn; the first join that stays inside
    its root wins.

    Args:
        candidate: Stored path claim
        allowed_roots: Output of :func:`gather_allowed_roots`
        operation: Label recorded on rejection

    Returns:
        The normalized absolute path, or None when the path is rejected
    """
    trimmed = _non_empty(candidate)
    if not trimmed:
        return None

    roots = [_normalize(root) for root in allowed_roots]

    if os.path.isabs(trimmed):
        normalized = _normalize(trimmed)
        if any(is_within_root(normalized, root) for root in roots):
            return normalized
    else:
        for root in roots:
            joined = _normalize(os.path.join(root, trimmed))
            if is_within_root(joined, root):
                return joined

    PATH_REJECTIONS_TOTAL.labels(operation=operation).inc()
    log_warning(
        logger,
        "Rejected path outside allowed roots",
        candidate=trimmed,
        operation=operation,
        allowed_roots=roots,
    )
    return None
