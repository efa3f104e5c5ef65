"""Destination paths for transcoded variants."""

import os
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from video_processor.modules.transcoding.models import DEFAULT_CONTAINER_EXTENSION


@dataclass
class ResolvePathsArgs:
    """Inputs handed to a path resolver."""
    original_filename: str
    original_path: str
    original_url: str
    preset_name: str
    collection: Optional[str] = None
    collection_config: Any = None
    doc: dict = field(default_factory=dict)


@dataclass
class ResolvedPaths:
    """Where a variant is written and served from."""
    dir: str
    filename: str
    url: str


PathResolver = Callable[[ResolvePathsArgs], ResolvedPaths]


def replace_url_filename(url: Optional[str], filename: str) -> str:
    """Swap the last path segment of ``url`` for ``filename``.

    The query string is kept. A URL without any ``/`` becomes ``filename``.
    """
    if not url:
        return filename

    base, sep, query = url.partition("?")
    last_slash = base.rfind("/")
    if last_slash == -1:
        return filename

    return f"{base[:last_slash]}/{filename}{sep}{query}"


def default_resolve_paths(args: ResolvePathsArgs) -> ResolvedPaths:
    """Place ``<base>_<preset><ext>`` next to the original file.

    Example:
        ``/var/media/clip.mp4`` + ``hd720`` -> ``/var/media/clip_hd720.mp4``
    """
    original_filename = args.original_filename or os.path.basename(args.original_path)
    extension = (
        os.path.splitext(original_filename)[1]
        or os.path.splitext(args.original_path)[1]
        or DEFAULT_CONTAINER_EXTENSION
    )
    base_name = original_filename
    if base_name.endswith(extension):
        base_name = base_name[: -len(extension)]
    filename = f"{base_name}_{args.preset_name}{extension}"

    original_dir = os.path.dirname(args.original_path)
    if os.path.isabs(args.original_path):
        target_dir = original_dir
    else:
        target_dir = os.path.normpath(os.path.join(os.getcwd(), original_dir))

    return ResolvedPaths(
        dir=target_dir,
        filename=filename,
        url=replace_url_filename(args.original_url, filename),
    )


def build_stored_path(original_path: str, filename: str) -> str:
    """Variant path as stored on the document, relative when the original is."""
    return os.path.join(os.path.dirname(original_path), filename)


def build_write_path(directory: str, filename: str) -> str:
    return os.path.join(directory, filename)
