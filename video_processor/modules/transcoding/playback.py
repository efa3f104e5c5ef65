"""Derived playback fields for video documents.

Builds the ``<source>`` list (variants largest first, then the original)
and poster URLs that clients render without knowing the variant layout.
"""

import os
from typing import Any, Mapping, Optional
from urllib.parse import quote, urljoin, urlsplit, urlunsplit

from video_processor.modules.transcoding.models import VARIANTS_FIELD
from video_processor.modules.transcoding.schemas import PlaybackSource

ABSOLUTE_URL_PREFIXES = ("http://", "https://", "data:", "blob:", "//")
POSTER_SIZE_KEYS = ("medium", "large", "square", "thumbnail")

VIDEO_MIME_BY_EXTENSION = {
    ".mp4": "video/mp4",
    ".m4v": "video/mp4",
    ".mov": "video/mp4",
    ".webm": "video/webm",
    ".ogv": "video/ogg",
    ".ogg": "video/ogg",
}

PLACEHOLDER_POSTER_SVG = (
    '<svg xmlns="http://www.w3.org/2000/svg" width="640" height="360" '
    'viewBox="0 0 640 360" role="img" aria-label="Video">'
    '<rect width="640" height="360" rx="24" fill="#111827"/>'
    '<circle cx="320" cy="180" r="64" fill="#ffffff" opacity="0.1"/>'
    '<path d="M302 140 L302 220 L370 180 Z" fill="#ffffff" opacity="0.75"/>'
    "</svg>"
)


def is_absolute_url(value: str) -> bool:
    return value.startswith(ABSOLUTE_URL_PREFIXES)


def _has_origin(url: str) -> bool:
    parts = urlsplit(url)
    return bool(parts.scheme and parts.netloc)


def _read_header(headers: Optional[Mapping[str, Any]], name: str) -> str:
    if not headers:
        return ""
    value = headers.get(name)
    if value is None:
        value = headers.get(name.lower())
    if isinstance(value, (list, tuple)):
        value = value[0] if value else None
    return value if isinstance(value, str) else ""


def get_request_origin(
    server_url: Optional[str] = None,
    headers: Optional[Mapping[str, Any]] = None,
    url: Optional[str] = None,
) -> str:
    """Origin (``scheme://host``) the client reached the server on.

    Prefers the configured server URL, then an absolute request URL, then
    the forwarded/host headers.
    """
    for candidate in ((server_url or "").strip(), (url or "").strip()):
        if candidate and _has_origin(candidate):
            parts = urlsplit(candidate)
            return f"{parts.scheme}://{parts.netloc}"

    host = _read_header(headers, "x-forwarded-host") or _read_header(headers, "host")
    proto = _read_header(headers, "x-forwarded-proto") or "http"
    return f"{proto}://{host}" if host else ""


def _encode_url(url: str) -> str:
    # Percent-encode spaces and the like; existing escapes are kept
    return quote(url, safe=":/?#[]@!$&'()*+,;=%~")


def resolve_playback_url(value: Any, bases: list[str]) -> str:
    """Resolve ``value`` against the first usable absolute base."""
    if not isinstance(value, str) or not value.strip():
        return ""

    trimmed = value.strip()
    if trimmed.startswith(("data:", "blob:")):
        return trimmed
    if is_absolute_url(trimmed):
        return _encode_url(trimmed)

    for base in bases:
        if base and _has_origin(base):
            return _encode_url(urljoin(base, trimmed))

    return trimmed


def infer_video_mime_type(url: str) -> Optional[str]:
    path = url.split("#", 1)[0].split("?", 1)[0].lower()
    return VIDEO_MIME_BY_EXTENSION.get(os.path.splitext(path)[1])


def normalize_video_source_type(mime_type: Any, url: str) -> Optional[str]:
    normalized = mime_type.strip().lower() if isinstance(mime_type, str) else ""
    # Browsers often refuse video/quicktime for H.264 streams they can play
    if normalized == "video/quicktime":
        return "video/mp4"
    return normalized or infer_video_mime_type(url)


def _playback_bases(doc: dict, request_origin: Optional[str]) -> list[str]:
    doc_url = doc.get("url").strip() if isinstance(doc.get("url"), str) else ""
    return [base for base in (doc_url, request_origin or "") if base]


def build_playback_sources(doc: dict, request_origin: Optional[str] = None) -> list[PlaybackSource]:
    """Playable sources: variants by size (largest first), then the original.

    Duplicate URLs are listed once.
    """
    bases = _playback_bases(doc, request_origin)
    raw_variants = doc.get(VARIANTS_FIELD)
    variants = [v for v in raw_variants if isinstance(v, dict)] if isinstance(raw_variants, list) else []

    def size_key(variant: dict) -> float:
        size = variant.get("size")
        if isinstance(size, (int, float)) and not isinstance(size, bool):
            return size
        return float("-inf")

    sources: list[PlaybackSource] = []
    seen: set[str] = set()

    for variant in sorted(variants, key=size_key, reverse=True):
        src = resolve_playback_url(variant.get("url"), bases)
        if not src or src in seen:
            continue
        seen.add(src)
        preset = variant.get("preset")
        sources.append(
            PlaybackSource(
                src=src,
                type=normalize_video_source_type(None, src),
                preset=preset if isinstance(preset, str) else None,
            )
        )

    original = resolve_playback_url(doc.get("url"), bases)
    if original and original not in seen:
        sources.append(
            PlaybackSource(src=original, type=normalize_video_source_type(doc.get("mimeType"), original))
        )

    return sources


def _poster_candidate(doc: dict) -> Optional[str]:
    sizes = doc.get("sizes")
    if isinstance(sizes, dict):
        for key in POSTER_SIZE_KEYS:
            entry = sizes.get(key)
            url = entry.get("url") if isinstance(entry, dict) else None
            if isinstance(url, str) and url.strip():
                return url

    thumbnail = doc.get("thumbnailURL")
    if isinstance(thumbnail, str) and thumbnail.strip():
        return thumbnail
    return None


def build_playback_poster_url(doc: dict, request_origin: Optional[str] = None) -> Optional[str]:
    """Poster from the document's image sizes or ``thumbnailURL``."""
    resolved = resolve_playback_url(_poster_candidate(doc), _playback_bases(doc, request_origin))
    return resolved or None


def _replace_url_filename(source_url: str, filename: str) -> str:
    parts = urlsplit(source_url)
    directory = parts.path[: parts.path.rfind("/")]
    path = f"{directory}/{quote(filename)}"
    if _has_origin(source_url):
        return urlunsplit((parts.scheme, parts.netloc, path, parts.query, parts.fragment))
    return urlunsplit(("", "", path, parts.query, parts.fragment))


def infer_poster_from_filesystem(doc: dict) -> Optional[dict]:
    """Locate a ``<base>-poster.jpg`` next to the original file.

    Returns:
        ``{"url": ..., "path": ...}`` if the poster exists on disk, else None
    """
    path = doc.get("path").strip() if isinstance(doc.get("path"), str) else ""
    url = doc.get("url").strip() if isinstance(doc.get("url"), str) else ""
    filename = doc.get("filename").strip() if isinstance(doc.get("filename"), str) else ""
    filename = filename or os.path.basename(path)
    if not filename or not path or not url:
        return None

    base = os.path.splitext(filename)[0]
    if not base:
        return None

    poster_filename = f"{base}-poster.jpg"
    poster_path = os.path.join(os.path.dirname(path), poster_filename)
    if not os.path.exists(poster_path):
        return None

    return {"url": _replace_url_filename(url, poster_filename), "path": poster_path}


def build_inline_placeholder_poster() -> str:
    """Generic video poster as an SVG data URI."""
    return "data:image/svg+xml;charset=utf-8," + quote(PLACEHOLDER_POSTER_SVG, safe="!~*'()")
