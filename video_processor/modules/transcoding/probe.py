"""ffprobe wrapper returning the metadata the pipeline records."""

import asyncio
import json
import logging
import math
from dataclasses import dataclass
from typing import Any, Optional

from video_processor.modules.transcoding.exceptions import ProbeError

logger = logging.getLogger(__name__)


@dataclass
class VideoMetadata:
    """Probe result. ``None`` means unknown, never zero."""
    width: Optional[int] = None
    height: Optional[int] = None
    duration: Optional[float] = None
    bitrate: Optional[int] = None


def _to_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def _to_int(value: Any) -> Optional[int]:
    number = _to_float(value)
    return int(number) if number is not None else None


def parse_probe_output(data: dict) -> VideoMetadata:
    """Extract metadata from ``ffprobe -print_format json`` output.

    Width/height come from the first video stream; duration and bitrate
    fall back to the container when the stream omits them.
    """
    streams = data.get("streams") or []
    video_stream = next(
        (stream for stream in streams if isinstance(stream, dict) and stream.get("codec_type") == "video"),
        {},
    )
    container = data.get("format") or {}

    duration = _to_float(video_stream.get("duration"))
    if duration is None:
        duration = _to_float(container.get("duration"))

    bitrate = _to_int(video_stream.get("bit_rate"))
    if bitrate is None:
        bitrate = _to_int(container.get("bit_rate"))

    return VideoMetadata(
        width=_to_int(video_stream.get("width")),
        height=_to_int(video_stream.get("height")),
        duration=duration,
        bitrate=bitrate,
    )


async def probe_video(path: str, ffprobe_path: str = "ffprobe") -> VideoMetadata:
    """Probe a video file.

    Args:
        path: Absolute path to the file
        ffprobe_path: ffprobe binary

    Returns:
        VideoMetadata for the file

    Raises:
        ProbeError: If ffprobe is missing, exits non-zero or prints invalid JSON
    """
    cmd = [
        ffprobe_path,
        "-v", "quiet",
        "-print_format", "json",
        "-show_format",
        "-show_streams",
        path,
    ]

    try:
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        raise ProbeError(f"Unable to start ffprobe: {e}") from e

    stdout, stderr = await process.communicate()

    if process.returncode != 0:
        raise ProbeError(
            f"ffprobe exited with code {process.returncode} for {path}",
            details={"stderr": stderr.decode(errors="replace")[-500:]},
        )

    try:
        data = json.loads(stdout.decode(errors="replace") or "{}")
    except json.JSONDecodeError as e:
        raise ProbeError(f"ffprobe returned invalid JSON for {path}") from e

    if not isinstance(data, dict):
        raise ProbeError(f"ffprobe returned unexpected output for {path}")

    metadata = parse_probe_output(data)
    logger.debug(
        "Probed video",
        extra={"file_path": path, "width": metadata.width, "height": metadata.height},
    )
    return metadata
