"""FFmpeg argument synthesis and invocation.

Presets are free-form ffmpeg argument lists. Filters from the preset and the
crop filter are merged into one ``-vf`` chain, since a second ``-vf`` flag
would silently override the first.
"""

import asyncio
import inspect
import logging
import math
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional, Sequence, Union

from video_processor.modules.transcoding.exceptions import TranscodeError
from video_processor.modules.transcoding.schemas import CropRect

logger = logging.getLogger(__name__)

CRF_FLAG = "-crf"
MOVFLAGS_FLAG = "-movflags"
FASTSTART_FLAGS = [MOVFLAGS_FLAG, "+faststart"]
FILTER_FLAGS = ("-vf", "-filter:v")
DEFAULT_CRF = 24

ProgressCallback = Callable[[float], Union[None, Awaitable[None]]]


@dataclass
class Dimensions:
    """Source frame size in pixels; either side may be unknown."""
    width: Optional[int] = None
    height: Optional[int] = None


@dataclass
class FFmpegArgs:
    """Synthesized ffmpeg arguments."""
    global_options: list[str] = field(default_factory=list)
    output_options: list[str] = field(default_factory=list)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(value, high))


def has_crf(args: Sequence[str]) -> bool:
    return CRF_FLAG in args


def has_faststart(args: Sequence[str]) -> bool:
    for index, arg in enumerate(args):
        if arg == MOVFLAGS_FLAG and index + 1 < len(args) and "faststart" in args[index + 1]:
            return True
    return False


def extract_filters(args: Sequence[str]) -> tuple[list[str], list[str]]:
    """Split video filter values out of an argument list.

    Returns:
        Tuple of (remaining arguments, filter values in order)
    """
    rest: list[str] = []
    filters: list[str] = []

    index = 0
    while index < len(args):
        current = args[index]
        if current in FILTER_FLAGS:
            if index + 1 < len(args):
                filters.append(args[index + 1])
            index += 2
            continue
        rest.append(current)
        index += 1

    return rest, filters


def build_crop_filter(crop: CropRect, dimensions: Optional[Dimensions]) -> Optional[str]:
    """Pixel-space ``crop=W:H:X:Y`` filter that never leaves the source frame.

    Returns None when either source dimension is unknown.
    """
    if dimensions is None or not dimensions.width or not dimensions.height:
        return None

    crop_width = max(1, _round_half_up(dimensions.width * crop.width))
    crop_height = max(1, _round_half_up(dimensions.height * crop.height))

    max_x = max(0, dimensions.width - crop_width)
    max_y = max(0, dimensions.height - crop_height)

    x = _clamp(_round_half_up(dimensions.width * crop.x), 0, max_x)
    y = _clamp(_round_half_up(dimensions.height * crop.y), 0, max_y)

    return f"crop={crop_width}:{crop_height}:{x}:{y}"


def build_ffmpeg_args(
    preset_args: Sequence[str],
    crop: Optional[CropRect] = None,
    dimensions: Optional[Dimensions] = None,
    default_crf: int = DEFAULT_CRF,
) -> FFmpegArgs:
    """Build ffmpeg argument lists from preset args.

    Injects ``-crf`` and ``-movflags +faststart`` when the preset lacks them
    and folds the crop into the preset's filter chain (crop last).

    Args:
        preset_args: Raw preset arguments
        crop: Optional normalized crop rectangle
        dimensions: Source dimensions the crop is applied against
        default_crf: CRF used when the preset sets none

    Returns:
        FFmpegArgs with global and output options
    """
    rest, filters = extract_filters(list(preset_args))

    if not has_crf(rest):
        rest.extend([CRF_FLAG, str(default_crf)])

    if not has_faststart(rest):
        rest.extend(FASTSTART_FLAGS)

    if crop is not None:
        crop_filter = build_crop_filter(crop, dimensions)
        if crop_filter:
            filters.append(crop_filter)

    if filters:
        rest.extend(["-vf", ",".join(filters)])

    return FFmpegArgs(global_options=["-y"], output_options=rest)


def parse_progress_seconds(line: str) -> Optional[float]:
    """Output timestamp in seconds from one ``-progress`` line, if present."""
    key, sep, value = line.strip().partition("=")
    if not sep:
        return None
    # out_time_ms is in microseconds despite its name
    if key in ("out_time_us", "out_time_ms"):
        try:
            return int(value) / 1_000_000
        except ValueError:
            return None
    return None


class FFmpegTranscoder:
    """Runs ffmpeg and reports its progress as a percentage."""

    def __init__(self, ffmpeg_path: str = "ffmpeg"):
        self.ffmpeg_path = ffmpeg_path

    def build_command(self, input_path: str, output_path: str, args: FFmpegArgs) -> list[str]:
        return [
            self.ffmpeg_path,
            *args.global_options,
            "-hide_banner",
            "-loglevel", "error",
            "-i", input_path,
            *args.output_options,
            "-progress", "pipe:1",
            "-nostats",
            output_path,
        ]

    async def transcode(
        self,
        input_path: str,
        output_path: str,
        args: FFmpegArgs,
        duration: Optional[float] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> None:
        """Transcode ``input_path`` into ``output_path``.

        Progress is reported only when the source duration is known.

        Raises:
            TranscodeError: If ffmpeg cannot start or exits non-zero
        """
        cmd = self.build_command(input_path, output_path, args)
        logger.info("Starting ffmpeg", extra={"command": cmd})

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise TranscodeError(f"Unable to start ffmpeg: {e}") from e

        stderr_task = asyncio.create_task(process.stderr.read())

        drained = False
        try:
            async for raw_line in process.stdout:
                seconds = parse_progress_seconds(raw_line.decode(errors="replace"))
                if seconds is None or not duration or progress_callback is None:
                    continue
                percent = min(100.0, max(0.0, seconds / duration * 100))
                result = progress_callback(percent)
                if inspect.isawaitable(result):
                    await result
            drained = True
        finally:
            # Nobody reads stdout any more; ffmpeg would block on a full pipe
            if not drained and process.returncode is None:
                try:
                    process.kill()
                except ProcessLookupError:
                    pass
            stderr = (await stderr_task).decode(errors="replace")
            returncode = await process.wait()

        if returncode != 0:
            raise TranscodeError(
                f"ffmpeg exited with code {returncode}",
                returncode=returncode,
                stderr=stderr[-2000:],
            )
