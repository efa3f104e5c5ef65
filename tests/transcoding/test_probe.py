"""Tests for ffprobe output parsing and tool failures."""

import pytest

from video_processor.modules.transcoding.exceptions import ProbeError, TranscodeError
from video_processor.modules.transcoding.ffmpeg import FFmpegArgs, FFmpegTranscoder
from video_processor.modules.transcoding.probe import parse_probe_output, probe_video


class TestParseProbeOutput:
    """Metadata extraction from ffprobe JSON."""

    def test_first_video_stream_is_used(self) -> None:
        metadata = parse_probe_output({
            "streams": [
                {"codec_type": "audio", "bit_rate": "128000", "duration": "10.0"},
                {"codec_type": "video", "width": 1920, "height": 1080, "duration": "12.5", "bit_rate": "4000000"},
                {"codec_type": "video", "width": 640, "height": 360},
            ],
            "format": {"duration": "13.0", "bit_rate": "4200000"},
        })

        assert metadata.width == 1920
        assert metadata.height == 1080
        assert metadata.duration == 12.5
        assert metadata.bitrate == 4000000

    def test_container_fallback_for_duration_and_bitrate(self) -> None:
        metadata = parse_probe_output({
            "streams": [{"codec_type": "video", "width": 1280, "height": 720}],
            "format": {"duration": "8.25", "bit_rate": "2500000"},
        })

        assert metadata.duration == 8.25
        assert metadata.bitrate == 2500000

    def test_unknown_values_are_none_not_zero(self) -> None:
        metadata = parse_probe_output({
            "streams": [{"codec_type": "video", "width": "N/A", "duration": "nan"}],
            "format": {"bit_rate": None},
        })

        assert metadata.width is None
        assert metadata.height is None
        assert metadata.duration is None
        assert metadata.bitrate is None

    def test_no_video_stream(self) -> None:
        metadata = parse_probe_output({"streams": [{"codec_type": "audio"}], "format": {"duration": "3"}})

        assert metadata.width is None
        assert metadata.duration == 3.0


class TestToolFailures:
    """Missing binaries surface as tool errors."""

    @pytest.mark.asyncio
    async def test_missing_ffprobe_raises_probe_error(self, tmp_path) -> None:
        with pytest.raises(ProbeError):
            await probe_video(str(tmp_path / "clip.mp4"), ffprobe_path=str(tmp_path / "no-ffprobe"))

    @pytest.mark.asyncio
    async def test_missing_ffmpeg_raises_transcode_error(self, tmp_path) -> None:
        transcoder = FFmpegTranscoder(ffmpeg_path=str(tmp_path / "no-ffmpeg"))

        with pytest.raises(TranscodeError):
            await transcoder.transcode(
                str(tmp_path / "in.mp4"),
                str(tmp_path / "out.mp4"),
                FFmpegArgs(global_options=["-y"], output_options=["-crf", "24"]),
            )

    def test_command_layout(self) -> None:
        command = FFmpegTranscoder("ffmpeg").build_command(
            "/in.mp4",
            "/out.mp4",
            FFmpegArgs(global_options=["-y"], output_options=["-crf", "24"]),
        )

        assert command[0] == "ffmpeg"
        assert command[1] == "-y"
        assert command.index("-i") < command.index("-crf")
        assert command[-1] == "/out.mp4"
        assert "pipe:1" in command
