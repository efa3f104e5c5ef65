"""Tests for processor options and worker wiring."""

from unittest.mock import patch

import pytest
from pydantic import ValidationError as PydanticValidationError

from video_processor.modules.transcoding.options import CollectionConfig, VideoProcessorOptions, load_options
from video_processor.modules.transcoding.queue import TRANSCODE_TASK_NAME
from video_processor.worker import create_worker


class TestVideoProcessorOptions:
    """Validation at construction."""

    def test_presets_required(self) -> None:
        with pytest.raises(PydanticValidationError):
            VideoProcessorOptions(presets={})

    def test_auto_enqueue_needs_known_preset(self) -> None:
        with pytest.raises(PydanticValidationError, match="not a configured preset"):
            VideoProcessorOptions(
                presets={"hd720": {"args": ["-vf", "scale=-2:720"]}},
                autoEnqueue=True,
                autoEnqueuePreset="hd1080",
            )

        with pytest.raises(PydanticValidationError, match="required"):
            VideoProcessorOptions(presets={"hd720": {"args": []}}, autoEnqueue=True)

    def test_collections_list_is_indexed_by_slug(self) -> None:
        options = VideoProcessorOptions(
            presets={"hd720": {"args": []}},
            collections=[{"slug": "media", "staticDir": "media"}, CollectionConfig(slug="clips")],
        )

        assert options.get_collection_config("media").static_dir == "media"
        assert options.get_collection_config("clips") is not None
        assert options.get_collection_config("other") is None

    def test_admin_preset_map_defaults_label_to_name(self) -> None:
        options = VideoProcessorOptions(presets={"raw": {"args": ["-c:v", "libx264"]}})

        assert options.admin_preset_map() == {"raw": {"label": "raw", "enableCrop": False}}


class TestLoadOptions:
    """Options loaded from a config module or file."""

    def test_load_from_file(self, tmp_path) -> None:
        config = tmp_path / "video_config.py"
        config.write_text(
            "from video_processor.modules.transcoding.options import VideoProcessorOptions\n"
            "options = VideoProcessorOptions(presets={'sd': {'args': ['-vf', 'scale=-2:480']}})\n"
        )

        options = load_options(str(config))

        assert list(options.presets) == ["sd"]

    def test_load_plain_dict_with_attribute(self, tmp_path) -> None:
        config = tmp_path / "video_config.py"
        config.write_text("settings = {'presets': {'sd': {'args': []}}}\n")

        options = load_options(f"{config}:settings")

        assert options.get_preset("sd") is not None

    def test_missing_file(self, tmp_path) -> None:
        with pytest.raises(ValueError, match="not found"):
            load_options(str(tmp_path / "missing.py"))

    def test_invalid_export(self, tmp_path) -> None:
        config = tmp_path / "video_config.py"
        config.write_text("options = 42\n")

        with pytest.raises(ValueError, match="Invalid worker options"):
            load_options(str(config))


class TestCreateWorker:
    """The worker app routes the transcode task to the configured queue."""

    def test_task_is_registered(self, options, test_settings) -> None:
        app = create_worker(options, test_settings, documents_factory=lambda: None, concurrency=2)

        assert TRANSCODE_TASK_NAME in app.tasks
        assert app.conf.task_default_queue == "video-transcode"
        assert app.conf.worker_concurrency == 2
        assert app.conf.worker_prefetch_multiplier == 1

    def test_queue_name_override(self, test_settings) -> None:
        options = VideoProcessorOptions(
            presets={"sd": {"args": []}},
            queue={"name": "custom-videos", "concurrency": 3},
        )

        app = create_worker(options, test_settings)

        assert app.conf.task_default_queue == "custom-videos"
        assert app.conf.worker_concurrency == 3

    def test_metrics_server_started_on_configured_port(self, options, test_settings) -> None:
        settings = test_settings.model_copy(update={"WORKER_METRICS_PORT": 9200})

        with patch("video_processor.worker.start_metrics_server") as start:
            create_worker(options, settings)

        start.assert_called_once_with(9200)

    def test_metrics_server_off_by_default(self, options, test_settings) -> None:
        with patch("video_processor.worker.start_metrics_server") as start:
            create_worker(options, test_settings)

        start.assert_not_called()
