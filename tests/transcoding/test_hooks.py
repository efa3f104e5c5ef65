"""Tests for the document lifecycle hooks."""

import pytest

from video_processor.modules.transcoding.hooks import (
    accepts_video_uploads,
    after_create,
    after_read,
    get_document_id,
    is_video_document,
)
from video_processor.modules.transcoding.models import PROCESSING_STATUS_FIELD
from video_processor.modules.transcoding.options import CollectionConfig, VideoProcessorOptions


@pytest.fixture
def auto_options() -> VideoProcessorOptions:
    return VideoProcessorOptions(
        presets={"hd1080": {"args": ["-vf", "scale=-2:1080"]}},
        autoEnqueue=True,
        autoEnqueuePreset="hd1080",
        autoReplaceOriginal=True,
    )


class TestDocumentPredicates:
    """Video detection on collections and documents."""

    def test_accepts_video_uploads(self) -> None:
        assert accepts_video_uploads(CollectionConfig(slug="media", mimeTypes=["image/*", "video/mp4"]))
        assert not accepts_video_uploads(CollectionConfig(slug="media", mimeTypes=["image/*"]))
        assert not accepts_video_uploads(None)

    def test_is_video_document(self) -> None:
        assert is_video_document({"mimeType": "video/webm"})
        assert not is_video_document({"mimeType": "image/png"})
        assert not is_video_document({})

    def test_get_document_id(self) -> None:
        assert get_document_id({"id": 7}) == "7"
        assert get_document_id({"id": "abc"}) == "abc"
        assert get_document_id({"id": True}) is None
        assert get_document_id({}) is None


class TestAfterRead:
    """Playback fields added to video documents."""

    def test_video_document_gets_playback_fields(self) -> None:
        doc = {
            "url": "/media/clip.mp4",
            "mimeType": "video/mp4",
            "thumbnailURL": "/media/clip.jpg",
            "variants": [{"preset": "mobile360", "url": "/media/clip_mobile360.mp4", "size": 5}],
        }

        after_read(doc, "https://cms.example.com")

        assert doc["playbackSources"] == [
            {"src": "https://cms.example.com/media/clip_mobile360.mp4", "type": "video/mp4", "preset": "mobile360"},
            {"src": "https://cms.example.com/media/clip.mp4", "type": "video/mp4"},
        ]
        assert doc["thumbnailURL"] == "https://cms.example.com/media/clip.jpg"
        assert doc["playbackPosterUrl"] == doc["thumbnailURL"]
        assert "playbackPosterPath" not in doc

    def test_placeholder_poster_when_none_found(self) -> None:
        doc = {"url": "/media/clip.mp4", "mimeType": "video/mp4"}

        after_read(doc)

        assert doc["thumbnailURL"].startswith("data:image/svg+xml")

    def test_non_video_document_untouched(self) -> None:
        doc = {"url": "/media/photo.png", "mimeType": "image/png"}

        assert after_read(dict(doc)) == doc


class TestAfterCreate:
    """Auto-enqueue of new video uploads."""

    @pytest.mark.asyncio
    async def test_enqueues_configured_preset_once(self, auto_options, job_queue, documents, video_doc, celery_app) -> None:
        first = await after_create(video_doc, "media", job_queue, documents, auto_options)
        second = await after_create(video_doc, "media", job_queue, documents, auto_options)

        assert first == second == "media:1:hd1080"
        assert celery_app.send_task.call_count == 1

        payload = celery_app.send_task.call_args.kwargs["args"][0]
        assert payload["preset"] == "hd1080"
        assert payload["autoReplaceOriginal"] is True

        status = documents.get("media", "1")[PROCESSING_STATUS_FIELD]
        assert status["jobId"] == "media:1:hd1080"
        assert status["state"] == "queued"
        assert status["progress"] == 0

    @pytest.mark.asyncio
    async def test_disabled_auto_enqueue(self, options, job_queue, documents, video_doc, celery_app) -> None:
        assert await after_create(video_doc, "media", job_queue, documents, options) is None
        celery_app.send_task.assert_not_called()

    @pytest.mark.asyncio
    async def test_non_video_upload_ignored(self, auto_options, job_queue, documents, celery_app) -> None:
        doc = {"id": "9", "mimeType": "image/png"}

        assert await after_create(doc, "media", job_queue, documents, auto_options) is None
        celery_app.send_task.assert_not_called()

    @pytest.mark.asyncio
    async def test_access_hook_can_block(self, auto_options, job_queue, documents, video_doc, celery_app) -> None:
        auto_options.access.enqueue = lambda args: False

        assert await after_create(video_doc, "media", job_queue, documents, auto_options) is None
        celery_app.send_task.assert_not_called()

    @pytest.mark.asyncio
    async def test_enqueue_failure_is_logged_not_raised(
        self, auto_options, job_queue, documents, video_doc, celery_app
    ) -> None:
        celery_app.send_task.side_effect = ConnectionError("broker unavailable")

        assert await after_create(video_doc, "media", job_queue, documents, auto_options) is None
