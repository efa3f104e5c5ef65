"""Shared fixtures: in-memory document store and job store."""

import copy
import os
from typing import Optional
from unittest.mock import MagicMock

import pytest

from video_processor.core.config import Settings
from video_processor.modules.transcoding.ffmpeg import FFmpegArgs
from video_processor.modules.transcoding.models import PROCESSING_STATUS_FIELD, TERMINAL_JOB_STATES
from video_processor.modules.transcoding.options import CollectionConfig, VideoProcessorOptions
from video_processor.modules.transcoding.queue import JobQueue
from video_processor.modules.transcoding.schemas import JobRecord


class InMemoryDocumentClient:
    """DocumentClient keeping documents in a dict keyed by (collection, id)."""

    def __init__(self, collections: Optional[dict[str, CollectionConfig]] = None):
        self.docs: dict[tuple[str, str], dict] = {}
        self.collections = collections or {}
        self.updates: list[tuple[str, str, dict]] = []
        self.fail_status_writes = False

    def add(self, collection: str, doc: dict) -> dict:
        self.docs[(collection, str(doc["id"]))] = copy.deepcopy(doc)
        return doc

    def get(self, collection: str, document_id: str) -> dict:
        return self.docs[(collection, str(document_id))]

    async def find_by_id(self, collection: str, document_id: str) -> Optional[dict]:
        doc = self.docs.get((collection, str(document_id)))
        return copy.deepcopy(doc) if doc is not None else None

    async def update(self, collection: str, document_id: str, data: dict) -> dict:
        self.updates.append((collection, str(document_id), copy.deepcopy(data)))
        if self.fail_status_writes and PROCESSING_STATUS_FIELD in data:
            raise RuntimeError("status write failed")
        doc = self.docs[(collection, str(document_id))]
        doc.update(copy.deepcopy(data))
        return copy.deepcopy(doc)

    def get_collection_config(self, slug: str) -> Optional[CollectionConfig]:
        return self.collections.get(slug)


class InMemoryJobStore:
    """Job record store mirroring RedisJobStore, with TTLs recorded."""

    def __init__(self):
        self.records: dict[str, JobRecord] = {}
        self.ttls: dict[str, Optional[int]] = {}
        self.closed = False

    async def save(self, record: JobRecord) -> None:
        self.records[record.id] = record.model_copy()
        self.ttls[record.id] = None

    async def claim(self, record: JobRecord) -> bool:
        existing = self.records.get(record.id)
        if existing is not None and existing.state not in TERMINAL_JOB_STATES:
            return False
        await self.save(record)
        return True

    async def get(self, job_id: str) -> Optional[JobRecord]:
        return self.records.get(job_id)

    async def update(self, job_id: str, fields: dict[str, str], ttl: Optional[int] = None) -> bool:
        record = self.records.get(job_id)
        if record is None:
            return False
        data = record.model_dump(by_alias=True)
        data.update(fields)
        self.records[job_id] = JobRecord.model_validate(data)
        self.ttls[job_id] = ttl
        return True

    async def delete(self, job_id: str) -> bool:
        self.ttls.pop(job_id, None)
        return self.records.pop(job_id, None) is not None

    async def close(self) -> None:
        self.closed = True


class FakeTranscoder:
    """Writes a fixed payload as the output and reports progress."""

    def __init__(self, payload: bytes = b"transcoded-video", progress=(50.0, 100.0)):
        self.payload = payload
        self.progress = progress
        self.calls: list[tuple[str, str, FFmpegArgs]] = []

    async def transcode(self, input_path, output_path, args, duration=None, progress_callback=None):
        self.calls.append((input_path, output_path, args))
        with open(output_path, "wb") as f:
            f.write(self.payload)
        if progress_callback is not None:
            for percent in self.progress:
                await progress_callback(percent)


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        _env_file=None,
        STATIC_DIR=None,
        UPLOADS_DIR=None,
        LOG_JSON=False,
        DEBUG=False,
    )


@pytest.fixture
def options() -> VideoProcessorOptions:
    return VideoProcessorOptions(
        presets={
            "mobile360": {"label": "360p Mobile", "args": ["-vf", "scale=-2:360"]},
            "hd720": {"label": "HD 720p", "args": ["-vf", "scale=-2:720"], "enableCrop": True},
        },
    )


@pytest.fixture
def documents() -> InMemoryDocumentClient:
    return InMemoryDocumentClient()


@pytest.fixture
def job_store() -> InMemoryJobStore:
    return InMemoryJobStore()


@pytest.fixture
def celery_app() -> MagicMock:
    return MagicMock()


@pytest.fixture
def job_queue(celery_app, job_store) -> JobQueue:
    return JobQueue(celery_app, job_store, "video-transcode", completed_ttl=60)


@pytest.fixture
def fake_transcoder() -> FakeTranscoder:
    return FakeTranscoder()


@pytest.fixture
def media_dir(tmp_path) -> str:
    directory = tmp_path / "media"
    directory.mkdir()
    return str(directory)


@pytest.fixture
def video_doc(media_dir, documents) -> dict:
    """A stored video document whose original file exists on disk."""
    path = os.path.join(media_dir, "clip.mp4")
    with open(path, "wb") as f:
        f.write(b"original-video")
    doc = {
        "id": "1",
        "filename": "clip.mp4",
        "path": path,
        "url": "/media/clip.mp4",
        "mimeType": "video/mp4",
        "filesize": 14,
    }
    documents.add("media", doc)
    return doc
