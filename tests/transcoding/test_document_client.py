"""Tests for the REST document client."""

import json

import httpx
import pytest

from video_processor.modules.transcoding.documents import RestDocumentClient, resolve_collection_config
from video_processor.modules.transcoding.exceptions import DocumentStoreError
from video_processor.modules.transcoding.options import CollectionConfig


def _client(handler) -> RestDocumentClient:
    return RestDocumentClient(
        "https://cms.example.com/",
        "secret",
        collections={"media": CollectionConfig(slug="media", staticDir="media")},
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )


class TestRestDocumentClient:
    """Requests, authentication and response unwrapping."""

    @pytest.mark.asyncio
    async def test_find_by_id(self) -> None:
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"id": "1", "url": "/media/clip.mp4"})

        client = _client(handler)
        doc = await client.find_by_id("media", "1")
        await client.aclose()

        assert doc == {"id": "1", "url": "/media/clip.mp4"}
        assert str(seen[0].url) == "https://cms.example.com/api/media/1"
        assert seen[0].headers["authorization"] == "Bearer secret"
        assert seen[0].headers["x-payload-api-key"] == "secret"

    @pytest.mark.asyncio
    async def test_missing_document_is_none(self) -> None:
        client = _client(lambda request: httpx.Response(404, json={"errors": []}))

        assert await client.find_by_id("media", "9") is None

    @pytest.mark.asyncio
    async def test_server_error_raises(self) -> None:
        client = _client(lambda request: httpx.Response(500, text="boom"))

        with pytest.raises(DocumentStoreError, match="500"):
            await client.find_by_id("media", "1")

    @pytest.mark.asyncio
    async def test_update_patches_and_unwraps(self) -> None:
        bodies = []

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append((request.method, json.loads(request.content)))
            return httpx.Response(200, json={"doc": {"id": "1", "variants": []}, "message": "Updated"})

        client = _client(handler)
        updated = await client.update("media", "1", {"variants": []})

        assert updated == {"id": "1", "variants": []}
        assert bodies == [("PATCH", {"variants": []})]

    @pytest.mark.asyncio
    async def test_rejected_update_raises(self) -> None:
        client = _client(lambda request: httpx.Response(403, text="forbidden"))

        with pytest.raises(DocumentStoreError):
            await client.update("media", "1", {"filesize": 1})

    def test_credentials_required(self) -> None:
        with pytest.raises(DocumentStoreError):
            RestDocumentClient("", "token")
        with pytest.raises(DocumentStoreError):
            RestDocumentClient("https://cms.example.com", "")

    def test_collection_config_lookup(self) -> None:
        client = _client(lambda request: httpx.Response(200, json={}))

        assert client.get_collection_config("media").static_dir == "media"
        assert resolve_collection_config(client, "clips", {"clips": CollectionConfig(slug="clips")}).slug == "clips"
        assert resolve_collection_config(client, "other") is None
