"""Access to the host document store.

The pipeline only needs three operations; hosts either pass their own
implementation of :class:`DocumentClient` or use :class:`RestDocumentClient`
against the store's REST API.
"""

import logging
from typing import Optional, Protocol, runtime_checkable

import httpx

from video_processor.core.config import Settings
from video_processor.modules.transcoding.exceptions import DocumentStoreError
from video_processor.modules.transcoding.options import CollectionConfig

logger = logging.getLogger(__name__)


@runtime_checkable
class DocumentClient(Protocol):
    """Single-document operations of the host store."""

    async def find_by_id(self, collection: str, document_id: str) -> Optional[dict]:
        ...

    async def update(self, collection: str, document_id: str, data: dict) -> dict:
        ...

    def get_collection_config(self, slug: str) -> Optional[CollectionConfig]:
        ...


class RestDocumentClient:
    """DocumentClient over the store's REST API.

    Requests go to ``{base_url}/api/{collection}/{id}`` authenticated with
    the admin token. Responses wrapped in ``{"doc": ...}`` are unwrapped.
    """

    def __init__(
        self,
        base_url: str,
        token: str,
        collections: Optional[dict[str, CollectionConfig]] = None,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        if not base_url or not token:
            raise DocumentStoreError(
                "Unable to establish document REST client. "
                "Provide DOCUMENT_API_URL and DOCUMENT_API_TOKEN."
            )
        self.base_url = base_url.rstrip("/")
        self.collections = collections or {}
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._headers = {
            "Accept": "application/json",
            "Authorization": f"Bearer {token}",
            "X-Payload-API-Key": token,
        }

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        collections: Optional[dict[str, CollectionConfig]] = None,
    ) -> "RestDocumentClient":
        return cls(
            base_url=settings.DOCUMENT_API_URL or "",
            token=settings.DOCUMENT_API_TOKEN or "",
            collections=collections,
            timeout=settings.DOCUMENT_API_TIMEOUT_SECONDS,
        )

    def _url(self, collection: str, document_id: str) -> str:
        return f"{self.base_url}/api/{collection}/{document_id}"

    @staticmethod
    def _unwrap(payload: dict) -> dict:
        if isinstance(payload, dict) and isinstance(payload.get("doc"), dict):
            return payload["doc"]
        return payload

    async def find_by_id(self, collection: str, document_id: str) -> Optional[dict]:
        response = await self._client.get(
            self._url(collection, document_id),
            headers=self._headers,
        )

        if response.status_code == 404:
            return None
        if response.status_code != 200:
            raise DocumentStoreError(
                f"Document REST request failed ({response.status_code}): {response.text}"
            )

        return self._unwrap(response.json())

    async def update(self, collection: str, document_id: str, data: dict) -> dict:
        response = await self._client.patch(
            self._url(collection, document_id),
            json=data,
            headers=self._headers,
        )

        if not response.is_success:
            raise DocumentStoreError(
                f"Document REST request failed ({response.status_code}): {response.text}"
            )

        logger.debug(
            "Updated document",
            extra={"collection": collection, "document_id": document_id, "fields": list(data)},
        )
        return self._unwrap(response.json())

    def get_collection_config(self, slug: str) -> Optional[CollectionConfig]:
        return self.collections.get(slug)

    async def aclose(self) -> None:
        await self._client.aclose()


def resolve_collection_config(
    documents: DocumentClient,
    slug: str,
    fallback: Optional[dict[str, CollectionConfig]] = None,
) -> Optional[CollectionConfig]:
    """Collection config from the document client, else from ``fallback``."""
    getter = getattr(documents, "get_collection_config", None)
    config = getter(slug) if callable(getter) else None
    if config is None and fallback:
        config = fallback.get(slug)
    return config
