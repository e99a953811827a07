"""Base storage class and helpers.

Contains initialization, collection management, and shared utilities.
"""

from __future__ import annotations

import hashlib
from collections.abc import Sequence
from typing import Any, TypeVar

from pydantic import BaseModel
from qdrant_client import AsyncQdrantClient, models

from hookrelay.config import Settings
from hookrelay.exceptions import StorageError

ModelT = TypeVar("ModelT", bound=BaseModel)

# Logical collection names
COLLECTION_NAMES = {
    "events": "events",
    "subscriptions": "subscriptions",
    "deliveries": "deliveries",
    "jobs": "jobs",
}

# Keyword fields indexed per collection (server mode only)
KEYWORD_INDEXES = {
    "events": ["event_type", "status"],
    "subscriptions": ["event_type"],
    "deliveries": ["event_id", "subscription_id", "status"],
    "jobs": ["event_id", "subscription_id"],
}

# Points carry a single placeholder dimension; no vector search is performed
PLACEHOLDER_VECTOR = [0.0]

# Upper bound for list operations that must sort client-side
MAX_SCROLL_RECORDS = 10_000


class StorageBase:
    """Base class for hookrelay storage with initialization and helpers.

    Provides:
    - Client initialization and lifecycle management
    - Collection creation and indexing
    - Point ID derivation from entity IDs
    - Payload serialization/deserialization
    """

    def __init__(
        self,
        url: str | None = None,
        api_key: str | None = None,
        prefix: str | None = None,
        location: str | None = None,
        path: str | None = None,
        settings: Settings | None = None,
    ) -> None:
        """Initialize storage client.

        Args:
            url: Qdrant server URL. Defaults to settings.qdrant_url.
            api_key: Qdrant API key. Defaults to settings.qdrant_api_key.
            prefix: Collection name prefix. Defaults to settings.collection_prefix.
            location: Qdrant location, e.g. ":memory:". Takes precedence over url.
            path: Directory for an embedded on-disk store. Takes precedence over url.
            settings: Settings to read defaults from. Uses environment if None.
        """
        settings = settings or Settings()
        self._location = location or settings.qdrant_location
        self._path = path or settings.qdrant_path
        self._url = url or settings.qdrant_url
        self._api_key = api_key or settings.qdrant_api_key
        self._prefix = prefix or settings.collection_prefix
        self._client: AsyncQdrantClient | None = None

    @property
    def client(self) -> AsyncQdrantClient:
        """Get the Qdrant client, raising if not initialized."""
        if self._client is None:
            raise StorageError("Storage not initialized. Call initialize() first.")
        return self._client

    @property
    def is_local(self) -> bool:
        """Whether the store runs in-process rather than against a server."""
        return self._location is not None or self._path is not None

    async def initialize(self) -> None:
        """Open the client and ensure collections exist."""
        if self._location is not None:
            self._client = AsyncQdrantClient(location=self._location)
        elif self._path is not None:
            self._client = AsyncQdrantClient(path=self._path)
        else:
            self._client = AsyncQdrantClient(url=self._url, api_key=self._api_key)
        await self._ensure_collections()

    async def close(self) -> None:
        """Close the storage client connection."""
        if self._client is not None:
            await self._client.close()
            self._client = None

    async def __aenter__(self) -> StorageBase:
        """Async context manager entry."""
        await self.initialize()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()

    def _collection_name(self, kind: str) -> str:
        """Get full collection name with prefix."""
        suffix = COLLECTION_NAMES.get(kind, kind)
        return f"{self._prefix}_{suffix}"

    @staticmethod
    def _point_id(entity_id: str) -> str:
        """Convert an entity ID to a valid Qdrant point ID.

        Qdrant requires point IDs to be UUIDs or unsigned integers.
        We hash the ID to create a deterministic UUID-format string.
        """
        h = hashlib.sha256(entity_id.encode()).hexdigest()[:32]
        return f"{h[:8]}-{h[8:12]}-{h[12:16]}-{h[16:20]}-{h[20:32]}"

    async def _ensure_collections(self) -> None:
        """Ensure all required collections exist."""
        collections = await self.client.get_collections()
        existing = {c.name for c in collections.collections}

        for kind in COLLECTION_NAMES:
            collection_name = self._collection_name(kind)
            if collection_name in existing:
                continue

            await self.client.create_collection(
                collection_name=collection_name,
                vectors_config=models.VectorParams(
                    size=len(PLACEHOLDER_VECTOR),
                    distance=models.Distance.DOT,
                ),
            )
            if not self.is_local:
                await self._create_indexes(kind, collection_name)

    async def _create_indexes(self, kind: str, collection_name: str) -> None:
        """Create payload indexes for efficient filtering."""
        for field_name in KEYWORD_INDEXES.get(kind, []):
            await self.client.create_payload_index(
                collection_name=collection_name,
                field_name=field_name,
                field_schema=models.PayloadSchemaType.KEYWORD,
            )
        if kind == "jobs":
            for field_name in ("next_run_at_ts", "claimed_until_ts"):
                await self.client.create_payload_index(
                    collection_name=collection_name,
                    field_name=field_name,
                    field_schema=models.PayloadSchemaType.FLOAT,
                )

    @staticmethod
    def _model_to_payload(model: BaseModel, **extra: Any) -> dict[str, Any]:
        """Convert a model to a Qdrant payload, adding filter-only fields."""
        data = model.model_dump(mode="json")
        data.update(extra)
        return data

    @staticmethod
    def _payload_to_model(
        payload: dict[str, Any],
        model_class: type[ModelT],
        strip: Sequence[str] = (),
    ) -> ModelT:
        """Convert a Qdrant payload back to a model, dropping filter-only fields."""
        data = {k: v for k, v in payload.items() if k not in strip}
        return model_class.model_validate(data)

    async def _upsert(self, kind: str, entity_id: str, payload: dict[str, Any]) -> None:
        """Write one point. A single upsert is atomic per point."""
        await self.client.upsert(
            collection_name=self._collection_name(kind),
            points=[
                models.PointStruct(
                    id=self._point_id(entity_id),
                    vector=PLACEHOLDER_VECTOR,
                    payload=payload,
                )
            ],
        )

    async def _retrieve(self, kind: str, entity_id: str) -> dict[str, Any] | None:
        """Fetch one point's payload by entity ID."""
        results = await self.client.retrieve(
            collection_name=self._collection_name(kind),
            ids=[self._point_id(entity_id)],
            with_payload=True,
        )
        if not results or results[0].payload is None:
            return None
        return dict(results[0].payload)

    async def _delete(self, kind: str, entity_id: str) -> None:
        """Delete one point by entity ID."""
        await self.client.delete(
            collection_name=self._collection_name(kind),
            points_selector=models.PointIdsList(points=[self._point_id(entity_id)]),
        )

    async def _scroll_all(
        self,
        kind: str,
        scroll_filter: models.Filter | None = None,
        max_records: int = MAX_SCROLL_RECORDS,
        page_size: int = 256,
    ) -> list[dict[str, Any]]:
        """Page through a collection and return all matching payloads."""
        payloads: list[dict[str, Any]] = []
        offset: Any = None

        while len(payloads) < max_records:
            points, offset = await self.client.scroll(
                collection_name=self._collection_name(kind),
                scroll_filter=scroll_filter,
                limit=min(page_size, max_records - len(payloads)),
                offset=offset,
                with_payload=True,
                with_vectors=False,
            )
            payloads.extend(dict(p.payload) for p in points if p.payload is not None)
            if offset is None:
                break

        return payloads

    async def _count(self, kind: str, count_filter: models.Filter | None = None) -> int:
        result = await self.client.count(
            collection_name=self._collection_name(kind),
            count_filter=count_filter,
            exact=True,
        )
        return int(result.count)

    @staticmethod
    def _match(key: str, value: Any) -> models.FieldCondition:
        """Exact-match condition on a payload field."""
        return models.FieldCondition(key=key, match=models.MatchValue(value=value))
