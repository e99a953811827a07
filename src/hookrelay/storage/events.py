"""Event storage operations for hookrelay."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from qdrant_client import models

from hookrelay.storage.retry import qdrant_retry

if TYPE_CHECKING:
    from hookrelay.models import Event


class EventMixin:
    """Mixin providing event operations for RelayStorage.

    This mixin expects the following attributes/methods from the base class:
    - _upsert(kind, entity_id, payload)
    - _retrieve(kind, entity_id) -> dict | None
    - _payload_to_model(payload, model_class) -> ModelT
    - _count(kind, count_filter) -> int
    - client: AsyncQdrantClient
    """

    _upsert: Any
    _retrieve: Any
    _model_to_payload: Any
    _payload_to_model: Any
    _collection_name: Any
    _point_id: Any
    _count: Any
    client: Any

    @qdrant_retry
    async def store_event(self, event: Event) -> str:
        """Persist an event.

        Args:
            event: Event to store.

        Returns:
            The event ID.
        """
        await self._upsert("events", event.id, self._model_to_payload(event))
        return event.id

    @qdrant_retry
    async def get_event(self, event_id: str) -> Event | None:
        """Get an event by ID, or None if it doesn't exist."""
        from hookrelay.models import Event

        payload = await self._retrieve("events", event_id)
        if payload is None:
            return None
        event: Event = self._payload_to_model(payload, Event)
        return event

    @qdrant_retry
    async def mark_event_delivered(self, event_id: str) -> bool:
        """Advance an event to DELIVERED.

        The transition is idempotent: an event that is already DELIVERED,
        or that no longer exists, is left untouched.

        Args:
            event_id: Event to advance.

        Returns:
            True if the status changed, False otherwise.
        """
        from hookrelay.models import EventStatus

        payload = await self._retrieve("events", event_id)
        if payload is None or payload.get("status") == EventStatus.DELIVERED.value:
            return False

        await self.client.set_payload(
            collection_name=self._collection_name("events"),
            payload={"status": EventStatus.DELIVERED.value},
            points=[self._point_id(event_id)],
        )
        return True

    @qdrant_retry
    async def count_events(self, status: str | None = None) -> int:
        """Count stored events, optionally by status."""
        count_filter = None
        if status is not None:
            count_filter = models.Filter(
                must=[models.FieldCondition(key="status", match=models.MatchValue(value=status))]
            )
        return int(await self._count("events", count_filter))
