"""Webhook storage operations for hookrelay.

Provides methods to store, retrieve, and manage subscriptions and the
append-only delivery log.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from qdrant_client import models

from hookrelay.storage.retry import qdrant_retry

if TYPE_CHECKING:
    from hookrelay.models import DeliveryRecord, DeliveryStatus, Subscription


class WebhookMixin:
    """Mixin providing subscription and delivery log operations for RelayStorage.

    This mixin expects the following attributes/methods from the base class:
    - _upsert(kind, entity_id, payload)
    - _retrieve(kind, entity_id) -> dict | None
    - _delete(kind, entity_id)
    - _scroll_all(kind, scroll_filter) -> list[dict]
    - _payload_to_model(payload, model_class) -> ModelT
    - _match(key, value) -> FieldCondition
    """

    _upsert: Any
    _retrieve: Any
    _delete: Any
    _scroll_all: Any
    _count: Any
    _match: Any
    _model_to_payload: Any
    _payload_to_model: Any

    @qdrant_retry
    async def store_subscription(self, subscription: Subscription) -> str:
        """Store a subscription.

        Args:
            subscription: Subscription to store.

        Returns:
            The subscription ID.
        """
        await self._upsert(
            "subscriptions", subscription.id, self._model_to_payload(subscription)
        )
        return subscription.id

    @qdrant_retry
    async def get_subscription(self, subscription_id: str) -> Subscription | None:
        """Get a subscription by ID, or None if it doesn't exist."""
        from hookrelay.models import Subscription

        payload = await self._retrieve("subscriptions", subscription_id)
        if payload is None:
            return None
        subscription: Subscription = self._payload_to_model(payload, Subscription)
        return subscription

    @qdrant_retry
    async def list_subscriptions(
        self,
        event_type: str | None = None,
        active_only: bool = False,
    ) -> list[Subscription]:
        """List subscriptions.

        Args:
            event_type: Only subscriptions for this event type.
            active_only: If True, only return active subscriptions.

        Returns:
            Subscriptions sorted by registration time (oldest first).
        """
        from hookrelay.models import Subscription

        filters: list[models.FieldCondition] = []
        if event_type is not None:
            filters.append(self._match("event_type", event_type))
        if active_only:
            filters.append(self._match("is_active", True))

        payloads = await self._scroll_all(
            "subscriptions",
            models.Filter(must=filters) if filters else None,
        )
        subscriptions: list[Subscription] = [
            self._payload_to_model(p, Subscription) for p in payloads
        ]
        subscriptions.sort(key=lambda s: s.created_at)
        return subscriptions

    async def get_subscriptions_for_event(self, event_type: str) -> list[Subscription]:
        """Get all active subscriptions for an event type.

        Args:
            event_type: The event type to filter for.

        Returns:
            Subscriptions that should receive events of this type.
        """
        subscriptions = await self.list_subscriptions(event_type=event_type, active_only=True)
        return [s for s in subscriptions if s.subscribes_to(event_type)]

    async def update_subscription(
        self,
        subscription_id: str,
        **updates: Any,
    ) -> Subscription | None:
        """Update a subscription.

        The secret is never reissued, so it cannot be updated here.

        Args:
            subscription_id: ID of the subscription to update.
            **updates: Fields to update.

        Returns:
            Updated Subscription or None if not found.
        """
        from hookrelay.models import utc_now

        subscription = await self.get_subscription(subscription_id)
        if subscription is None:
            return None

        for key, value in updates.items():
            if key in ("id", "secret", "created_at"):
                continue
            if hasattr(subscription, key):
                setattr(subscription, key, value)

        subscription.updated_at = utc_now()

        await self.store_subscription(subscription)
        return subscription

    @qdrant_retry
    async def delete_subscription(self, subscription_id: str) -> bool:
        """Delete a subscription.

        Jobs already scheduled for it fail terminally when dequeued.

        Returns:
            True if deleted, False if not found.
        """
        if await self._retrieve("subscriptions", subscription_id) is None:
            return False
        await self._delete("subscriptions", subscription_id)
        return True

    @qdrant_retry
    async def log_delivery(self, record: DeliveryRecord) -> str:
        """Append a delivery record to the audit log.

        Records are never updated; each attempt writes a new point in a
        single upsert.

        Args:
            record: DeliveryRecord to append.

        Returns:
            The record ID.
        """
        await self._upsert("deliveries", record.id, self._model_to_payload(record))
        return record.id

    @qdrant_retry
    async def get_delivery(self, delivery_id: str) -> DeliveryRecord | None:
        """Get a delivery record by ID, or None if it doesn't exist."""
        from hookrelay.models import DeliveryRecord

        payload = await self._retrieve("deliveries", delivery_id)
        if payload is None:
            return None
        record: DeliveryRecord = self._payload_to_model(payload, DeliveryRecord)
        return record

    @qdrant_retry
    async def list_deliveries(
        self,
        event_id: str | None = None,
        subscription_id: str | None = None,
        status: DeliveryStatus | None = None,
        limit: int = 100,
    ) -> list[DeliveryRecord]:
        """List delivery records.

        Args:
            event_id: Optional event filter.
            subscription_id: Optional subscription filter.
            status: Optional status filter (SUCCESS or FAILED).
            limit: Maximum records to return.

        Returns:
            Records sorted by creation time (newest first).
        """
        from hookrelay.models import DeliveryRecord

        filters: list[models.FieldCondition] = []
        if event_id is not None:
            filters.append(self._match("event_id", event_id))
        if subscription_id is not None:
            filters.append(self._match("subscription_id", subscription_id))
        if status is not None:
            filters.append(self._match("status", status))

        payloads = await self._scroll_all(
            "deliveries",
            models.Filter(must=filters) if filters else None,
        )
        records: list[DeliveryRecord] = [
            self._payload_to_model(p, DeliveryRecord) for p in payloads
        ]

        records.sort(key=lambda r: r.created_at, reverse=True)
        return records[:limit]

    @qdrant_retry
    async def count_deliveries(self, status: DeliveryStatus | None = None) -> int:
        """Count delivery records, optionally by status."""
        count_filter = None
        if status is not None:
            count_filter = models.Filter(must=[self._match("status", status)])
        return int(await self._count("deliveries", count_filter))
