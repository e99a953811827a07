"""Operations mixin for RelayService.

Provides manual retry, delivery log queries, subscription management
and system stats.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from hookrelay.exceptions import NotFoundError
from hookrelay.logging import get_logger
from hookrelay.models import DeliveryJob

from .models import RelayStats

if TYPE_CHECKING:
    from hookrelay.models import DeliveryRecord, DeliveryStatus, Event, Subscription
    from hookrelay.storage import RelayStorage
    from hookrelay.webhooks import RetryScheduler

logger = get_logger(__name__)


class OperationsMixin:
    """Mixin providing administrative operations.

    Expects these attributes from the base class:
    - storage: RelayStorage
    - scheduler: RetryScheduler
    """

    storage: RelayStorage
    scheduler: RetryScheduler

    async def get_event(self, event_id: str) -> Event:
        """Get an event by ID.

        Raises:
            NotFoundError: If the event doesn't exist.
        """
        event = await self.storage.get_event(event_id)
        if event is None:
            raise NotFoundError("event", event_id)
        return event

    async def retry_delivery(self, delivery_id: str) -> DeliveryJob:
        """Re-enqueue the (event, subscription) pair behind a delivery record.

        The new job has a fresh attempt budget and is flagged as a retry,
        so its success never changes the event status.

        Args:
            delivery_id: ID of a recorded delivery (typically a failed one).

        Returns:
            The enqueued job.

        Raises:
            NotFoundError: If the delivery record doesn't exist.
        """
        record = await self.storage.get_delivery(delivery_id)
        if record is None:
            raise NotFoundError("delivery", delivery_id)

        job = DeliveryJob(
            event_id=record.event_id,
            subscription_id=record.subscription_id,
            is_retry=True,
            attempt=1,
        )
        await self.scheduler.enqueue(job)

        logger.info(
            "Manual retry queued",
            delivery_id=delivery_id,
            job_id=job.id,
            event_id=job.event_id,
            subscription_id=job.subscription_id,
        )
        return job

    async def list_deliveries(
        self,
        event_id: str | None = None,
        subscription_id: str | None = None,
        status: DeliveryStatus | None = None,
        limit: int = 100,
    ) -> list[DeliveryRecord]:
        """List delivery records, newest first."""
        return await self.storage.list_deliveries(
            event_id=event_id,
            subscription_id=subscription_id,
            status=status,
            limit=limit,
        )

    async def list_subscriptions(self) -> list[Subscription]:
        """List all subscriptions."""
        return await self.storage.list_subscriptions()

    async def set_subscription_active(self, subscription_id: str, is_active: bool) -> Subscription:
        """Enable or disable a subscription.

        Raises:
            NotFoundError: If the subscription doesn't exist.
        """
        subscription = await self.storage.update_subscription(subscription_id, is_active=is_active)
        if subscription is None:
            raise NotFoundError("subscription", subscription_id)
        return subscription

    async def delete_subscription(self, subscription_id: str) -> None:
        """Delete a subscription.

        Raises:
            NotFoundError: If the subscription doesn't exist.
        """
        if not await self.storage.delete_subscription(subscription_id):
            raise NotFoundError("subscription", subscription_id)

    async def get_stats(self) -> RelayStats:
        """Collect system counters."""
        return RelayStats(
            total_events=await self.storage.count_events(),
            total_deliveries=await self.storage.count_deliveries(),
            failed_deliveries=await self.storage.count_deliveries(status="FAILED"),
            pending_jobs=await self.scheduler.pending_count(),
        )
