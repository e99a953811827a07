"""Fan-out of admitted events into per-subscription delivery jobs."""

from __future__ import annotations

from typing import TYPE_CHECKING

from hookrelay.logging import get_logger
from hookrelay.models import DeliveryJob

if TYPE_CHECKING:
    from hookrelay.models import Event
    from hookrelay.storage import RelayStorage

    from .scheduler import RetryScheduler

logger = get_logger(__name__)


class WebhookDispatcher:
    """Creates one independent delivery job per matching active subscription.

    Jobs never share state, so one subscriber's failures cannot affect
    another's deliveries. An event with no matching subscriptions stays
    PENDING; that is expected, not an error.

    Example:
        ```python
        dispatcher = WebhookDispatcher(storage, scheduler)
        jobs = await dispatcher.dispatch_event(event)
        ```
    """

    def __init__(self, storage: RelayStorage, scheduler: RetryScheduler) -> None:
        self._storage = storage
        self._scheduler = scheduler

    async def dispatch_event(self, event: Event) -> list[DeliveryJob]:
        """Enqueue a first-attempt job for every subscriber of the event type.

        Args:
            event: A persisted event.

        Returns:
            The enqueued jobs, one per subscription.
        """
        subscriptions = await self._storage.get_subscriptions_for_event(event.event_type)

        if not subscriptions:
            logger.debug(
                "No subscriptions for event type",
                event_id=event.id,
                event_type=event.event_type,
            )
            return []

        jobs: list[DeliveryJob] = []
        for subscription in subscriptions:
            job = DeliveryJob(
                event_id=event.id,
                subscription_id=subscription.id,
                is_retry=False,
                attempt=1,
            )
            jobs.append(await self._scheduler.enqueue(job))

        logger.info(
            "Event fanned out",
            event_id=event.id,
            event_type=event.event_type,
            jobs=len(jobs),
        )
        return jobs
