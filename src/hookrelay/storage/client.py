"""Qdrant storage client for hookrelay.

This module provides the main RelayStorage class that combines
all storage operations through mixins.

Example:
    ```python
    from hookrelay.storage import RelayStorage

    async with RelayStorage(location=":memory:") as storage:
        await storage.store_event(event)
        subscriptions = await storage.get_subscriptions_for_event(event.event_type)
    ```
"""

from __future__ import annotations

import logging
from typing import Any

from .base import StorageBase
from .events import EventMixin
from .jobs import JobMixin
from .webhook import WebhookMixin

logger = logging.getLogger(__name__)


class RelayStorage(EventMixin, WebhookMixin, JobMixin, StorageBase):
    """Async Qdrant storage client for hookrelay.

    Handles collection management and persistence for every entity the
    delivery engine touches. Uses the async Qdrant client for non-blocking I/O.

    This class combines functionality from multiple mixins:
    - EventMixin: store_event, get_event, mark_event_delivered, count_events
    - WebhookMixin: subscriptions and the append-only delivery log
    - JobMixin: the durable job table behind the retry scheduler

    The store can run against a Qdrant server (url), an embedded on-disk
    directory (path) or purely in memory (location=":memory:").
    """

    async def __aenter__(self) -> RelayStorage:
        """Async context manager entry."""
        await self.initialize()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()

    async def ping(self) -> bool:
        """Check that the store answers.

        Returns:
            True if the store is reachable, False otherwise.
        """
        if self._client is None:
            return False
        try:
            await self.client.get_collections()
        except Exception:
            logger.warning("Storage health check failed", exc_info=True)
            return False
        return True
