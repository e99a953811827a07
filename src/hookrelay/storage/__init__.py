"""Storage backends for hookrelay.

This module provides the storage layer for persisting events,
subscriptions, delivery records and scheduled jobs to Qdrant.

Example:
    ```python
    from hookrelay.storage import RelayStorage

    async with RelayStorage() as storage:
        await storage.store_event(event)
        records = await storage.list_deliveries(event_id=event.id)
    ```
"""

from .base import COLLECTION_NAMES
from .client import RelayStorage

__all__ = [
    "RelayStorage",
    "COLLECTION_NAMES",
]
