"""hookrelay service layer.

Provides the high-level RelayService for ingesting events and managing
webhook deliveries.

Example:
    ```python
    from hookrelay.service import RelayService

    async with RelayService.create() as relay:
        result = await relay.ingest_event("user.created", {"id": 7})
        await relay.start_workers()
    ```
"""

from .base import RelayService
from .models import IngestResult, RelayStats

__all__ = [
    "IngestResult",
    "RelayService",
    "RelayStats",
]
