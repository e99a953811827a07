"""Core hookrelay service layer.

This module provides the RelayService that wires storage, the retry
scheduler, the fan-out dispatcher and the delivery workers together.

Example:
    ```python
    from hookrelay.service import RelayService

    async with RelayService.create() as relay:
        subscription = await relay.register_webhook(
            client_name="billing",
            event_type="invoice.paid",
            target_url="https://billing.example.com/hooks",
        )
        result = await relay.ingest_event("invoice.paid", {"invoice": 42})
        print(f"Event {result.event.id} fanned out to {len(result.jobs)} jobs")

        await relay.worker.drain()
    ```
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import httpx

from hookrelay.config import Settings
from hookrelay.exceptions import ConfigurationError
from hookrelay.logging import get_logger
from hookrelay.models import utc_now
from hookrelay.storage import RelayStorage
from hookrelay.webhooks import (
    DeliveryWorker,
    DeliveryWorkerPool,
    RetryScheduler,
    WebhookDispatcher,
)
from hookrelay.webhooks.scheduler import Clock

from .ingest import IngestMixin
from .operations import OperationsMixin

logger = get_logger(__name__)


@dataclass
class RelayService(IngestMixin, OperationsMixin):
    """High-level webhook relay service.

    This service provides a simple interface for:
    - ingest_event(): Persist an event and fan it out to subscribers
    - register_webhook(): Create a subscription with a fresh secret
    - retry_delivery(): Re-enqueue the pair behind a delivery record
    - start_workers() / stop_workers(): Run the embedded worker pool

    Uses dependency injection for storage, the HTTP client and the clock,
    making it easy to test and configure.

    Attributes:
        storage: Storage backend (Qdrant).
        settings: Configuration settings.
        http_client: Client for outbound deliveries. Created on initialize()
            when not supplied.
        clock: Time source shared by the scheduler.
    """

    storage: RelayStorage
    settings: Settings
    http_client: httpx.AsyncClient | None = field(default=None)
    clock: Clock = field(default=utc_now)

    scheduler: RetryScheduler = field(init=False)
    dispatcher: WebhookDispatcher = field(init=False)

    _worker: DeliveryWorker | None = field(default=None, init=False, repr=False)
    _pool: DeliveryWorkerPool | None = field(default=None, init=False, repr=False)
    _owns_client: bool = field(default=False, init=False, repr=False)

    def __post_init__(self) -> None:
        """Build the delivery engine around the injected storage."""
        self.scheduler = RetryScheduler.from_settings(self.storage, self.settings, clock=self.clock)
        self.dispatcher = WebhookDispatcher(self.storage, self.scheduler)

    @classmethod
    def create(cls, settings: Settings | None = None) -> RelayService:
        """Create a RelayService with default dependencies.

        Args:
            settings: Optional settings. Uses defaults if None.

        Returns:
            Configured RelayService instance.
        """
        if settings is None:
            settings = Settings()

        return cls(
            storage=RelayStorage(
                url=settings.qdrant_url,
                api_key=settings.qdrant_api_key,
                prefix=settings.collection_prefix,
                location=settings.qdrant_location,
                path=settings.qdrant_path,
                settings=settings,
            ),
            settings=settings,
        )

    @property
    def worker(self) -> DeliveryWorker:
        """Delivery worker bound to this service's HTTP client.

        Raises:
            ConfigurationError: If the service has not been initialized.
        """
        if self._worker is None:
            if self.http_client is None:
                raise ConfigurationError("RelayService not initialized. Call initialize() first.")
            self._worker = DeliveryWorker.from_settings(
                self.storage,
                self.scheduler,
                self.http_client,
                self.settings,
            )
        return self._worker

    @property
    def workers_running(self) -> bool:
        return self._pool is not None and self._pool.running

    async def initialize(self) -> None:
        """Initialize the service (storage collections, HTTP client)."""
        await self.storage.initialize()
        if self.http_client is None:
            self.http_client = httpx.AsyncClient(follow_redirects=False)
            self._owns_client = True

    async def close(self) -> None:
        """Stop workers and release resources."""
        await self.stop_workers()
        if self._owns_client and self.http_client is not None:
            await self.http_client.aclose()
            self.http_client = None
            self._worker = None
            self._owns_client = False
        await self.storage.close()

    async def __aenter__(self) -> RelayService:
        """Async context manager entry."""
        await self.initialize()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()

    async def start_workers(self, concurrency: int | None = None) -> DeliveryWorkerPool:
        """Start the delivery worker pool.

        Args:
            concurrency: Number of worker loops. Defaults to settings.worker_concurrency.

        Returns:
            The running pool.
        """
        if self._pool is None:
            self._pool = DeliveryWorkerPool(
                self.worker,
                concurrency=concurrency or self.settings.worker_concurrency,
                poll_interval_seconds=self.settings.poll_interval_seconds,
            )
        await self._pool.start()
        return self._pool

    async def stop_workers(self, timeout: float | None = None) -> None:
        """Stop the worker pool, waiting for in-flight jobs.

        Args:
            timeout: Optional grace period after which busy workers are
                cancelled and their jobs released.
        """
        if self._pool is not None:
            await self._pool.stop(timeout)
            self._pool = None

    async def health(self) -> dict[str, Any]:
        """Report storage reachability and worker state."""
        storage_ok = await self.storage.ping()
        return {
            "status": "healthy" if storage_ok else "degraded",
            "storage": storage_ok,
            "workers_running": self.workers_running,
        }


__all__ = ["RelayService"]
