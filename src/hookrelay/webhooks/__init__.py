"""Reliable webhook delivery engine for hookrelay.

Provides HMAC-signed webhook delivery with a durable retry scheduler.

Example:
    ```python
    from hookrelay.webhooks import (
        DeliveryWorker,
        RetryScheduler,
        WebhookDispatcher,
    )

    scheduler = RetryScheduler(storage)
    dispatcher = WebhookDispatcher(storage, scheduler)
    await dispatcher.dispatch_event(event)

    worker = DeliveryWorker(storage, scheduler, http_client)
    await worker.drain()
    ```
"""

from .dispatcher import WebhookDispatcher
from .scheduler import RetryScheduler, compute_backoff_ms
from .signing import canonical_payload, compute_signature, generate_secret, verify_signature
from .worker import DeliveryWorker, DeliveryWorkerPool

__all__ = [
    "DeliveryWorker",
    "DeliveryWorkerPool",
    "RetryScheduler",
    "WebhookDispatcher",
    "canonical_payload",
    "compute_backoff_ms",
    "compute_signature",
    "generate_secret",
    "verify_signature",
]
