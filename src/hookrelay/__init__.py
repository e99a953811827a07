"""hookrelay: Reliable, signed webhook delivery.

Accepts events, fans them out to every active subscription for the
event type, and delivers each one as an HMAC-SHA256 signed POST with
exponential-backoff retries and an append-only delivery log.

Quick Start:
    from hookrelay.service import RelayService

    async with RelayService.create() as relay:
        subscription = await relay.register_webhook(
            client_name="billing",
            event_type="invoice.paid",
            target_url="https://billing.example.com/hooks",
        )
        await relay.ingest_event("invoice.paid", {"invoice_id": 42})
        await relay.start_workers()

Entities:
    - Event: Immutable fact with an opaque JSON payload
    - Subscription: Webhook endpoint and signing secret for one event type
    - DeliveryJob: Durable, schedulable unit of delivery work
    - DeliveryRecord: Audit row for one delivery attempt
"""

__version__ = "0.1.0"

# Configuration
from .config import Settings

# Exceptions
from .exceptions import (
    AuthenticationError,
    ConfigurationError,
    DeliveryError,
    MissingReferenceError,
    NotFoundError,
    RelayError,
    StorageError,
    ValidationError,
)

# Logging
from .logging import (
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
    job_context,
    logger,
    unbind_context,
)

# Models
from .models import (
    DeliveryFailure,
    DeliveryJob,
    DeliveryRecord,
    DeliverySuccess,
    Event,
    EventStatus,
    Subscription,
)

__all__ = [
    # Version
    "__version__",
    # Configuration
    "Settings",
    # Exceptions
    "RelayError",
    "ValidationError",
    "NotFoundError",
    "MissingReferenceError",
    "DeliveryError",
    "StorageError",
    "ConfigurationError",
    "AuthenticationError",
    # Logging
    "configure_logging",
    "get_logger",
    "job_context",
    "logger",
    "bind_context",
    "clear_context",
    "unbind_context",
    # Models
    "Event",
    "EventStatus",
    "Subscription",
    "DeliveryJob",
    "DeliveryRecord",
    "DeliverySuccess",
    "DeliveryFailure",
]
