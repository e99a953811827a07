"""Domain models for hookrelay.

Entities:
    - Event: A fact to relay, with a type and an opaque serialized payload
    - Subscription: A registered webhook endpoint for one event type
    - DeliveryJob: A scheduled delivery of one event to one subscription
    - DeliveryRecord: Append-only audit row for one delivery attempt

Outcomes:
    - DeliverySuccess / DeliveryFailure: Tagged result of one attempt
"""

from .base import generate_id, utc_now
from .delivery import (
    RESPONSE_SNIPPET_LIMIT,
    DeliveryFailure,
    DeliveryJob,
    DeliveryOutcome,
    DeliveryRecord,
    DeliveryStatus,
    DeliverySuccess,
    truncate_snippet,
)
from .event import Event, EventStatus
from .webhook import TARGET_URL_PATTERN, Subscription

__all__ = [
    # Helpers
    "generate_id",
    "utc_now",
    "truncate_snippet",
    # Entities
    "Event",
    "EventStatus",
    "Subscription",
    "TARGET_URL_PATTERN",
    "DeliveryJob",
    "DeliveryRecord",
    "DeliveryStatus",
    "RESPONSE_SNIPPET_LIMIT",
    # Outcomes
    "DeliveryFailure",
    "DeliveryOutcome",
    "DeliverySuccess",
]
