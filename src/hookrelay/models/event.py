"""Event model - a business fact to be relayed to subscribers."""

import json
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .base import generate_id, utc_now


class EventStatus(str, Enum):
    """Delivery state of an event.

    Only PENDING -> DELIVERED is ever applied by the delivery engine.
    FAILED is part of the vocabulary but absence of success is evidenced
    solely by delivery records.
    """

    PENDING = "PENDING"
    DELIVERED = "DELIVERED"
    FAILED = "FAILED"


class Event(BaseModel):
    """An event admitted for delivery.

    Attributes:
        id: Unique identifier for this event.
        event_type: Type used to match subscriptions (e.g. "application.created").
        payload: Pre-serialized JSON document. Forwarded and signed verbatim,
            never inspected by the delivery engine.
        status: Delivery state.
        created_at: When the event was admitted.
    """

    model_config = ConfigDict(extra="forbid")

    id: str = Field(default_factory=lambda: generate_id("evt"))
    event_type: str = Field(min_length=1, description="Event type")
    payload: str = Field(description="Serialized JSON payload")
    status: EventStatus = Field(default=EventStatus.PENDING, description="Delivery state")
    created_at: datetime = Field(
        default_factory=utc_now,
        description="When the event was admitted",
    )

    @property
    def is_delivered(self) -> bool:
        return self.status == EventStatus.DELIVERED

    def payload_document(self) -> Any:
        """Decode the payload for display."""
        return json.loads(self.payload)


__all__ = ["Event", "EventStatus"]
