"""Subscription model - a registered webhook endpoint.

Subscriptions are owned by webhook registration; the delivery engine
only reads them.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from .base import generate_id, utc_now

# Registration accepts plain http(s) targets only
TARGET_URL_PATTERN = r"^https?://.+$"


class Subscription(BaseModel):
    """A webhook registration for one event type.

    Attributes:
        id: Unique identifier for this subscription.
        client_name: Name of the receiving client.
        event_type: Event type this subscription receives.
        target_url: Endpoint that receives POSTed events.
        secret: HMAC key for payload signatures. Generated once at
            registration and never reissued.
        is_active: Inactive subscriptions are skipped at fan-out.
        created_at: When the subscription was registered.
        updated_at: When the subscription was last modified.
    """

    model_config = ConfigDict(extra="forbid")

    id: str = Field(default_factory=lambda: generate_id("sub"))
    client_name: str = Field(min_length=1, description="Receiving client")
    event_type: str = Field(min_length=1, description="Event type filter")
    target_url: str = Field(pattern=TARGET_URL_PATTERN, description="Delivery endpoint")
    secret: str = Field(min_length=1, description="Shared secret for HMAC-SHA256 signatures")
    is_active: bool = Field(default=True, description="Whether subscription receives events")
    created_at: datetime = Field(
        default_factory=utc_now,
        description="When the subscription was registered",
    )
    updated_at: datetime = Field(
        default_factory=utc_now,
        description="When the subscription was last modified",
    )

    def subscribes_to(self, event_type: str) -> bool:
        """Check if this subscription receives the given event type."""
        return self.is_active and self.event_type == event_type


__all__ = ["TARGET_URL_PATTERN", "Subscription"]
