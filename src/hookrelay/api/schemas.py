"""Pydantic schemas for API request/response models."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from hookrelay.models import TARGET_URL_PATTERN, DeliveryRecord, Event, EventStatus, Subscription


class IngestRequest(BaseModel):
    """Request body for admitting an event.

    Attributes:
        event_type: Type used to route the event to subscriptions.
        payload: JSON document relayed verbatim to subscribers.
    """

    model_config = ConfigDict(extra="forbid")

    event_type: str = Field(min_length=1, description="Event type, e.g. 'invoice.paid'")
    payload: dict[str, Any] | list[Any] = Field(description="JSON payload to relay")


class IngestResponse(BaseModel):
    """Acknowledgment of an admitted event.

    Delivery is asynchronous; this only confirms the event was persisted
    and fanned out.
    """

    model_config = ConfigDict(extra="forbid")

    success: bool = Field(default=True)
    event_id: str = Field(description="ID of the stored event")
    jobs_enqueued: int = Field(ge=0, description="Deliveries scheduled for this event")


class EventResponse(BaseModel):
    """Response model for an event."""

    model_config = ConfigDict(extra="forbid")

    id: str
    event_type: str
    payload: Any = Field(description="Parsed JSON payload")
    status: EventStatus
    created_at: datetime

    @classmethod
    def from_event(cls, event: Event) -> EventResponse:
        return cls(
            id=event.id,
            event_type=event.event_type,
            payload=event.payload_document(),
            status=event.status,
            created_at=event.created_at,
        )


class RegisterWebhookRequest(BaseModel):
    """Request body for registering a webhook subscription."""

    model_config = ConfigDict(extra="forbid")

    client_name: str = Field(min_length=1, description="Name of the receiving client")
    event_type: str = Field(min_length=1, description="Event type to receive")
    target_url: str = Field(pattern=TARGET_URL_PATTERN, description="http(s) endpoint")


class SubscriptionResponse(BaseModel):
    """Response model for a subscription. Never includes the secret."""

    model_config = ConfigDict(extra="forbid")

    id: str
    client_name: str
    event_type: str
    target_url: str
    is_active: bool
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_subscription(cls, subscription: Subscription) -> SubscriptionResponse:
        return cls(**subscription.model_dump(exclude={"secret"}))


class RegisteredWebhookResponse(SubscriptionResponse):
    """Response model for a newly registered subscription.

    This is the only response that exposes the signing secret.
    """

    secret: str = Field(description="HMAC-SHA256 signing secret (shown once)")

    @classmethod
    def from_subscription(cls, subscription: Subscription) -> RegisteredWebhookResponse:
        return cls(**subscription.model_dump())


class SubscriptionListResponse(BaseModel):
    """Response model for listing subscriptions."""

    model_config = ConfigDict(extra="forbid")

    webhooks: list[SubscriptionResponse]
    count: int = Field(ge=0)


class SubscriptionUpdateRequest(BaseModel):
    """Request body for enabling or disabling a subscription."""

    model_config = ConfigDict(extra="forbid")

    is_active: bool = Field(description="Whether the subscription receives deliveries")


class DeliveryRecordResponse(BaseModel):
    """Response model for one delivery attempt."""

    model_config = ConfigDict(extra="forbid")

    id: str
    event_id: str
    subscription_id: str
    status: Literal["SUCCESS", "FAILED"]
    response_code: int | None
    response_body: str | None
    error_message: str | None
    attempts: int
    is_retry: bool
    created_at: datetime

    @classmethod
    def from_record(cls, record: DeliveryRecord) -> DeliveryRecordResponse:
        return cls(**record.model_dump())


class DeliveryListResponse(BaseModel):
    """Response model for listing delivery records."""

    model_config = ConfigDict(extra="forbid")

    deliveries: list[DeliveryRecordResponse]
    count: int = Field(ge=0)


class MessageResponse(BaseModel):
    """Generic acknowledgment."""

    model_config = ConfigDict(extra="forbid")

    success: bool = Field(default=True)
    message: str


class RetryResponse(BaseModel):
    """Response model for a manual retry."""

    model_config = ConfigDict(extra="forbid")

    success: bool = Field(default=True)
    message: str = Field(default="Retry queued")
    job_id: str
    event_id: str
    subscription_id: str


class StatsResponse(BaseModel):
    """Response model for system counters."""

    model_config = ConfigDict(extra="forbid")

    total_events: int
    total_deliveries: int
    failed_deliveries: int
    pending_jobs: int


class HealthResponse(BaseModel):
    """Response model for the health check."""

    model_config = ConfigDict(extra="forbid")

    status: Literal["healthy", "degraded", "unhealthy"]
    version: str
    storage_connected: bool
    workers_running: bool = False
