"""Delivery models: scheduled jobs, attempt outcomes and the audit log.

A DeliveryJob is the unit of work held by the retry scheduler. Every time
a worker executes a job it produces a DeliveryOutcome, which is appended
to the audit log as a DeliveryRecord and reported back to the scheduler.
"""

from datetime import datetime, timedelta
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .base import generate_id, utc_now

# Hard cap on stored response bodies
RESPONSE_SNIPPET_LIMIT = 1000

DeliveryStatus = Literal["SUCCESS", "FAILED"]


def truncate_snippet(text: str | None, limit: int = RESPONSE_SNIPPET_LIMIT) -> str | None:
    """Truncate a response body to at most ``limit`` characters."""
    if text is None:
        return None
    return text[: min(limit, RESPONSE_SNIPPET_LIMIT)]


class DeliveryJob(BaseModel):
    """A scheduled delivery of one event to one subscription.

    Attributes:
        id: Unique identifier for this job.
        event_id: Event being delivered.
        subscription_id: Subscription receiving the event.
        is_retry: True only for operator-triggered re-delivery. A retry's
            success never advances the event status.
        attempt: Current attempt number (1-indexed).
        next_run_at: Earliest time the job may run.
        claimed_until: Lease expiry while a worker holds the job.
        claim_token: Identifies the claimant holding the current lease.
        created_at: When the job was first enqueued.
    """

    model_config = ConfigDict(extra="forbid")

    id: str = Field(default_factory=lambda: generate_id("job"))
    event_id: str = Field(description="Event being delivered")
    subscription_id: str = Field(description="Subscription receiving the event")
    is_retry: bool = Field(default=False, description="Operator-triggered re-delivery")
    attempt: int = Field(default=1, ge=1, description="Current attempt number")
    next_run_at: datetime = Field(
        default_factory=utc_now,
        description="Earliest time the job may run",
    )
    claimed_until: datetime | None = Field(
        default=None,
        description="Lease expiry while a worker holds the job",
    )
    claim_token: str | None = Field(
        default=None,
        description="Identifies the claimant holding the current lease",
    )
    created_at: datetime = Field(
        default_factory=utc_now,
        description="When the job was first enqueued",
    )

    @property
    def is_claimed(self) -> bool:
        return self.claimed_until is not None

    def is_due(self, now: datetime) -> bool:
        """Whether a worker may pick up this job at ``now``."""
        if self.claimed_until is not None:
            return self.claimed_until <= now
        return self.next_run_at <= now

    def claim(self, now: datetime, lease: timedelta) -> "DeliveryJob":
        """Mark the job as held by a worker until ``now + lease``."""
        self.claimed_until = now + lease
        self.claim_token = generate_id("clm")
        return self

    def release(self) -> "DeliveryJob":
        """Drop the lease without consuming an attempt."""
        self.claimed_until = None
        self.claim_token = None
        return self

    def reschedule(self, now: datetime, delay_ms: int) -> "DeliveryJob":
        """Advance to the next attempt and release the claim."""
        self.attempt += 1
        self.next_run_at = now + timedelta(milliseconds=delay_ms)
        self.release()
        return self


class DeliverySuccess(BaseModel):
    """The endpoint answered with a 2xx status."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: Literal["success"] = "success"
    response_code: int = Field(ge=200, le=299)
    body_snippet: str | None = None


class DeliveryFailure(BaseModel):
    """The attempt failed.

    Attributes:
        error_message: What went wrong.
        retryable: False when retrying can never help (e.g. the event or
            subscription no longer exists). The scheduler drops such jobs.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: Literal["failure"] = "failure"
    error_message: str
    retryable: bool = True


DeliveryOutcome = Annotated[DeliverySuccess | DeliveryFailure, Field(discriminator="kind")]


class DeliveryRecord(BaseModel):
    """Append-only audit row for one delivery attempt.

    Attributes:
        id: Unique identifier for this record.
        event_id: Event that was delivered.
        subscription_id: Subscription it was delivered to.
        status: SUCCESS or FAILED.
        response_code: HTTP status code (successes only).
        response_body: Response body, truncated to 1000 characters.
        error_message: Error description (failures only).
        attempts: Attempt number that produced this record.
        is_retry: Whether the attempt belonged to a manual retry.
        created_at: When the attempt finished.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    id: str = Field(default_factory=lambda: generate_id("dlv"))
    event_id: str = Field(description="Event that was delivered")
    subscription_id: str = Field(description="Subscription it was delivered to")
    status: DeliveryStatus = Field(description="Delivery status")
    response_code: int | None = Field(default=None, description="HTTP response status code")
    response_body: str | None = Field(
        default=None,
        description="HTTP response body (truncated to 1000 chars)",
    )
    error_message: str | None = Field(default=None, description="Error message if failed")
    attempts: int = Field(ge=1, description="Attempt number that produced this record")
    is_retry: bool = Field(default=False, description="Produced by a manual retry")
    created_at: datetime = Field(
        default_factory=utc_now,
        description="When the attempt finished",
    )

    @field_validator("response_body")
    @classmethod
    def _cap_response_body(cls, value: str | None) -> str | None:
        return truncate_snippet(value)

    @classmethod
    def from_outcome(
        cls,
        job: DeliveryJob,
        outcome: DeliverySuccess | DeliveryFailure,
    ) -> "DeliveryRecord":
        """Build the audit row for ``outcome`` of ``job``'s current attempt."""
        if isinstance(outcome, DeliverySuccess):
            return cls(
                event_id=job.event_id,
                subscription_id=job.subscription_id,
                status="SUCCESS",
                response_code=outcome.response_code,
                response_body=outcome.body_snippet,
                attempts=job.attempt,
                is_retry=job.is_retry,
            )
        return cls(
            event_id=job.event_id,
            subscription_id=job.subscription_id,
            status="FAILED",
            error_message=outcome.error_message,
            attempts=job.attempt,
            is_retry=job.is_retry,
        )


__all__ = [
    "RESPONSE_SNIPPET_LIMIT",
    "DeliveryFailure",
    "DeliveryJob",
    "DeliveryOutcome",
    "DeliveryRecord",
    "DeliveryStatus",
    "DeliverySuccess",
    "truncate_snippet",
]
