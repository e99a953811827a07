"""Service layer models for hookrelay.

Contains Pydantic models returned by service operations:
- IngestResult: An admitted event and the jobs it fanned out to
- RelayStats: Counters for the admin dashboard
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from hookrelay.models import DeliveryJob, Event


class IngestResult(BaseModel):
    """Result of admitting an event.

    Attributes:
        event: The persisted event (PENDING).
        jobs: One delivery job per matching active subscription.
    """

    model_config = ConfigDict(extra="forbid")

    event: Event
    jobs: list[DeliveryJob] = Field(default_factory=list)


class RelayStats(BaseModel):
    """System counters."""

    model_config = ConfigDict(extra="forbid")

    total_events: int = Field(ge=0)
    total_deliveries: int = Field(ge=0)
    failed_deliveries: int = Field(ge=0)
    pending_jobs: int = Field(ge=0)
