"""Configuration management for hookrelay."""

import logging
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """hookrelay configuration loaded from environment variables.

    All settings can be overridden via environment variables with
    the HOOKRELAY_ prefix. For example:
        HOOKRELAY_QDRANT_URL=http://localhost:6333
        HOOKRELAY_WORKER_CONCURRENCY=8

    Storage location is resolved in this order: qdrant_location (e.g.
    ":memory:"), qdrant_path (embedded on-disk store), qdrant_url (server).

    Security Notes:
        - In production (HOOKRELAY_ENV=production), both API tokens are required
        - Outside production an unset token disables the matching check
    """

    # Environment
    env: Literal["development", "production", "test"] = Field(
        default="development",
        description="Environment: development, production, or test",
    )

    # Storage
    qdrant_url: str = Field(
        default="http://localhost:6333",
        description="Qdrant connection URL",
    )
    qdrant_api_key: str | None = Field(
        default=None,
        description="Qdrant API key (for cloud)",
    )
    qdrant_location: str | None = Field(
        default=None,
        description="Qdrant location override, e.g. ':memory:' for an in-process store",
    )
    qdrant_path: str | None = Field(
        default=None,
        description="Directory for an embedded on-disk Qdrant store",
    )
    collection_prefix: str = Field(
        default="hookrelay",
        description="Prefix for Qdrant collection names",
    )

    # Delivery
    max_attempts: int = Field(
        default=5,
        ge=1,
        le=20,
        description="Automatic delivery attempts per job before it is terminally failed",
    )
    base_delay_ms: int = Field(
        default=5000,
        ge=1,
        le=3_600_000,
        description="Backoff delay after the first failed attempt (doubles each attempt)",
    )
    delivery_timeout_seconds: float = Field(
        default=5.0,
        gt=0.0,
        le=60.0,
        description="Timeout for one outbound webhook request",
    )
    response_snippet_limit: int = Field(
        default=1000,
        ge=0,
        description="Maximum characters of response body kept on a delivery record",
    )
    signature_header_prefix: str = Field(
        default="X-Relay",
        min_length=1,
        description="Prefix for outbound headers (Signature, Event, Timestamp, ...)",
    )
    secret_length: int = Field(
        default=32,
        ge=16,
        le=128,
        description="Random bytes in a generated subscription secret",
    )

    # Workers
    worker_concurrency: int = Field(
        default=4,
        ge=1,
        le=256,
        description="Number of delivery workers pulling from the job queue",
    )
    poll_interval_seconds: float = Field(
        default=1.0,
        gt=0.0,
        le=60.0,
        description="Sleep between polls when no job is due",
    )
    claim_timeout_seconds: float = Field(
        default=60.0,
        gt=0.0,
        description="Lease on a dequeued job; expired leases make the job runnable again",
    )
    embedded_workers: bool = Field(
        default=True,
        description=(
            "Run the worker pool inside the API process. Disable when a standalone "
            "runner serves the same store; workers must live in one process per store"
        ),
    )

    # Authentication
    internal_api_token: str | None = Field(
        default=None,
        description="Token required in X-Internal-Token for event ingestion",
    )
    admin_api_token: str | None = Field(
        default=None,
        description="Token required in X-Admin-Token for admin endpoints",
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    log_format: Literal["json", "text"] = Field(
        default="json",
        description="Log output format",
    )

    model_config = {
        "env_prefix": "HOOKRELAY_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
    }

    @model_validator(mode="after")
    def validate_claim_timeout(self) -> "Settings":
        """A lease must outlive the request it guards.

        Otherwise a slow but healthy delivery would be handed to a second
        worker while the first is still waiting on the endpoint.
        """
        if self.claim_timeout_seconds <= self.delivery_timeout_seconds:
            raise ValueError(
                f"claim_timeout_seconds ({self.claim_timeout_seconds}) must be greater than "
                f"delivery_timeout_seconds ({self.delivery_timeout_seconds})"
            )
        return self

    @model_validator(mode="after")
    def validate_security_settings(self) -> "Settings":
        """Require API tokens in production, log when they are missing in development."""
        missing = [
            name
            for name in ("internal_api_token", "admin_api_token")
            if getattr(self, name) is None
        ]
        if not missing:
            return self

        if self.env == "production":
            raise ValueError(
                f"{', '.join('HOOKRELAY_' + m.upper() for m in missing)} must be set in production. "
                'Generate one with: python -c "import secrets; print(secrets.token_hex(32))"'
            )

        if self.env == "development":
            logger.warning("API tokens not configured: %s", ", ".join(missing))
        return self

    @property
    def backoff_schedule_ms(self) -> list[int]:
        """Delays applied after attempts 1..max_attempts-1."""
        return [self.base_delay_ms * (2 ** (n - 1)) for n in range(1, self.max_attempts)]

