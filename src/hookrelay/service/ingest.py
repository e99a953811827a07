"""Ingestion mixin for RelayService.

Admits events and registers webhook subscriptions. Both validate their
input synchronously; rejected input never reaches the delivery engine.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from hookrelay.exceptions import ValidationError
from hookrelay.logging import get_logger
from hookrelay.models import TARGET_URL_PATTERN, Event, Subscription
from hookrelay.webhooks.signing import canonical_payload, generate_secret

from .models import IngestResult

if TYPE_CHECKING:
    from hookrelay.config import Settings
    from hookrelay.storage import RelayStorage
    from hookrelay.webhooks import WebhookDispatcher

logger = get_logger(__name__)

_TARGET_URL_RE = re.compile(TARGET_URL_PATTERN)


def _require_text(field: str, value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(field, "Invalid or missing value")
    return value


def _require_event_type(value: Any) -> str:
    # Sent verbatim in an HTTP header, which only carries ASCII
    _require_text("event_type", value)
    if not value.isascii():
        raise ValidationError("event_type", "Must contain only ASCII characters")
    return value


class IngestMixin:
    """Mixin providing event ingestion and webhook registration.

    Expects these attributes from the base class:
    - storage: RelayStorage
    - settings: Settings
    - dispatcher: WebhookDispatcher
    """

    storage: RelayStorage
    settings: Settings
    dispatcher: WebhookDispatcher

    async def ingest_event(self, event_type: str, payload: Any) -> IngestResult:
        """Persist an event as PENDING and fan it out to subscribers.

        Fan-out happens before returning, so the returned jobs are already
        durable. Delivery itself is asynchronous; its outcome is only
        visible through the delivery log.

        Args:
            event_type: Type used to match subscriptions.
            payload: JSON object (or array) to relay.

        Returns:
            The stored event and the enqueued jobs.

        Raises:
            ValidationError: If event_type or payload is malformed.
        """
        _require_event_type(event_type)
        if not isinstance(payload, (Mapping, list)):
            raise ValidationError("payload", "Invalid or missing value")

        try:
            serialized = canonical_payload(payload)
        except (TypeError, ValueError) as e:
            raise ValidationError("payload", f"Not JSON serializable: {e}") from e

        event = Event(event_type=event_type, payload=serialized)
        await self.storage.store_event(event)

        jobs = await self.dispatcher.dispatch_event(event)

        logger.info(
            "Event admitted",
            event_id=event.id,
            event_type=event_type,
            jobs=len(jobs),
        )
        return IngestResult(event=event, jobs=jobs)

    async def register_webhook(
        self,
        client_name: str,
        event_type: str,
        target_url: str,
    ) -> Subscription:
        """Register a subscription and generate its signing secret.

        The returned subscription is the only place the secret is exposed.

        Args:
            client_name: Name of the receiving client.
            event_type: Event type to receive.
            target_url: http(s) endpoint.

        Returns:
            The stored subscription, including its secret.

        Raises:
            ValidationError: If any field is malformed.
        """
        _require_text("client_name", client_name)
        _require_event_type(event_type)
        if not isinstance(target_url, str) or not _TARGET_URL_RE.match(target_url):
            raise ValidationError("target_url", "Invalid or missing value")

        subscription = Subscription(
            client_name=client_name,
            event_type=event_type,
            target_url=target_url,
            secret=generate_secret(self.settings.secret_length),
        )
        await self.storage.store_subscription(subscription)

        logger.info(
            "Webhook registered",
            subscription_id=subscription.id,
            client_name=client_name,
            event_type=event_type,
        )
        return subscription
