"""Test helpers shared across test modules."""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime, timedelta

import httpx

from hookrelay.models import Event, Subscription
from hookrelay.webhooks.signing import canonical_payload, generate_secret

START = datetime(2026, 1, 1, 12, 0, 0, tzinfo=UTC)


class FakeClock:
    """Manually advanced clock for scheduler tests."""

    def __init__(self, start: datetime = START) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float = 0.0, ms: int = 0) -> datetime:
        self.now += timedelta(seconds=seconds, milliseconds=ms)
        return self.now


class RecordingHandler:
    """httpx.MockTransport handler that records requests.

    Answers with ``status_code`` (or a per-host override) and ``body``
    unless ``error`` is set, in which case it raises
    ``error(message, request=request)``.
    """

    def __init__(
        self,
        status_code: int = 200,
        body: str = "ok",
        error: type[httpx.TransportError] | None = None,
        status_by_host: dict[str, int] | None = None,
    ) -> None:
        self.status_code = status_code
        self.body = body
        self.error = error
        self.status_by_host = status_by_host or {}
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error("simulated transport failure", request=request)
        status_code = self.status_by_host.get(request.url.host, self.status_code)
        return httpx.Response(status_code, text=self.body)


def mock_client(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
    """An AsyncClient that never touches the network."""
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def make_event(event_type: str = "application.created", payload: object = None) -> Event:
    if payload is None:
        payload = {"application_id": 7, "candidate": "Ada"}
    return Event(event_type=event_type, payload=canonical_payload(payload))


def make_subscription(
    event_type: str = "application.created",
    target_url: str = "https://receiver.example.com/hooks",
    is_active: bool = True,
    client_name: str = "ats",
) -> Subscription:
    return Subscription(
        client_name=client_name,
        event_type=event_type,
        target_url=target_url,
        secret=generate_secret(),
        is_active=is_active,
    )
