"""Delivery workers: execute scheduled jobs against subscriber endpoints.

Each job is processed end-to-end by a single worker:

    fetch event + subscription -> sign -> POST -> record -> report

Per job the states are Scheduled -> InFlight -> Success | RetryableFailure
| TerminalFailure. Delivery errors never escape a worker; they become a
FAILED DeliveryRecord and a DeliveryFailure reported to the scheduler.
"""

from __future__ import annotations

import asyncio
import contextlib
from typing import TYPE_CHECKING

import httpx

from hookrelay.exceptions import DeliveryError, MissingReferenceError, RelayError
from hookrelay.logging import get_logger, job_context
from hookrelay.models import (
    RESPONSE_SNIPPET_LIMIT,
    DeliveryFailure,
    DeliveryRecord,
    DeliverySuccess,
    truncate_snippet,
    utc_now,
)

from .signing import compute_signature

if TYPE_CHECKING:
    from hookrelay.config import Settings
    from hookrelay.models import DeliveryJob, Event, Subscription
    from hookrelay.storage import RelayStorage

    from .scheduler import RetryScheduler

logger = get_logger(__name__)


class DeliveryWorker:
    """Executes delivery jobs pulled from the retry scheduler.

    Example:
        ```python
        async with httpx.AsyncClient() as client:
            worker = DeliveryWorker(storage, scheduler, client)
            job = await scheduler.dequeue_due()
            if job is not None:
                outcome = await worker.process(job)
        ```
    """

    def __init__(
        self,
        storage: RelayStorage,
        scheduler: RetryScheduler,
        http_client: httpx.AsyncClient,
        timeout_seconds: float = 5.0,
        snippet_limit: int = RESPONSE_SNIPPET_LIMIT,
        header_prefix: str = "X-Relay",
    ) -> None:
        """Initialize the worker.

        Args:
            storage: Store for events, subscriptions and the delivery log.
            scheduler: Scheduler that receives attempt outcomes.
            http_client: Shared client for outbound requests.
            timeout_seconds: Timeout for one outbound request.
            snippet_limit: Characters of response body kept per record.
            header_prefix: Prefix of the outbound relay headers.
        """
        self._storage = storage
        self._scheduler = scheduler
        self._client = http_client
        self._timeout = timeout_seconds
        self._snippet_limit = snippet_limit
        self._header_prefix = header_prefix

    @classmethod
    def from_settings(
        cls,
        storage: RelayStorage,
        scheduler: RetryScheduler,
        http_client: httpx.AsyncClient,
        settings: Settings,
    ) -> DeliveryWorker:
        """Create a worker configured from settings."""
        return cls(
            storage,
            scheduler,
            http_client,
            timeout_seconds=settings.delivery_timeout_seconds,
            snippet_limit=settings.response_snippet_limit,
            header_prefix=settings.signature_header_prefix,
        )

    def build_headers(
        self,
        event: Event,
        job: DeliveryJob,
        signature: str,
    ) -> dict[str, str]:
        """Headers for an outbound delivery request."""
        prefix = self._header_prefix
        timestamp = utc_now().isoformat(timespec="milliseconds").replace("+00:00", "Z")
        return {
            "Content-Type": "application/json",
            f"{prefix}-Signature": signature,
            f"{prefix}-Event": event.event_type,
            f"{prefix}-Timestamp": timestamp,
            f"{prefix}-Event-Id": event.id,
            f"{prefix}-Attempt": str(job.attempt),
        }

    async def process(self, job: DeliveryJob) -> DeliverySuccess | DeliveryFailure:
        """Execute one attempt of a job and report it.

        Args:
            job: A job claimed from the scheduler.

        Returns:
            The attempt outcome.

        Raises:
            Exception: Storage errors propagate; the job stays claimed and
                is redelivered once its lease expires.
        """
        with job_context(
            job_id=job.id,
            event_id=job.event_id,
            subscription_id=job.subscription_id,
            attempt=job.attempt,
        ):
            outcome: DeliverySuccess | DeliveryFailure
            try:
                event, subscription = await self._load_references(job)
            except MissingReferenceError as e:
                # Retrying cannot bring back a deleted event or subscription
                outcome = DeliveryFailure(error_message=e.message, retryable=False)
            else:
                outcome = await self._attempt(event, subscription, job)

            await self._storage.log_delivery(DeliveryRecord.from_outcome(job, outcome))

            if isinstance(outcome, DeliverySuccess) and not job.is_retry:
                await self._storage.mark_event_delivered(job.event_id)

            await self._scheduler.report_outcome(job, outcome)
            return outcome

    async def _load_references(self, job: DeliveryJob) -> tuple[Event, Subscription]:
        """Fetch the job's event and subscription.

        Raises:
            MissingReferenceError: If either no longer exists.
        """
        event, subscription = await asyncio.gather(
            self._storage.get_event(job.event_id),
            self._storage.get_subscription(job.subscription_id),
        )
        if event is None:
            raise MissingReferenceError("event", job.event_id)
        if subscription is None:
            raise MissingReferenceError("subscription", job.subscription_id)
        return event, subscription

    async def _attempt(
        self,
        event: Event,
        subscription: Subscription,
        job: DeliveryJob,
    ) -> DeliverySuccess | DeliveryFailure:
        """Sign and send the event, converting delivery errors to an outcome."""
        signature = compute_signature(subscription.secret, event.payload)
        headers = self.build_headers(event, job, signature)

        try:
            response = await self._send(subscription.target_url, event.payload, headers)
        except DeliveryError as e:
            logger.warning(
                "Webhook delivery failed",
                target_url=subscription.target_url,
                error=e.message,
                response_code=e.response_code,
            )
            return DeliveryFailure(error_message=e.message)
        except ValueError as e:
            # Request could not be built, e.g. UnicodeEncodeError on a header value
            logger.error(
                "Webhook request rejected before sending",
                target_url=subscription.target_url,
                error=str(e),
            )
            return DeliveryFailure(
                error_message=f"Invalid delivery request: {e}",
                retryable=False,
            )

        logger.info(
            "Webhook delivered",
            target_url=subscription.target_url,
            response_code=response.status_code,
        )
        return DeliverySuccess(
            response_code=response.status_code,
            body_snippet=truncate_snippet(response.text, self._snippet_limit),
        )

    async def _send(self, url: str, body: str, headers: dict[str, str]) -> httpx.Response:
        """POST the body, raising DeliveryError for anything but a 2xx answer."""
        try:
            response = await self._client.post(
                url,
                content=body.encode("utf-8"),
                headers=headers,
                timeout=self._timeout,
            )
        except httpx.TimeoutException as e:
            raise DeliveryError(f"Request timed out after {self._timeout}s") from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise DeliveryError(str(e) or e.__class__.__name__) from e

        if not 200 <= response.status_code < 300:
            raise DeliveryError(
                f"Request failed with status code {response.status_code}",
                response_code=response.status_code,
            )
        return response

    async def drain(self, max_jobs: int | None = None) -> int:
        """Process due jobs until none are left.

        Args:
            max_jobs: Optional cap on jobs processed.

        Returns:
            Number of jobs processed.
        """
        processed = 0
        while max_jobs is None or processed < max_jobs:
            job = await self._scheduler.dequeue_due()
            if job is None:
                break
            await self.process(job)
            processed += 1
        return processed

    async def run(self, stop: asyncio.Event, poll_interval_seconds: float = 1.0) -> None:
        """Pull and process jobs until ``stop`` is set.

        A job that is being processed when ``stop`` is set runs to completion.
        If the loop is cancelled mid-job instead, the job is released back to
        the queue without consuming an attempt.

        Args:
            stop: Shutdown signal.
            poll_interval_seconds: Sleep between polls when nothing is due.
        """
        while not stop.is_set():
            job = None
            try:
                job = await self._scheduler.dequeue_due()
                if job is not None:
                    await self.process(job)
            except asyncio.CancelledError:
                if job is not None:
                    await self._abandon(job)
                raise
            except Exception:
                logger.exception(
                    "Delivery worker error",
                    job_id=job.id if job is not None else None,
                )

            if job is None:
                with contextlib.suppress(asyncio.TimeoutError):
                    await asyncio.wait_for(stop.wait(), timeout=poll_interval_seconds)

    async def _abandon(self, job: DeliveryJob) -> None:
        """Hand a cancelled job back so it need not wait out its lease."""
        logger.warning("Delivery cancelled", job_id=job.id, attempt=job.attempt)
        try:
            await self._scheduler.release(job)
        except RelayError:
            logger.exception("Could not release cancelled job", job_id=job.id)


class DeliveryWorkerPool:
    """A pool of worker loops sharing one scheduler.

    Example:
        ```python
        pool = DeliveryWorkerPool(worker, concurrency=4)
        await pool.start()
        ...
        await pool.stop()  # waits for in-flight jobs
        ```
    """

    def __init__(
        self,
        worker: DeliveryWorker,
        concurrency: int = 4,
        poll_interval_seconds: float = 1.0,
    ) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        self._worker = worker
        self._concurrency = concurrency
        self._poll_interval = poll_interval_seconds
        self._stop = asyncio.Event()
        self._tasks: list[asyncio.Task[None]] = []

    @property
    def running(self) -> bool:
        return any(not t.done() for t in self._tasks)

    async def start(self) -> None:
        """Spawn the worker loops."""
        if self.running:
            return
        self._stop.clear()
        self._tasks = [
            asyncio.create_task(
                self._worker.run(self._stop, self._poll_interval),
                name=f"delivery-worker-{i}",
            )
            for i in range(self._concurrency)
        ]
        logger.info("Worker pool started", concurrency=self._concurrency)

    async def stop(self, timeout: float | None = None) -> None:
        """Signal the loops to exit and wait for in-flight jobs to finish.

        Args:
            timeout: Seconds to wait before cancelling loops that are still
                busy; their jobs are released back to the queue. None waits
                for every in-flight job.
        """
        self._stop.set()
        if self._tasks:
            _, pending = await asyncio.wait(self._tasks, timeout=timeout)
            for task in pending:
                task.cancel()
            await asyncio.gather(*self._tasks, return_exceptions=True)
            if pending:
                logger.warning("Cancelled busy worker loops", count=len(pending))
        self._tasks = []
        logger.info("Worker pool stopped")
