"""Retry scheduler backed by the durable job table.

Jobs wait in storage until their next_run_at passes. Workers pull due jobs
with dequeue_due() and report each attempt with report_outcome(), which
either removes the job or reschedules it with exponential backoff.

Backoff after a failed attempt n is base_delay_ms * 2 ** (n - 1). With the
defaults (5 attempts, 5000 ms base) a job that always fails runs at
t=0, +5s, +10s, +20s, +40s and is then dropped.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from hookrelay.logging import get_logger
from hookrelay.models import DeliveryFailure, DeliveryJob, DeliverySuccess, utc_now

if TYPE_CHECKING:
    from hookrelay.config import Settings
    from hookrelay.storage import RelayStorage

logger = get_logger(__name__)

Clock = Callable[[], datetime]

DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_BASE_DELAY_MS = 5000


def compute_backoff_ms(failed_attempt: int, base_delay_ms: int = DEFAULT_BASE_DELAY_MS) -> int:
    """Delay before the attempt that follows ``failed_attempt``.

    Args:
        failed_attempt: 1-based number of the attempt that just failed.
        base_delay_ms: Delay after the first failure.

    Returns:
        Delay in milliseconds.
    """
    if failed_attempt < 1:
        raise ValueError("failed_attempt must be >= 1")
    return base_delay_ms * (2 ** (failed_attempt - 1))


class RetryScheduler:
    """Durable job queue with backoff-aware rescheduling.

    Dequeues are serialized by a lock so that, within one process, a due
    job is handed to exactly one worker. A dequeued job carries a lease and
    a claim token; if the worker never reports back (crash, shutdown) the
    lease expires and the job becomes due again.

    Across processes the token check narrows but cannot close the window
    between reading and writing a claim, because Qdrant has no
    compare-and-set. Run workers in one process per store: either the
    API's embedded pool or the standalone runner.

    Example:
        ```python
        scheduler = RetryScheduler(storage)
        await scheduler.enqueue(DeliveryJob(event_id=evt.id, subscription_id=sub.id))

        job = await scheduler.dequeue_due()
        if job is not None:
            await scheduler.report_outcome(job, outcome)
        ```
    """

    def __init__(
        self,
        storage: RelayStorage,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        base_delay_ms: int = DEFAULT_BASE_DELAY_MS,
        claim_timeout_seconds: float = 60.0,
        clock: Clock = utc_now,
    ) -> None:
        """Initialize the scheduler.

        Args:
            storage: Store holding the job table.
            max_attempts: Automatic attempts before a job is terminally failed.
            base_delay_ms: Backoff after the first failed attempt.
            claim_timeout_seconds: Lease granted to a worker on dequeue.
            clock: Time source, injectable for tests.
        """
        self._storage = storage
        self._max_attempts = max_attempts
        self._base_delay_ms = base_delay_ms
        self._lease = timedelta(seconds=claim_timeout_seconds)
        self._clock = clock
        self._lock = asyncio.Lock()

    @classmethod
    def from_settings(
        cls,
        storage: RelayStorage,
        settings: Settings,
        clock: Clock = utc_now,
    ) -> RetryScheduler:
        """Create a scheduler configured from settings."""
        return cls(
            storage,
            max_attempts=settings.max_attempts,
            base_delay_ms=settings.base_delay_ms,
            claim_timeout_seconds=settings.claim_timeout_seconds,
            clock=clock,
        )

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    async def enqueue(self, job: DeliveryJob, delay_ms: int = 0) -> DeliveryJob:
        """Admit a job to run at ``now + delay_ms``.

        Args:
            job: Job to schedule.
            delay_ms: Delay before the job becomes due.

        Returns:
            The stored job.
        """
        job.next_run_at = self._clock() + timedelta(milliseconds=delay_ms)
        job.release()
        await self._storage.store_job(job)

        logger.debug(
            "Job enqueued",
            job_id=job.id,
            event_id=job.event_id,
            subscription_id=job.subscription_id,
            attempt=job.attempt,
            is_retry=job.is_retry,
            next_run_at=job.next_run_at.isoformat(),
        )
        return job

    async def dequeue_due(self) -> DeliveryJob | None:
        """Claim the earliest due job, if any.

        Non-blocking: returns None when nothing is due. Each candidate is
        re-read before the claim is written and again afterwards, so a job
        taken by another claimant since the scan is skipped.
        """
        async with self._lock:
            now = self._clock()
            for candidate in await self._storage.find_due_jobs(now):
                job = await self._claim(candidate.id, now)
                if job is not None:
                    return job
            return None

    async def _claim(self, job_id: str, now: datetime) -> DeliveryJob | None:
        job = await self._storage.get_job(job_id)
        if job is None or not job.is_due(now):
            return None

        if job.is_claimed:
            logger.warning(
                "Reclaiming abandoned job",
                job_id=job.id,
                attempt=job.attempt,
            )
        job.claim(now, self._lease)
        await self._storage.store_job(job)

        stored = await self._storage.get_job(job.id)
        if stored is None or stored.claim_token != job.claim_token:
            logger.info("Job claimed by another worker", job_id=job.id)
            return None
        return job

    async def report_outcome(
        self,
        job: DeliveryJob,
        outcome: DeliverySuccess | DeliveryFailure,
    ) -> DeliveryJob | None:
        """Apply the backoff/termination policy to a finished attempt.

        Args:
            job: The job that was executed.
            outcome: Result of the attempt.

        Returns:
            The rescheduled job, or None if the job left the queue
            (success, non-retryable failure, or attempt budget exhausted).
        """
        if isinstance(outcome, DeliverySuccess):
            await self._storage.delete_job(job.id)
            return None

        if not outcome.retryable:
            await self._storage.delete_job(job.id)
            logger.warning(
                "Job dropped without retry",
                job_id=job.id,
                event_id=job.event_id,
                subscription_id=job.subscription_id,
                attempt=job.attempt,
                error=outcome.error_message,
            )
            return None

        if job.attempt >= self._max_attempts:
            await self._storage.delete_job(job.id)
            logger.error(
                "Job terminally failed",
                job_id=job.id,
                event_id=job.event_id,
                subscription_id=job.subscription_id,
                attempts=job.attempt,
                error=outcome.error_message,
            )
            return None

        delay_ms = compute_backoff_ms(job.attempt, self._base_delay_ms)
        job.reschedule(self._clock(), delay_ms)
        await self._storage.store_job(job)

        logger.info(
            "Job scheduled for retry",
            job_id=job.id,
            attempt=job.attempt,
            delay_ms=delay_ms,
            next_run_at=job.next_run_at.isoformat(),
        )
        return job

    async def release(self, job: DeliveryJob) -> bool:
        """Return a claimed job to the queue without consuming an attempt.

        Only the current claimant can release: a job that was already
        reported, or reclaimed after its lease expired, is left alone.

        Returns:
            True if the job was released.
        """
        stored = await self._storage.get_job(job.id)
        if stored is None or stored.claim_token is None or stored.claim_token != job.claim_token:
            return False

        await self._storage.store_job(stored.release())
        logger.info("Job released", job_id=job.id, attempt=stored.attempt)
        return True

    async def pending_count(self) -> int:
        """Number of jobs held by the queue (due, delayed or claimed)."""
        return int(await self._storage.count_jobs())
