"""Durable job table for the retry scheduler.

Jobs are stored with two numeric shadow fields so due jobs can be found
with range filters:
- next_run_at_ts: epoch seconds of the job's next_run_at
- claimed_until_ts: epoch seconds of the lease expiry (0.0 when unclaimed)
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any

from qdrant_client import models

from hookrelay.storage.retry import qdrant_retry

if TYPE_CHECKING:
    from hookrelay.models import DeliveryJob

# Filter-only payload fields, stripped when loading a job
JOB_SHADOW_FIELDS = ("next_run_at_ts", "claimed", "claimed_until_ts")


class JobMixin:
    """Mixin providing job table operations for RelayStorage."""

    _upsert: Any
    _retrieve: Any
    _delete: Any
    _count: Any
    _scroll_all: Any
    is_local: bool
    _match: Any
    _model_to_payload: Any
    _payload_to_model: Any
    client: Any
    _collection_name: Any

    @qdrant_retry
    async def store_job(self, job: DeliveryJob) -> str:
        """Insert or replace a job.

        Args:
            job: DeliveryJob to store.

        Returns:
            The job ID.
        """
        payload = self._model_to_payload(
            job,
            next_run_at_ts=job.next_run_at.timestamp(),
            claimed=job.claimed_until is not None,
            claimed_until_ts=job.claimed_until.timestamp() if job.claimed_until else 0.0,
        )
        await self._upsert("jobs", job.id, payload)
        return job.id

    @qdrant_retry
    async def get_job(self, job_id: str) -> DeliveryJob | None:
        """Get a job by ID, or None if it was removed."""
        from hookrelay.models import DeliveryJob

        payload = await self._retrieve("jobs", job_id)
        if payload is None:
            return None
        job: DeliveryJob = self._payload_to_model(payload, DeliveryJob, strip=JOB_SHADOW_FIELDS)
        return job

    @qdrant_retry
    async def delete_job(self, job_id: str) -> None:
        """Remove a job from the table."""
        await self._delete("jobs", job_id)

    @qdrant_retry
    async def find_due_jobs(self, now: datetime, limit: int = 32) -> list[DeliveryJob]:
        """Find jobs a worker may pick up at ``now``.

        A job is due when it is unclaimed and its next_run_at has passed,
        or when it is claimed but the lease has expired (the previous
        worker abandoned it).

        Ordering is global: a server sorts on the next_run_at_ts index, a
        local store is scanned in full and sorted client-side.

        Args:
            now: Reference time.
            limit: Maximum jobs to return.

        Returns:
            Up to ``limit`` due jobs, earliest next_run_at first.
        """
        from hookrelay.models import DeliveryJob

        now_ts = now.timestamp()
        due_filter = models.Filter(
            should=[
                models.Filter(
                    must=[
                        self._match("claimed", False),
                        models.FieldCondition(
                            key="next_run_at_ts", range=models.Range(lte=now_ts)
                        ),
                    ]
                ),
                models.Filter(
                    must=[
                        self._match("claimed", True),
                        models.FieldCondition(
                            key="claimed_until_ts", range=models.Range(lte=now_ts)
                        ),
                    ]
                ),
            ]
        )

        if self.is_local:
            # Local stores scroll in point-id order; read every due job and sort here
            payloads = await self._scroll_all("jobs", due_filter)
        else:
            points, _ = await self.client.scroll(
                collection_name=self._collection_name("jobs"),
                scroll_filter=due_filter,
                limit=limit,
                order_by=models.OrderBy(
                    key="next_run_at_ts",
                    direction=models.Direction.ASC,
                ),
                with_payload=True,
                with_vectors=False,
            )
            payloads = [dict(p.payload) for p in points if p.payload is not None]

        jobs: list[DeliveryJob] = [
            self._payload_to_model(payload, DeliveryJob, strip=JOB_SHADOW_FIELDS)
            for payload in payloads
        ]
        jobs.sort(key=lambda j: j.next_run_at)
        return jobs[:limit]

    @qdrant_retry
    async def count_jobs(self, event_id: str | None = None) -> int:
        """Count jobs held in the table, optionally for one event."""
        count_filter = None
        if event_id is not None:
            count_filter = models.Filter(must=[self._match("event_id", event_id)])
        return int(await self._count("jobs", count_filter))
