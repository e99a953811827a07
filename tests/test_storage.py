"""Tests for RelayStorage against an in-memory Qdrant store."""

import random
from datetime import timedelta
from unittest.mock import AsyncMock

import httpx
import pytest
from helpers import START, make_event, make_subscription
from qdrant_client import models
from tenacity import wait_none

from hookrelay.config import Settings
from hookrelay.exceptions import StorageError
from hookrelay.models import DeliveryJob, DeliveryRecord, EventStatus
from hookrelay.storage import COLLECTION_NAMES, RelayStorage
from hookrelay.storage.retry import is_transient, qdrant_retry


class TestLifecycle:
    """Tests for opening and closing the store."""

    async def test_client_requires_initialize(self, settings):
        """Should raise until initialize() has been called."""
        store = RelayStorage(location=":memory:", settings=settings)
        with pytest.raises(StorageError):
            _ = store.client

    async def test_ping(self, storage):
        """Should answer once initialized."""
        assert await storage.ping() is True

    async def test_ping_when_closed(self, settings):
        """Should report unreachable when not initialized."""
        store = RelayStorage(location=":memory:", settings=settings)
        assert await store.ping() is False

    async def test_collections_created(self, storage):
        """Should create one collection per entity."""
        collections = await storage.client.get_collections()
        names = {c.name for c in collections.collections}
        for kind in COLLECTION_NAMES:
            assert storage._collection_name(kind) in names

    async def test_context_manager(self, settings):
        """Should open and close around a block."""
        async with RelayStorage(location=":memory:", settings=settings) as store:
            assert await store.ping()
        assert await store.ping() is False


class TestEvents:
    """Tests for event storage."""

    async def test_store_and_get(self, storage):
        """Should round-trip an event with its payload untouched."""
        event = make_event(payload='{ "spaced" : true }')
        await storage.store_event(event)

        loaded = await storage.get_event(event.id)
        assert loaded is not None
        assert loaded.payload == '{ "spaced" : true }'
        assert loaded.status == EventStatus.PENDING

    async def test_get_missing(self, storage):
        """Should return None for unknown IDs."""
        assert await storage.get_event("evt_missing") is None

    async def test_mark_delivered_is_idempotent(self, storage):
        """Only the first transition should report a change."""
        event = make_event()
        await storage.store_event(event)

        assert await storage.mark_event_delivered(event.id) is True
        assert await storage.mark_event_delivered(event.id) is False

        loaded = await storage.get_event(event.id)
        assert loaded.status == EventStatus.DELIVERED

    async def test_mark_missing_event(self, storage):
        """Should not create events that don't exist."""
        assert await storage.mark_event_delivered("evt_missing") is False
        assert await storage.count_events() == 0

    async def test_count_by_status(self, storage):
        """Should count all events or only those in one status."""
        first, second = make_event(), make_event()
        await storage.store_event(first)
        await storage.store_event(second)
        await storage.mark_event_delivered(first.id)

        assert await storage.count_events() == 2
        assert await storage.count_events(status="DELIVERED") == 1
        assert await storage.count_events(status="PENDING") == 1


class TestSubscriptions:
    """Tests for subscription storage."""

    async def test_store_and_get(self, storage):
        """Should persist the secret for signing."""
        subscription = make_subscription()
        await storage.store_subscription(subscription)

        loaded = await storage.get_subscription(subscription.id)
        assert loaded is not None
        assert loaded.secret == subscription.secret

    async def test_list_oldest_first(self, storage):
        """Should order by registration time."""
        older = make_subscription()
        newer = make_subscription()
        newer.created_at = older.created_at + timedelta(seconds=1)
        await storage.store_subscription(newer)
        await storage.store_subscription(older)

        listed = await storage.list_subscriptions()
        assert [s.id for s in listed] == [older.id, newer.id]

    async def test_subscriptions_for_event(self, storage):
        """Should return only active subscriptions of the event type."""
        match = make_subscription(event_type="user.created")
        inactive = make_subscription(event_type="user.created", is_active=False)
        other = make_subscription(event_type="user.deleted")
        for s in (match, inactive, other):
            await storage.store_subscription(s)

        found = await storage.get_subscriptions_for_event("user.created")
        assert [s.id for s in found] == [match.id]

    async def test_update_toggles_active(self, storage):
        """Should update fields and bump updated_at."""
        subscription = make_subscription()
        await storage.store_subscription(subscription)

        updated = await storage.update_subscription(subscription.id, is_active=False)
        assert updated is not None
        assert updated.is_active is False
        assert updated.updated_at >= subscription.updated_at
        assert (await storage.get_subscription(subscription.id)).is_active is False

    async def test_update_never_changes_secret(self, storage):
        """The secret is fixed for the subscription's lifetime."""
        subscription = make_subscription()
        await storage.store_subscription(subscription)

        updated = await storage.update_subscription(subscription.id, secret="leaked")
        assert updated.secret == subscription.secret

    async def test_update_missing(self, storage):
        """Should return None for unknown subscriptions."""
        assert await storage.update_subscription("sub_missing", is_active=False) is None

    async def test_delete(self, storage):
        """Should report whether something was deleted."""
        subscription = make_subscription()
        await storage.store_subscription(subscription)

        assert await storage.delete_subscription(subscription.id) is True
        assert await storage.delete_subscription(subscription.id) is False
        assert await storage.get_subscription(subscription.id) is None


class TestDeliveryLog:
    """Tests for the delivery log."""

    def _record(self, status="FAILED", event_id="evt_1", subscription_id="sub_1", offset=0):
        return DeliveryRecord(
            event_id=event_id,
            subscription_id=subscription_id,
            status=status,
            response_code=200 if status == "SUCCESS" else None,
            error_message=None if status == "SUCCESS" else "boom",
            attempts=1,
            created_at=START + timedelta(seconds=offset),
        )

    async def test_log_and_get(self, storage):
        """Should append and fetch records."""
        record = self._record()
        await storage.log_delivery(record)
        assert await storage.get_delivery(record.id) == record

    async def test_newest_first(self, storage):
        """Should list the most recent attempts first."""
        records = [self._record(offset=i) for i in range(3)]
        for record in records:
            await storage.log_delivery(record)

        listed = await storage.list_deliveries()
        assert [r.id for r in listed] == [r.id for r in reversed(records)]

    async def test_filters_and_limit(self, storage):
        """Should filter by event, subscription and status."""
        await storage.log_delivery(self._record(status="SUCCESS", event_id="evt_a", offset=1))
        await storage.log_delivery(self._record(status="FAILED", event_id="evt_a", offset=2))
        await storage.log_delivery(self._record(status="FAILED", event_id="evt_b", offset=3))
        await storage.log_delivery(
            self._record(status="FAILED", event_id="evt_b", subscription_id="sub_2", offset=4)
        )

        assert len(await storage.list_deliveries(event_id="evt_a")) == 2
        assert len(await storage.list_deliveries(status="FAILED")) == 3
        assert len(await storage.list_deliveries(subscription_id="sub_2")) == 1
        assert len(await storage.list_deliveries(limit=2)) == 2

    async def test_count(self, storage):
        """Should count all records or only one status."""
        await storage.log_delivery(self._record(status="SUCCESS"))
        await storage.log_delivery(self._record(status="FAILED"))
        await storage.log_delivery(self._record(status="FAILED"))

        assert await storage.count_deliveries() == 3
        assert await storage.count_deliveries(status="FAILED") == 2


class TestJobs:
    """Tests for the job table."""

    async def test_store_get_delete(self, storage):
        """Should round-trip jobs and forget deleted ones."""
        job = DeliveryJob(event_id="evt_1", subscription_id="sub_1", next_run_at=START)
        await storage.store_job(job)

        assert await storage.get_job(job.id) == job

        await storage.delete_job(job.id)
        assert await storage.get_job(job.id) is None

    async def test_find_due_respects_next_run_at(self, storage):
        """Should only return jobs whose time has come, earliest first."""
        later = DeliveryJob(
            event_id="evt_1", subscription_id="sub_1", next_run_at=START + timedelta(seconds=2)
        )
        sooner = DeliveryJob(
            event_id="evt_1", subscription_id="sub_2", next_run_at=START + timedelta(seconds=1)
        )
        future = DeliveryJob(
            event_id="evt_1", subscription_id="sub_3", next_run_at=START + timedelta(hours=1)
        )
        for job in (later, sooner, future):
            await storage.store_job(job)

        due = await storage.find_due_jobs(START + timedelta(seconds=5))
        assert [j.id for j in due] == [sooner.id, later.id]

    async def test_claimed_job_hidden_until_lease_expires(self, storage):
        """A claimed job should reappear only after its lease."""
        job = DeliveryJob(event_id="evt_1", subscription_id="sub_1", next_run_at=START)
        job.claim(START, timedelta(seconds=60))
        await storage.store_job(job)

        assert await storage.find_due_jobs(START + timedelta(seconds=30)) == []
        due = await storage.find_due_jobs(START + timedelta(seconds=61))
        assert [j.id for j in due] == [job.id]
        assert due[0].claimed_until == job.claimed_until

    async def test_find_due_orders_whole_backlog(self, storage):
        """The earliest due jobs should win even when the backlog exceeds the limit."""
        offsets = list(range(40))
        random.Random(7).shuffle(offsets)
        jobs = {}
        for offset in offsets:
            job = DeliveryJob(
                event_id="evt_1",
                subscription_id=f"sub_{offset}",
                next_run_at=START + timedelta(seconds=offset),
            )
            jobs[offset] = job
            await storage.store_job(job)

        due = await storage.find_due_jobs(START + timedelta(minutes=5), limit=5)
        assert [j.id for j in due] == [jobs[n].id for n in range(5)]

    async def test_server_scroll_ordered_by_next_run_at(self):
        """Against a server the scroll should sort on the next_run_at_ts index."""
        store = RelayStorage(
            url="http://qdrant.internal:6333",
            settings=Settings(_env_file=None, env="test"),
        )
        store._client = AsyncMock()
        store._client.scroll.return_value = ([], None)

        assert await store.find_due_jobs(START, limit=8) == []

        kwargs = store._client.scroll.call_args.kwargs
        assert kwargs["limit"] == 8
        assert kwargs["order_by"].key == "next_run_at_ts"
        assert kwargs["order_by"].direction == models.Direction.ASC

    async def test_count_jobs(self, storage):
        """Should count all jobs or those of one event."""
        await storage.store_job(DeliveryJob(event_id="evt_1", subscription_id="sub_1"))
        await storage.store_job(DeliveryJob(event_id="evt_1", subscription_id="sub_2"))
        await storage.store_job(DeliveryJob(event_id="evt_2", subscription_id="sub_1"))

        assert await storage.count_jobs() == 3
        assert await storage.count_jobs(event_id="evt_1") == 2


class TestStoreRetry:
    """Tests for the qdrant_retry policy."""

    async def test_transient_errors_become_storage_error(self):
        """Exhausted retries surface as StorageError."""
        calls = []

        @qdrant_retry
        async def flaky():
            calls.append(1)
            raise httpx.ConnectError("refused")

        with pytest.raises(StorageError, match="flaky failed after 3 attempts"):
            await flaky.retry_with(wait=wait_none())()
        assert len(calls) == 3

    async def test_recovers_after_transient_error(self):
        calls = []

        @qdrant_retry
        async def recovers():
            calls.append(1)
            if len(calls) == 1:
                raise httpx.ReadTimeout("slow")
            return "ok"

        assert await recovers.retry_with(wait=wait_none())() == "ok"
        assert len(calls) == 2

    async def test_non_transient_errors_not_retried(self):
        """Programming errors propagate on the first attempt."""
        calls = []

        @qdrant_retry
        async def broken():
            calls.append(1)
            raise ValueError("bad filter")

        with pytest.raises(ValueError):
            await broken.retry_with(wait=wait_none())()
        assert len(calls) == 1

    def test_is_transient(self):
        assert is_transient(httpx.ConnectError("refused"))
        assert is_transient(httpx.ReadTimeout("slow"))
        assert not is_transient(ValueError("bad"))
