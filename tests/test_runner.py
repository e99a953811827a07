"""Tests for the standalone worker process."""

import asyncio

from hookrelay.config import Settings
from hookrelay.runner import run_workers


class TestRunWorkers:
    """Tests for run_workers."""

    async def test_stops_on_signal_event(self):
        """Should start the pool and return once stop is set."""
        settings = Settings(
            _env_file=None,
            env="test",
            qdrant_location=":memory:",
            worker_concurrency=2,
            poll_interval_seconds=0.01,
        )
        stop = asyncio.Event()

        async def trigger():
            await asyncio.sleep(0.05)
            stop.set()

        await asyncio.wait_for(asyncio.gather(run_workers(settings, stop), trigger()), timeout=5)
