"""Standalone delivery worker process.

Runs the worker pool against the shared store without the HTTP API, so
delivery can be moved out of the ingestion process. SIGINT and SIGTERM stop
the pool after in-flight deliveries finish.

Job claims are exclusive only within one process. Run a single runner per
store, and start the API processes with HOOKRELAY_EMBEDDED_WORKERS=false;
scale delivery with HOOKRELAY_WORKER_CONCURRENCY instead.
"""

from __future__ import annotations

import asyncio
import signal

from hookrelay.config import Settings
from hookrelay.logging import configure_logging, get_logger
from hookrelay.service import RelayService

logger = get_logger(__name__)


async def run_workers(settings: Settings | None = None, stop: asyncio.Event | None = None) -> None:
    """Run the worker pool until ``stop`` is set or a shutdown signal arrives.

    Args:
        settings: Optional settings. Uses environment if None.
        stop: Optional external shutdown signal.
    """
    if settings is None:
        settings = Settings()
    if stop is None:
        stop = asyncio.Event()

    loop = asyncio.get_running_loop()
    installed: list[signal.Signals] = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
            installed.append(sig)
        except (NotImplementedError, RuntimeError):
            # Signal handlers are unavailable off the main thread and on Windows
            logger.debug("Signal handler not installed", signal=sig.name)

    try:
        async with RelayService.create(settings) as relay:
            await relay.start_workers()
            logger.info(
                "Worker process running",
                concurrency=settings.worker_concurrency,
                pending_jobs=await relay.scheduler.pending_count(),
            )
            await stop.wait()
            logger.info("Shutdown requested, draining in-flight deliveries")
    finally:
        for sig in installed:
            loop.remove_signal_handler(sig)

    logger.info("Worker process stopped")


def main() -> None:
    """Run the standalone worker pool."""
    settings = Settings()
    configure_logging(level=settings.log_level, format=settings.log_format)
    asyncio.run(run_workers(settings))
