"""Structured logging for hookrelay.

Every component logs through structlog. Output is JSON lines in
production and a colored console in development. Two relay-specific
behaviors sit on top of the usual pipeline:

- Subscription secrets and outbound signatures are masked before any
  line is rendered.
- Workers scope job identifiers (job_id, event_id, subscription_id,
  attempt) to the task processing the job with ``job_context``.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator, MutableMapping
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from structlog.typing import Processor

REDACTED = "***"

# Keys whose values must never reach a log sink
SENSITIVE_KEYS = frozenset({"secret", "signature", "api_key", "token"})

_configured = False


def redact_sensitive(
    _logger: Any,
    _method: str,
    event_dict: MutableMapping[str, Any],
) -> MutableMapping[str, Any]:
    """Mask secrets, signatures and tokens in a log event.

    Matches keys exactly or by suffix (``admin_api_token``,
    ``x_relay_signature``), one level into dict values.
    """

    def _sensitive(key: str) -> bool:
        lowered = key.lower().replace("-", "_")
        return any(lowered == k or lowered.endswith(f"_{k}") for k in SENSITIVE_KEYS)

    for key, value in list(event_dict.items()):
        if _sensitive(key):
            event_dict[key] = REDACTED
        elif isinstance(value, dict):
            event_dict[key] = {
                k: REDACTED if isinstance(k, str) and _sensitive(k) else v
                for k, v in value.items()
            }
    return event_dict


def configure_logging(
    level: str = "INFO",
    format: str = "json",
) -> None:
    """Configure structured logging for hookrelay.

    Safe to call more than once; the last call wins.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
            Unknown names fall back to INFO.
        format: "json" for production, "text" for a development console.

    Example:
        ```python
        from hookrelay.logging import configure_logging, get_logger

        configure_logging(level="DEBUG", format="text")
        get_logger(__name__).info("Worker pool started", concurrency=4)
        ```
    """
    global _configured

    log_level = getattr(logging, level.upper(), logging.INFO)
    if not isinstance(log_level, int):
        log_level = logging.INFO

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=log_level)
    logging.getLogger().setLevel(log_level)

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        redact_sensitive,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]
    if format.lower() == "json":
        processors += [
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )
    _configured = True


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger, configuring defaults on first use."""
    if not _configured:
        configure_logging()
    return structlog.get_logger(name)  # type: ignore[no-any-return]


def bind_context(**kwargs: object) -> None:
    """Bind key-value pairs to every subsequent line logged by this task."""
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    """Remove specific keys from the logging context."""
    structlog.contextvars.unbind_contextvars(*keys)


def clear_context() -> None:
    """Clear all bound context variables."""
    structlog.contextvars.clear_contextvars()


@contextmanager
def job_context(**kwargs: object) -> Iterator[None]:
    """Bind job identifiers for the duration of a block.

    Keys bound here are removed on exit, even if the block raises, so a
    worker loop never leaks one job's identifiers into the next job's logs.

    Example:
        ```python
        with job_context(job_id=job.id, attempt=job.attempt):
            logger.info("Sending")  # Includes job_id and attempt
        ```
    """
    with structlog.contextvars.bound_contextvars(**kwargs):
        yield


logger = get_logger("hookrelay")
