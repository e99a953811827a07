"""Retry policy for calls to the Qdrant store.

Smooths over a flaky store connection within a single storage operation.
Unrelated to the webhook backoff schedule, which lives in the scheduler.

Transient errors (connection refused, timeouts, 5xx answers) are retried
with exponential backoff. When the attempts run out the last error is
raised as a StorageError, so callers only ever see hookrelay exceptions.
"""

from __future__ import annotations

import httpx
from qdrant_client.http.exceptions import UnexpectedResponse
from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from hookrelay.exceptions import StorageError
from hookrelay.logging import get_logger

logger = get_logger(__name__)

STORE_RETRY_ATTEMPTS = 3


def is_transient(exc: BaseException) -> bool:
    """Whether a store error is worth retrying.

    Client errors (4xx) are bugs or bad input and fail immediately.
    """
    if isinstance(exc, UnexpectedResponse):
        return exc.status_code >= 500
    return isinstance(exc, (httpx.ConnectError, httpx.TimeoutException))


def _operation(retry_state: RetryCallState) -> str:
    return retry_state.fn.__name__ if retry_state.fn else "unknown"


def _log_retry(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "Retrying storage operation",
        operation=_operation(retry_state),
        attempt=retry_state.attempt_number,
        error=str(exc) if exc else None,
    )


def _raise_storage_error(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    operation = _operation(retry_state)
    logger.error(
        "Storage operation failed",
        operation=operation,
        attempts=retry_state.attempt_number,
        error=str(exc) if exc else None,
    )
    raise StorageError(
        f"{operation} failed after {retry_state.attempt_number} attempts: {exc}"
    ) from exc


qdrant_retry = retry(
    stop=stop_after_attempt(STORE_RETRY_ATTEMPTS),
    wait=wait_exponential(multiplier=0.5, min=0.5, max=5),
    retry=retry_if_exception(is_transient),
    before_sleep=_log_retry,
    retry_error_callback=_raise_storage_error,
)
