"""Retry helper for single HTTP requests against Azure APIs.

Each failure status is classified into exactly one bucket:
- continue: the status is expected; stop retrying and return None
- retry: sleep, then try again with doubled backoff
- abort: raise RetryAbortedError immediately
Statuses in no bucket are retried. The sleep blocks the calling thread and
there is no cancellation once a sequence has started.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import TypeVar

from azure.core.exceptions import HttpResponseError

from .errors import RetryAbortedError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_INITIAL_BACKOFF_SECONDS = 1
DEFAULT_MAX_ATTEMPTS = 5


class RetryDecision(str, Enum):
    """What to do with a failed attempt."""

    CONTINUE = "continue"
    RETRY = "retry"
    ABORT = "abort"


@dataclass(frozen=True)
class RetryPolicy:
    """Retry configuration for one request.

    Attributes:
        initial_backoff_seconds: Sleep before the second attempt; doubled each time.
        max_attempts: Total attempts including the first one.
        continue_on: Statuses treated as success.
        retry_on: Statuses that trigger a retry.
        abort_on: Statuses that raise immediately.
    """

    initial_backoff_seconds: float = DEFAULT_INITIAL_BACKOFF_SECONDS
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    continue_on: frozenset[int] = field(default_factory=frozenset)
    retry_on: frozenset[int] = field(default_factory=frozenset)
    abort_on: frozenset[int] | None = None

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.initial_backoff_seconds < 0:
            raise ValueError("initial_backoff_seconds cannot be negative")

    def classify(self, status_code: int | None) -> RetryDecision:
        """Classify a failure status. Unclassified statuses are retried."""
        if status_code in self.continue_on:
            return RetryDecision.CONTINUE
        if status_code in self.retry_on:
            return RetryDecision.RETRY
        if self.abort_on is not None and status_code in self.abort_on:
            return RetryDecision.ABORT
        return RetryDecision.RETRY


def retry_http_request(
    func: Callable[[], T],
    name: str,
    policy: RetryPolicy | None,
    *,
    sleep: Callable[[float], None] = time.sleep,
) -> T | None:
    """Invoke func according to the retry policy.

    Args:
        func: Closure issuing one HTTP request.
        name: Operation name for logging.
        policy: Retry policy; None means a single attempt with no handling.
        sleep: Blocking sleep function (injectable for tests).

    Returns:
        The result of func, or None if a 'continue' status ended the sequence.

    Raises:
        RetryAbortedError: If a status designated as 'abort' is returned.
        HttpResponseError: The last error, when all attempts are exhausted.
    """
    if policy is None:
        return func()

    backoff = policy.initial_backoff_seconds
    last_error: HttpResponseError | None = None

    for attempt in range(1, policy.max_attempts + 1):
        try:
            return func()
        except HttpResponseError as e:
            last_error = e
            status_code = e.status_code
            decision = policy.classify(status_code)

            log_extra = {
                "operation": name,
                "attempt": attempt,
                "max_attempts": policy.max_attempts,
                "status_code": status_code,
                "decision": decision.value,
            }

            if decision == RetryDecision.CONTINUE:
                logger.info(f"{name}: status {status_code} is expected, continuing", extra=log_extra)
                return None

            if decision == RetryDecision.ABORT:
                logger.error(f"{name}: status {status_code} is designated 'abort'", extra=log_extra)
                raise RetryAbortedError(name, status_code) from e

            if attempt < policy.max_attempts:
                logger.warning(
                    f"{name}: status {status_code} is retriable, retrying after {backoff}s",
                    extra={**log_extra, "wait_seconds": backoff},
                )
                sleep(backoff)
                backoff *= 2

    assert last_error is not None, "Retry loop completed without setting last_error"
    logger.error(
        f"{name}: giving up after {policy.max_attempts} attempts",
        extra={"operation": name, "status_code": last_error.status_code},
    )
    raise last_error
