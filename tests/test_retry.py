"""Tests for the HTTP request retry helper."""

from __future__ import annotations

from collections.abc import Callable

import pytest
from azure.core.exceptions import HttpResponseError
from azure_mock import make_http_error

from kvnet.errors import RetryAbortedError
from kvnet.retry import RetryDecision, RetryPolicy, retry_http_request


def failing(statuses: list[int], result: str = "ok") -> tuple[Callable[[], str], list[int]]:
    """Build a closure that fails with each status in turn, then succeeds."""
    calls: list[int] = []

    def func() -> str:
        calls.append(len(calls) + 1)
        if len(calls) <= len(statuses):
            raise make_http_error(statuses[len(calls) - 1])
        return result

    return func, calls


class TestRetryPolicy:
    """Tests for RetryPolicy classification."""

    def test_unclassified_status_is_retried(self) -> None:
        """Test that statuses in no bucket default to retry."""
        policy = RetryPolicy(abort_on=frozenset({401}))

        assert policy.classify(500) == RetryDecision.RETRY
        assert policy.classify(None) == RetryDecision.RETRY

    def test_buckets(self) -> None:
        """Test continue, retry and abort buckets."""
        policy = RetryPolicy(
            continue_on=frozenset({404}),
            retry_on=frozenset({429}),
            abort_on=frozenset({400}),
        )

        assert policy.classify(404) == RetryDecision.CONTINUE
        assert policy.classify(429) == RetryDecision.RETRY
        assert policy.classify(400) == RetryDecision.ABORT

    def test_invalid_attempts(self) -> None:
        """Test that zero attempts is rejected."""
        with pytest.raises(ValueError):
            RetryPolicy(max_attempts=0)


class TestRetryHttpRequest:
    """Tests for retry_http_request()."""

    def test_success_first_attempt(self) -> None:
        """Test that a successful call returns immediately."""
        sleeps: list[float] = []
        func, calls = failing([])

        assert retry_http_request(func, "op", RetryPolicy(), sleep=sleeps.append) == "ok"
        assert calls == [1]
        assert sleeps == []

    def test_backoff_doubles(self) -> None:
        """Test that N-1 retriable failures then success take exactly N attempts."""
        sleeps: list[float] = []
        func, calls = failing([503, 503, 503])
        policy = RetryPolicy(initial_backoff_seconds=2, max_attempts=4)

        assert retry_http_request(func, "op", policy, sleep=sleeps.append) == "ok"
        assert len(calls) == 4
        assert sleeps == [2, 4, 8]

    def test_exhausted_reraises_last_error(self) -> None:
        """Test that exhaustion raises the last error without a trailing sleep."""
        sleeps: list[float] = []
        func, calls = failing([403, 403, 403])
        policy = RetryPolicy(initial_backoff_seconds=1, max_attempts=3, retry_on=frozenset({403}))

        with pytest.raises(HttpResponseError) as exc_info:
            retry_http_request(func, "op", policy, sleep=sleeps.append)

        assert exc_info.value.status_code == 403
        assert len(calls) == 3
        assert sleeps == [1, 2]

    def test_abort_is_immediate(self) -> None:
        """Test that an abort status raises without retrying."""
        sleeps: list[float] = []
        func, calls = failing([401])
        policy = RetryPolicy(abort_on=frozenset({401}))

        with pytest.raises(RetryAbortedError) as exc_info:
            retry_http_request(func, "list secrets", policy, sleep=sleeps.append)

        assert exc_info.value.status_code == 401
        assert "list secrets" in str(exc_info.value)
        assert calls == [1]
        assert sleeps == []

    def test_continue_returns_none(self) -> None:
        """Test that a continue status ends the sequence with no result."""
        sleeps: list[float] = []
        func, calls = failing([404])
        policy = RetryPolicy(continue_on=frozenset({404}))

        assert retry_http_request(func, "op", policy, sleep=sleeps.append) is None
        assert calls == [1]

    def test_no_policy_single_attempt(self) -> None:
        """Test that without a policy errors propagate on the first attempt."""
        func, calls = failing([500])

        with pytest.raises(HttpResponseError):
            retry_http_request(func, "op", None)

        assert calls == [1]

    def test_non_http_errors_propagate(self) -> None:
        """Test that exceptions other than HTTP errors are not retried."""
        sleeps: list[float] = []
        attempts: list[int] = []

        def func() -> str:
            attempts.append(1)
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            retry_http_request(func, "op", RetryPolicy(), sleep=sleeps.append)

        assert len(attempts) == 1
        assert sleeps == []
