from __future__ import annotations

import pytest

from orion_runner.runtime.execution.retry import RetryPolicy
from orion_runner.runtime.llm.errors import AuthCompletionError, TransientCompletionError


def _flaky(failures: list[Exception]):
    calls = {"count": 0}

    def _call() -> str:
        calls["count"] += 1
        if failures:
            raise failures.pop(0)
        return "ok"

    return _call, calls


def test_default_delays_double_from_ten_seconds() -> None:
    policy = RetryPolicy()
    assert policy.max_attempts == 4
    assert [policy.delay_for(attempt) for attempt in (1, 2, 3)] == [10.0, 20.0, 40.0]


def test_transient_failures_are_retried_until_success() -> None:
    sleeps: list[float] = []
    retries: list[tuple[int, float]] = []
    call, calls = _flaky([TransientCompletionError("rate limit", status=429)] * 2)

    result = RetryPolicy().run(call, sleep=sleeps.append, on_retry=lambda a, d, _e: retries.append((a, d)))

    assert result == "ok"
    assert calls["count"] == 3
    assert sleeps == [10.0, 20.0]
    assert retries == [(1, 10.0), (2, 20.0)]


def test_attempts_are_bounded_and_last_error_is_raised() -> None:
    sleeps: list[float] = []
    call, calls = _flaky([TransientCompletionError(f"overloaded {i}", status=529) for i in range(10)])

    with pytest.raises(TransientCompletionError, match="overloaded 3"):
        RetryPolicy().run(call, sleep=sleeps.append)

    assert calls["count"] == 4
    assert sleeps == [10.0, 20.0, 40.0]


def test_non_retryable_failure_is_raised_immediately() -> None:
    sleeps: list[float] = []
    call, calls = _flaky([AuthCompletionError("invalid x-api-key", status=401)])

    with pytest.raises(AuthCompletionError):
        RetryPolicy().run(call, sleep=sleeps.append)

    assert calls["count"] == 1
    assert sleeps == []


def test_custom_policy_parameters() -> None:
    policy = RetryPolicy(max_attempts=3, base_delay=1.0, multiplier=3.0, retryable=lambda exc: isinstance(exc, ValueError))
    sleeps: list[float] = []
    call, calls = _flaky([ValueError("a"), ValueError("b")])

    assert policy.run(call, sleep=sleeps.append) == "ok"
    assert sleeps == [3.0, 9.0]
    assert calls["count"] == 3
