"""Timeout and backoff behaviour of the shared retry policy."""

from __future__ import annotations

import asyncio

import pytest

from anchorlink.engine.errors import SearchTimeoutError
from anchorlink.engine.retry import RetryPolicy, call_with_retry

from .conftest import RecordingSleep


def test_backs_off_one_then_two_seconds_before_succeeding():
    sleep = RecordingSleep()
    retries = []
    calls = []

    async def operation():
        calls.append(1)
        if len(calls) < 3:
            raise SearchTimeoutError("slow query")
        return "rows"

    result = asyncio.run(
        call_with_retry(
            operation,
            RetryPolicy(),
            sleep=sleep,
            on_retry=lambda attempt, delay, error: retries.append((attempt, delay)),
        )
    )

    assert result == "rows"
    assert len(calls) == 3
    assert sleep.delays == [1.0, 2.0]
    assert retries == [(1, 1.0), (2, 2.0)]


def test_exhausted_attempts_raise_the_last_error():
    sleep = RecordingSleep()
    calls = []

    async def operation():
        calls.append(1)
        raise SearchTimeoutError("slow query")

    with pytest.raises(SearchTimeoutError):
        asyncio.run(call_with_retry(operation, RetryPolicy(), sleep=sleep))

    assert len(calls) == 3
    assert sleep.delays == [1.0, 2.0]


def test_backoff_is_capped():
    sleep = RecordingSleep()

    async def operation():
        raise SearchTimeoutError("slow query")

    with pytest.raises(SearchTimeoutError):
        asyncio.run(call_with_retry(operation, RetryPolicy(max_attempts=5), sleep=sleep))

    assert sleep.delays == [1.0, 2.0, 4.0, 5.0]


def test_each_attempt_is_bounded_by_the_timeout():
    sleep = RecordingSleep()
    calls = []

    async def operation():
        calls.append(1)
        await asyncio.sleep(1)

    with pytest.raises((TimeoutError, asyncio.TimeoutError)):
        asyncio.run(call_with_retry(operation, RetryPolicy(max_attempts=2, timeout=0.01), sleep=sleep))

    assert len(calls) == 2
    assert sleep.delays == [1.0]


def test_other_errors_are_not_retried():
    sleep = RecordingSleep()
    calls = []

    async def operation():
        calls.append(1)
        raise ValueError("bad vector")

    with pytest.raises(ValueError):
        asyncio.run(call_with_retry(operation, RetryPolicy(), sleep=sleep))

    assert len(calls) == 1
    assert sleep.delays == []
