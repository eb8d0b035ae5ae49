"""Timeout and bounded retry policy shared by snapshot reads and searches."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from .config import CorpusConfig

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]
RetryHook = Callable[[int, float, BaseException], None]

TIMEOUT_ERRORS: Tuple[Type[BaseException], ...] = (TimeoutError, asyncio.TimeoutError)


@dataclass(frozen=True)
class RetryPolicy:
    """Attempt budget and backoff; with the defaults the waits are 1s then 2s."""

    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 5.0
    timeout: float = 30.0

    @classmethod
    def from_config(cls, config: CorpusConfig) -> "RetryPolicy":
        return cls(
            max_attempts=int(config.get("retry", "max_attempts")),
            base_delay=float(config.get("retry", "base_delay")),
            max_delay=float(config.get("retry", "max_delay")),
            timeout=float(config.get("retry", "timeout")),
        )


async def call_with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    *,
    retry_on: Tuple[Type[BaseException], ...] = TIMEOUT_ERRORS,
    sleep: Optional[Sleep] = None,
    on_retry: Optional[RetryHook] = None,
) -> T:
    """Run ``operation`` under a per-attempt timeout with exponential backoff.

    Each attempt races the awaitable against ``policy.timeout``; a lost race
    abandons that attempt. Once the budget is spent the last error is raised
    unchanged.
    """

    def _before_sleep(state: RetryCallState) -> None:
        if on_retry is None or state.outcome is None:
            return
        delay = state.next_action.sleep if state.next_action else 0.0
        on_retry(state.attempt_number, delay, state.outcome.exception())

    retrying = AsyncRetrying(
        stop=stop_after_attempt(policy.max_attempts),
        wait=wait_exponential(multiplier=policy.base_delay, max=policy.max_delay),
        retry=retry_if_exception_type(retry_on),
        before_sleep=_before_sleep,
        sleep=sleep or asyncio.sleep,
        reraise=True,
    )
    async for attempt in retrying:
        with attempt:
            return await asyncio.wait_for(operation(), timeout=policy.timeout)
    raise AssertionError("unreachable")  # pragma: no cover
