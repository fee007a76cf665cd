"""Bounded exponential backoff for provider calls."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

from ...constants import DEFAULT_BACKOFF_MULTIPLIER, DEFAULT_BASE_DELAY_SECONDS, DEFAULT_MAX_ATTEMPTS
from ..llm.errors import is_retryable

T = TypeVar("T")

OnRetry = Callable[[int, float, BaseException], None]


@dataclass(frozen=True)
class RetryPolicy:
    """Retry a call while ``retryable`` accepts the failure.

    After failed attempt ``n`` (1-based) the policy waits
    ``base_delay * multiplier ** n`` seconds, so the defaults give 10s, 20s
    and 40s between four attempts. The last failure is re-raised.
    """

    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    base_delay: float = DEFAULT_BASE_DELAY_SECONDS
    multiplier: float = DEFAULT_BACKOFF_MULTIPLIER
    retryable: Callable[[BaseException], bool] = is_retryable

    def delay_for(self, attempt: int) -> float:
        return self.base_delay * (self.multiplier ** attempt)

    def run(
        self,
        fn: Callable[[], T],
        *,
        sleep: Callable[[float], None],
        on_retry: Optional[OnRetry] = None,
    ) -> T:
        attempt = 1
        while True:
            try:
                return fn()
            except Exception as exc:
                if attempt >= self.max_attempts or not self.retryable(exc):
                    raise
                delay = self.delay_for(attempt)
                if on_retry is not None:
                    on_retry(attempt, delay, exc)
                sleep(delay)
                attempt += 1
