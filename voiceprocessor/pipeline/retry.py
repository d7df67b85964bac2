"""Segment retry policy.

Responsibilities:
- Bound per-segment retries and classify which failures are worth retrying.
- Provide backoff delays through an injectable async sleeper.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Awaitable, Callable

from ..errors import PipelineStageError
from ..tts.http_client import ProviderError


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Bounded backoff policy applied to each segment independently.

    Attributes:
        max_retries: Retries allowed after the first attempt.
        delays_seconds: Backoff per retry; the last delay repeats when exhausted.
        sleeper: Awaitable sleep function, replaceable in tests.
    """

    max_retries: int = 3
    delays_seconds: tuple[float, ...] = (1.0, 3.0, 10.0)
    sleeper: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep, compare=False)

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError("`max_retries` must not be negative.")

    def is_retryable(self, exc: BaseException) -> bool:
        """Return whether a failure may succeed on another attempt.

        Permanent provider failures (bad key, quota, malformed request) and
        stage errors such as routing exhaustion are never retried.
        """

        if isinstance(exc, ProviderError):
            return exc.transient
        if isinstance(exc, PipelineStageError):
            return False
        return isinstance(exc, Exception)

    def should_retry(self, retry_count: int, exc: BaseException) -> bool:
        """Return whether a segment with `retry_count` prior retries gets another attempt."""

        return retry_count < self.max_retries and self.is_retryable(exc)

    def delay_for(self, retry_number: int) -> float:
        """Return the backoff before the 1-based `retry_number`."""

        if not self.delays_seconds or retry_number <= 0:
            return 0.0
        return self.delays_seconds[min(retry_number, len(self.delays_seconds)) - 1]

    async def wait(self, retry_number: int) -> None:
        """Sleep for the backoff of `retry_number`."""

        delay = self.delay_for(retry_number)
        if delay > 0:
            await self.sleeper(delay)
