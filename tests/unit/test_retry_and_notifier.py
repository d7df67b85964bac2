"""Unit tests for segment retry policy and best-effort notification delivery."""

from __future__ import annotations

import asyncio

import pytest

from voiceprocessor.errors import InputValidationError, RoutingError
from voiceprocessor.models.datatypes import GenerationStatus
from voiceprocessor.pipeline.notifier import BestEffortNotifier, LoggingNotifier
from voiceprocessor.pipeline.retry import RetryPolicy
from voiceprocessor.tts.http_client import ProviderError


class _RecordingSleeper:
    """Async sleeper that records requested delays instead of sleeping."""

    def __init__(self) -> None:
        """Initialize recorded delays."""

        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        """Record one delay."""

        self.delays.append(delay)


class _BrokenNotifier:
    """Notifier whose every delivery raises."""

    async def notify_status(self, user_id, generation_id, status, message=None) -> None:
        raise ConnectionError("socket closed")

    async def notify_progress(
        self, user_id, generation_id, progress, current_segment, total_segments
    ) -> None:
        raise ConnectionError("socket closed")

    async def notify_completed(self, user_id, generation_id, audio_url, duration_ms) -> None:
        raise ConnectionError("socket closed")

    async def notify_failed(self, user_id, generation_id, error) -> None:
        raise RuntimeError("push service down")


def test_retry_delays_follow_schedule_and_repeat_last_value() -> None:
    """Delays should be 1s, 3s, 10s and then stay at the last value."""

    policy = RetryPolicy()

    assert [policy.delay_for(number) for number in range(0, 6)] == [
        0.0,
        1.0,
        3.0,
        10.0,
        10.0,
        10.0,
    ]
    assert RetryPolicy(delays_seconds=()).delay_for(2) == 0.0


def test_retry_bound_allows_three_retries_for_transient_failures() -> None:
    """Three retries after the first attempt should be allowed, then no more."""

    policy = RetryPolicy()
    transient = ProviderError("busy", failure_kind="rate_limited")

    assert [policy.should_retry(count, transient) for count in range(5)] == [
        True,
        True,
        True,
        False,
        False,
    ]


@pytest.mark.parametrize(
    ("exc", "expected"),
    [
        (ProviderError("timeout", failure_kind="timeout"), True),
        (ProviderError("5xx", failure_kind="server_error"), True),
        (ProviderError("bad key", failure_kind="invalid_api_key"), False),
        (ProviderError("quota", failure_kind="insufficient_quota"), False),
        (RoutingError(), False),
        (InputValidationError(stage="chunk", detail="empty"), False),
        (ConnectionResetError("reset"), True),
    ],
)
def test_retry_classification(exc: Exception, expected: bool) -> None:
    """Only transient provider and unexpected runtime failures are retryable."""

    assert RetryPolicy().is_retryable(exc) is expected


def test_retry_wait_uses_injected_sleeper() -> None:
    """Waiting should go through the injected sleeper with the scheduled delay."""

    sleeper = _RecordingSleeper()
    policy = RetryPolicy(delays_seconds=(0.5, 2.0), sleeper=sleeper)

    asyncio.run(policy.wait(1))
    asyncio.run(policy.wait(3))
    asyncio.run(RetryPolicy(delays_seconds=(0.0,), sleeper=sleeper).wait(1))

    assert sleeper.delays == [0.5, 2.0]


def test_retry_policy_rejects_negative_bound() -> None:
    """A negative retry bound is a configuration error."""

    with pytest.raises(ValueError, match="max_retries"):
        RetryPolicy(max_retries=-1)


def test_best_effort_notifier_swallows_and_logs_delivery_failures(
    captured_log_lines: list[str],
) -> None:
    """Delivery errors should be reported as `False` and logged, never raised."""

    notifier = BestEffortNotifier(_BrokenNotifier())

    async def _deliver_all() -> list[bool]:
        return [
            await notifier.notify_status("u1", "g1", GenerationStatus.PROCESSING),
            await notifier.notify_progress("u1", "g1", 50, 1, 2),
            await notifier.notify_completed("u1", "g1", "/files/a.mp3", 1000),
            await notifier.notify_failed("u1", "g1", "boom"),
        ]

    results = asyncio.run(_deliver_all())

    assert results == [False, False, False, False]
    failures = [line for line in captured_log_lines if "event=delivery_failed" in line]
    assert len(failures) == 4
    assert "notification=failed" in failures[-1]
    assert "error_type=RuntimeError" in failures[-1]


def test_logging_notifier_reports_public_status_labels(captured_log_lines: list[str]) -> None:
    """Status events should be logged with their coarse public label."""

    notifier = BestEffortNotifier(LoggingNotifier())

    delivered = asyncio.run(notifier.notify_status("u1", "g1", GenerationStatus.PENDING))
    asyncio.run(notifier.notify_status("u1", "g1", GenerationStatus.MERGING))

    assert delivered is True
    status_lines = [line for line in captured_log_lines if "event=status" in line]
    assert "status=queued" in status_lines[0]
    assert "status=processing" in status_lines[1]
