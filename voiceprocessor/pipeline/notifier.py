"""Generation event notification boundary.

Responsibilities:
- Define the notifier capability for status, progress, completion, and failure events.
- Deliver events best-effort: delivery errors are logged and discarded by contract.
"""

from __future__ import annotations

from typing import Awaitable, Callable, Protocol

from ..models.datatypes import GenerationStatus
from ..telemetry.logger import log_event


class GenerationNotifier(Protocol):
    """Push channel scoped to one user and generation."""

    async def notify_status(
        self, user_id: str, generation_id: str, status: GenerationStatus, message: str | None = None
    ) -> None:
        """Push a coarse status change."""

    async def notify_progress(
        self,
        user_id: str,
        generation_id: str,
        progress: int,
        current_segment: int,
        total_segments: int,
    ) -> None:
        """Push a progress update."""

    async def notify_completed(
        self, user_id: str, generation_id: str, audio_url: str, duration_ms: int
    ) -> None:
        """Push the completion event with audio location and duration."""

    async def notify_failed(self, user_id: str, generation_id: str, error: str) -> None:
        """Push the failure event."""


class LoggingNotifier:
    """Notifier that writes every event to the structured log."""

    async def notify_status(
        self, user_id: str, generation_id: str, status: GenerationStatus, message: str | None = None
    ) -> None:
        log_event(
            "INFO", "status", "notify", generation=generation_id, status=status.public_label
        )

    async def notify_progress(
        self,
        user_id: str,
        generation_id: str,
        progress: int,
        current_segment: int,
        total_segments: int,
    ) -> None:
        log_event(
            "INFO",
            "progress",
            "notify",
            generation=generation_id,
            progress=progress,
            segments=f"{current_segment}/{total_segments}",
        )

    async def notify_completed(
        self, user_id: str, generation_id: str, audio_url: str, duration_ms: int
    ) -> None:
        log_event(
            "INFO", "completed", "notify", generation=generation_id, duration_ms=duration_ms
        )

    async def notify_failed(self, user_id: str, generation_id: str, error: str) -> None:
        log_event("INFO", "failed", "notify", generation=generation_id)


class BestEffortNotifier:
    """Wrap a notifier so delivery failures never reach the caller.

    Every method returns `True` when the wrapped notifier accepted the event and
    `False` when delivery raised; the error is logged at warning level and
    discarded. Losing an event never changes the outcome of a generation.
    """

    def __init__(self, delegate: GenerationNotifier) -> None:
        """Initialize with the notifier that performs actual delivery."""

        self.delegate = delegate

    async def notify_status(
        self, user_id: str, generation_id: str, status: GenerationStatus, message: str | None = None
    ) -> bool:
        return await self._deliver(
            "status",
            generation_id,
            lambda: self.delegate.notify_status(user_id, generation_id, status, message),
        )

    async def notify_progress(
        self,
        user_id: str,
        generation_id: str,
        progress: int,
        current_segment: int,
        total_segments: int,
    ) -> bool:
        return await self._deliver(
            "progress",
            generation_id,
            lambda: self.delegate.notify_progress(
                user_id, generation_id, progress, current_segment, total_segments
            ),
        )

    async def notify_completed(
        self, user_id: str, generation_id: str, audio_url: str, duration_ms: int
    ) -> bool:
        return await self._deliver(
            "completed",
            generation_id,
            lambda: self.delegate.notify_completed(user_id, generation_id, audio_url, duration_ms),
        )

    async def notify_failed(self, user_id: str, generation_id: str, error: str) -> bool:
        return await self._deliver(
            "failed",
            generation_id,
            lambda: self.delegate.notify_failed(user_id, generation_id, error),
        )

    async def _deliver(
        self,
        event: str,
        generation_id: str,
        send: Callable[[], Awaitable[None]],
    ) -> bool:
        """Await one delivery, logging and discarding any failure."""

        try:
            await send()
        except Exception as exc:
            log_event(
                "WARNING",
                "delivery_failed",
                "notify",
                notification=event,
                generation=generation_id,
                error_type=type(exc).__name__,
            )
            return False
        return True
