"""Domain exceptions for generation stages and CLI diagnostics."""

from __future__ import annotations


class PipelineStageError(RuntimeError):
    """Raised when a specific generation stage fails."""

    def __init__(
        self,
        *,
        stage: str,
        detail: str,
        hint: str | None = None,
    ) -> None:
        """Initialize a stage-scoped generation error."""

        super().__init__(detail)
        self.stage = stage
        self.detail = detail
        self.hint = hint


class InputValidationError(PipelineStageError, ValueError):
    """Raised when a call receives input it can never process."""


class RoutingError(PipelineStageError):
    """Raised when no provider satisfies the routing constraints."""

    def __init__(self, detail: str = "No TTS providers available", *, hint: str | None = None) -> None:
        """Initialize a routing failure with a default diagnostic."""

        super().__init__(
            stage="route",
            detail=detail,
            hint=hint or "Configure at least one provider API key or relax the voice lock.",
        )


class SegmentSynthesisError(PipelineStageError):
    """Raised when one segment fails permanently."""

    def __init__(self, *, segment_index: int, attempts: int, detail: str) -> None:
        """Initialize a permanent segment failure with attempt metadata."""

        super().__init__(
            stage="synthesize",
            detail=f"Segment {segment_index} failed after {attempts} attempt(s): {detail}",
            hint="Check provider credentials and quota, then submit a new generation.",
        )
        self.segment_index = segment_index
        self.attempts = attempts


class AudioMergeError(PipelineStageError):
    """Raised when both the copy and re-encode merge strategies fail."""

    def __init__(self, *, copy_error: str, reencode_error: str) -> None:
        """Initialize a merge failure carrying both underlying diagnostics."""

        super().__init__(
            stage="merge",
            detail=(
                "Audio merge failed. "
                f"Stream copy error: {copy_error}. Re-encode error: {reencode_error}"
            ),
            hint="Verify ffmpeg is installed and all segments share a decodable format.",
        )
        self.copy_error = copy_error
        self.reencode_error = reencode_error


class InsufficientCreditsError(PipelineStageError):
    """Raised when a user cannot cover the estimated credits of a job."""

    def __init__(self, *, required: int, available: int) -> None:
        """Initialize a credit shortfall error."""

        super().__init__(
            stage="estimate",
            detail=f"Insufficient credits: {required} required, {available} available.",
            hint="Top up credits or shorten the input text.",
        )
        self.required = required
        self.available = available


class InvalidTransitionError(PipelineStageError):
    """Raised when a job or segment is moved along an undefined transition."""

    def __init__(self, *, entity: str, current: str, target: str) -> None:
        """Initialize a state machine violation error."""

        super().__init__(
            stage="state",
            detail=f"Invalid {entity} transition `{current}` -> `{target}`.",
        )
        self.current = current
        self.target = target
