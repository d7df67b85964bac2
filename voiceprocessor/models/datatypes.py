"""Core datatypes shared across voiceprocessor modules.

Responsibilities:
- Represent immutable records exchanged between generation stages.
- Represent persistent job and segment entities with explicit state machines.

Key types:
- Enums: `Provider`, `RoutingPreference`, `GenerationStatus`, `SegmentStatus`,
  and `VoicePreset`.
- Records: `TextSegment`, `ChunkingOptions`, `ProviderCharacteristics`,
  `RoutingContext`, `RoutingDecision`, `ProviderScore`, `PricingContext`,
  `PriceEstimate`, `ProviderPriceEstimate`, `AudioMergeOptions`,
  `AudioMergeResult`, `VoiceSettings`, `SynthesisResult`, `ProviderVoice`,
  and `DetectedChapter`.
- Entities: `Generation` and `GenerationSegment`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
import uuid

from ..errors import InvalidTransitionError


def utc_now() -> datetime:
    """Return the current timezone-aware UTC timestamp."""

    return datetime.now(timezone.utc)


def new_identifier() -> str:
    """Return a new random entity identifier."""

    return uuid.uuid4().hex


class Provider(str, Enum):
    """Interchangeable speech-synthesis vendors, in routing tie-break order."""

    ELEVENLABS = "elevenlabs"
    OPENAI = "openai"
    GOOGLE_CLOUD = "google_cloud"
    AMAZON_POLLY = "amazon_polly"
    FISH_AUDIO = "fish_audio"
    CARTESIA = "cartesia"
    DEEPGRAM = "deepgram"

    @classmethod
    def parse(cls, value: str) -> Provider:
        """Resolve a provider from its identifier, ignoring case and separators."""

        token = value.strip().lower().replace("-", "_").replace(" ", "_")
        aliases = {"google": "google_cloud", "polly": "amazon_polly", "fishaudio": "fish_audio"}
        token = aliases.get(token, token)
        for member in cls:
            if member.value == token or member.name.lower() == token:
                return member
        supported = ", ".join(member.value for member in cls)
        raise ValueError(f"Unsupported provider `{value}`. Supported: {supported}.")


class RoutingPreference(str, Enum):
    """Named weighting strategy used when scoring providers."""

    COST = "cost"
    SPEED = "speed"
    QUALITY = "quality"
    BALANCED = "balanced"


class VoicePreset(str, Enum):
    """Narration style presets mapped to provider-specific voice settings."""

    AUDIOBOOK = "audiobook"
    CONVERSATIONAL = "conversational"
    DRAMATIC = "dramatic"
    PROFESSIONAL = "professional"


class GenerationStatus(str, Enum):
    """Job lifecycle states."""

    PENDING = "pending"
    ANALYZING = "analyzing"
    CHUNKING = "chunking"
    PROCESSING = "processing"
    MERGING = "merging"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        """Return whether no further transition is allowed."""

        return not _GENERATION_TRANSITIONS[self]

    @property
    def public_label(self) -> str:
        """Return the coarse status label pushed to notification subscribers."""

        if self is GenerationStatus.PENDING:
            return "queued"
        if self in _WORKING_STATES:
            return "processing"
        return self.value

    def can_transition_to(self, target: GenerationStatus) -> bool:
        """Return whether `target` is a defined successor of this state."""

        return target in _GENERATION_TRANSITIONS[self]


class SegmentStatus(str, Enum):
    """Per-segment lifecycle states."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    RETRYING = "retrying"

    def can_transition_to(self, target: SegmentStatus) -> bool:
        """Return whether `target` is a defined successor of this state."""

        return target in _SEGMENT_TRANSITIONS[self]


_WORKING_STATES = frozenset(
    {
        GenerationStatus.ANALYZING,
        GenerationStatus.CHUNKING,
        GenerationStatus.PROCESSING,
        GenerationStatus.MERGING,
    }
)

_GENERATION_TRANSITIONS: dict[GenerationStatus, frozenset[GenerationStatus]] = {
    GenerationStatus.PENDING: frozenset(
        {GenerationStatus.ANALYZING, GenerationStatus.FAILED, GenerationStatus.CANCELLED}
    ),
    GenerationStatus.ANALYZING: frozenset(
        {GenerationStatus.CHUNKING, GenerationStatus.FAILED, GenerationStatus.CANCELLED}
    ),
    GenerationStatus.CHUNKING: frozenset(
        {GenerationStatus.PROCESSING, GenerationStatus.FAILED, GenerationStatus.CANCELLED}
    ),
    GenerationStatus.PROCESSING: frozenset(
        {GenerationStatus.MERGING, GenerationStatus.FAILED, GenerationStatus.CANCELLED}
    ),
    GenerationStatus.MERGING: frozenset(
        {GenerationStatus.COMPLETED, GenerationStatus.FAILED, GenerationStatus.CANCELLED}
    ),
    GenerationStatus.COMPLETED: frozenset(),
    GenerationStatus.FAILED: frozenset(),
    GenerationStatus.CANCELLED: frozenset(),
}

_SEGMENT_TRANSITIONS: dict[SegmentStatus, frozenset[SegmentStatus]] = {
    SegmentStatus.PENDING: frozenset({SegmentStatus.PROCESSING}),
    SegmentStatus.PROCESSING: frozenset({SegmentStatus.COMPLETED, SegmentStatus.FAILED}),
    SegmentStatus.RETRYING: frozenset({SegmentStatus.PROCESSING}),
    SegmentStatus.FAILED: frozenset({SegmentStatus.RETRYING}),
    SegmentStatus.COMPLETED: frozenset(),
}


@dataclass(frozen=True, slots=True)
class TextSegment:
    """A bounded, contiguous slice of input text.

    Attributes:
        index: 0-based segment index, defines merge order.
        text: Segment text content.
        start_offset: Inclusive character offset in the input.
        end_offset: Exclusive character offset in the input.
    """

    index: int
    text: str
    start_offset: int
    end_offset: int


@dataclass(frozen=True, slots=True)
class ChunkingOptions:
    """Segment size bounds and boundary preferences for the chunker.

    Attributes:
        max_segment_size: Maximum characters per segment.
        min_segment_size: Minimum characters before a soft break is accepted.
        preserve_paragraphs: Prefer breaking at blank-line paragraph boundaries.
        preserve_sentences: Prefer breaking after sentence punctuation.
        preserve_words: Prefer breaking at whitespace over a hard cut.
    """

    max_segment_size: int = 5000
    min_segment_size: int = 100
    preserve_paragraphs: bool = True
    preserve_sentences: bool = True
    preserve_words: bool = True

    def __post_init__(self) -> None:
        if self.max_segment_size <= 0:
            raise ValueError("`max_segment_size` must be a positive integer.")
        if self.min_segment_size < 0:
            raise ValueError("`min_segment_size` must not be negative.")


@dataclass(frozen=True, slots=True)
class ProviderCharacteristics:
    """Static routing and pricing attributes of one provider.

    Attributes:
        cost_per_thousand_chars: Vendor list price in USD per 1,000 characters.
        avg_latency_ms: Typical response latency in milliseconds.
        quality_rating: Subjective quality score in `[0, 1]`.
    """

    cost_per_thousand_chars: Decimal
    avg_latency_ms: int
    quality_rating: float


@dataclass(frozen=True, slots=True)
class RoutingContext:
    """Job constraints used to score and select providers.

    Attributes:
        character_count: Characters to synthesize.
        preference: Active weighting strategy.
        available_providers: Providers currently configured and reachable.
        locked_provider: Provider that exclusively owns the narration voice.
        preferred_provider: Provider receiving the preference bonus.
    """

    character_count: int
    preference: RoutingPreference = RoutingPreference.BALANCED
    available_providers: frozenset[Provider] = frozenset()
    locked_provider: Provider | None = None
    preferred_provider: Provider | None = None


@dataclass(frozen=True, slots=True)
class ProviderScore:
    """Routing score for one provider."""

    provider: Provider
    score: float
    is_available: bool
    cost_per_thousand_chars: Decimal
    avg_latency_ms: int
    quality_rating: float


@dataclass(frozen=True, slots=True)
class RoutingDecision:
    """Selected provider plus justification and estimates."""

    provider: Provider
    reason: str
    estimated_cost: Decimal
    estimated_latency_ms: int


@dataclass(frozen=True, slots=True)
class PricingContext:
    """Inputs for one price computation.

    Attributes:
        character_count: Characters to price.
        provider: Provider to price against, or `None` for the cheapest default.
        voice_cost_per_thousand_chars: Per-voice rate override.
    """

    character_count: int
    provider: Provider | None = None
    voice_cost_per_thousand_chars: Decimal | None = None


@dataclass(frozen=True, slots=True)
class PriceEstimate:
    """Priced quote for one provider (or the cheapest default)."""

    character_count: int
    estimated_cost: Decimal
    currency: str
    credits_required: int
    provider: Provider | None = None


@dataclass(frozen=True, slots=True)
class ProviderPriceEstimate:
    """One row of an all-provider price comparison."""

    provider: Provider
    cost_per_thousand_chars: Decimal
    total_cost: Decimal
    currency: str
    credits_required: int


@dataclass(frozen=True, slots=True)
class AudioMergeOptions:
    """Output format and assembly options for the audio merger.

    Attributes:
        output_format: Container/extension of segment and merged audio.
        silence_between_segments_ms: Gap inserted between adjacent segments.
        bitrate_kbps: Bit rate for the re-encode fallback.
    """

    output_format: str = "mp3"
    silence_between_segments_ms: int = 0
    bitrate_kbps: int = 128


@dataclass(frozen=True, slots=True)
class AudioMergeResult:
    """Merged audio payload and probed metadata."""

    audio_data: bytes
    content_type: str
    duration_ms: int
    size_bytes: int


@dataclass(frozen=True, slots=True)
class VoiceSettings:
    """Provider-facing voice tuning values.

    Attributes:
        stability: Voice stability, `None` when unsupported by the provider.
        similarity_boost: Similarity to the source voice.
        style: Style exaggeration amount.
        speed: Relative speaking rate multiplier.
    """

    stability: float | None = None
    similarity_boost: float | None = None
    style: float | None = None
    speed: float = 1.0


@dataclass(frozen=True, slots=True)
class SynthesisResult:
    """Audio rendered for one synthesis request."""

    audio_data: bytes
    content_type: str
    character_count: int
    cost: Decimal
    duration_ms: int | None = None


@dataclass(frozen=True, slots=True)
class ProviderVoice:
    """One entry in a provider voice catalog."""

    provider_voice_id: str
    name: str
    language: str | None = None
    gender: str | None = None
    preview_url: str | None = None


@dataclass(frozen=True, slots=True)
class DetectedChapter:
    """A chapter marker found in source text.

    Attributes:
        number: 1-based chapter number, `0` when the marker is unnumbered.
        title: Marker line text.
        start_offset: Inclusive offset of the marker line.
        end_offset: Exclusive offset (next marker or text end).
        word_count: Whitespace-separated word count of the chapter span.
    """

    number: int
    title: str
    start_offset: int
    end_offset: int
    word_count: int


@dataclass(slots=True)
class Generation:
    """Persistent text-to-audio job entity.

    Mutated only through `transition_to` and the orchestrator's bookkeeping.
    """

    user_id: str
    text: str
    voice_id: str | None = None
    preference: RoutingPreference = RoutingPreference.BALANCED
    preset: VoicePreset | None = None
    audio_format: str = "mp3"
    id: str = field(default_factory=new_identifier)
    character_count: int = 0
    status: GenerationStatus = GenerationStatus.PENDING
    selected_provider: Provider | None = None
    audio_url: str | None = None
    audio_duration_ms: int | None = None
    audio_size_bytes: int | None = None
    estimated_cost: Decimal | None = None
    actual_cost: Decimal | None = None
    segment_count: int = 0
    segments_completed: int = 0
    progress: int = 0
    error_message: str | None = None
    retry_count: int = 0
    created_at: datetime = field(default_factory=utc_now)
    started_at: datetime | None = None
    completed_at: datetime | None = None

    def __post_init__(self) -> None:
        if not self.character_count:
            self.character_count = len(self.text)

    def transition_to(self, target: GenerationStatus) -> None:
        """Move to `target`, stamping start/completion times."""

        if not self.status.can_transition_to(target):
            raise InvalidTransitionError(
                entity="generation", current=self.status.value, target=target.value
            )
        self.status = target
        if target is GenerationStatus.ANALYZING:
            self.started_at = utc_now()
        if target.is_terminal:
            self.completed_at = utc_now()


@dataclass(slots=True)
class GenerationSegment:
    """Persistent record for one chunk of a generation."""

    generation_id: str
    index: int
    text: str
    id: str = field(default_factory=new_identifier)
    character_count: int = 0
    status: SegmentStatus = SegmentStatus.PENDING
    provider: Provider | None = None
    audio_data: bytes | None = None
    audio_url: str | None = None
    audio_duration_ms: int | None = None
    cost: Decimal | None = None
    error_message: str | None = None
    retry_count: int = 0
    created_at: datetime = field(default_factory=utc_now)
    started_at: datetime | None = None
    completed_at: datetime | None = None

    def __post_init__(self) -> None:
        if not self.character_count:
            self.character_count = len(self.text)

    def transition_to(self, target: SegmentStatus) -> None:
        """Move to `target` along a defined segment transition."""

        if not self.status.can_transition_to(target):
            raise InvalidTransitionError(
                entity="segment", current=self.status.value, target=target.value
            )
        self.status = target
        if target is SegmentStatus.PROCESSING and self.started_at is None:
            self.started_at = utc_now()
        if target in {SegmentStatus.COMPLETED, SegmentStatus.FAILED}:
            self.completed_at = utc_now()
        if target is SegmentStatus.RETRYING:
            self.completed_at = None
