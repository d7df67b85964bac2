"""Integration tests for end-to-end generation orchestration."""

from __future__ import annotations

import asyncio
import copy
from decimal import Decimal
from typing import Sequence

import pytest

from tests.audio_fixtures import wav_duration_ms
from tests.pipeline_doubles import FakeSynthesisProvider, RaisingNotifier, RecordingNotifier
from voiceprocessor.audio.codecs import WaveCodec
from voiceprocessor.audio.merger import AudioMerger
from voiceprocessor.errors import InputValidationError, InvalidTransitionError
from voiceprocessor.models.datatypes import (
    AudioMergeOptions,
    AudioMergeResult,
    Generation,
    GenerationSegment,
    GenerationStatus,
    Provider,
    SegmentStatus,
    VoicePreset,
)
from voiceprocessor.pipeline import GenerationOrchestrator, InMemoryJobStore, InMemorySegmentStore
from voiceprocessor.tts.http_client import ProviderError
from voiceprocessor.tts.voices import PRESET_SETTINGS, VoiceProfile


_SENTENCE = "The quick brown fox jumps over the lazy dog. "
_LONG_TEXT = (_SENTENCE * 267).strip()
_VOICE = VoiceProfile(name="Narrator", provider_voice_id="alloy")


class _CopyingJobStore(InMemoryJobStore):
    """Job store that hands out and keeps copies, like a database-backed store."""

    def add(self, generation: Generation) -> None:
        super().add(copy.deepcopy(generation))

    def get(self, generation_id: str) -> Generation | None:
        stored = super().get(generation_id)
        return copy.deepcopy(stored) if stored is not None else None

    def update(self, generation: Generation) -> None:
        super().update(copy.deepcopy(generation))


class _StatusRecordingSegmentStore(InMemorySegmentStore):
    """Segment store recording every persisted status per segment index."""

    def __init__(self) -> None:
        super().__init__()
        self.history: dict[int, list[SegmentStatus]] = {}

    def update(self, segment: GenerationSegment) -> None:
        self.history.setdefault(segment.index, []).append(segment.status)
        super().update(segment)


class _CancellingMerger(AudioMerger):
    """WAV merger that cancels the job after merging, before results are stored."""

    def __init__(self) -> None:
        super().__init__(WaveCodec(), AudioMergeOptions(output_format="wav"))
        self.orchestrator: GenerationOrchestrator | None = None
        self.generation_id = ""

    async def merge(
        self,
        segments: Sequence[bytes],
        options: AudioMergeOptions | None = None,
    ) -> AudioMergeResult:
        result = await super().merge(segments, options)
        assert self.orchestrator is not None
        assert await self.orchestrator.cancel(self.generation_id) is True
        return result


def _submit(harness, text: str = _LONG_TEXT, voice: VoiceProfile = _VOICE, **kwargs) -> Generation:
    """Create a pending WAV generation through the manager."""

    return harness.manager.create_generation("user-1", text, voice, audio_format="wav", **kwargs)


def test_long_text_completes_with_ordered_segments_and_full_progress(build_pipeline) -> None:
    """12k characters at a 5k bound should yield three merged, priced segments."""

    provider = FakeSynthesisProvider(duration_ms=200)
    notifier = RecordingNotifier()
    harness = build_pipeline(provider, notifier=notifier)
    generation = _submit(harness)

    result = asyncio.run(harness.orchestrator.process(generation.id, _VOICE))

    segments = harness.segments.list_for(generation.id)
    assert result.status is GenerationStatus.COMPLETED
    assert result.segment_count == 3
    assert result.segments_completed == 3
    assert result.progress == 100
    assert [segment.index for segment in segments] == [0, 1, 2]
    assert all(segment.status is SegmentStatus.COMPLETED for segment in segments)
    assert all(len(segment.text) <= 5000 for segment in segments)
    assert provider.calls == [segment.text for segment in segments]
    assert result.audio_url == f"/files/generations/{generation.id}/audio.wav"
    assert result.audio_duration_ms == 600
    assert harness.storage.exists(f"generations/{generation.id}/segments/2.wav")
    stored = harness.storage.load(f"generations/{generation.id}/audio.wav")
    assert wav_duration_ms(stored) == 600
    assert result.audio_size_bytes == len(stored)
    assert result.selected_provider is Provider.OPENAI
    assert result.actual_cost == sum((segment.cost for segment in segments), Decimal(0))
    assert result.actual_cost > 0
    assert result.started_at is not None and result.completed_at is not None


def test_status_and_progress_notifications_follow_lifecycle(build_pipeline) -> None:
    """Subscribers should see every stage once and monotonic progress ending at 100."""

    notifier = RecordingNotifier()
    harness = build_pipeline(FakeSynthesisProvider(), notifier=notifier)
    generation = _submit(harness)

    result = asyncio.run(harness.orchestrator.process(generation.id, _VOICE))

    assert notifier.statuses == [
        GenerationStatus.ANALYZING,
        GenerationStatus.CHUNKING,
        GenerationStatus.PROCESSING,
        GenerationStatus.MERGING,
        GenerationStatus.COMPLETED,
    ]
    percentages = [event[0] for event in notifier.progress]
    assert percentages == sorted(percentages)
    assert notifier.progress[-1] == (100, 3, 3)
    assert notifier.completed == [(result.audio_url, 600)]
    assert notifier.failed == []


def test_silence_is_inserted_between_segments(build_pipeline) -> None:
    """Merged duration should grow by one 500 ms gap between each pair of segments."""

    durations = []
    for silence_ms in (0, 500):
        harness = build_pipeline(FakeSynthesisProvider(duration_ms=200), silence_ms=silence_ms)
        generation = _submit(harness)
        result = asyncio.run(harness.orchestrator.process(generation.id, _VOICE))
        assert result.segment_count == 3
        durations.append(result.audio_duration_ms)

    assert durations[0] == 600
    assert abs((durations[1] - durations[0]) - 2 * 500) <= 100


def test_transient_failure_is_retried_then_succeeds(build_pipeline) -> None:
    """One transient failure should cost one retry and still complete."""

    provider = FakeSynthesisProvider(failures=[ProviderError("busy", failure_kind="timeout")])
    harness = build_pipeline(provider)
    generation = _submit(harness, text="Short text.")

    result = asyncio.run(harness.orchestrator.process(generation.id, _VOICE))

    segment = harness.segments.list_for(generation.id)[0]
    assert result.status is GenerationStatus.COMPLETED
    assert len(provider.calls) == 2
    assert segment.retry_count == 1
    assert segment.error_message is None


def test_persistent_transient_failure_fails_after_four_attempts(
    build_pipeline, captured_log_lines: list[str]
) -> None:
    """A segment that never succeeds should fail the job after three retries."""

    provider = FakeSynthesisProvider(
        fail_always=ProviderError("OpenAI service error (HTTP 503).", failure_kind="server_error")
    )
    notifier = RecordingNotifier()
    harness = build_pipeline(provider, notifier=notifier)
    generation = _submit(harness, text="Short text.")

    result = asyncio.run(harness.orchestrator.process(generation.id, _VOICE))

    segment = harness.segments.list_for(generation.id)[0]
    assert result.status is GenerationStatus.FAILED
    assert len(provider.calls) == 4
    assert segment.status is SegmentStatus.FAILED
    assert segment.retry_count == 3
    assert result.error_message == (
        "Segment 0 failed after 4 attempt(s): OpenAI service error (HTTP 503)."
    )
    assert notifier.failed == [result.error_message]
    assert notifier.completed == []
    assert result.audio_url is None
    assert sum("event=retry" in line for line in captured_log_lines) == 3


def test_permanent_failure_is_not_retried(build_pipeline) -> None:
    """Authentication failures should fail on the first attempt."""

    provider = FakeSynthesisProvider(
        fail_always=ProviderError("OpenAI authentication failed", failure_kind="invalid_api_key")
    )
    harness = build_pipeline(provider)
    generation = _submit(harness, text="Short text.")

    result = asyncio.run(harness.orchestrator.process(generation.id, _VOICE))

    assert result.status is GenerationStatus.FAILED
    assert len(provider.calls) == 1
    assert "after 1 attempt(s)" in (result.error_message or "")


def test_first_permanent_failure_stops_further_dispatch(build_pipeline) -> None:
    """With serial dispatch, later segments must not start after a permanent failure."""

    provider = FakeSynthesisProvider(
        fail_always=ProviderError("quota", failure_kind="insufficient_quota")
    )
    harness = build_pipeline(provider, max_concurrency=1)
    generation = _submit(harness)

    result = asyncio.run(harness.orchestrator.process(generation.id, _VOICE))

    statuses = [segment.status for segment in harness.segments.list_for(generation.id)]
    assert result.status is GenerationStatus.FAILED
    assert len(provider.calls) == 1
    assert statuses == [SegmentStatus.FAILED, SegmentStatus.PENDING, SegmentStatus.PENDING]


def test_concurrency_is_bounded(build_pipeline) -> None:
    """No more than `max_concurrency` provider calls may be in flight."""

    provider = FakeSynthesisProvider(delay_seconds=0.01)
    harness = build_pipeline(provider, max_concurrency=2, max_segment_size=500)
    generation = _submit(harness, text=(_SENTENCE * 60).strip())

    result = asyncio.run(harness.orchestrator.process(generation.id, _VOICE))

    assert result.status is GenerationStatus.COMPLETED
    assert result.segment_count >= 5
    assert len(provider.calls) == result.segment_count
    assert provider.max_active == 2


def test_locked_voice_routes_every_segment_to_its_provider(build_pipeline) -> None:
    """A voice owned by one vendor should never be sent to another."""

    openai = FakeSynthesisProvider(Provider.OPENAI)
    elevenlabs = FakeSynthesisProvider(Provider.ELEVENLABS)
    harness = build_pipeline(openai, elevenlabs)
    voice = VoiceProfile(
        name="Rachel",
        provider_voice_id="rachel-default",
        provider=Provider.ELEVENLABS,
        provider_voice_ids={Provider.ELEVENLABS: "21m00Tcm4TlvDq8ikWAM"},
    )
    generation = _submit(harness, voice=voice, preset=VoicePreset.AUDIOBOOK)

    result = asyncio.run(harness.orchestrator.process(generation.id, voice))

    assert result.status is GenerationStatus.COMPLETED
    assert openai.calls == []
    assert len(elevenlabs.calls) == 3
    assert set(elevenlabs.voice_ids) == {"21m00Tcm4TlvDq8ikWAM"}
    assert elevenlabs.settings[0] == PRESET_SETTINGS[(VoicePreset.AUDIOBOOK, Provider.ELEVENLABS)]
    assert result.selected_provider is Provider.ELEVENLABS


def test_voice_rate_override_prices_actual_cost(build_pipeline) -> None:
    """A per-voice rate should price every completed segment."""

    voice = VoiceProfile(
        name="Premium", provider_voice_id="alloy", cost_per_thousand_chars=Decimal("1")
    )
    harness = build_pipeline(FakeSynthesisProvider())
    generation = _submit(harness, text="a" * 2000, voice=voice)

    result = asyncio.run(harness.orchestrator.process(generation.id, voice))

    assert result.actual_cost == Decimal("2")
    assert result.estimated_cost == Decimal("2")


def test_unroutable_stored_job_fails_with_routing_message(build_pipeline) -> None:
    """A voice locked to an unregistered provider should fail without retries."""

    harness = build_pipeline(FakeSynthesisProvider(Provider.OPENAI))
    generation = Generation(user_id="user-1", text="Hello there.", audio_format="wav")
    harness.jobs.add(generation)
    voice = VoiceProfile(name="x", provider_voice_id="x", provider=Provider.CARTESIA)

    result = asyncio.run(harness.orchestrator.process(generation.id, voice))

    assert result.status is GenerationStatus.FAILED
    assert result.error_message == (
        "Segment 0 failed after 1 attempt(s): No TTS providers available"
    )


def test_missing_voice_fails_during_analysis(build_pipeline) -> None:
    """Jobs without any voice cannot be synthesized."""

    notifier = RecordingNotifier()
    harness = build_pipeline(FakeSynthesisProvider(), notifier=notifier)
    generation = Generation(user_id="user-1", text="Hello there.", audio_format="wav")
    harness.jobs.add(generation)

    result = asyncio.run(harness.orchestrator.process(generation.id))

    assert result.status is GenerationStatus.FAILED
    assert result.error_message == "A narration voice is required."
    assert notifier.statuses == [GenerationStatus.ANALYZING]
    assert harness.segments.list_for(generation.id) == []


def test_stored_voice_id_is_used_without_profile(build_pipeline) -> None:
    """A job carrying a provider voice id can be processed without a profile."""

    provider = FakeSynthesisProvider()
    harness = build_pipeline(provider)
    generation = _submit(harness, text="Hello there.")

    result = asyncio.run(harness.orchestrator.process(generation.id))

    assert result.status is GenerationStatus.COMPLETED
    assert provider.voice_ids == ["alloy"]


def test_cancel_during_processing_discards_results_and_skips_merge(build_pipeline) -> None:
    """Cancelling mid-synthesis should end `cancelled` without merging or completion."""

    provider = FakeSynthesisProvider(delay_seconds=0.05)
    notifier = RecordingNotifier()
    harness = build_pipeline(provider, notifier=notifier, max_concurrency=1)
    generation = _submit(harness)

    async def _scenario() -> tuple[bool, Generation]:
        task = asyncio.create_task(harness.orchestrator.process(generation.id, _VOICE))
        while not provider.calls:
            await asyncio.sleep(0)
        cancelled = await harness.orchestrator.cancel(generation.id)
        return cancelled, await task

    cancelled, result = asyncio.run(_scenario())

    assert cancelled is True
    assert result.status is GenerationStatus.CANCELLED
    assert len(provider.calls) == 1
    assert GenerationStatus.MERGING not in notifier.statuses
    assert notifier.statuses[-1] is GenerationStatus.CANCELLED
    assert notifier.completed == []
    assert notifier.failed == []
    assert result.audio_url is None
    assert not harness.storage.exists(f"generations/{generation.id}/segments/0.wav")


def test_cancelled_pending_job_is_returned_without_work(build_pipeline) -> None:
    """Processing a job cancelled before start should do nothing."""

    provider = FakeSynthesisProvider()
    harness = build_pipeline(provider)
    generation = _submit(harness)

    assert asyncio.run(harness.orchestrator.cancel(generation.id)) is True
    result = asyncio.run(harness.orchestrator.process(generation.id, _VOICE))

    assert result.status is GenerationStatus.CANCELLED
    assert provider.calls == []
    assert asyncio.run(harness.orchestrator.cancel(generation.id)) is False
    assert asyncio.run(harness.orchestrator.cancel("missing")) is False


def test_process_rejects_unknown_and_finished_jobs(build_pipeline) -> None:
    """Only pending jobs may be processed."""

    harness = build_pipeline(FakeSynthesisProvider())
    generation = _submit(harness, text="Hello there.")
    asyncio.run(harness.orchestrator.process(generation.id, _VOICE))

    with pytest.raises(InputValidationError, match="does not exist"):
        asyncio.run(harness.orchestrator.process("missing", _VOICE))
    with pytest.raises(InvalidTransitionError, match="`completed` -> `analyzing`"):
        asyncio.run(harness.orchestrator.process(generation.id, _VOICE))


def test_notifier_failures_never_change_the_outcome(
    build_pipeline, captured_log_lines: list[str]
) -> None:
    """A notifier that always raises should not fail the generation."""

    notifier = RaisingNotifier()
    harness = build_pipeline(FakeSynthesisProvider(), notifier=notifier)
    generation = _submit(harness)

    result = asyncio.run(harness.orchestrator.process(generation.id, _VOICE))

    assert result.status is GenerationStatus.COMPLETED
    assert len(notifier.completed) == 1
    assert any("event=delivery_failed" in line for line in captured_log_lines)


def test_stage_telemetry_is_logged(build_pipeline, captured_log_lines: list[str]) -> None:
    """Each stage should log start and completion events."""

    harness = build_pipeline(FakeSynthesisProvider())
    generation = _submit(harness, text="Hello there.")

    asyncio.run(harness.orchestrator.process(generation.id, _VOICE))

    for stage in ("chunk", "synthesize", "merge"):
        assert any(f"stage={stage} event=start" in line for line in captured_log_lines)
        assert any(f"stage={stage} event=complete" in line for line in captured_log_lines)
    assert any("event=priced" in line and "total_cost=" in line for line in captured_log_lines)


def test_stored_job_without_profile_stays_on_its_creation_provider(build_pipeline) -> None:
    """Processing by id alone must not send a vendor-owned voice id to another vendor."""

    openai = FakeSynthesisProvider(Provider.OPENAI)
    elevenlabs = FakeSynthesisProvider(Provider.ELEVENLABS)
    harness = build_pipeline(openai, elevenlabs)
    voice = VoiceProfile(
        name="Rachel", provider_voice_id="21m00Tcm4TlvDq8ikWAM", provider=Provider.ELEVENLABS
    )
    generation = _submit(harness, text="Hello there.", voice=voice)
    assert generation.selected_provider is Provider.ELEVENLABS

    result = asyncio.run(harness.orchestrator.process(generation.id))

    assert result.status is GenerationStatus.COMPLETED
    assert openai.calls == []
    assert elevenlabs.voice_ids == ["21m00Tcm4TlvDq8ikWAM"]
    assert result.selected_provider is Provider.ELEVENLABS


def test_retried_segment_cycles_through_failed_and_retrying(build_pipeline) -> None:
    """A transient failure should persist `failed -> retrying -> processing`."""

    segments = _StatusRecordingSegmentStore()
    provider = FakeSynthesisProvider(failures=[ProviderError("busy", failure_kind="timeout")])
    harness = build_pipeline(provider, segments=segments)
    generation = _submit(harness, text="Short text.")

    result = asyncio.run(harness.orchestrator.process(generation.id, _VOICE))

    assert result.status is GenerationStatus.COMPLETED
    assert segments.history[0] == [
        SegmentStatus.PROCESSING,
        SegmentStatus.FAILED,
        SegmentStatus.RETRYING,
        SegmentStatus.PROCESSING,
        SegmentStatus.COMPLETED,
    ]


@pytest.mark.parametrize("copying_store", [False, True])
def test_cancel_during_merge_discards_merged_audio(
    build_pipeline, copying_store: bool, captured_log_lines: list[str]
) -> None:
    """A cancel that lands while merging leaves the job cancelled with no audio stored."""

    notifier = RecordingNotifier()
    jobs = _CopyingJobStore() if copying_store else InMemoryJobStore()
    harness = build_pipeline(FakeSynthesisProvider(), notifier=notifier, jobs=jobs)
    generation = _submit(harness)
    merger = _CancellingMerger()
    merger.orchestrator = harness.orchestrator
    merger.generation_id = generation.id
    harness.orchestrator.merger = merger

    result = asyncio.run(harness.orchestrator.process(generation.id, _VOICE))

    stored = harness.jobs.get(generation.id)
    assert result.status is GenerationStatus.CANCELLED
    assert stored is not None and stored.status is GenerationStatus.CANCELLED
    assert stored.audio_url is None
    assert stored.audio_duration_ms is None
    assert stored.actual_cost is None
    assert not harness.storage.exists(f"generations/{generation.id}/audio.wav")
    assert notifier.statuses[-2:] == [GenerationStatus.MERGING, GenerationStatus.CANCELLED]
    assert notifier.completed == []
    assert notifier.failed == []
    assert any("event=discarded" in line for line in captured_log_lines)
