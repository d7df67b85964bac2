"""Integration-test fixtures for deterministic provider behavior."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Callable

import pytest

from tests.audio_fixtures import wav_bytes
from tests.pipeline_doubles import FakeSynthesisProvider
from voiceprocessor.audio.codecs import WaveCodec
from voiceprocessor.audio.merger import AudioMerger
from voiceprocessor.io.storage import LocalAudioStorage
from voiceprocessor.models.datatypes import AudioMergeOptions, ChunkingOptions
from voiceprocessor.pipeline import (
    GenerationManager,
    GenerationNotifier,
    GenerationOrchestrator,
    InMemoryJobStore,
    InMemorySegmentStore,
    RetryPolicy,
)
from voiceprocessor.provider_factory import ProviderRegistry
from voiceprocessor.tts.http_client import ElevenLabsClient, OpenAISpeechClient


@pytest.fixture(autouse=True)
def _mock_vendor_speech_calls(monkeypatch: pytest.MonkeyPatch) -> None:
    """Mock vendor HTTP synthesis so integration tests need no network or keys."""

    def _mock_synthesize_speech(self, **kwargs: object) -> bytes:
        """Return a deterministic 100 ms WAV payload."""

        _ = self
        _ = kwargs
        return wav_bytes(100)

    monkeypatch.setattr(OpenAISpeechClient, "synthesize_speech", _mock_synthesize_speech)
    monkeypatch.setattr(ElevenLabsClient, "synthesize_speech", _mock_synthesize_speech)


async def _no_sleep(delay: float) -> None:
    """Skip retry backoff."""

    _ = delay


@dataclass
class PipelineHarness:
    """Wired in-memory pipeline used by integration tests."""

    jobs: InMemoryJobStore
    segments: InMemorySegmentStore
    registry: ProviderRegistry
    storage: LocalAudioStorage
    orchestrator: GenerationOrchestrator
    manager: GenerationManager


@pytest.fixture
def build_pipeline(tmp_path: Path) -> Callable[..., PipelineHarness]:
    """Return a factory wiring fake providers into a WAV-producing pipeline."""

    def _build(
        *providers: FakeSynthesisProvider,
        notifier: GenerationNotifier | None = None,
        max_concurrency: int = 4,
        max_segment_size: int = 5000,
        max_retries: int = 3,
        silence_ms: int = 0,
        jobs: InMemoryJobStore | None = None,
        segments: InMemorySegmentStore | None = None,
    ) -> PipelineHarness:
        jobs = jobs if jobs is not None else InMemoryJobStore()
        segments = segments if segments is not None else InMemorySegmentStore()
        registry = ProviderRegistry(providers)
        storage = LocalAudioStorage(tmp_path / "storage")
        chunking = ChunkingOptions(max_segment_size=max_segment_size, min_segment_size=100)
        orchestrator = GenerationOrchestrator(
            jobs=jobs,
            segments=segments,
            registry=registry,
            storage=storage,
            merger=AudioMerger(
                WaveCodec(),
                AudioMergeOptions(output_format="wav", silence_between_segments_ms=silence_ms),
            ),
            notifier=notifier,
            retry_policy=RetryPolicy(max_retries=max_retries, sleeper=_no_sleep),
            max_concurrency=max_concurrency,
            chunking_options=chunking,
        )
        manager = GenerationManager(jobs=jobs, registry=registry, orchestrator=orchestrator)
        return PipelineHarness(jobs, segments, registry, storage, orchestrator, manager)

    return _build
