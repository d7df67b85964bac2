"""Generation orchestration for voiceprocessor.

Responsibilities:
- Drive one job through `pending -> analyzing -> chunking -> processing -> merging -> completed`.
- Synthesize segments with bounded concurrency and per-segment retry.
- Merge segment audio in index order, price the result, and notify the owner.

Key types:
- `GenerationOrchestrator`: async state machine over the job and segment stores.
"""

from __future__ import annotations

import asyncio
from dataclasses import replace
from decimal import Decimal
from typing import TYPE_CHECKING, Awaitable, Callable, TypeVar

from ..audio.merger import AudioMerger
from ..errors import (
    InputValidationError,
    InvalidTransitionError,
    PipelineStageError,
    SegmentSynthesisError,
)
from ..io.storage import (
    AudioStorage,
    LocalAudioStorage,
    generation_audio_path,
    segment_audio_path,
)
from ..models.datatypes import (
    AudioMergeOptions,
    ChunkingOptions,
    Generation,
    GenerationSegment,
    GenerationStatus,
    Provider,
    RoutingContext,
    SegmentStatus,
)
from ..pricing import Pricer
from ..provider_factory import ProviderRegistry
from ..routing.router import ProviderRouter
from ..telemetry.cost_tracker import CostTracker
from ..telemetry.logger import log_event
from ..text.chunking import Chunker
from ..tts.voices import VoiceProfile, resolve_voice_settings
from .notifier import BestEffortNotifier, GenerationNotifier, LoggingNotifier
from .retry import RetryPolicy
from .stores import JobStore, SegmentStore

if TYPE_CHECKING:
    from ..config import VoiceProcessorConfig

_StageResult = TypeVar("_StageResult")


class _GenerationCancelled(Exception):
    """Raised inside a run once the stored job has been cancelled."""


def error_message_for(exc: BaseException) -> str:
    """Return the human-readable message stored on failed jobs and segments."""

    if isinstance(exc, PipelineStageError):
        return exc.detail
    return str(exc) or type(exc).__name__


class GenerationOrchestrator:
    """Coordinate chunking, routing, synthesis, and merging for stored jobs."""

    def __init__(
        self,
        *,
        jobs: JobStore,
        segments: SegmentStore,
        registry: ProviderRegistry,
        storage: AudioStorage,
        chunker: Chunker | None = None,
        router: ProviderRouter | None = None,
        pricer: Pricer | None = None,
        merger: AudioMerger | None = None,
        notifier: GenerationNotifier | None = None,
        retry_policy: RetryPolicy | None = None,
        max_concurrency: int = 4,
        chunking_options: ChunkingOptions | None = None,
    ) -> None:
        """Initialize collaborators; notifier delivery is always best-effort."""

        if max_concurrency <= 0:
            raise ValueError("`max_concurrency` must be a positive integer.")
        self.jobs = jobs
        self.segments = segments
        self.registry = registry
        self.storage = storage
        self.chunker = chunker or Chunker()
        self.router = router or ProviderRouter()
        self.pricer = pricer or Pricer()
        self.merger = merger or AudioMerger()
        if isinstance(notifier, BestEffortNotifier):
            self.notifier = notifier
        else:
            self.notifier = BestEffortNotifier(notifier or LoggingNotifier())
        self.retry_policy = retry_policy or RetryPolicy()
        self.max_concurrency = max_concurrency
        self.chunking_options = chunking_options or self.chunker.options
        self._cancel_events: dict[str, asyncio.Event] = {}

    @classmethod
    def from_config(
        cls,
        config: VoiceProcessorConfig,
        *,
        jobs: JobStore,
        segments: SegmentStore,
        registry: ProviderRegistry,
        storage: AudioStorage | None = None,
        merger: AudioMerger | None = None,
        notifier: GenerationNotifier | None = None,
    ) -> GenerationOrchestrator:
        """Build an orchestrator whose stage options all derive from `config`."""

        return cls(
            jobs=jobs,
            segments=segments,
            registry=registry,
            storage=storage or LocalAudioStorage(config.storage_root, config.public_url_base),
            chunker=Chunker(config.chunking_options()),
            router=ProviderRouter(config.provider_catalog(), config.routing_options()),
            pricer=Pricer(config.pricing_options()),
            merger=merger or AudioMerger(options=config.merge_options()),
            notifier=notifier,
            retry_policy=config.retry_policy(),
            max_concurrency=config.max_concurrency,
        )

    async def process(self, generation_id: str, voice: VoiceProfile | None = None) -> Generation:
        """Run one pending job to a terminal state and return it.

        Failures never propagate: they are recorded on the job as `failed` with
        an error message and pushed to the notifier. A job cancelled before or
        during processing is returned in `cancelled` state.

        Raises:
            InputValidationError: If the job does not exist.
            InvalidTransitionError: If the job is neither pending nor cancelled.
        """

        job = self._require_job(generation_id)
        if job.status is GenerationStatus.CANCELLED:
            return job
        if job.status is not GenerationStatus.PENDING:
            raise InvalidTransitionError(
                entity="generation",
                current=job.status.value,
                target=GenerationStatus.ANALYZING.value,
            )

        self._cancel_events[generation_id] = asyncio.Event()
        try:
            await self._run(job, voice)
        except _GenerationCancelled:
            log_event("INFO", "discarded", "generate", generation=generation_id)
        except Exception as exc:
            await self._fail(job, exc)
        finally:
            self._cancel_events.pop(generation_id, None)
        return self.jobs.get(generation_id) or job

    async def cancel(self, generation_id: str) -> bool:
        """Move a non-terminal job to `cancelled`.

        Dispatched provider calls finish, but their results are discarded and
        no further segment or merge work is scheduled.
        """

        job = self.jobs.get(generation_id)
        if job is None or job.status.is_terminal:
            return False
        job.transition_to(GenerationStatus.CANCELLED)
        self.jobs.update(job)
        event = self._cancel_events.get(generation_id)
        if event is not None:
            event.set()
        log_event("INFO", "cancelled", "generate", generation=generation_id)
        await self.notifier.notify_status(job.user_id, job.id, GenerationStatus.CANCELLED)
        return True

    async def _run(self, job: Generation, voice: VoiceProfile | None) -> None:
        """Execute every stage in order, stopping quietly on cancellation."""

        await self._advance(job, GenerationStatus.ANALYZING)
        if voice is None and not job.voice_id:
            raise InputValidationError(
                stage="analyze",
                detail="A narration voice is required.",
                hint="Pass a voice profile or store a provider voice id on the job.",
            )

        records = await self._run_stage(job, "chunk", lambda: self._chunk(job))
        if self._is_cancelled(job.id):
            return
        await self._advance(job, GenerationStatus.PROCESSING)

        await self._run_stage(job, "synthesize", lambda: self._synthesize_all(job, records, voice))
        if self._is_cancelled(job.id):
            return
        await self._advance(job, GenerationStatus.MERGING)

        await self._run_stage(job, "merge", lambda: self._merge(job, records, voice))
        if self._is_cancelled(job.id):
            return
        await self._advance(job, GenerationStatus.COMPLETED)
        await self.notifier.notify_completed(
            job.user_id, job.id, job.audio_url or "", job.audio_duration_ms or 0
        )

    async def _chunk(self, job: Generation) -> list[GenerationSegment]:
        """Split the job text and persist one pending record per segment."""

        text_segments = self.chunker.split(job.text, self.chunking_options)
        if not text_segments:
            raise InputValidationError(
                stage="chunk",
                detail="Text produced no segments.",
                hint="Submit non-empty text.",
            )
        await self._advance(job, GenerationStatus.CHUNKING)

        records = [
            GenerationSegment(generation_id=job.id, index=segment.index, text=segment.text)
            for segment in text_segments
        ]
        self._ensure_running(job.id)
        self.segments.add_many(records)
        job.segment_count = len(records)
        job.segments_completed = 0
        job.progress = 0
        self.jobs.update(job)
        return records

    async def _synthesize_all(
        self,
        job: Generation,
        records: list[GenerationSegment],
        voice: VoiceProfile | None,
    ) -> None:
        """Synthesize all segments under the concurrency bound.

        The first permanent segment failure stops further dispatch; segments
        already in flight settle before the failure is raised.
        """

        semaphore = asyncio.Semaphore(self.max_concurrency)
        progress_lock = asyncio.Lock()
        stop = asyncio.Event()

        async def run_one(record: GenerationSegment) -> None:
            async with semaphore:
                if stop.is_set() or self._is_cancelled(job.id):
                    return
                try:
                    await self._synthesize_segment(job, record, voice, progress_lock)
                except Exception:
                    stop.set()
                    raise

        pending = [record for record in records if record.status is not SegmentStatus.COMPLETED]
        outcomes = await asyncio.gather(
            *(run_one(record) for record in pending), return_exceptions=True
        )
        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                raise outcome

    async def _synthesize_segment(
        self,
        job: Generation,
        record: GenerationSegment,
        voice: VoiceProfile | None,
        progress_lock: asyncio.Lock,
    ) -> None:
        """Route and synthesize one segment, retrying transient failures."""

        locked = voice.provider if voice is not None else job.selected_provider
        while True:
            record.transition_to(SegmentStatus.PROCESSING)
            self.segments.update(record)
            try:
                decision = self.router.select_provider(
                    RoutingContext(
                        character_count=record.character_count,
                        preference=job.preference,
                        available_providers=self.registry.available(),
                        locked_provider=locked,
                        preferred_provider=locked,
                    )
                )
                provider = self.registry.get(decision.provider)
                result = await provider.synthesize(
                    record.text,
                    voice.voice_id_for(decision.provider) if voice is not None else job.voice_id,
                    resolve_voice_settings(job.preset, decision.provider),
                    job.audio_format,
                )
            except Exception as exc:
                record.error_message = error_message_for(exc)
                record.transition_to(SegmentStatus.FAILED)
                self.segments.update(record)
                if not self.retry_policy.should_retry(record.retry_count, exc):
                    log_event(
                        "WARNING",
                        "segment_failed",
                        "synthesize",
                        generation=job.id,
                        segment=record.index,
                        error_type=type(exc).__name__,
                    )
                    raise SegmentSynthesisError(
                        segment_index=record.index,
                        attempts=record.retry_count + 1,
                        detail=record.error_message,
                    ) from exc

                record.retry_count += 1
                record.transition_to(SegmentStatus.RETRYING)
                self.segments.update(record)
                log_event(
                    "WARNING",
                    "retry",
                    "synthesize",
                    generation=job.id,
                    segment=record.index,
                    retry=record.retry_count,
                    error_type=type(exc).__name__,
                )
                await self.retry_policy.wait(record.retry_count)
                if self._is_cancelled(job.id):
                    return
                continue

            if self._is_cancelled(job.id):
                log_event(
                    "INFO", "discarded", "synthesize", generation=job.id, segment=record.index
                )
                return

            record.audio_url = await self.storage.save(
                segment_audio_path(job.id, record.index, job.audio_format),
                result.audio_data,
                result.content_type,
            )
            record.provider = decision.provider
            record.audio_data = result.audio_data
            record.audio_duration_ms = result.duration_ms
            record.cost = self.pricer.cost_for(
                record.character_count, self._rate_for(decision.provider, voice)
            )
            record.error_message = None
            record.transition_to(SegmentStatus.COMPLETED)
            self.segments.update(record)
            await self._record_progress(job, progress_lock)
            return

    async def _record_progress(self, job: Generation, progress_lock: asyncio.Lock) -> None:
        """Recount completed segments and push a monotonic progress update."""

        async with progress_lock:
            if self._is_cancelled(job.id):
                return
            completed = sum(
                1
                for segment in self.segments.list_for(job.id)
                if segment.status is SegmentStatus.COMPLETED
            )
            job.segments_completed = max(job.segments_completed, completed)
            job.progress = job.segments_completed * 100 // max(1, job.segment_count)
            self.jobs.update(job)
            await self.notifier.notify_progress(
                job.user_id,
                job.id,
                job.progress,
                job.segments_completed,
                job.segment_count,
            )

    async def _merge(
        self,
        job: Generation,
        records: list[GenerationSegment],
        voice: VoiceProfile | None,
    ) -> None:
        """Merge segment audio in index order, store it, and price the job."""

        ordered = sorted(records, key=lambda record: record.index)
        merge_options: AudioMergeOptions = replace(
            self.merger.options, output_format=job.audio_format.lower()
        )
        merged = await self.merger.merge(
            [record.audio_data or b"" for record in ordered], merge_options
        )
        self._ensure_running(job.id)
        audio_url = await self.storage.save(
            generation_audio_path(job.id, job.audio_format),
            merged.audio_data,
            merged.content_type,
        )

        tracker = CostTracker()
        for record in ordered:
            if record.provider is not None:
                tracker.add_usage(
                    record.provider, record.character_count, record.cost or Decimal(0)
                )
        self._ensure_running(job.id)
        job.audio_url = audio_url
        job.audio_duration_ms = merged.duration_ms
        job.audio_size_bytes = merged.size_bytes
        job.actual_cost = tracker.total_cost
        if len(tracker.costs) == 1:
            job.selected_provider = next(iter(tracker.costs))
        self.jobs.update(job)
        log_event("INFO", "priced", "merge", generation=job.id, **tracker.summary())

    async def _fail(self, job: Generation, exc: Exception) -> None:
        """Record a terminal failure unless the job already reached a terminal state."""

        current = self.jobs.get(job.id) or job
        if current.status.is_terminal:
            return
        current.error_message = error_message_for(exc)
        current.transition_to(GenerationStatus.FAILED)
        self.jobs.update(current)
        log_event(
            "ERROR",
            "failure",
            "generate",
            generation=current.id,
            error_type=type(exc).__name__,
        )
        await self.notifier.notify_failed(current.user_id, current.id, current.error_message)

    async def _advance(self, job: Generation, target: GenerationStatus) -> None:
        """Transition, persist, and announce a job status change."""

        self._ensure_running(job.id)
        job.transition_to(target)
        self.jobs.update(job)
        await self.notifier.notify_status(job.user_id, job.id, target)

    async def _run_stage(
        self,
        job: Generation,
        stage_name: str,
        action: Callable[[], Awaitable[_StageResult]],
    ) -> _StageResult:
        """Run one named stage and emit start/complete/failure telemetry events."""

        log_event("INFO", "start", stage_name, generation=job.id)
        try:
            result = await action()
        except _GenerationCancelled:
            raise
        except Exception as exc:
            log_event(
                "ERROR", "failure", stage_name, generation=job.id, error_type=type(exc).__name__
            )
            raise
        log_event("INFO", "complete", stage_name, generation=job.id)
        return result

    def _rate_for(self, provider: Provider, voice: VoiceProfile | None) -> Decimal:
        """Return the per-thousand-character rate for a completed segment."""

        if voice is not None and voice.cost_per_thousand_chars is not None:
            return voice.cost_per_thousand_chars
        return self.pricer.rate_for(provider)

    def _ensure_running(self, generation_id: str) -> None:
        """Stop the run once the stored job has been cancelled."""

        if self._is_cancelled(generation_id):
            raise _GenerationCancelled(generation_id)

    def _is_cancelled(self, generation_id: str) -> bool:
        """Return whether a cancellation signal or stored status stops the job."""

        event = self._cancel_events.get(generation_id)
        if event is not None and event.is_set():
            return True
        stored = self.jobs.get(generation_id)
        return stored is not None and stored.status is GenerationStatus.CANCELLED

    def _require_job(self, generation_id: str) -> Generation:
        """Return a stored job or raise a validation error."""

        job = self.jobs.get(generation_id)
        if job is None:
            raise InputValidationError(
                stage="analyze",
                detail=f"Generation `{generation_id}` does not exist.",
            )
        return job
