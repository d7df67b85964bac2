"""Job and segment persistence boundaries.

Responsibilities:
- Define the store capabilities the orchestrator and manager depend on.
- Provide in-memory stores for CLI runs and tests.
"""

from __future__ import annotations

from typing import Iterable, Protocol

from ..models.datatypes import Generation, GenerationSegment


class JobStore(Protocol):
    """Persistence for generation jobs."""

    def add(self, generation: Generation) -> None:
        """Persist a new job."""

    def get(self, generation_id: str) -> Generation | None:
        """Return one job, or `None` when unknown."""

    def update(self, generation: Generation) -> None:
        """Persist changes to an existing job."""


class SegmentStore(Protocol):
    """Persistence for per-job segments."""

    def add_many(self, segments: Iterable[GenerationSegment]) -> None:
        """Persist new segments."""

    def list_for(self, generation_id: str) -> list[GenerationSegment]:
        """Return a job's segments ordered by index."""

    def update(self, segment: GenerationSegment) -> None:
        """Persist changes to an existing segment."""


class InMemoryJobStore:
    """Dictionary-backed job store."""

    def __init__(self) -> None:
        self._jobs: dict[str, Generation] = {}

    def add(self, generation: Generation) -> None:
        if generation.id in self._jobs:
            raise ValueError(f"Generation `{generation.id}` already exists.")
        self._jobs[generation.id] = generation

    def get(self, generation_id: str) -> Generation | None:
        return self._jobs.get(generation_id)

    def update(self, generation: Generation) -> None:
        if generation.id not in self._jobs:
            raise KeyError(f"Generation `{generation.id}` does not exist.")
        self._jobs[generation.id] = generation


class InMemorySegmentStore:
    """Dictionary-backed segment store keyed by generation."""

    def __init__(self) -> None:
        self._segments: dict[str, dict[int, GenerationSegment]] = {}

    def add_many(self, segments: Iterable[GenerationSegment]) -> None:
        for segment in segments:
            by_index = self._segments.setdefault(segment.generation_id, {})
            if segment.index in by_index:
                raise ValueError(
                    f"Segment {segment.index} of `{segment.generation_id}` already exists."
                )
            by_index[segment.index] = segment

    def list_for(self, generation_id: str) -> list[GenerationSegment]:
        by_index = self._segments.get(generation_id, {})
        return [by_index[index] for index in sorted(by_index)]

    def update(self, segment: GenerationSegment) -> None:
        by_index = self._segments.get(segment.generation_id, {})
        if segment.index not in by_index:
            raise KeyError(
                f"Segment {segment.index} of `{segment.generation_id}` does not exist."
            )
        by_index[segment.index] = segment
