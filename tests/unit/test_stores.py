"""Unit tests for in-memory job and segment stores."""

from __future__ import annotations

import pytest

from voiceprocessor.models.datatypes import Generation, GenerationSegment
from voiceprocessor.pipeline.stores import InMemoryJobStore, InMemorySegmentStore


def test_job_store_rejects_duplicates_and_unknown_updates() -> None:
    """Jobs are added once and only existing jobs can be updated."""

    store = InMemoryJobStore()
    generation = Generation(user_id="u1", text="Hello")
    store.add(generation)

    assert store.get(generation.id) is generation
    assert store.get("missing") is None
    with pytest.raises(ValueError, match="already exists"):
        store.add(generation)
    with pytest.raises(KeyError):
        store.update(Generation(user_id="u1", text="Other"))


def test_segment_store_lists_by_index_per_generation() -> None:
    """Segments should come back ordered by index regardless of insert order."""

    store = InMemorySegmentStore()
    store.add_many(
        [
            GenerationSegment(generation_id="g1", index=2, text="c"),
            GenerationSegment(generation_id="g1", index=0, text="a"),
            GenerationSegment(generation_id="g2", index=0, text="z"),
            GenerationSegment(generation_id="g1", index=1, text="b"),
        ]
    )

    assert [segment.text for segment in store.list_for("g1")] == ["a", "b", "c"]
    assert [segment.text for segment in store.list_for("g2")] == ["z"]
    assert store.list_for("missing") == []


def test_segment_store_rejects_duplicate_index_and_unknown_update() -> None:
    """Each (generation, index) pair exists once."""

    store = InMemorySegmentStore()
    store.add_many([GenerationSegment(generation_id="g1", index=0, text="a")])

    with pytest.raises(ValueError, match="already exists"):
        store.add_many([GenerationSegment(generation_id="g1", index=0, text="again")])
    with pytest.raises(KeyError):
        store.update(GenerationSegment(generation_id="g1", index=5, text="x"))
