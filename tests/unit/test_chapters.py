"""Unit tests for start-of-line chapter marker detection."""

from __future__ import annotations

from voiceprocessor.text.chapters import ChapterDetector


_BOOK = (
    "Prologue\n"
    "It begins here.\n"
    "\n"
    "Chapter 1: The Start\n"
    "Words in the first chapter.\n"
    "\n"
    "Chapter Two\n"
    "Second chapter words.\n"
    "***\n"
    "After the divider.\n"
)


def test_detector_finds_named_numbered_written_and_divider_markers() -> None:
    """Every marker kind should be reported in text order with parsed numbers."""

    chapters = ChapterDetector().detect(_BOOK)

    assert [(chapter.number, chapter.title) for chapter in chapters] == [
        (0, "Prologue"),
        (1, "Chapter 1: The Start"),
        (2, "Chapter Two"),
        (0, "***"),
    ]


def test_detector_spans_run_to_next_marker_and_text_end() -> None:
    """Chapter spans should tile the text from the first marker to the end."""

    chapters = ChapterDetector().detect(_BOOK)

    assert chapters[0].start_offset == 0
    for current, following in zip(chapters, chapters[1:]):
        assert current.end_offset == following.start_offset
    assert chapters[-1].end_offset == len(_BOOK)
    assert chapters[0].word_count == 4


def test_detector_parses_compound_written_numbers_and_dash_subtitles() -> None:
    """Hyphenated written numbers and dash subtitles should be recognized."""

    text = "Chapter Twenty-One\nBody.\nChapter 22 - Aftermath\nMore body.\n"

    chapters = ChapterDetector().detect(text)

    assert [chapter.number for chapter in chapters] == [21, 22]
    assert chapters[1].title == "Chapter 22 - Aftermath"


def test_detector_ignores_markers_inside_lines() -> None:
    """Markers only count at the start of a line."""

    text = "He read chapter 4 twice before bed.\nNothing else happened."

    detector = ChapterDetector()

    assert detector.detect(text) == []
    assert detector.has_chapters(text) is False
    assert detector.has_chapters("") is False
    assert detector.has_chapters("Epilogue\nThe end.") is True
