"""Chapter marker detection for long-form input text.

Responsibilities:
- Find start-of-line chapter, part, section, and divider markers.
- Report chapter spans with word counts for quoting and previews.
"""

from __future__ import annotations

import re

from ..models.datatypes import DetectedChapter


_ONES = (
    "One", "Two", "Three", "Four", "Five", "Six", "Seven", "Eight", "Nine",
)
_TEENS = (
    "Ten", "Eleven", "Twelve", "Thirteen", "Fourteen", "Fifteen", "Sixteen",
    "Seventeen", "Eighteen", "Nineteen",
)
_TENS = ("Twenty", "Thirty", "Forty", "Fifty", "Sixty", "Seventy", "Eighty", "Ninety")


def _written_numbers() -> dict[str, int]:
    """Build the lower-cased `one`..`one hundred` lookup table."""

    numbers: dict[str, int] = {}
    for value, word in enumerate(_ONES, start=1):
        numbers[word.lower()] = value
    for value, word in enumerate(_TEENS, start=10):
        numbers[word.lower()] = value
    for tens_index, tens_word in enumerate(_TENS):
        base = 20 + tens_index * 10
        numbers[tens_word.lower()] = base
        for value, word in enumerate(_ONES, start=1):
            numbers[f"{tens_word}-{word}".lower()] = base + value
    numbers["one hundred"] = 100
    return numbers


_WRITTEN_NUMBERS = _written_numbers()
_PART_WRITTEN_NUMBERS = tuple(word for word in (*_ONES, "Ten"))
_SUBTITLE = r"(?:[ \t]*[:\-][ \t]*(.+?))?[ \t]*$"
_FLAGS = re.IGNORECASE | re.MULTILINE


def _alternation(words: list[str] | tuple[str, ...]) -> str:
    """Return a regex alternation with longer words first."""

    return "|".join(re.escape(word) for word in sorted(words, key=len, reverse=True))


class ChapterDetector:
    """Detect chapter markers with an ordered table of start-of-line patterns."""

    _NUMBERED_PATTERNS = (
        re.compile(r"^Chapter\s+(\d+)" + _SUBTITLE, _FLAGS),
        re.compile(r"^Ch\.?\s+(\d+)" + _SUBTITLE, _FLAGS),
        re.compile(r"^Part\s+(\d+)" + _SUBTITLE, _FLAGS),
        re.compile(r"^Section\s+(\d+)" + _SUBTITLE, _FLAGS),
    )
    _WRITTEN_PATTERNS = (
        re.compile(
            r"^Chapter\s+(" + _alternation(list(_WRITTEN_NUMBERS)) + r")" + _SUBTITLE,
            _FLAGS,
        ),
        re.compile(r"^Part\s+(" + _alternation(_PART_WRITTEN_NUMBERS) + r")" + _SUBTITLE, _FLAGS),
    )
    _NAMED_PATTERN = re.compile(
        r"^(Prologue|Epilogue|Introduction|Foreword|Afterword|Preface)" + _SUBTITLE,
        _FLAGS,
    )
    _DIVIDER_PATTERN = re.compile(r"^(\*{3,}|-{3,}|={3,})\s*$", re.MULTILINE)

    def detect(self, text: str) -> list[DetectedChapter]:
        """Return detected chapters ordered by position.

        Each chapter spans from its marker to the next marker or the end of text.
        A line matched by several patterns is reported once.
        """

        if not text:
            return []

        markers: dict[int, tuple[int, str]] = {}
        for pattern in self._NUMBERED_PATTERNS:
            for match in pattern.finditer(text):
                markers.setdefault(match.start(), (int(match.group(1)), match.group(0).strip()))
        for pattern in self._WRITTEN_PATTERNS:
            for match in pattern.finditer(text):
                number = _WRITTEN_NUMBERS.get(match.group(1).lower(), 0)
                markers.setdefault(match.start(), (number, match.group(0).strip()))
        for match in self._NAMED_PATTERN.finditer(text):
            markers.setdefault(match.start(), (0, match.group(0).strip()))
        for match in self._DIVIDER_PATTERN.finditer(text):
            markers.setdefault(match.start(), (0, match.group(0).strip()))

        starts = sorted(markers)
        chapters: list[DetectedChapter] = []
        for position, start in enumerate(starts):
            end = starts[position + 1] if position + 1 < len(starts) else len(text)
            number, title = markers[start]
            chapters.append(
                DetectedChapter(
                    number=number,
                    title=title,
                    start_offset=start,
                    end_offset=end,
                    word_count=len(text[start:end].split()),
                )
            )
        return chapters

    def has_chapters(self, text: str) -> bool:
        """Return whether any chapter marker appears in the text."""

        if not text:
            return False
        patterns = (
            *self._NUMBERED_PATTERNS,
            *self._WRITTEN_PATTERNS,
            self._NAMED_PATTERN,
            self._DIVIDER_PATTERN,
        )
        return any(pattern.search(text) for pattern in patterns)
