"""Text-to-segment chunking logic.

Responsibilities:
- Split arbitrarily long text into provider-sized segments.
- Prefer paragraph, then sentence, then word boundaries before a hard cut.
- Estimate segment counts for quoting before chunking runs.
"""

from __future__ import annotations

import math

from ..models.datatypes import ChunkingOptions, TextSegment


class Chunker:
    """Create bounded, offset-ordered segments with deterministic boundary search."""

    _SENTENCE_TERMINATORS = frozenset({".", "!", "?"})
    _SENTENCE_FOLLOWERS = frozenset({'"', "'"})
    _AVERAGE_FILL_RATIO = 0.85
    _COMMON_ABBREVIATIONS = frozenset(
        {
            "mr.",
            "mrs.",
            "ms.",
            "dr.",
            "prof.",
            "sr.",
            "jr.",
            "st.",
            "etc.",
            "e.g.",
            "i.e.",
            "vs.",
            "no.",
            "fig.",
            "al.",
        }
    )

    def __init__(self, options: ChunkingOptions | None = None) -> None:
        """Initialize the chunker with default options used when none are passed."""

        self.options = options or ChunkingOptions()

    def split(self, text: str, options: ChunkingOptions | None = None) -> list[TextSegment]:
        """Split text into ordered segments.

        Args:
            text: Input text; empty input yields no segments.
            options: Per-call options, defaulting to the instance options.

        Returns:
            Contiguous segments whose last `end_offset` equals `len(text)`.
        """

        if not text:
            return []

        resolved = options or self.options
        max_size = resolved.max_segment_size
        text_length = len(text)
        if text_length <= max_size:
            return [TextSegment(index=0, text=text, start_offset=0, end_offset=text_length)]

        segments: list[TextSegment] = []
        position = 0
        while position < text_length:
            if text_length - position <= max_size:
                segments.append(
                    TextSegment(
                        index=len(segments),
                        text=text[position:],
                        start_offset=position,
                        end_offset=text_length,
                    )
                )
                break

            boundary = self._find_break_point(text, position, resolved)
            segments.append(
                TextSegment(
                    index=len(segments),
                    text=text[position:boundary],
                    start_offset=position,
                    end_offset=boundary,
                )
            )
            position = boundary
            while position < text_length and text[position].isspace():
                position += 1
        return segments

    def estimate_count(self, text: str, options: ChunkingOptions | None = None) -> int:
        """Approximate the segment count assuming ~85% average segment fill."""

        if not text:
            return 0

        resolved = options or self.options
        if len(text) <= resolved.max_segment_size:
            return 1
        average_size = max(1, int(resolved.max_segment_size * self._AVERAGE_FILL_RATIO))
        return math.ceil(len(text) / average_size)

    def _find_break_point(self, text: str, start: int, options: ChunkingOptions) -> int:
        """Resolve the exclusive end index of the segment starting at `start`."""

        search_end = min(start + options.max_segment_size, len(text))
        search_start = start + options.min_segment_size

        if options.preserve_paragraphs:
            boundary = self._find_last_paragraph_break(text, search_start, search_end)
            if boundary is not None:
                return boundary
        if options.preserve_sentences:
            boundary = self._find_last_sentence_break(text, search_start, search_end)
            if boundary is not None:
                return boundary
        if options.preserve_words:
            boundary = self._find_last_word_break(text, search_start, search_end)
            if boundary is not None:
                return boundary
        return search_end

    def _find_last_paragraph_break(self, text: str, start: int, end: int) -> int | None:
        """Find the last blank-line break (`\\n\\n` or `\\n\\r\\n`) in the window."""

        index = end - 1
        while index >= start:
            if text[index] == "\n":
                if index > 0 and text[index - 1] == "\n":
                    return index + 1
                if index > 1 and text[index - 1] == "\r" and text[index - 2] == "\n":
                    return index + 1
            index -= 1
        return None

    def _find_last_sentence_break(self, text: str, start: int, end: int) -> int | None:
        """Find the last sentence terminator in the window that is not an abbreviation."""

        index = end - 1
        while index >= start:
            if self._is_sentence_end(text, index):
                return index + 1
            index -= 1
        return None

    def _find_last_word_break(self, text: str, start: int, end: int) -> int | None:
        """Find the last whitespace character in the window."""

        index = end - 1
        while index >= start:
            if text[index].isspace():
                return index + 1
            index -= 1
        return None

    def _is_sentence_end(self, text: str, index: int) -> bool:
        """Return whether punctuation at `index` terminates a sentence."""

        if index >= len(text) - 1:
            return False
        if text[index] not in self._SENTENCE_TERMINATORS:
            return False
        follower = text[index + 1]
        if not (follower.isspace() or follower in self._SENTENCE_FOLLOWERS):
            return False
        if text[index] == ".":
            return not self._is_abbreviation_period(text, index)
        return True

    def _is_abbreviation_period(self, text: str, index: int) -> bool:
        """Return whether a period closes an initial (`J.`) or a common abbreviation."""

        previous = text[index - 1] if index > 0 else ""
        if previous.isupper() and (index < 2 or text[index - 2].isspace()):
            return True

        token_start = index
        while token_start > 0 and (text[token_start - 1].isalpha() or text[token_start - 1] == "."):
            token_start -= 1
        token = text[token_start : index + 1].lower()
        return token in self._COMMON_ABBREVIATIONS
