"""Audio merge stage.

Responsibilities:
- Merge ordered segment audio buffers into one deliverable.
- Interleave optional silence and fall back from stream copy to re-encode.
- Keep every merge inside its own scratch directory, removed on every exit path.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
import tempfile
from typing import Sequence

from ..errors import AudioMergeError, InputValidationError, PipelineStageError
from ..models.datatypes import AudioMergeOptions, AudioMergeResult
from ..telemetry.logger import log_event
from .codecs import AudioCodec, CodecError, codec_for_format


CONTENT_TYPES = {
    "mp3": "audio/mpeg",
    "wav": "audio/wav",
    "ogg": "audio/ogg",
    "flac": "audio/flac",
}


def content_type_for(output_format: str) -> str:
    """Return the MIME type for an output format, defaulting to MPEG audio."""

    return CONTENT_TYPES.get(output_format.lower(), "audio/mpeg")


class AudioMerger:
    """Concatenate segment audio in index order through an injectable codec."""

    def __init__(
        self,
        codec: AudioCodec | None = None,
        options: AudioMergeOptions | None = None,
    ) -> None:
        """Initialize the merger; without a codec one is chosen per output format."""

        self.codec = codec
        self.options = options or AudioMergeOptions()

    async def merge(
        self,
        segments: Sequence[bytes],
        options: AudioMergeOptions | None = None,
    ) -> AudioMergeResult:
        """Merge segments off the event loop.

        Raises:
            InputValidationError: If `segments` is empty.
            AudioMergeError: If both the copy and re-encode strategies fail.
        """

        ordered = list(segments)
        if not ordered:
            raise InputValidationError(
                stage="merge",
                detail="No audio segments provided.",
                hint="Merge requires at least one synthesized segment.",
            )
        return await asyncio.to_thread(self.merge_blocking, ordered, options or self.options)

    def merge_blocking(
        self,
        segments: list[bytes],
        options: AudioMergeOptions,
    ) -> AudioMergeResult:
        """Merge segments synchronously inside a scratch directory."""

        if not segments:
            raise InputValidationError(stage="merge", detail="No audio segments provided.")

        codec = self.codec or codec_for_format(
            options.output_format, bitrate_kbps=options.bitrate_kbps
        )
        extension = options.output_format.lower()
        content_type = content_type_for(extension)

        with tempfile.TemporaryDirectory(prefix="voiceprocessor-merge-") as scratch:
            scratch_root = Path(scratch)
            if len(segments) == 1:
                single_path = scratch_root / f"segment_0000.{extension}"
                single_path.write_bytes(segments[0])
                duration_ms = self._probe_duration(codec, single_path)
                return AudioMergeResult(
                    audio_data=segments[0],
                    content_type=content_type,
                    duration_ms=duration_ms,
                    size_bytes=len(segments[0]),
                )

            segment_paths: list[Path] = []
            for index, data in enumerate(segments):
                path = scratch_root / f"segment_{index:04d}.{extension}"
                path.write_bytes(data)
                segment_paths.append(path)

            sequence = self._interleave_silence(codec, segment_paths, options, scratch_root)
            output_path = scratch_root / f"merged.{extension}"
            self._concatenate(codec, sequence, output_path, options)

            audio_data = output_path.read_bytes()
            duration_ms = self._probe_duration(codec, output_path)

        log_event(
            "INFO",
            "merged",
            "merge",
            segments=len(segments),
            duration_ms=duration_ms,
            size_bytes=len(audio_data),
        )
        return AudioMergeResult(
            audio_data=audio_data,
            content_type=content_type,
            duration_ms=duration_ms,
            size_bytes=len(audio_data),
        )

    def _interleave_silence(
        self,
        codec: AudioCodec,
        segment_paths: list[Path],
        options: AudioMergeOptions,
        scratch_root: Path,
    ) -> list[Path]:
        """Return segment paths with one shared silence clip between neighbours."""

        if options.silence_between_segments_ms <= 0:
            return list(segment_paths)

        try:
            layout = codec.probe(segment_paths[0])
            silence_path = scratch_root / f"silence.{options.output_format.lower()}"
            codec.make_silence(
                duration_ms=options.silence_between_segments_ms,
                like=layout,
                output_path=silence_path,
            )
        except CodecError as exc:
            raise PipelineStageError(
                stage="merge",
                detail=f"Silence generation failed: {exc}",
                hint="Verify the first segment is a decodable audio payload.",
            ) from exc

        sequence: list[Path] = []
        for position, path in enumerate(segment_paths):
            if position:
                sequence.append(silence_path)
            sequence.append(path)
        return sequence

    def _concatenate(
        self,
        codec: AudioCodec,
        sequence: list[Path],
        output_path: Path,
        options: AudioMergeOptions,
    ) -> None:
        """Try lossless stream copy, then one full re-encode."""

        try:
            codec.concat_copy(sequence, output_path)
            return
        except CodecError as copy_exc:
            copy_error = str(copy_exc)
        log_event("WARNING", "copy_failed", "merge", fallback="reencode")

        if output_path.exists():
            output_path.unlink()
        try:
            codec.concat_reencode(sequence, output_path, options.bitrate_kbps)
        except CodecError as reencode_exc:
            raise AudioMergeError(
                copy_error=copy_error,
                reencode_error=str(reencode_exc),
            ) from reencode_exc

    def _probe_duration(self, codec: AudioCodec, path: Path) -> int:
        """Probe the duration of one file, mapping codec failures to a merge error."""

        try:
            return codec.probe(path).duration_ms
        except CodecError as exc:
            raise PipelineStageError(
                stage="merge",
                detail=f"Unable to probe audio duration: {exc}",
                hint="Verify segment payloads match the configured output format.",
            ) from exc
