"""Transcode/concat capability used by the audio merger.

Responsibilities:
- Define the narrow codec protocol the merger depends on.
- Provide a stdlib `wave` codec for PCM WAV segments.
- Provide an `ffmpeg`/`ffprobe` codec for compressed formats.
"""

from __future__ import annotations

from dataclasses import dataclass
import json
from pathlib import Path
import subprocess
from typing import Protocol
import wave

from ..parsing import normalize_optional_string
from ..runtime_tools import resolve_executable


class CodecError(RuntimeError):
    """Raised when a codec operation fails."""


@dataclass(frozen=True, slots=True)
class AudioStreamInfo:
    """Probed properties of one audio file.

    Attributes:
        duration_ms: Playback duration in milliseconds.
        sample_rate: Samples per second.
        channels: Channel count.
        sample_width: Bytes per sample for PCM streams.
    """

    duration_ms: int
    sample_rate: int
    channels: int
    sample_width: int = 2


class AudioCodec(Protocol):
    """Capability for probing, generating silence, and concatenating audio files."""

    def probe(self, path: Path) -> AudioStreamInfo:
        """Return stream properties of one audio file."""

    def make_silence(self, *, duration_ms: int, like: AudioStreamInfo, output_path: Path) -> None:
        """Write a silent clip matching the layout of `like`."""

    def concat_copy(self, inputs: list[Path], output_path: Path) -> None:
        """Concatenate inputs losslessly without re-encoding."""

    def concat_reencode(self, inputs: list[Path], output_path: Path, bitrate_kbps: int) -> None:
        """Concatenate inputs with a full re-encode at `bitrate_kbps`."""


class WaveCodec:
    """PCM WAV codec built on the standard library `wave` module.

    Re-encoding is delegated to `reencoder`, an ffmpeg WAV codec by default.
    """

    def __init__(self, reencoder: AudioCodec | None = None) -> None:
        self.reencoder = reencoder

    def probe(self, path: Path) -> AudioStreamInfo:
        """Read WAV header values and derive duration from frame count."""

        try:
            with wave.open(str(path), "rb") as wav_file:
                frames = wav_file.getnframes()
                sample_rate = wav_file.getframerate()
                channels = wav_file.getnchannels()
                sample_width = wav_file.getsampwidth()
        except (wave.Error, EOFError, OSError) as exc:
            raise CodecError(f"Unreadable WAV payload `{path.name}`: {exc}") from exc
        if sample_rate <= 0:
            raise CodecError(f"WAV payload `{path.name}` has invalid sample rate.")
        return AudioStreamInfo(
            duration_ms=round(frames * 1000 / sample_rate),
            sample_rate=sample_rate,
            channels=channels,
            sample_width=sample_width,
        )

    def make_silence(self, *, duration_ms: int, like: AudioStreamInfo, output_path: Path) -> None:
        """Write zero-valued PCM frames for `duration_ms`."""

        frame_count = int(like.sample_rate * duration_ms / 1000)
        with wave.open(str(output_path), "wb") as wav_file:
            wav_file.setnchannels(like.channels)
            wav_file.setsampwidth(like.sample_width)
            wav_file.setframerate(like.sample_rate)
            wav_file.writeframes(b"\x00" * frame_count * like.channels * like.sample_width)

    def concat_copy(self, inputs: list[Path], output_path: Path) -> None:
        """Append PCM frames of inputs that share identical WAV parameters."""

        try:
            with wave.open(str(inputs[0]), "rb") as first:
                params = (first.getnchannels(), first.getsampwidth(), first.getframerate())
            with wave.open(str(output_path), "wb") as merged:
                merged.setnchannels(params[0])
                merged.setsampwidth(params[1])
                merged.setframerate(params[2])
                for path in inputs:
                    with wave.open(str(path), "rb") as part:
                        part_params = (part.getnchannels(), part.getsampwidth(), part.getframerate())
                        if part_params != params:
                            raise CodecError(f"Incompatible WAV parameters for `{path.name}`.")
                        merged.writeframes(part.readframes(part.getnframes()))
        except (wave.Error, EOFError, OSError) as exc:
            raise CodecError(f"WAV concat failed: {exc}") from exc

    def concat_reencode(self, inputs: list[Path], output_path: Path, bitrate_kbps: int) -> None:
        """Join inputs with mixed WAV parameters by decoding and re-encoding them."""

        reencoder = self.reencoder or FfmpegCodec("wav")
        reencoder.concat_reencode(inputs, output_path, bitrate_kbps)


class FfmpegCodec:
    """Codec backed by external `ffmpeg` and `ffprobe` executables."""

    _ENCODERS = {
        "mp3": "libmp3lame",
        "ogg": "libvorbis",
        "flac": "flac",
        "wav": "pcm_s16le",
    }

    def __init__(self, output_format: str = "mp3", *, default_bitrate_kbps: int = 128) -> None:
        """Initialize codec settings for one output container."""

        self.output_format = output_format.lower()
        self.default_bitrate_kbps = default_bitrate_kbps

    def probe(self, path: Path) -> AudioStreamInfo:
        """Probe duration, sample rate, and channel count through `ffprobe`."""

        output = self._run(
            [
                resolve_executable("ffprobe"),
                "-v",
                "error",
                "-show_entries",
                "format=duration:stream=sample_rate,channels",
                "-of",
                "json",
                str(path),
            ],
            tool="ffprobe",
        )
        try:
            payload = json.loads(output)
            streams = payload.get("streams") or [{}]
            duration_seconds = float(payload["format"]["duration"])
            sample_rate = int(streams[0].get("sample_rate", 0))
            channels = int(streams[0].get("channels", 1))
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as exc:
            raise CodecError(f"ffprobe returned unusable metadata for `{path.name}`.") from exc
        return AudioStreamInfo(
            duration_ms=round(duration_seconds * 1000),
            sample_rate=sample_rate,
            channels=channels,
        )

    def make_silence(self, *, duration_ms: int, like: AudioStreamInfo, output_path: Path) -> None:
        """Render silence from the `anullsrc` filter in the output encoding."""

        layout = "mono" if like.channels <= 1 else "stereo"
        self._run(
            [
                resolve_executable("ffmpeg"),
                "-y",
                "-hide_banner",
                "-loglevel",
                "error",
                "-f",
                "lavfi",
                "-i",
                f"anullsrc=r={like.sample_rate}:cl={layout}",
                "-t",
                f"{duration_ms / 1000:.3f}",
                *self._encoder_args(self.default_bitrate_kbps),
                str(output_path),
            ],
            tool="ffmpeg",
        )

    def concat_copy(self, inputs: list[Path], output_path: Path) -> None:
        """Concatenate with the concat demuxer using stream copy."""

        self._concat(inputs, output_path, ["-c", "copy"])

    def concat_reencode(self, inputs: list[Path], output_path: Path, bitrate_kbps: int) -> None:
        """Decode every input and join them with the `concat` filter.

        Inputs may differ in sample rate or channel layout; the filter graph
        converts them to one layout before encoding.
        """

        input_args: list[str] = []
        for path in inputs:
            input_args.extend(["-i", str(path)])
        labels = "".join(f"[{index}:a]" for index in range(len(inputs)))
        self._run(
            [
                resolve_executable("ffmpeg"),
                "-y",
                "-hide_banner",
                "-loglevel",
                "error",
                *input_args,
                "-filter_complex",
                f"{labels}concat=n={len(inputs)}:v=0:a=1[merged]",
                "-map",
                "[merged]",
                *self._encoder_args(bitrate_kbps),
                str(output_path),
            ],
            tool="ffmpeg",
        )

    def _concat(self, inputs: list[Path], output_path: Path, codec_args: list[str]) -> None:
        """Write a concat list next to the output and run ffmpeg over it."""

        concat_path = output_path.with_suffix(".concat.txt")
        concat_path.write_text(
            "\n".join(f"file '{self._escape_concat_path(path.resolve())}'" for path in inputs)
            + "\n",
            encoding="utf-8",
        )
        try:
            self._run(
                [
                    resolve_executable("ffmpeg"),
                    "-y",
                    "-hide_banner",
                    "-loglevel",
                    "error",
                    "-f",
                    "concat",
                    "-safe",
                    "0",
                    "-i",
                    str(concat_path),
                    "-vn",
                    *codec_args,
                    str(output_path),
                ],
                tool="ffmpeg",
            )
        finally:
            if concat_path.exists():
                concat_path.unlink()

    def _encoder_args(self, bitrate_kbps: int) -> list[str]:
        """Return encoder arguments for the configured output format."""

        encoder = self._ENCODERS.get(self.output_format, "libmp3lame")
        if encoder in {"pcm_s16le", "flac"}:
            return ["-c:a", encoder]
        return ["-c:a", encoder, "-b:a", f"{bitrate_kbps}k"]

    def _run(self, command: list[str], *, tool: str) -> str:
        """Run one external command and map failures to `CodecError`."""

        try:
            completed = subprocess.run(
                command,
                check=True,
                capture_output=True,
                text=True,
            )
        except FileNotFoundError as exc:
            raise CodecError(f"Audio tool `{tool}` is not available on PATH.") from exc
        except subprocess.CalledProcessError as exc:
            stderr = normalize_optional_string(exc.stderr) or "no stderr output"
            raise CodecError(f"{tool} exited with code {exc.returncode}: {stderr}") from exc
        return completed.stdout

    @staticmethod
    def _escape_concat_path(path: Path) -> str:
        """Escape one file path for ffmpeg concat list format."""

        return str(path).replace("'", "'\\''")


def codec_for_format(output_format: str, *, bitrate_kbps: int = 128) -> AudioCodec:
    """Return the default codec for an output format."""

    if output_format.lower() == "wav":
        return WaveCodec()
    return FfmpegCodec(output_format, default_bitrate_kbps=bitrate_kbps)
