"""Deterministic in-memory audio payloads for tests."""

from __future__ import annotations

import io
import wave


def wav_bytes(
    duration_ms: int,
    *,
    sample_rate: int = 24000,
    channels: int = 1,
    amplitude: int = 0,
) -> bytes:
    """Return a 16-bit PCM WAV payload of the requested duration."""

    frame_count = int(sample_rate * duration_ms / 1000)
    sample = int(amplitude).to_bytes(2, "little", signed=True)
    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wav_file:
        wav_file.setnchannels(channels)
        wav_file.setsampwidth(2)
        wav_file.setframerate(sample_rate)
        wav_file.writeframes(sample * frame_count * channels)
    return buffer.getvalue()


def wav_duration_ms(payload: bytes) -> int:
    """Return the duration of a WAV payload in milliseconds."""

    with wave.open(io.BytesIO(payload), "rb") as wav_file:
        return round(wav_file.getnframes() * 1000 / wav_file.getframerate())
