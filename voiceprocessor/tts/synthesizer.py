"""Synthesis provider protocol and vendor-backed implementations.

Responsibilities:
- Define the async capability the orchestrator uses to render one segment.
- Provide OpenAI and ElevenLabs implementations that run HTTP calls off the event loop.
"""

from __future__ import annotations

import asyncio
from decimal import Decimal
import io
from typing import Protocol
import wave

from ..audio.merger import content_type_for
from ..models.datatypes import Provider, ProviderVoice, SynthesisResult, VoiceSettings
from .http_client import ElevenLabsClient, OpenAISpeechClient, ProviderError


class SynthesisProvider(Protocol):
    """Protocol for interchangeable speech-synthesis vendors."""

    provider: Provider

    async def synthesize(
        self,
        text: str,
        provider_voice_id: str,
        settings: VoiceSettings,
        output_format: str,
    ) -> SynthesisResult:
        """Render text to audio bytes."""

    async def list_voices(self) -> list[ProviderVoice]:
        """Return the provider voice catalog."""


def wav_duration_ms(audio_bytes: bytes) -> int | None:
    """Return WAV duration in milliseconds, or `None` for non-WAV payloads."""

    try:
        with wave.open(io.BytesIO(audio_bytes), "rb") as wav_file:
            frame_count = wav_file.getnframes()
            sample_rate = wav_file.getframerate()
    except (wave.Error, EOFError):
        return None
    if sample_rate <= 0:
        return None
    return round(frame_count * 1000 / sample_rate)


class OpenAISpeechProvider:
    """OpenAI-backed synthesis provider with a fixed voice catalog."""

    provider = Provider.OPENAI
    VOICES = ("alloy", "ash", "coral", "echo", "fable", "onyx", "nova", "sage", "shimmer")
    _RESPONSE_FORMATS = {
        "mp3": "mp3",
        "ogg": "opus",
        "opus": "opus",
        "aac": "aac",
        "flac": "flac",
        "wav": "wav",
        "pcm": "pcm",
    }

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "gpt-4o-mini-tts",
        cost_per_thousand_chars: Decimal = Decimal("0.015"),
        client: OpenAISpeechClient | None = None,
    ) -> None:
        """Initialize OpenAI-backed synthesis settings."""

        self.model = model
        self.cost_per_thousand_chars = cost_per_thousand_chars
        self.client = client or OpenAISpeechClient(api_key=api_key)

    async def synthesize(
        self,
        text: str,
        provider_voice_id: str,
        settings: VoiceSettings,
        output_format: str,
    ) -> SynthesisResult:
        """Synthesize one segment through `/audio/speech`."""

        response_format = self._RESPONSE_FORMATS.get(output_format.lower(), "mp3")
        audio_bytes = await asyncio.to_thread(
            self.client.synthesize_speech,
            model=self.model,
            voice=provider_voice_id,
            text=text,
            response_format=response_format,
            speed=max(0.25, min(4.0, settings.speed)),
        )
        return SynthesisResult(
            audio_data=audio_bytes,
            content_type=content_type_for(output_format),
            character_count=len(text),
            cost=len(text) * self.cost_per_thousand_chars / 1000,
            duration_ms=wav_duration_ms(audio_bytes) if response_format == "wav" else None,
        )

    async def list_voices(self) -> list[ProviderVoice]:
        """Return the fixed OpenAI voice catalog."""

        return [
            ProviderVoice(provider_voice_id=voice, name=voice.capitalize(), language="en")
            for voice in self.VOICES
        ]


class ElevenLabsSpeechProvider:
    """ElevenLabs-backed synthesis provider using account voices."""

    provider = Provider.ELEVENLABS
    _OUTPUT_FORMATS = {"mp3": "mp3_44100_128"}

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "eleven_multilingual_v2",
        cost_per_thousand_chars: Decimal = Decimal("0.30"),
        client: ElevenLabsClient | None = None,
    ) -> None:
        """Initialize ElevenLabs-backed synthesis settings."""

        self.model = model
        self.cost_per_thousand_chars = cost_per_thousand_chars
        self.client = client or ElevenLabsClient(api_key=api_key)

    async def synthesize(
        self,
        text: str,
        provider_voice_id: str,
        settings: VoiceSettings,
        output_format: str,
    ) -> SynthesisResult:
        """Synthesize one segment through `/text-to-speech/{voice_id}`."""

        vendor_format = self._OUTPUT_FORMATS.get(output_format.lower())
        if vendor_format is None:
            raise ProviderError(
                f"ElevenLabs output format `{output_format}` is not supported; use `mp3`.",
                failure_kind="unsupported_format",
            )
        audio_bytes = await asyncio.to_thread(
            self.client.synthesize_speech,
            voice_id=provider_voice_id,
            text=text,
            model_id=self.model,
            voice_settings=self._voice_settings_payload(settings),
            output_format=vendor_format,
        )
        return SynthesisResult(
            audio_data=audio_bytes,
            content_type=content_type_for(output_format),
            character_count=len(text),
            cost=len(text) * self.cost_per_thousand_chars / 1000,
        )

    async def list_voices(self) -> list[ProviderVoice]:
        """Fetch the account voice library."""

        raw_voices = await asyncio.to_thread(self.client.list_voices)
        voices: list[ProviderVoice] = []
        for raw in raw_voices:
            voice_id = raw.get("voice_id")
            if not isinstance(voice_id, str) or not voice_id:
                continue
            labels = raw.get("labels") if isinstance(raw.get("labels"), dict) else {}
            voices.append(
                ProviderVoice(
                    provider_voice_id=voice_id,
                    name=str(raw.get("name") or voice_id),
                    language=labels.get("language"),
                    gender=labels.get("gender"),
                    preview_url=raw.get("preview_url"),
                )
            )
        return voices

    @staticmethod
    def _voice_settings_payload(settings: VoiceSettings) -> dict[str, float]:
        """Map voice settings onto the ElevenLabs request shape."""

        payload: dict[str, float] = {}
        if settings.stability is not None:
            payload["stability"] = settings.stability
        if settings.similarity_boost is not None:
            payload["similarity_boost"] = settings.similarity_boost
        if settings.style is not None:
            payload["style"] = settings.style
        if payload:
            payload["speed"] = settings.speed
        return payload
