"""Integration tests for quoting, job creation, and ownership-gated cancellation."""

from __future__ import annotations

import asyncio
from decimal import Decimal

import pytest

from tests.pipeline_doubles import FakeSynthesisProvider
from voiceprocessor.errors import InputValidationError, InsufficientCreditsError, RoutingError
from voiceprocessor.models.datatypes import GenerationStatus, Provider, RoutingPreference
from voiceprocessor.pipeline.manager import estimate_duration_ms
from voiceprocessor.tts.voices import VoiceProfile


_VOICE = VoiceProfile(name="Narrator", provider_voice_id="alloy")


def test_estimate_cost_quotes_every_provider_and_recommends_available_one(
    build_pipeline,
) -> None:
    """Quotes should list all providers, cheapest first, flagging registered ones."""

    harness = build_pipeline(FakeSynthesisProvider(Provider.OPENAI))

    quote = harness.manager.estimate_cost("a" * 1000)

    assert quote.character_count == 1000
    assert quote.segment_count == 1
    assert quote.estimated_cost == Decimal("0.004")
    assert quote.credits_required == 1
    assert quote.currency == "USD"
    assert quote.recommended_provider is Provider.OPENAI
    assert len(quote.providers) == len(Provider)
    assert quote.providers[0].provider is Provider.AMAZON_POLLY
    available = [line.provider for line in quote.providers if line.is_available]
    assert available == [Provider.OPENAI]
    openai_line = next(line for line in quote.providers if line.provider is Provider.OPENAI)
    assert openai_line.estimated_duration_ms == 80600
    assert openai_line.quality_tier == "High"


def test_estimate_cost_prices_explicit_provider_and_voice_rate(build_pipeline) -> None:
    """Explicit providers and per-voice rates should drive the headline price."""

    harness = build_pipeline(FakeSynthesisProvider(Provider.OPENAI))
    premium = VoiceProfile(
        name="Premium", provider_voice_id="alloy", cost_per_thousand_chars=Decimal("0.5")
    )

    by_provider = harness.manager.estimate_cost("a" * 1000, provider=Provider.ELEVENLABS)
    by_voice = harness.manager.estimate_cost("a" * 1000, voice=premium)

    assert by_provider.estimated_cost == Decimal("0.30")
    assert by_provider.credits_required == 30
    assert by_voice.estimated_cost == Decimal("0.5")


def test_estimate_cost_without_providers_has_no_recommendation(
    build_pipeline, captured_log_lines: list[str]
) -> None:
    """Quotes still work without registered providers, minus a recommendation."""

    harness = build_pipeline()

    quote = harness.manager.estimate_cost("Hello", RoutingPreference.QUALITY)

    assert quote.recommended_provider is None
    assert all(not line.is_available for line in quote.providers)
    assert any("event=no_recommendation" in line for line in captured_log_lines)


def test_estimate_duration_uses_speaking_rate_and_provider_overhead() -> None:
    """Duration estimates assume five characters per word at 150 words per minute."""

    assert estimate_duration_ms(750, Provider.AMAZON_POLLY) == 60_300
    assert estimate_duration_ms(0, Provider.CARTESIA) == 500


def test_create_generation_stores_pending_priced_job(build_pipeline) -> None:
    """New jobs should be pending with routing and estimate recorded."""

    harness = build_pipeline(FakeSynthesisProvider(Provider.OPENAI))

    generation = harness.manager.create_generation(
        "user-1", "a" * 1000, _VOICE, audio_format="WAV", available_credits=10
    )

    assert harness.manager.get_generation(generation.id) is generation
    assert generation.status is GenerationStatus.PENDING
    assert generation.selected_provider is Provider.OPENAI
    assert generation.voice_id == "alloy"
    assert generation.audio_format == "wav"
    assert generation.estimated_cost == Decimal("0.004")
    assert generation.segment_count == 1
    assert generation.character_count == 1000
    assert harness.manager.get_generation("missing") is None


def test_create_generation_rejects_blank_text_and_insufficient_credits(build_pipeline) -> None:
    """Blank text and credit shortfalls should be rejected before storage."""

    harness = build_pipeline(FakeSynthesisProvider(Provider.OPENAI))
    locked = VoiceProfile(name="n", provider_voice_id="alloy", provider=Provider.OPENAI)

    with pytest.raises(InputValidationError, match="must not be empty"):
        harness.manager.create_generation("user-1", "   \n", _VOICE)
    with pytest.raises(InsufficientCreditsError) as exc_info:
        harness.manager.create_generation("user-1", "a" * 1000, locked, available_credits=1)

    assert exc_info.value.required == 2
    assert exc_info.value.available == 1


def test_create_generation_requires_a_routable_provider(build_pipeline) -> None:
    """A voice locked to an unregistered vendor cannot be submitted."""

    harness = build_pipeline(FakeSynthesisProvider(Provider.OPENAI))
    voice = VoiceProfile(name="n", provider_voice_id="v", provider=Provider.ELEVENLABS)

    with pytest.raises(RoutingError):
        harness.manager.create_generation("user-1", "Hello", voice)


def test_cancel_generation_is_gated_on_ownership(build_pipeline) -> None:
    """Only the owner may cancel, and finished jobs report `False`."""

    harness = build_pipeline(FakeSynthesisProvider(Provider.OPENAI))
    generation = harness.manager.create_generation("user-1", "Hello there.", _VOICE)

    with pytest.raises(PermissionError):
        asyncio.run(harness.manager.cancel_generation(generation.id, "user-2"))
    assert asyncio.run(harness.manager.cancel_generation(generation.id, "user-1")) is True
    assert generation.status is GenerationStatus.CANCELLED
    assert asyncio.run(harness.manager.cancel_generation(generation.id, "user-1")) is False
    assert asyncio.run(harness.manager.cancel_generation("missing", "user-1")) is False
