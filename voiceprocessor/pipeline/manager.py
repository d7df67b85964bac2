"""Job intake: quotes, creation, lookup, and cancellation.

Responsibilities:
- Quote a text against every provider before a job exists.
- Create pending jobs after pricing, credit checks, and an initial routing decision.
- Gate cancellation on job ownership and delegate it to the orchestrator.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from types import MappingProxyType
from typing import Mapping

from ..errors import InputValidationError, InsufficientCreditsError, RoutingError
from ..models.datatypes import (
    Generation,
    PricingContext,
    Provider,
    RoutingContext,
    RoutingPreference,
    VoicePreset,
)
from ..pricing import Pricer
from ..provider_factory import ProviderRegistry
from ..routing.router import ProviderRouter
from ..telemetry.logger import log_event
from ..text.chunking import Chunker
from ..tts.voices import VoiceProfile
from .orchestrator import GenerationOrchestrator
from .stores import JobStore


_CHARS_PER_WORD = 5
_WORDS_PER_MINUTE = 150
_DEFAULT_OVERHEAD_MS = 500

PROVIDER_OVERHEAD_MS: Mapping[Provider, int] = MappingProxyType(
    {
        Provider.ELEVENLABS: 800,
        Provider.OPENAI: 600,
        Provider.GOOGLE_CLOUD: 400,
        Provider.AMAZON_POLLY: 300,
    }
)

QUALITY_TIERS: Mapping[Provider, str] = MappingProxyType(
    {
        Provider.ELEVENLABS: "Premium",
        Provider.FISH_AUDIO: "Premium",
        Provider.OPENAI: "High",
        Provider.CARTESIA: "High",
        Provider.GOOGLE_CLOUD: "Standard",
        Provider.DEEPGRAM: "Standard",
        Provider.AMAZON_POLLY: "Basic",
    }
)


@dataclass(frozen=True, slots=True)
class ProviderQuote:
    """One provider's line in a cost quote.

    Attributes:
        provider: Quoted provider.
        cost_per_thousand_chars: Resolved pricing rate.
        total_cost: Cost of the whole text on this provider.
        credits_required: Whole credits covering `total_cost`.
        estimated_duration_ms: Narration length estimate including provider overhead.
        quality_tier: Marketing quality label.
        is_available: Whether the provider is configured on this instance.
    """

    provider: Provider
    cost_per_thousand_chars: Decimal
    total_cost: Decimal
    credits_required: int
    estimated_duration_ms: int
    quality_tier: str
    is_available: bool


@dataclass(frozen=True, slots=True)
class CostQuote:
    """Pre-submission quote for one text.

    Attributes:
        character_count: Characters that would be billed.
        segment_count: Estimated number of synthesized segments.
        estimated_cost: Cost at the voice or provider rate, else the cheapest rate.
        credits_required: Credits for `estimated_cost`.
        currency: Currency of all amounts.
        recommended_provider: Routing choice, or `None` when nothing is routable.
        providers: Per-provider quotes, cheapest first.
    """

    character_count: int
    segment_count: int
    estimated_cost: Decimal
    credits_required: int
    currency: str
    recommended_provider: Provider | None
    providers: tuple[ProviderQuote, ...]


def estimate_duration_ms(character_count: int, provider: Provider) -> int:
    """Estimate narration length from an average word length and speaking rate."""

    words = character_count // _CHARS_PER_WORD
    speech_ms = words * 60_000 // _WORDS_PER_MINUTE
    return speech_ms + PROVIDER_OVERHEAD_MS.get(provider, _DEFAULT_OVERHEAD_MS)


class GenerationManager:
    """Entry point used by hosts to quote, submit, inspect, and cancel jobs."""

    def __init__(
        self,
        *,
        jobs: JobStore,
        registry: ProviderRegistry,
        orchestrator: GenerationOrchestrator,
        chunker: Chunker | None = None,
        router: ProviderRouter | None = None,
        pricer: Pricer | None = None,
    ) -> None:
        """Initialize the manager; stage objects default to the orchestrator's."""

        self.jobs = jobs
        self.registry = registry
        self.orchestrator = orchestrator
        self.chunker = chunker or orchestrator.chunker
        self.router = router or orchestrator.router
        self.pricer = pricer or orchestrator.pricer

    def estimate_cost(
        self,
        text: str,
        preference: RoutingPreference = RoutingPreference.BALANCED,
        provider: Provider | None = None,
        voice: VoiceProfile | None = None,
    ) -> CostQuote:
        """Quote `text` on every provider and recommend one."""

        character_count = len(text)
        context = PricingContext(
            character_count=character_count,
            provider=provider,
            voice_cost_per_thousand_chars=voice.cost_per_thousand_chars if voice else None,
        )
        available = self.registry.available()
        provider_estimates = self.pricer.all_provider_estimates(context)
        quotes = tuple(
            ProviderQuote(
                provider=estimate.provider,
                cost_per_thousand_chars=estimate.cost_per_thousand_chars,
                total_cost=estimate.total_cost,
                credits_required=estimate.credits_required,
                estimated_duration_ms=estimate_duration_ms(character_count, estimate.provider),
                quality_tier=QUALITY_TIERS.get(estimate.provider, "Standard"),
                is_available=estimate.provider in available,
            )
            for estimate in provider_estimates
        )

        headline = self.pricer.estimate(context)

        recommended: Provider | None
        try:
            recommended = self.router.select_provider(
                RoutingContext(
                    character_count=character_count,
                    preference=preference,
                    available_providers=available,
                    locked_provider=voice.provider if voice else None,
                    preferred_provider=provider or (voice.provider if voice else None),
                )
            ).provider
        except RoutingError:
            log_event("WARNING", "no_recommendation", "estimate", characters=character_count)
            recommended = None

        return CostQuote(
            character_count=character_count,
            segment_count=self.chunker.estimate_count(text),
            estimated_cost=headline.estimated_cost,
            credits_required=headline.credits_required,
            currency=headline.currency,
            recommended_provider=recommended,
            providers=quotes,
        )

    def create_generation(
        self,
        user_id: str,
        text: str,
        voice: VoiceProfile,
        preference: RoutingPreference = RoutingPreference.BALANCED,
        preset: VoicePreset | None = None,
        audio_format: str = "mp3",
        available_credits: int | None = None,
    ) -> Generation:
        """Price, route, and store a new pending job.

        Raises:
            InputValidationError: If `text` is empty.
            InsufficientCreditsError: If `available_credits` cannot cover the estimate.
            RoutingError: If no provider can serve the voice.
        """

        if not text.strip():
            raise InputValidationError(
                stage="estimate",
                detail="Text must not be empty.",
                hint="Submit at least one non-whitespace character.",
            )

        estimate = self.pricer.estimate(
            PricingContext(
                character_count=len(text),
                provider=voice.provider,
                voice_cost_per_thousand_chars=voice.cost_per_thousand_chars,
            )
        )
        if available_credits is not None and available_credits < estimate.credits_required:
            raise InsufficientCreditsError(
                required=estimate.credits_required, available=available_credits
            )

        decision = self.router.select_provider(
            RoutingContext(
                character_count=len(text),
                preference=preference,
                available_providers=self.registry.available(),
                locked_provider=voice.provider,
                preferred_provider=voice.provider,
            )
        )
        generation = Generation(
            user_id=user_id,
            text=text,
            voice_id=voice.voice_id_for(decision.provider),
            preference=preference,
            preset=preset,
            audio_format=audio_format.lower(),
            selected_provider=decision.provider,
            estimated_cost=estimate.estimated_cost,
            segment_count=self.chunker.estimate_count(text),
        )
        self.jobs.add(generation)
        log_event(
            "INFO",
            "created",
            "estimate",
            generation=generation.id,
            provider=decision.provider,
            credits=estimate.credits_required,
        )
        return generation

    def get_generation(self, generation_id: str) -> Generation | None:
        """Return a stored job, or `None` when unknown."""

        return self.jobs.get(generation_id)

    async def cancel_generation(self, generation_id: str, user_id: str) -> bool:
        """Cancel a job owned by `user_id`.

        Returns `False` for unknown or already finished jobs.

        Raises:
            PermissionError: If the job belongs to another user.
        """

        generation = self.jobs.get(generation_id)
        if generation is None or generation.status.is_terminal:
            return False
        if generation.user_id != user_id:
            raise PermissionError(f"Generation `{generation_id}` belongs to another user.")
        return await self.orchestrator.cancel(generation_id)
