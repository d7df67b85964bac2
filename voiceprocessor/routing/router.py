"""Preference-weighted provider routing.

Responsibilities:
- Score every known provider for a job under a weighted cost/speed/quality objective.
- Select the best eligible provider, honoring voice locks, or fail explicitly.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from types import MappingProxyType
from typing import Callable, Mapping

from ..errors import RoutingError
from ..models.datatypes import (
    Provider,
    ProviderScore,
    RoutingContext,
    RoutingDecision,
    RoutingPreference,
)
from ..telemetry.logger import log_event
from .catalog import ProviderCatalog


_MAX_COST_PER_THOUSAND = Decimal("0.35")
_MAX_LATENCY_MS = 1000.0

PREFERENCE_WEIGHTS: Mapping[RoutingPreference, tuple[float, float, float]] = MappingProxyType(
    {
        RoutingPreference.COST: (0.7, 0.1, 0.2),
        RoutingPreference.SPEED: (0.1, 0.7, 0.2),
        RoutingPreference.QUALITY: (0.1, 0.2, 0.7),
        RoutingPreference.BALANCED: (0.33, 0.33, 0.34),
    }
)

_REASONS: Mapping[RoutingPreference, Callable[[ProviderScore], str]] = MappingProxyType(
    {
        RoutingPreference.COST: lambda score: (
            f"Lowest cost at ${score.cost_per_thousand_chars:.3f}/1K chars"
        ),
        RoutingPreference.SPEED: lambda score: (
            f"Fastest response at ~{score.avg_latency_ms}ms average latency"
        ),
        RoutingPreference.QUALITY: lambda score: (
            f"Highest quality with {score.quality_rating:.0%} rating"
        ),
        RoutingPreference.BALANCED: lambda score: (
            f"Best balance of cost (${score.cost_per_thousand_chars:.3f}/1K), "
            f"speed ({score.avg_latency_ms}ms), quality ({score.quality_rating:.0%})"
        ),
    }
)


@dataclass(frozen=True, slots=True)
class RoutingOptions:
    """Tunable routing knobs.

    Attributes:
        preferred_provider_bonus: Score added to the context's preferred provider.
    """

    preferred_provider_bonus: float = 0.1


class ProviderRouter:
    """Rank providers and pick one per job."""

    def __init__(
        self,
        catalog: ProviderCatalog | None = None,
        options: RoutingOptions | None = None,
    ) -> None:
        """Initialize the router with an immutable catalog and options."""

        self.catalog = catalog or ProviderCatalog()
        self.options = options or RoutingOptions()

    def score_providers(self, context: RoutingContext) -> list[ProviderScore]:
        """Score every known provider, highest first.

        Ineligible providers score `0` and are flagged unavailable. Ties keep
        the provider enumeration order.
        """

        scores: list[ProviderScore] = []
        for provider in Provider:
            characteristics = self.catalog.get(provider)
            eligible = self._is_eligible(provider, context)
            score = self._weighted_score(provider, context) if eligible else 0.0
            scores.append(
                ProviderScore(
                    provider=provider,
                    score=score,
                    is_available=eligible,
                    cost_per_thousand_chars=characteristics.cost_per_thousand_chars,
                    avg_latency_ms=characteristics.avg_latency_ms,
                    quality_rating=characteristics.quality_rating,
                )
            )
        return sorted(scores, key=lambda item: item.score, reverse=True)

    def select_provider(self, context: RoutingContext) -> RoutingDecision:
        """Select the highest-scoring eligible provider.

        Raises:
            RoutingError: If no provider is eligible.
        """

        best = next((score for score in self.score_providers(context) if score.is_available), None)
        if best is None:
            log_event(
                "WARNING",
                "no_provider",
                "route",
                locked=context.locked_provider or "none",
                available=len(context.available_providers),
            )
            raise RoutingError()

        characteristics = self.catalog.get(best.provider)
        decision = RoutingDecision(
            provider=best.provider,
            reason=_REASONS[context.preference](best),
            estimated_cost=context.character_count * characteristics.cost_per_thousand_chars / 1000,
            estimated_latency_ms=characteristics.avg_latency_ms,
        )
        log_event(
            "DEBUG",
            "selected",
            "route",
            provider=best.provider,
            preference=context.preference,
            score=f"{best.score:.2f}",
        )
        return decision

    def _is_eligible(self, provider: Provider, context: RoutingContext) -> bool:
        """Return whether `provider` is available and satisfies the voice lock."""

        if provider not in context.available_providers:
            return False
        return context.locked_provider is None or context.locked_provider == provider

    def _weighted_score(self, provider: Provider, context: RoutingContext) -> float:
        """Compute the capped weighted score of one eligible provider."""

        characteristics = self.catalog.get(provider)
        cost_score = 1.0 - float(
            min(characteristics.cost_per_thousand_chars / _MAX_COST_PER_THOUSAND, Decimal(1))
        )
        speed_score = 1.0 - min(characteristics.avg_latency_ms / _MAX_LATENCY_MS, 1.0)
        quality_score = characteristics.quality_rating

        cost_weight, speed_weight, quality_weight = PREFERENCE_WEIGHTS[context.preference]
        score = (
            cost_weight * cost_score
            + speed_weight * speed_score
            + quality_weight * quality_score
        )
        if provider == context.preferred_provider:
            score += self.options.preferred_provider_bonus
        return min(score, 1.0)
