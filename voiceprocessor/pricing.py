"""Character-based pricing and credit conversion.

Responsibilities:
- Resolve per-thousand-character rates (voice > configured > default > generic).
- Price one job, compare every provider, and convert cost to whole credits.

Notes:
- All amounts are `Decimal` to keep credit rounding exact.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import ROUND_CEILING, Decimal
from types import MappingProxyType
from typing import Mapping

from .models.datatypes import (
    PriceEstimate,
    PricingContext,
    Provider,
    ProviderPriceEstimate,
)


DEFAULT_PROVIDER_RATES: Mapping[Provider, Decimal] = MappingProxyType(
    {
        Provider.ELEVENLABS: Decimal("0.30"),
        Provider.OPENAI: Decimal("0.015"),
        Provider.GOOGLE_CLOUD: Decimal("0.016"),
        Provider.AMAZON_POLLY: Decimal("0.004"),
        Provider.FISH_AUDIO: Decimal("0.20"),
        Provider.CARTESIA: Decimal("0.25"),
        Provider.DEEPGRAM: Decimal("0.015"),
    }
)
GENERIC_FALLBACK_RATE = Decimal("0.10")


@dataclass(frozen=True, slots=True)
class PricingOptions:
    """Deployment pricing settings.

    Attributes:
        currency: ISO currency code reported on estimates.
        cost_per_credit: Monetary value of one credit.
        provider_rates: Per-provider rate overrides.
    """

    currency: str = "USD"
    cost_per_credit: Decimal = Decimal("0.01")
    provider_rates: Mapping[Provider, Decimal] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.cost_per_credit <= 0:
            raise ValueError("`cost_per_credit` must be positive.")
        object.__setattr__(self, "provider_rates", MappingProxyType(dict(self.provider_rates)))


class Pricer:
    """Compute costs and credits from character counts."""

    def __init__(self, options: PricingOptions | None = None) -> None:
        """Initialize the pricer with immutable pricing options."""

        self.options = options or PricingOptions()

    def estimate(self, context: PricingContext) -> PriceEstimate:
        """Price one job using the resolved rate for its voice or provider."""

        cost = self.cost_for(context.character_count, self._rate_for_context(context))
        return PriceEstimate(
            character_count=context.character_count,
            estimated_cost=cost,
            currency=self.options.currency,
            credits_required=self.credits_for(cost),
            provider=context.provider,
        )

    def all_provider_estimates(self, context: PricingContext) -> list[ProviderPriceEstimate]:
        """Price the job against every known provider, cheapest first."""

        estimates: list[ProviderPriceEstimate] = []
        for provider in Provider:
            rate = self.rate_for(provider)
            total = self.cost_for(context.character_count, rate)
            estimates.append(
                ProviderPriceEstimate(
                    provider=provider,
                    cost_per_thousand_chars=rate,
                    total_cost=total,
                    currency=self.options.currency,
                    credits_required=self.credits_for(total),
                )
            )
        return sorted(estimates, key=lambda item: item.total_cost)

    def credits_for(self, cost: Decimal | float) -> int:
        """Convert a cost to credits, rounding up; non-positive cost is free."""

        if cost <= 0:
            return 0
        amount = Decimal(str(cost)) if isinstance(cost, float) else Decimal(cost)
        credits = (amount / self.options.cost_per_credit).to_integral_value(
            rounding=ROUND_CEILING
        )
        return int(credits)

    def rate_for(self, provider: Provider) -> Decimal:
        """Return the configured or default rate for `provider`."""

        configured = self.options.provider_rates.get(provider)
        if configured is not None:
            return configured
        return DEFAULT_PROVIDER_RATES.get(provider, GENERIC_FALLBACK_RATE)

    @staticmethod
    def cost_for(character_count: int, rate_per_thousand: Decimal) -> Decimal:
        """Return `character_count * rate / 1000`."""

        return Decimal(character_count) * rate_per_thousand / Decimal(1000)

    def _rate_for_context(self, context: PricingContext) -> Decimal:
        """Resolve the rate for a pricing context."""

        if context.voice_cost_per_thousand_chars is not None:
            return context.voice_cost_per_thousand_chars
        if context.provider is not None:
            return self.rate_for(context.provider)
        return min(self.rate_for(provider) for provider in Provider)
