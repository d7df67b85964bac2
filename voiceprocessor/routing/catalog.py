"""Provider characteristics catalog.

Responsibilities:
- Hold the static per-provider cost, latency, and quality defaults.
- Merge deployment overrides once, at construction time, into an immutable view.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from types import MappingProxyType
from typing import Mapping

from ..models.datatypes import Provider, ProviderCharacteristics


DEFAULT_CHARACTERISTICS: Mapping[Provider, ProviderCharacteristics] = MappingProxyType(
    {
        Provider.ELEVENLABS: ProviderCharacteristics(Decimal("0.30"), 800, 0.95),
        Provider.OPENAI: ProviderCharacteristics(Decimal("0.015"), 600, 0.85),
        Provider.GOOGLE_CLOUD: ProviderCharacteristics(Decimal("0.016"), 400, 0.80),
        Provider.AMAZON_POLLY: ProviderCharacteristics(Decimal("0.004"), 300, 0.70),
        Provider.FISH_AUDIO: ProviderCharacteristics(Decimal("0.20"), 900, 0.90),
        Provider.CARTESIA: ProviderCharacteristics(Decimal("0.25"), 500, 0.88),
        Provider.DEEPGRAM: ProviderCharacteristics(Decimal("0.015"), 350, 0.82),
    }
)
FALLBACK_CHARACTERISTICS = ProviderCharacteristics(Decimal("0.10"), 500, 0.75)


@dataclass(frozen=True, slots=True)
class ProviderCatalog:
    """Read-only provider characteristics shared by reference.

    Attributes:
        characteristics: Effective per-provider characteristics.
        fallback: Characteristics for providers missing from the table.
    """

    characteristics: Mapping[Provider, ProviderCharacteristics] = field(
        default_factory=lambda: DEFAULT_CHARACTERISTICS
    )
    fallback: ProviderCharacteristics = FALLBACK_CHARACTERISTICS

    @classmethod
    def with_overrides(
        cls,
        overrides: Mapping[Provider, ProviderCharacteristics] | None = None,
    ) -> ProviderCatalog:
        """Build a catalog with `overrides` merged over the defaults."""

        merged = dict(DEFAULT_CHARACTERISTICS)
        for provider, characteristics in (overrides or {}).items():
            if not 0.0 <= characteristics.quality_rating <= 1.0:
                raise ValueError(
                    f"Quality rating for `{provider.value}` must be within [0, 1]."
                )
            if characteristics.cost_per_thousand_chars < 0 or characteristics.avg_latency_ms < 0:
                raise ValueError(
                    f"Cost and latency for `{provider.value}` must not be negative."
                )
            merged[provider] = characteristics
        return cls(characteristics=MappingProxyType(merged))

    def get(self, provider: Provider) -> ProviderCharacteristics:
        """Return characteristics for `provider`, or the fallback entry."""

        return self.characteristics.get(provider, self.fallback)
