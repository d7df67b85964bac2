"""Actual-cost accounting for completed segments.

Responsibilities:
- Accumulate priced characters per provider for one generation.
- Provide a summary for logs and CLI reporting.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from ..models.datatypes import Provider


@dataclass(slots=True)
class CostTracker:
    """Collect per-provider character and cost counters."""

    characters: dict[Provider, int] = field(default_factory=dict)
    costs: dict[Provider, Decimal] = field(default_factory=dict)

    def add_usage(self, provider: Provider, character_count: int, cost: Decimal) -> None:
        """Add one segment's usage."""

        self.characters[provider] = self.characters.get(provider, 0) + max(0, character_count)
        self.costs[provider] = self.costs.get(provider, Decimal(0)) + max(Decimal(0), cost)

    @property
    def total_cost(self) -> Decimal:
        """Return the summed cost across providers."""

        return sum(self.costs.values(), Decimal(0))

    @property
    def total_characters(self) -> int:
        """Return the summed character count across providers."""

        return sum(self.characters.values())

    def summary(self) -> dict[str, str]:
        """Return a flat summary dictionary for logs and reporting."""

        summary = {
            f"cost_{provider.value}": f"{cost:.6f}" for provider, cost in sorted(
                self.costs.items(), key=lambda item: item[0].value
            )
        }
        summary["total_characters"] = str(self.total_characters)
        summary["total_cost"] = f"{self.total_cost:.6f}"
        return summary
