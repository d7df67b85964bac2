"""Provider routing components.

This package contains the provider characteristics catalog and the
preference-weighted router.
"""

from .catalog import DEFAULT_CHARACTERISTICS, ProviderCatalog
from .router import PREFERENCE_WEIGHTS, ProviderRouter, RoutingOptions

__all__ = [
    "DEFAULT_CHARACTERISTICS",
    "PREFERENCE_WEIGHTS",
    "ProviderCatalog",
    "ProviderRouter",
    "RoutingOptions",
]
