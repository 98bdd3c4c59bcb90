"""
Top-level public API surface. Stable facades only.
Canonical entrypoint: import provider_router; build an EndpointRouter from a
ProviderRegistry (or from config with EndpointRouter.from_config()).
Does not import cli.
"""

from __future__ import annotations

from ._version import __version__
from .config import RouterSettings, get_config
from .core.errors import (
    AllAPIsAtCapacity,
    ConfigError,
    NoAvailableEndpoint,
    ProviderRouterError,
    UnknownProviderError,
)
from .providers import (
    EndpointRouter,
    ErrorClass,
    MarketDataProvider,
    Provider,
    ProviderRegistry,
    ProviderTier,
)

# Do not add exports without updating __all__.
__all__ = [
    "__version__",
    "AllAPIsAtCapacity",
    "ConfigError",
    "EndpointRouter",
    "ErrorClass",
    "MarketDataProvider",
    "NoAvailableEndpoint",
    "Provider",
    "ProviderRegistry",
    "ProviderRouterError",
    "ProviderTier",
    "RouterSettings",
    "UnknownProviderError",
    "get_config",
]
