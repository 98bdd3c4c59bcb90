"""
Stable facade: exception types shared by the router modules.
Do not add exports without updating __all__.
"""

from __future__ import annotations

from .errors import (
    AllAPIsAtCapacity,
    ConfigError,
    NoAvailableEndpoint,
    ProviderRouterError,
    UnknownProviderError,
)

# Do not add exports without updating __all__.
__all__ = [
    "AllAPIsAtCapacity",
    "ConfigError",
    "NoAvailableEndpoint",
    "ProviderRouterError",
    "UnknownProviderError",
]
