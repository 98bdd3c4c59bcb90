"""
Shared exception types for provider_router.
Selection failures are raised to the caller; upstream call failures are
reported into the router and never raised by it.
"""

from __future__ import annotations

from typing import Optional


class ProviderRouterError(Exception):
    """Base exception for provider_router; catch this for any package-raised error."""

    pass


class NoAvailableEndpoint(ProviderRouterError):
    """No provider passed the filters for a network (blacklisted, saturated or unsupported)."""

    def __init__(self, network: str, preferred_tier: Optional[str] = None) -> None:
        self.network = network
        self.preferred_tier = preferred_tier
        tier = f" (tier={preferred_tier})" if preferred_tier else ""
        super().__init__(f"No available endpoint for network '{network}'{tier}")


class AllAPIsAtCapacity(ProviderRouterError):
    """Every market-data API is at or above its per-minute headroom threshold."""

    def __init__(self, preferred: Optional[str] = None) -> None:
        self.preferred = preferred
        suffix = f" (preferred={preferred})" if preferred else ""
        super().__init__(f"All market data APIs at capacity{suffix}")


class UnknownProviderError(ProviderRouterError, KeyError):
    """Provider id not present in the registry."""

    def __init__(self, provider_id: str, available: Optional[list] = None) -> None:
        self.provider_id = provider_id
        self.available = list(available or [])
        super().__init__(f"Unknown provider '{provider_id}'. Available: {self.available}")

    def __str__(self) -> str:
        return str(self.args[0])


class ConfigError(ProviderRouterError, ValueError):
    """Provider or router configuration is invalid."""

    pass


__all__ = [
    "ProviderRouterError",
    "NoAvailableEndpoint",
    "AllAPIsAtCapacity",
    "UnknownProviderError",
    "ConfigError",
]
