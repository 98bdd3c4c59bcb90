"""
Provider registry: central catalog of RPC and market-data providers.

Built once at startup from configuration (see providers.defaults). Entries are
frozen; the registry only grows during construction and is read-only while
routing, so lookups take no lock.
"""
from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional

from ..core.errors import ConfigError, UnknownProviderError
from .base import MarketDataProvider, Provider, ProviderTier

logger = logging.getLogger(__name__)


class ProviderRegistry:
    """
    Registry mapping provider ids to provider configurations.

    Usage:
        registry = ProviderRegistry()
        registry.register(Provider("alchemy", ProviderTier.PREMIUM, 500,
                                   {"ethereum": url}, priority=1))
        registry.register_market_data(MarketDataProvider("birdeye", base_url, 100))

        registry.get("alchemy")
        registry.providers_for_network("ethereum")
    """

    def __init__(
        self,
        providers: Optional[Iterable[Provider]] = None,
        market_data: Optional[Iterable[MarketDataProvider]] = None,
    ) -> None:
        self._providers: Dict[str, Provider] = {}
        self._market_data: Dict[str, MarketDataProvider] = {}
        for p in providers or ():
            self.register(p)
        for m in market_data or ():
            self.register_market_data(m)

    def register(self, provider: Provider) -> None:
        """Register an RPC provider. Ids are unique."""
        _validate_limits(provider.id, provider.rate_limit)
        if provider.id in self._providers:
            raise ConfigError(f"Duplicate provider id '{provider.id}'")
        if not provider.networks:
            raise ConfigError(f"Provider '{provider.id}' declares no networks")
        self._providers[provider.id] = provider
        logger.debug(
            "Registered RPC provider: %s (tier=%s, rate_limit=%d, priority=%d, networks=%s)",
            provider.id, provider.tier.value, provider.rate_limit, provider.priority,
            list(provider.networks),
        )

    def register_market_data(self, provider: MarketDataProvider) -> None:
        """Register a market-data API. Ids are unique."""
        _validate_limits(provider.id, provider.rate_limit)
        if provider.id in self._market_data:
            raise ConfigError(f"Duplicate market data provider id '{provider.id}'")
        self._market_data[provider.id] = provider
        logger.debug(
            "Registered market data provider: %s (rate_limit=%d/min, priority=%d)",
            provider.id, provider.rate_limit, provider.priority,
        )

    def get(self, provider_id: str) -> Provider:
        """Get an RPC provider by id."""
        try:
            return self._providers[provider_id]
        except KeyError:
            raise UnknownProviderError(provider_id, list(self._providers)) from None

    def get_market_data(self, provider_id: str) -> MarketDataProvider:
        """Get a market-data provider by id."""
        try:
            return self._market_data[provider_id]
        except KeyError:
            raise UnknownProviderError(provider_id, list(self._market_data)) from None

    def __contains__(self, provider_id: str) -> bool:
        return provider_id in self._providers

    def __len__(self) -> int:
        return len(self._providers)

    @property
    def provider_ids(self) -> List[str]:
        return list(self._providers)

    @property
    def market_data_ids(self) -> List[str]:
        return list(self._market_data)

    def providers(self) -> List[Provider]:
        return list(self._providers.values())

    def market_data_providers(self) -> List[MarketDataProvider]:
        """Market-data providers in ascending priority (ties keep registration order)."""
        return sorted(self._market_data.values(), key=lambda m: m.priority)

    def providers_for_network(
        self, network: str, tier: Optional[ProviderTier] = None
    ) -> List[Provider]:
        """RPC providers whose network map resolves `network`, optionally limited to one tier."""
        return [
            p for p in self._providers.values()
            if p.supports(network) and (tier is None or p.tier is tier)
        ]

    @property
    def networks(self) -> List[str]:
        """All network keys declared by any provider, in first-seen order."""
        seen: Dict[str, None] = {}
        for p in self._providers.values():
            for key in p.networks:
                seen.setdefault(key, None)
        return list(seen)


def _validate_limits(provider_id: str, rate_limit: int) -> None:
    if not provider_id:
        raise ConfigError("Provider id must be a non-empty string")
    if int(rate_limit) < 0:
        raise ConfigError(f"Provider '{provider_id}' has negative rate_limit {rate_limit}")
