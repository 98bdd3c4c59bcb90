"""
Provider data contracts.

Two kinds of upstream are routed:
- Provider: blockchain RPC provider, one endpoint URL per logical network.
- MarketDataProvider: REST market-data API with a single base URL and auth headers.

Configuration is carried by frozen dataclasses (immutable after startup, safe
to read without locks). Mutable usage and breaker state live in UsageTracker
and CircuitBreaker, never on these objects.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional


class ProviderTier(enum.Enum):
    """Coarse quality class used as a primary filter before capacity ranking."""

    PREMIUM = "premium"
    FALLBACK = "fallback"

    @classmethod
    def parse(cls, value: "str | ProviderTier") -> "ProviderTier":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(
                f"Unknown tier '{value}'. Expected one of {[t.value for t in cls]}"
            ) from None


class ErrorClass(str, enum.Enum):
    """Classes of upstream failure; breaker counters are kept per class."""

    TIMEOUT = "timeout"
    RATE_LIMITED = "rate_limited"
    HTTP_4XX = "http_4xx"
    HTTP_5XX = "http_5xx"
    CONNECTION = "connection"
    RPC_ERROR = "rpc_error"
    OTHER = "other"


class MarketDataState(enum.Enum):
    """Per-minute capacity state of a market-data API."""

    AVAILABLE = "available"
    NEAR_CAPACITY = "near_capacity"


def _freeze(mapping: Optional[Mapping[str, str]]) -> Mapping[str, str]:
    return MappingProxyType(dict(mapping or {}))


@dataclass(frozen=True)
class Provider:
    """RPC provider configuration. `credentials` is opaque and never rendered."""

    id: str
    tier: ProviderTier
    rate_limit: int
    networks: Mapping[str, str]
    priority: int = 1
    credentials: Optional[str] = field(default=None, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "tier", ProviderTier.parse(self.tier))
        object.__setattr__(self, "networks", _freeze(self.networks))

    def resolve_network(self, network: str) -> Optional[tuple[str, str]]:
        """
        Return (network_key, url) for a logical network name, or None.

        Exact key match first (case-insensitive), then substring match in
        either direction in declaration order, so "arbitrum" matches "arbitrum_1".
        """
        wanted = network.strip().lower()
        if not wanted:
            return None
        for key, url in self.networks.items():
            if key.lower() == wanted:
                return key, url
        for key, url in self.networks.items():
            k = key.lower()
            if wanted in k or k in wanted:
                return key, url
        return None

    def supports(self, network: str) -> bool:
        return self.resolve_network(network) is not None


@dataclass(frozen=True)
class MarketDataProvider:
    """Market-data API configuration. Rate limit is calls per minute."""

    id: str
    base_url: str
    rate_limit: int
    priority: int = 1
    headers: Mapping[str, str] = field(default_factory=dict, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "headers", _freeze(self.headers))


@dataclass(frozen=True)
class UsageSnapshot:
    """Usage of one provider at selection time."""

    current_usage: int
    rate_limit: int

    @property
    def available_capacity(self) -> int:
        return self.rate_limit - self.current_usage

    @property
    def utilization_percent(self) -> float:
        if self.rate_limit <= 0:
            return 0.0
        return round(100.0 * self.current_usage / self.rate_limit, 2)


@dataclass(frozen=True)
class CandidateView:
    """Read-only projection of a Provider during one selection call. Never stored."""

    provider_id: str
    url: str
    network: str
    tier: ProviderTier
    priority: int
    current_usage: int
    rate_limit: int

    @property
    def available_capacity(self) -> int:
        return self.rate_limit - self.current_usage

    def to_descriptor(self) -> "EndpointDescriptor":
        return EndpointDescriptor(
            provider_id=self.provider_id,
            url=self.url,
            network=self.network,
            tier=self.tier,
            priority=self.priority,
            usage=UsageSnapshot(current_usage=self.current_usage, rate_limit=self.rate_limit),
        )


@dataclass(frozen=True)
class EndpointDescriptor:
    """Endpoint handed to the caller. The caller reports the outcome back by provider_id."""

    provider_id: str
    url: str
    network: str
    tier: ProviderTier
    priority: int
    usage: UsageSnapshot

    def to_dict(self) -> dict:
        return {
            "provider_id": self.provider_id,
            "url": self.url,
            "network": self.network,
            "tier": self.tier.value,
            "priority": self.priority,
            "current_usage": self.usage.current_usage,
            "rate_limit": self.usage.rate_limit,
            "available_capacity": self.usage.available_capacity,
        }


@dataclass(frozen=True)
class APIConfig:
    """Market-data endpoint handed to the caller."""

    name: str
    base_url: str
    headers: Mapping[str, str] = field(repr=False)
    rate_limit: int = 0
    current_usage: int = 0

    def to_dict(self) -> dict:
        # Header values are credentials; only names are rendered.
        return {
            "name": self.name,
            "base_url": self.base_url,
            "header_names": sorted(self.headers),
            "rate_limit": self.rate_limit,
            "current_usage": self.current_usage,
        }
