"""
Provider fixtures for router tests: deterministic configs, placeholder URLs.

No live network and no real endpoints; every URL lives under FAKE_BASE_URL.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional

from provider_router.config import RouterSettings
from provider_router.providers.base import MarketDataProvider, Provider, ProviderTier
from provider_router.providers.events import EventBus
from provider_router.providers.registry import ProviderRegistry
from provider_router.providers.router import EndpointRouter

from .clock import ManualClock

FAKE_BASE_URL = "https://rpc.invalid"


def make_provider(
    provider_id: str,
    *,
    tier: str = "premium",
    rate_limit: int = 500,
    priority: int = 1,
    networks: Optional[Iterable[str]] = None,
) -> Provider:
    nets = list(networks or ["ethereum"])
    return Provider(
        id=provider_id,
        tier=ProviderTier.parse(tier),
        rate_limit=rate_limit,
        networks={n: f"{FAKE_BASE_URL}/{provider_id}/{n}" for n in nets},
        priority=priority,
        credentials="not-a-real-key",
    )


def make_market_data(
    provider_id: str,
    *,
    rate_limit: int = 100,
    priority: int = 1,
    headers: Optional[Dict[str, str]] = None,
) -> MarketDataProvider:
    return MarketDataProvider(
        id=provider_id,
        base_url=f"https://data.invalid/{provider_id}",
        rate_limit=rate_limit,
        priority=priority,
        headers=headers or {"X-API-KEY": "not-a-real-key"},
    )


def ranking_registry() -> ProviderRegistry:
    """A(p1, 500), B(p1, 500), C(p3, 15, fallback): all serve ethereum."""
    return ProviderRegistry(
        providers=[
            make_provider("A", priority=1, rate_limit=500),
            make_provider("B", priority=1, rate_limit=500),
            make_provider("C", tier="fallback", priority=3, rate_limit=15),
        ]
    )


def make_router(
    providers: Optional[List[Provider]] = None,
    market_data: Optional[List[MarketDataProvider]] = None,
    *,
    clock: Optional[ManualClock] = None,
    settings: Optional[RouterSettings] = None,
    events: Optional[EventBus] = None,
) -> EndpointRouter:
    registry = ProviderRegistry(providers=providers or [], market_data=market_data or [])
    return EndpointRouter(
        registry,
        settings=settings,
        clock=clock or ManualClock(),
        events=events,
    )
