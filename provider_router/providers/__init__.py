"""
Provider routing for rate-limited upstreams.

RPC providers are filtered by network, tier, blacklist state and usage
headroom, then ranked by priority and remaining capacity. Market-data APIs use
priority-ordered fallback over per-minute windows. A per-error-class circuit
breaker hides failing providers for a fixed cooldown.
"""

from __future__ import annotations

from .base import (
    APIConfig,
    CandidateView,
    EndpointDescriptor,
    ErrorClass,
    MarketDataProvider,
    MarketDataState,
    Provider,
    ProviderTier,
    UsageSnapshot,
)
from .events import EventBus, RouterEvent
from .market_data import MarketDataRouter
from .registry import ProviderRegistry
from .resilience import CircuitBreaker, classify_error
from .router import EndpointRouter
from .scheduler import MaintenanceScheduler
from .selector import EndpointSelector
from .status import StatusReporter, StatusSnapshot
from .usage import UsageTracker

__all__ = [
    "APIConfig",
    "CandidateView",
    "EndpointDescriptor",
    "ErrorClass",
    "MarketDataProvider",
    "MarketDataState",
    "Provider",
    "ProviderTier",
    "UsageSnapshot",
    "EventBus",
    "RouterEvent",
    "MarketDataRouter",
    "ProviderRegistry",
    "CircuitBreaker",
    "classify_error",
    "EndpointRouter",
    "MaintenanceScheduler",
    "EndpointSelector",
    "StatusReporter",
    "StatusSnapshot",
    "UsageTracker",
]
