"""
Market-data API router: ordered fallback over REST data providers.

Structurally the sibling of EndpointSelector with coarser windows (calls per
minute) and no weighted ranking: the caller names a preferred API, and when it
is near capacity the remaining APIs are walked in ascending priority.
"""
from __future__ import annotations

import logging
from typing import List, Optional

from ..core.errors import AllAPIsAtCapacity
from ..timeutils import Clock, MonotonicClock
from .base import APIConfig, MarketDataProvider, MarketDataState
from .registry import ProviderRegistry
from .selector import DEFAULT_HEADROOM_RATIO
from .usage import MARKET_DATA_WINDOW_SECONDS, UsageTracker

logger = logging.getLogger(__name__)


class MarketDataRouter:
    """
    Chooses a market-data API with per-minute headroom.

    States per API:
    - AVAILABLE: usage below 90% of the per-minute limit.
    - NEAR_CAPACITY: usage at or above 90%; requests for it fall through to
      the next API by priority.
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        usage: Optional[UsageTracker] = None,
        headroom_ratio: float = DEFAULT_HEADROOM_RATIO,
        clock: Optional[Clock] = None,
    ) -> None:
        self._registry = registry
        self._clock = clock or MonotonicClock()
        self._usage = usage or UsageTracker(
            registry.market_data_ids,
            window_seconds=MARKET_DATA_WINDOW_SECONDS,
            clock=self._clock,
        )
        self.headroom_ratio = float(headroom_ratio)

    @property
    def usage(self) -> UsageTracker:
        return self._usage

    def _now(self, now: Optional[float]) -> float:
        return self._clock.now() if now is None else float(now)

    def state(self, provider_id: str, now: Optional[float] = None) -> MarketDataState:
        provider = self._registry.get_market_data(provider_id)
        usage = self._usage.current_usage(provider_id, self._now(now))
        return self._state_for(provider, usage)

    def peek_state(self, provider_id: str, now: Optional[float] = None) -> MarketDataState:
        """State without reconciling the usage window."""
        provider = self._registry.get_market_data(provider_id)
        return self._state_for(provider, self._usage.peek(provider_id, self._now(now)))

    def _state_for(self, provider: MarketDataProvider, usage: int) -> MarketDataState:
        if usage < provider.rate_limit * self.headroom_ratio:
            return MarketDataState.AVAILABLE
        return MarketDataState.NEAR_CAPACITY

    def track_usage(self, provider_id: str, now: Optional[float] = None) -> int:
        """Count one call against the API's current minute."""
        self._registry.get_market_data(provider_id)
        return self._usage.record_use(provider_id, self._now(now))

    def select_market_data_endpoint(
        self,
        preferred_provider_id: Optional[str] = None,
        now: Optional[float] = None,
    ) -> APIConfig:
        """
        The preferred API if it has headroom, else the first other API with
        headroom in ascending priority. With no preference, walk all APIs by
        priority.

        Raises AllAPIsAtCapacity when none qualifies, UnknownProviderError for
        an unregistered preferred id.
        """
        t = self._now(now)
        order: List[MarketDataProvider] = []
        if preferred_provider_id is not None:
            order.append(self._registry.get_market_data(preferred_provider_id))
        order.extend(
            m for m in self._registry.market_data_providers() if m.id != preferred_provider_id
        )

        for provider in order:
            usage = self._usage.current_usage(provider.id, t)
            if self._state_for(provider, usage) is MarketDataState.AVAILABLE:
                if preferred_provider_id is not None and provider.id != preferred_provider_id:
                    logger.info(
                        "Market data API %s near capacity, falling back to %s",
                        preferred_provider_id, provider.id,
                    )
                return APIConfig(
                    name=provider.id,
                    base_url=provider.base_url,
                    headers=provider.headers,
                    rate_limit=provider.rate_limit,
                    current_usage=usage,
                )

        logger.warning("All market data APIs at capacity (preferred=%s)", preferred_provider_id)
        raise AllAPIsAtCapacity(preferred_provider_id)

    def reset_if_window_elapsed(self, now: Optional[float] = None) -> List[str]:
        return self._usage.reset_if_window_elapsed(now)
