"""
EndpointRouter: the host-facing facade.

Composes the registry, usage trackers, circuit breaker, selectors, status
reporter and maintenance scheduler. Instances are constructed explicitly and
injected where needed; tests build independent routers with a manual clock.

Typical call cycle:
    endpoint = router.select_endpoint("ethereum")
    try:
        result = do_rpc_call(endpoint.url)
    except Exception as exc:
        router.report_error(endpoint.provider_id, exc)
    else:
        router.report_success(endpoint.provider_id)
"""
from __future__ import annotations

import logging
from typing import List, Optional, Union

from ..config import RouterSettings
from ..core.errors import UnknownProviderError
from ..timeutils import Clock, MonotonicClock
from .base import APIConfig, EndpointDescriptor, ErrorClass, ProviderTier
from .events import EventBus
from .market_data import MarketDataRouter
from .registry import ProviderRegistry
from .resilience import CircuitBreaker, classify_error
from .scheduler import MaintenanceScheduler
from .selector import EndpointSelector, TierArg
from .status import StatusReporter, StatusSnapshot
from .usage import UsageTracker

logger = logging.getLogger(__name__)

ErrorArg = Union[ErrorClass, str, BaseException]


class EndpointRouter:
    """Multi-provider, rate-limited endpoint router for RPC and market-data APIs."""

    def __init__(
        self,
        registry: ProviderRegistry,
        settings: Optional[RouterSettings] = None,
        clock: Optional[Clock] = None,
        events: Optional[EventBus] = None,
    ) -> None:
        self.registry = registry
        self.settings = settings or RouterSettings()
        self.clock = clock or MonotonicClock()
        self.events = events if events is not None else EventBus()
        s = self.settings

        self.usage = UsageTracker(
            registry.provider_ids, window_seconds=s.rpc_window_seconds, clock=self.clock
        )
        self.breaker = CircuitBreaker(
            registry.provider_ids,
            error_threshold=s.error_threshold,
            cooldown_seconds=s.cooldown_seconds,
            error_window_seconds=s.error_window_seconds,
            clock=self.clock,
            events=self.events,
        )
        self.selector = EndpointSelector(
            registry, self.usage, self.breaker, headroom_ratio=s.headroom_ratio, clock=self.clock
        )
        self.market_data = MarketDataRouter(
            registry,
            usage=UsageTracker(
                registry.market_data_ids,
                window_seconds=s.market_data_window_seconds,
                clock=self.clock,
            ),
            headroom_ratio=s.headroom_ratio,
            clock=self.clock,
        )
        self.reporter = StatusReporter(
            registry, self.usage, self.breaker, market_data=self.market_data, clock=self.clock
        )
        self.scheduler = MaintenanceScheduler(
            self.usage,
            self.breaker,
            market_data=self.market_data,
            interval_seconds=s.maintenance_interval_seconds,
            clock=self.clock,
        )

    @classmethod
    def from_config(cls, cfg: Optional[dict] = None, **kwargs) -> "EndpointRouter":
        from .defaults import create_router

        return create_router(cfg, **kwargs)

    # -- selection -----------------------------------------------------------

    def select_endpoint(
        self, network: str, preferred_tier: TierArg = ProviderTier.PREMIUM
    ) -> EndpointDescriptor:
        """Best endpoint for `network`; raises NoAvailableEndpoint."""
        return self.selector.select_best_endpoint(network, preferred_tier)

    def select_parallel_endpoints(
        self, network: str, count: int, preferred_tier: TierArg = None
    ) -> List[EndpointDescriptor]:
        """Up to `count` endpoints from distinct providers; possibly empty."""
        return self.selector.parallel_endpoints(network, count, preferred_tier)

    def select_pool_data_endpoint(self, network: str) -> EndpointDescriptor:
        """Endpoint for bulk pool-data collection; either tier will do."""
        return self.selector.select_best_endpoint(network, ProviderTier.FALLBACK)

    def select_gas_tracking_endpoint(self, network: str) -> EndpointDescriptor:
        """Endpoint for gas tracking; premium providers only."""
        return self.selector.select_best_endpoint(network, ProviderTier.PREMIUM)

    def select_market_data_endpoint(self, preferred_provider_id: Optional[str] = None) -> APIConfig:
        """Preferred market-data API or the next by priority; raises AllAPIsAtCapacity."""
        return self.market_data.select_market_data_endpoint(preferred_provider_id)

    # -- outcome reporting ---------------------------------------------------

    def report_success(self, provider_id: str) -> None:
        """Count a completed call. Unknown ids are logged and ignored."""
        try:
            self.usage.record_use(provider_id)
        except UnknownProviderError:
            logger.warning("report_success for unknown provider %s ignored", provider_id)

    def report_error(self, provider_id: str, error: ErrorArg) -> bool:
        """
        Feed a failed call into the circuit breaker. `error` is an ErrorClass,
        a class name, an error message or an exception; anything but an
        ErrorClass is classified. Returns True when the provider was
        blacklisted by this report. Never raises.
        """
        error_class = classify_error(error)
        try:
            return self.breaker.report_error(provider_id, error_class)
        except UnknownProviderError:
            logger.warning("report_error for unknown provider %s ignored", provider_id)
            return False

    def track_market_data_usage(self, provider_id: str) -> None:
        """Count a market-data API call. Unknown ids are logged and ignored."""
        try:
            self.market_data.track_usage(provider_id)
        except UnknownProviderError:
            logger.warning("track_market_data_usage for unknown provider %s ignored", provider_id)

    # -- monitoring ------------------------------------------------------------

    def status(self) -> StatusSnapshot:
        return self.reporter.snapshot()

    def is_blacklisted(self, provider_id: str) -> bool:
        return self.breaker.is_blacklisted(provider_id)

    # -- lifecycle -------------------------------------------------------------

    def start(self) -> None:
        self.scheduler.start()

    def stop(self) -> None:
        self.scheduler.stop()

    def __enter__(self) -> "EndpointRouter":
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop()
