"""
Background maintenance for the router: window resets for idle providers and
cooldown expiry for blacklisted ones.

Owned by the router's lifecycle (start/stop). The read path reconciles the
same state lazily, so the scheduler only bounds staleness; tick() can be
called directly to drive it deterministically.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import List, Optional

from ..timeutils import Clock, MonotonicClock
from .market_data import MarketDataRouter
from .resilience import CircuitBreaker
from .usage import UsageTracker

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 1.0


@dataclass
class TickResult:
    """What one maintenance pass changed."""

    usage_reset: List[str] = field(default_factory=list)
    market_data_reset: List[str] = field(default_factory=list)
    restored: List[str] = field(default_factory=list)


class MaintenanceScheduler:
    """
    Periodic maintenance on a daemon thread.

    Usage:
        scheduler = MaintenanceScheduler(usage, breaker, market_data)
        scheduler.start()
        ...
        scheduler.stop()
    """

    def __init__(
        self,
        usage: UsageTracker,
        breaker: CircuitBreaker,
        market_data: Optional[MarketDataRouter] = None,
        interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
        clock: Optional[Clock] = None,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError(f"interval_seconds must be positive, got {interval_seconds}")
        self._usage = usage
        self._breaker = breaker
        self._market_data = market_data
        self.interval_seconds = float(interval_seconds)
        self._clock = clock or MonotonicClock()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()
        self.ticks = 0

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def tick(self, now: Optional[float] = None) -> TickResult:
        """Run one maintenance pass."""
        t = self._clock.now() if now is None else float(now)
        result = TickResult(
            usage_reset=self._usage.reset_if_window_elapsed(t),
            restored=self._breaker.expire_cooldowns(t),
        )
        if self._market_data is not None:
            result.market_data_reset = self._market_data.reset_if_window_elapsed(t)
        self.ticks += 1
        return result

    def start(self) -> None:
        """Start the maintenance thread. No-op if already running."""
        with self._lock:
            if self.running:
                return
            self._stop.clear()
            self._thread = threading.Thread(
                target=self._loop, name="provider-router-maintenance", daemon=True
            )
            self._thread.start()
        logger.info("Maintenance scheduler started (interval=%.2fs)", self.interval_seconds)

    def stop(self, timeout: float = 5.0) -> None:
        """Stop the maintenance thread and wait for it. No-op if not running."""
        with self._lock:
            thread = self._thread
            if thread is None:
                return
            self._stop.set()
            thread.join(timeout=timeout)
            self._thread = None
        logger.info("Maintenance scheduler stopped after %d ticks", self.ticks)

    def _loop(self) -> None:
        while not self._stop.wait(self.interval_seconds):
            try:
                self.tick()
            except Exception:
                logger.exception("Maintenance tick failed")

    def __enter__(self) -> "MaintenanceScheduler":
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop()
