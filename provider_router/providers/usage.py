"""
Per-provider call counters over fixed windows.

Each provider owns a counter and the timestamp of its last window boundary,
guarded by a lock scoped to that provider. Resets are lazy: every read or
write first reconciles the provider's window, so correctness does not depend
on the scheduler firing on time. The MaintenanceScheduler additionally calls
reset_if_window_elapsed() so idle providers do not hold stale counts.

Reconciliation is idempotent under the provider lock: a window reset sets
last_reset = now, so a second reconciler arriving at the same boundary sees a
fresh window and leaves the count alone.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from ..core.errors import UnknownProviderError
from ..timeutils import Clock, MonotonicClock

logger = logging.getLogger(__name__)

RPC_WINDOW_SECONDS = 1.0
MARKET_DATA_WINDOW_SECONDS = 60.0


@dataclass
class _UsageWindow:
    last_reset: float
    count: int = 0
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def reconcile(self, now: float, window_seconds: float) -> bool:
        """Zero the counter if the window elapsed. Caller holds the lock."""
        if now - self.last_reset >= window_seconds:
            self.count = 0
            self.last_reset = now
            return True
        return False

    def effective_count(self, now: float, window_seconds: float) -> int:
        if now - self.last_reset >= window_seconds:
            return 0
        return self.count


class UsageTracker:
    """
    Tracks calls issued per provider in the current window.

    Usage:
        tracker = UsageTracker(["alchemy", "infura"], window_seconds=1.0)
        tracker.record_use("alchemy")
        tracker.current_usage("alchemy")  # 1, or 0 once the window elapsed
    """

    def __init__(
        self,
        provider_ids: Iterable[str],
        window_seconds: float = RPC_WINDOW_SECONDS,
        clock: Optional[Clock] = None,
    ) -> None:
        if window_seconds <= 0:
            raise ValueError(f"window_seconds must be positive, got {window_seconds}")
        self._clock = clock or MonotonicClock()
        self._window_seconds = float(window_seconds)
        start = self._clock.now()
        # Keys fixed at construction; only the per-provider windows mutate.
        self._windows: Dict[str, _UsageWindow] = {
            pid: _UsageWindow(last_reset=start) for pid in provider_ids
        }

    @property
    def window_seconds(self) -> float:
        return self._window_seconds

    @property
    def provider_ids(self) -> List[str]:
        return list(self._windows)

    def _window(self, provider_id: str) -> _UsageWindow:
        try:
            return self._windows[provider_id]
        except KeyError:
            raise UnknownProviderError(provider_id, list(self._windows)) from None

    def _now(self, now: Optional[float]) -> float:
        return self._clock.now() if now is None else float(now)

    def record_use(self, provider_id: str, now: Optional[float] = None) -> int:
        """Count one call against the provider's current window. Returns the new count."""
        w = self._window(provider_id)
        t = self._now(now)
        with w.lock:
            w.reconcile(t, self._window_seconds)
            w.count += 1
            return w.count

    def current_usage(self, provider_id: str, now: Optional[float] = None) -> int:
        """Calls in the current window, reconciling the window first."""
        w = self._window(provider_id)
        t = self._now(now)
        with w.lock:
            w.reconcile(t, self._window_seconds)
            return w.count

    def last_reset(self, provider_id: str) -> float:
        w = self._window(provider_id)
        with w.lock:
            return w.last_reset

    def peek(self, provider_id: str, now: Optional[float] = None) -> int:
        """Effective usage without writing: 0 if the window elapsed but was not yet reset."""
        w = self._window(provider_id)
        t = self._now(now)
        with w.lock:
            return w.effective_count(t, self._window_seconds)

    def reset_if_window_elapsed(self, now: Optional[float] = None) -> List[str]:
        """Reset every provider whose window elapsed. Returns the ids whose non-zero counts were cleared."""
        t = self._now(now)
        reset: List[str] = []
        for pid, w in self._windows.items():
            with w.lock:
                had_calls = w.count > 0
                if w.reconcile(t, self._window_seconds) and had_calls:
                    reset.append(pid)
        if reset:
            logger.debug("Usage windows reset for %s", reset)
        return reset

    def snapshot(self, now: Optional[float] = None) -> Dict[str, int]:
        """Effective usage for every provider. Read-only."""
        t = self._now(now)
        return {pid: self.peek(pid, t) for pid in self._windows}
