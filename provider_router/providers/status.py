"""
Status aggregation for the external monitoring collaborator.

StatusReporter owns no state and only uses the non-mutating reads of the
tracker and breaker (peek/peek_blacklisted), so querying status never resets a
window or restores a provider as a side effect.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional

import pandas as pd

from ..timeutils import Clock, MonotonicClock, now_utc_iso
from .market_data import MarketDataRouter
from .registry import ProviderRegistry
from .resilience import CircuitBreaker
from .usage import UsageTracker


def _utilization(used: int, capacity: int) -> float:
    if capacity <= 0:
        return 0.0
    return round(100.0 * used / capacity, 2)


@dataclass(frozen=True)
class ProviderStatusRow:
    tier: str
    rate_limit: int
    current_usage: int
    utilization_percent: float
    blacklisted: bool
    cooldown_remaining_seconds: float = 0.0
    error_counts: Dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class MarketDataStatusRow:
    rate_limit: int
    current_usage: int
    utilization_percent: float
    state: str


@dataclass(frozen=True)
class StatusSnapshot:
    """Point-in-time view of usage, capacity and blacklist state."""

    generated_at: str
    providers: Dict[str, ProviderStatusRow]
    market_data: Dict[str, MarketDataStatusRow]
    used_capacity: int
    total_capacity: int

    @property
    def utilization_percent(self) -> float:
        return _utilization(self.used_capacity, self.total_capacity)

    @property
    def blacklisted(self) -> list:
        return [pid for pid, row in self.providers.items() if row.blacklisted]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "generated_at": self.generated_at,
            "providers": {pid: asdict(row) for pid, row in self.providers.items()},
            "market_data": {mid: asdict(row) for mid, row in self.market_data.items()},
            "used_capacity": self.used_capacity,
            "total_capacity": self.total_capacity,
            "utilization_percent": self.utilization_percent,
        }

    def to_frame(self) -> pd.DataFrame:
        """One row per provider (RPC and market data), indexed by provider id."""
        rows = []
        for pid, row in self.providers.items():
            rows.append({
                "provider_id": pid,
                "kind": "rpc",
                "tier": row.tier,
                "rate_limit": row.rate_limit,
                "current_usage": row.current_usage,
                "utilization_percent": row.utilization_percent,
                "blacklisted": row.blacklisted,
            })
        for mid, row in self.market_data.items():
            rows.append({
                "provider_id": mid,
                "kind": "market_data",
                "tier": None,
                "rate_limit": row.rate_limit,
                "current_usage": row.current_usage,
                "utilization_percent": row.utilization_percent,
                "blacklisted": False,
            })
        columns = [
            "provider_id", "kind", "tier", "rate_limit",
            "current_usage", "utilization_percent", "blacklisted",
        ]
        return pd.DataFrame(rows, columns=columns).set_index("provider_id")


class StatusReporter:
    """Read-only aggregation over the registry, trackers and breaker."""

    def __init__(
        self,
        registry: ProviderRegistry,
        usage: UsageTracker,
        breaker: CircuitBreaker,
        market_data: Optional[MarketDataRouter] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self._registry = registry
        self._usage = usage
        self._breaker = breaker
        self._market_data = market_data
        self._clock = clock or MonotonicClock()

    def snapshot(self, now: Optional[float] = None) -> StatusSnapshot:
        t = self._clock.now() if now is None else float(now)
        providers: Dict[str, ProviderStatusRow] = {}
        used = 0
        total = 0
        for p in self._registry.providers():
            usage = self._usage.peek(p.id, t)
            blacklisted = self._breaker.peek_blacklisted(p.id, t)
            providers[p.id] = ProviderStatusRow(
                tier=p.tier.value,
                rate_limit=p.rate_limit,
                current_usage=usage,
                utilization_percent=_utilization(usage, p.rate_limit),
                blacklisted=blacklisted,
                cooldown_remaining_seconds=(
                    round(self._breaker.cooldown_remaining(p.id, t), 3) if blacklisted else 0.0
                ),
                error_counts=self._breaker.error_counts(p.id),
            )
            used += usage
            total += p.rate_limit

        market: Dict[str, MarketDataStatusRow] = {}
        if self._market_data is not None:
            for m in self._registry.market_data_providers():
                usage = self._market_data.usage.peek(m.id, t)
                market[m.id] = MarketDataStatusRow(
                    rate_limit=m.rate_limit,
                    current_usage=usage,
                    utilization_percent=_utilization(usage, m.rate_limit),
                    state=self._market_data.peek_state(m.id, t).value,
                )

        return StatusSnapshot(
            generated_at=now_utc_iso(),
            providers=providers,
            market_data=market,
            used_capacity=used,
            total_capacity=total,
        )
