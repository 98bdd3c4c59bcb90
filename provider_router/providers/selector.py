"""
Endpoint selection over the RPC provider registry.

Selection is a synchronous pure computation over a momentary snapshot of the
usage and breaker state: no I/O, no waiting. Filtering removes blacklisted
providers, providers that do not serve the network, providers within 10% of
their rate limit and (for premium requests) fallback-tier providers. Ranking
prefers the lowest priority number, then the most remaining capacity.
"""
from __future__ import annotations

import logging
from typing import Collection, List, Optional, Union

from ..core.errors import NoAvailableEndpoint
from ..timeutils import Clock, MonotonicClock
from .base import CandidateView, EndpointDescriptor, ProviderTier
from .registry import ProviderRegistry
from .resilience import CircuitBreaker
from .usage import UsageTracker

logger = logging.getLogger(__name__)

DEFAULT_HEADROOM_RATIO = 0.9

TierArg = Optional[Union[ProviderTier, str]]


def _parse_tier(tier: TierArg) -> Optional[ProviderTier]:
    return None if tier is None else ProviderTier.parse(tier)


def rank_candidates(candidates: List[CandidateView]) -> List[CandidateView]:
    """Sort by priority ascending, available capacity descending, provider id for determinism."""
    return sorted(candidates, key=lambda c: (c.priority, -c.available_capacity, c.provider_id))


def choose_candidate(candidates: List[CandidateView]) -> Optional[CandidateView]:
    """
    Head of the ranking. When no candidate has capacity left, fall back to the
    one with the smallest absolute usage.
    """
    if not candidates:
        return None
    if all(c.available_capacity <= 0 for c in candidates):
        return min(candidates, key=lambda c: (c.current_usage, c.priority, c.provider_id))
    return rank_candidates(candidates)[0]


class EndpointSelector:
    """
    Filters and ranks RPC providers for a network.

    Usage:
        selector = EndpointSelector(registry, usage, breaker)
        endpoint = selector.select_best_endpoint("ethereum", ProviderTier.PREMIUM)
        fan_out = selector.parallel_endpoints("arbitrum", 3)
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        usage: UsageTracker,
        breaker: CircuitBreaker,
        headroom_ratio: float = DEFAULT_HEADROOM_RATIO,
        clock: Optional[Clock] = None,
    ) -> None:
        if not 0 < headroom_ratio <= 1:
            raise ValueError(f"headroom_ratio must be in (0, 1], got {headroom_ratio}")
        self._registry = registry
        self._usage = usage
        self._breaker = breaker
        self.headroom_ratio = float(headroom_ratio)
        self._clock = clock or MonotonicClock()

    def has_headroom(self, current_usage: int, rate_limit: int) -> bool:
        return current_usage < rate_limit * self.headroom_ratio

    def available_candidates(
        self,
        network: str,
        preferred_tier: TierArg = ProviderTier.PREMIUM,
        exclude: Collection[str] = (),
        now: Optional[float] = None,
    ) -> List[CandidateView]:
        """
        Providers eligible to serve `network` right now, unranked.

        A premium request only sees premium providers; FALLBACK or None opens
        both tiers. Usage windows are reconciled as each provider is read.
        """
        t = self._clock.now() if now is None else float(now)
        tier = _parse_tier(preferred_tier)
        out: List[CandidateView] = []
        for provider in self._registry.providers():
            if provider.id in exclude:
                continue
            if tier is ProviderTier.PREMIUM and provider.tier is not ProviderTier.PREMIUM:
                continue
            resolved = provider.resolve_network(network)
            if resolved is None:
                continue
            if self._breaker.is_blacklisted(provider.id, t):
                continue
            usage = self._usage.current_usage(provider.id, t)
            if not self.has_headroom(usage, provider.rate_limit):
                continue
            _, url = resolved
            out.append(
                CandidateView(
                    provider_id=provider.id,
                    url=url,
                    network=network,
                    tier=provider.tier,
                    priority=provider.priority,
                    current_usage=usage,
                    rate_limit=provider.rate_limit,
                )
            )
        return out

    def select_best_endpoint(
        self,
        network: str,
        preferred_tier: TierArg = ProviderTier.PREMIUM,
        now: Optional[float] = None,
    ) -> EndpointDescriptor:
        """
        Best endpoint for `network`. Does not consume capacity: the caller
        reports the call outcome afterwards.

        Raises NoAvailableEndpoint when nothing passes the filters.
        """
        candidates = self.available_candidates(network, preferred_tier, now=now)
        best = choose_candidate(candidates)
        if best is None:
            tier = _parse_tier(preferred_tier)
            logger.warning(
                "No available endpoint for %s (tier=%s)", network, tier.value if tier else "any"
            )
            raise NoAvailableEndpoint(network, tier.value if tier else None)
        logger.debug(
            "Selected %s for %s (usage %d/%d)",
            best.provider_id, network, best.current_usage, best.rate_limit,
        )
        return best.to_descriptor()

    def parallel_endpoints(
        self,
        network: str,
        count: int,
        preferred_tier: TierArg = None,
        now: Optional[float] = None,
    ) -> List[EndpointDescriptor]:
        """
        Up to `count` endpoints, each from a distinct provider, best first.

        Stops early when no distinct eligible provider remains; a short or
        empty list is a valid result, never an error.
        """
        t = self._clock.now() if now is None else float(now)
        chosen: List[EndpointDescriptor] = []
        used: set = set()
        for _ in range(max(0, int(count))):
            best = choose_candidate(
                self.available_candidates(network, preferred_tier, exclude=used, now=t)
            )
            if best is None:
                break
            chosen.append(best.to_descriptor())
            used.add(best.provider_id)
        if len(chosen) < count:
            logger.debug(
                "Parallel selection for %s returned %d of %d requested endpoints",
                network, len(chosen), count,
            )
        return chosen
