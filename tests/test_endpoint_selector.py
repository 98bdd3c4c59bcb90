"""
Tests for single-endpoint selection.

Verifies that:
- Ranking prefers the lowest priority number, then the most capacity
- Providers within 10% of their rate limit are never returned
- Premium requests exclude fallback-tier providers
- Blacklisted providers are skipped
- Network lookup falls back to substring match
- Exhaustion raises NoAvailableEndpoint
"""
from __future__ import annotations

import pytest

from provider_router.core.errors import NoAvailableEndpoint
from provider_router.providers.base import CandidateView, ErrorClass, ProviderTier
from provider_router.providers.registry import ProviderRegistry
from provider_router.providers.resilience import CircuitBreaker
from provider_router.providers.selector import (
    EndpointSelector,
    choose_candidate,
    rank_candidates,
)
from provider_router.providers.usage import UsageTracker
from tests.fakes import FAKE_BASE_URL, ManualClock, make_provider, ranking_registry


def _build(registry: ProviderRegistry, clock: ManualClock):
    usage = UsageTracker(registry.provider_ids, clock=clock)
    breaker = CircuitBreaker(registry.provider_ids, clock=clock)
    selector = EndpointSelector(registry, usage, breaker, clock=clock)
    return selector, usage, breaker


def _use(usage: UsageTracker, provider_id: str, n: int) -> None:
    for _ in range(n):
        usage.record_use(provider_id)


def _candidate(pid, priority=1, usage=0, limit=100):
    return CandidateView(
        provider_id=pid,
        url=f"{FAKE_BASE_URL}/{pid}",
        network="ethereum",
        tier=ProviderTier.PREMIUM,
        priority=priority,
        current_usage=usage,
        rate_limit=limit,
    )


@pytest.fixture
def clock():
    return ManualClock()


class TestRanking:
    def test_same_priority_prefers_more_capacity(self, clock):
        selector, usage, _ = _build(ranking_registry(), clock)
        _use(usage, "B", 450)
        endpoint = selector.select_best_endpoint("ethereum", ProviderTier.PREMIUM)
        assert endpoint.provider_id == "A"
        assert endpoint.url == f"{FAKE_BASE_URL}/A/ethereum"

    def test_capacity_decides_between_equal_priorities(self, clock):
        selector, usage, _ = _build(ranking_registry(), clock)
        _use(usage, "A", 200)
        _use(usage, "B", 100)
        assert selector.select_best_endpoint("ethereum").provider_id == "B"

    def test_priority_beats_capacity(self, clock):
        registry = ProviderRegistry(
            providers=[
                make_provider("big", priority=2, rate_limit=1000),
                make_provider("small", priority=1, rate_limit=10),
            ]
        )
        selector, _, _ = _build(registry, clock)
        assert selector.select_best_endpoint("ethereum").provider_id == "small"

    def test_ties_broken_by_provider_id(self):
        ranked = rank_candidates([_candidate("zeta"), _candidate("alpha")])
        assert [c.provider_id for c in ranked] == ["alpha", "zeta"]

    def test_choose_candidate_without_capacity_picks_least_used(self):
        chosen = choose_candidate(
            [_candidate("a", usage=120, limit=100), _candidate("b", usage=105, limit=100)]
        )
        assert chosen.provider_id == "b"

    def test_choose_candidate_empty(self):
        assert choose_candidate([]) is None

    def test_endpoint_carries_usage_snapshot(self, clock):
        selector, usage, _ = _build(ranking_registry(), clock)
        _use(usage, "A", 50)
        endpoint = selector.select_best_endpoint("ethereum")
        assert endpoint.provider_id == "B"
        assert endpoint.usage.current_usage == 0
        d = endpoint.to_dict()
        assert d["tier"] == "premium"
        assert d["available_capacity"] == 500

    def test_selection_does_not_consume_capacity(self, clock):
        selector, usage, _ = _build(ranking_registry(), clock)
        selector.select_best_endpoint("ethereum")
        assert usage.snapshot() == {"A": 0, "B": 0, "C": 0}


class TestFiltering:
    def test_headroom_boundary(self, clock):
        registry = ProviderRegistry(providers=[make_provider("solo", rate_limit=10)])
        selector, usage, _ = _build(registry, clock)
        _use(usage, "solo", 8)
        assert selector.select_best_endpoint("ethereum").provider_id == "solo"
        _use(usage, "solo", 1)
        with pytest.raises(NoAvailableEndpoint):
            selector.select_best_endpoint("ethereum")

    def test_headroom_recovers_after_window(self, clock):
        registry = ProviderRegistry(providers=[make_provider("solo", rate_limit=10)])
        selector, usage, _ = _build(registry, clock)
        _use(usage, "solo", 10)
        with pytest.raises(NoAvailableEndpoint):
            selector.select_best_endpoint("ethereum")
        clock.advance(1.0)
        assert selector.select_best_endpoint("ethereum").provider_id == "solo"

    def test_premium_request_excludes_fallback(self, clock):
        registry = ProviderRegistry(
            providers=[make_provider("cheap", tier="fallback", rate_limit=1000)]
        )
        selector, _, _ = _build(registry, clock)
        with pytest.raises(NoAvailableEndpoint, match="tier=premium"):
            selector.select_best_endpoint("ethereum", ProviderTier.PREMIUM)

    def test_fallback_request_allows_both_tiers(self, clock):
        selector, usage, _ = _build(ranking_registry(), clock)
        _use(usage, "A", 450)
        _use(usage, "B", 450)
        endpoint = selector.select_best_endpoint("ethereum", "fallback")
        assert endpoint.provider_id == "C"
        assert endpoint.tier is ProviderTier.FALLBACK

    def test_blacklisted_provider_skipped(self, clock):
        selector, _, breaker = _build(ranking_registry(), clock)
        for _ in range(5):
            breaker.report_error("A", ErrorClass.TIMEOUT)
        assert selector.select_best_endpoint("ethereum").provider_id == "B"

    def test_unknown_tier_rejected(self, clock):
        selector, _, _ = _build(ranking_registry(), clock)
        with pytest.raises(ValueError):
            selector.select_best_endpoint("ethereum", "gold")

    def test_invalid_headroom_ratio(self, clock):
        registry = ranking_registry()
        usage = UsageTracker(registry.provider_ids, clock=clock)
        breaker = CircuitBreaker(registry.provider_ids, clock=clock)
        with pytest.raises(ValueError):
            EndpointSelector(registry, usage, breaker, headroom_ratio=1.5)


class TestNetworkLookup:
    def test_substring_match(self, clock):
        registry = ProviderRegistry(
            providers=[make_provider("arb", networks=["arbitrum_1", "ethereum"])]
        )
        selector, _, _ = _build(registry, clock)
        endpoint = selector.select_best_endpoint("arbitrum")
        assert endpoint.url == f"{FAKE_BASE_URL}/arb/arbitrum_1"
        assert endpoint.network == "arbitrum"

    def test_exact_match_wins_over_substring(self, clock):
        registry = ProviderRegistry(
            providers=[make_provider("p", networks=["arbitrum_nova", "arbitrum"])]
        )
        selector, _, _ = _build(registry, clock)
        assert selector.select_best_endpoint("Arbitrum").url == f"{FAKE_BASE_URL}/p/arbitrum"

    def test_unsupported_network_raises(self, clock):
        selector, _, _ = _build(ranking_registry(), clock)
        with pytest.raises(NoAvailableEndpoint, match="solana"):
            selector.select_best_endpoint("solana")

    def test_empty_registry_raises(self, clock):
        selector, _, _ = _build(ProviderRegistry(), clock)
        with pytest.raises(NoAvailableEndpoint):
            selector.select_best_endpoint("ethereum")
