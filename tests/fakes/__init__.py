"""Manual clock and provider fixtures for router tests (no live network)."""

from .clock import ManualClock
from .providers import (
    FAKE_BASE_URL,
    make_market_data,
    make_provider,
    make_router,
    ranking_registry,
)

__all__ = [
    "FAKE_BASE_URL",
    "ManualClock",
    "make_market_data",
    "make_provider",
    "make_router",
    "ranking_registry",
]
