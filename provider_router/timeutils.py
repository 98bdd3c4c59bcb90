"""
Single source for "now". Router state runs on a monotonic Clock so window and
cooldown arithmetic never jumps with wall-clock adjustments; snapshots carry a
UTC ISO timestamp. Supports deterministic mode for tests via
PROVIDER_ROUTER_DETERMINISTIC_TIME (ISO format, e.g. 2026-01-01T00:00:00Z).
"""

from __future__ import annotations

import os
import time
from datetime import datetime, timezone
from typing import Protocol, runtime_checkable


@runtime_checkable
class Clock(Protocol):
    """Source of monotonic seconds used for windows and cooldowns."""

    def now(self) -> float: ...


class MonotonicClock:
    """Production clock backed by time.monotonic()."""

    def now(self) -> float:
        return time.monotonic()


def now_utc_iso() -> str:
    """
    Return current UTC time in ISO format (seconds).
    If env PROVIDER_ROUTER_DETERMINISTIC_TIME is set, return that value instead.
    """
    fixed = os.environ.get("PROVIDER_ROUTER_DETERMINISTIC_TIME", "").strip()
    if fixed:
        return fixed if fixed.endswith("Z") or "+" in fixed else f"{fixed}Z"
    return datetime.now(timezone.utc).isoformat(timespec="seconds")
