"""
Resilience primitives: per-provider circuit breaker (blacklist) and error
classification.

The breaker only decides visibility. It never retries and never raises on the
reporting path; callers feed outcomes in and selection reads the result.
"""
from __future__ import annotations

import logging
import re
import threading
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Dict, Iterable, List, Optional, Union

from ..core.errors import UnknownProviderError
from ..timeutils import Clock, MonotonicClock
from .base import ErrorClass
from .events import BLACKLISTED, RESTORED, EventBus, RouterEvent

logger = logging.getLogger(__name__)

DEFAULT_ERROR_THRESHOLD = 5
DEFAULT_COOLDOWN_SECONDS = 60.0

_HTTP_5XX = re.compile(r"\b(?:http[_ ]?)?5\d\d\b")
_HTTP_4XX = re.compile(r"\b(?:http[_ ]?)?4\d\d\b")
_ERROR_CLASS_VALUES = frozenset(c.value for c in ErrorClass)


def classify_error(error: Union[BaseException, str, ErrorClass, None]) -> ErrorClass:
    """
    Map an exception or error message to an ErrorClass. A string that already
    names a class (e.g. "http_5xx") maps to it directly.

    HTTP status is read from `status_code`/`status` on the exception or its
    `response` when present, else parsed from the message text.
    """
    if isinstance(error, ErrorClass):
        return error
    if isinstance(error, BaseException):
        if isinstance(error, TimeoutError):
            return ErrorClass.TIMEOUT
        status = _status_of(error)
        if status is not None:
            return _class_for_status(status)
        if isinstance(error, ConnectionError):
            return ErrorClass.CONNECTION
        text = f"{type(error).__name__}: {error}"
    else:
        text = str(error or "")
        key = text.strip().lower()
        if key in _ERROR_CLASS_VALUES:
            return ErrorClass(key)
    return _classify_text(text)


def _status_of(error: BaseException) -> Optional[int]:
    for holder in (error, getattr(error, "response", None)):
        if holder is None:
            continue
        for attr in ("status_code", "status"):
            value = getattr(holder, attr, None)
            if isinstance(value, int):
                return value
    return None


def _class_for_status(status: int) -> ErrorClass:
    if status == 429:
        return ErrorClass.RATE_LIMITED
    if 400 <= status < 500:
        return ErrorClass.HTTP_4XX
    if 500 <= status < 600:
        return ErrorClass.HTTP_5XX
    return ErrorClass.OTHER


def _classify_text(message: str) -> ErrorClass:
    text = message.lower()
    if "timeout" in text or "timed out" in text:
        return ErrorClass.TIMEOUT
    if "429" in text or "rate limit" in text or "too many requests" in text or "compute units" in text:
        return ErrorClass.RATE_LIMITED
    if _HTTP_5XX.search(text):
        return ErrorClass.HTTP_5XX
    if _HTTP_4XX.search(text):
        return ErrorClass.HTTP_4XX
    if "connection" in text or "refused" in text or "unreachable" in text:
        return ErrorClass.CONNECTION
    if "rpc" in text or "revert" in text:
        return ErrorClass.RPC_ERROR
    return ErrorClass.OTHER


def normalize_error_class(error_class: Union[str, ErrorClass]) -> str:
    """Counter key for an error class: enum value, or the lower-cased free-form name."""
    if isinstance(error_class, ErrorClass):
        return error_class.value
    key = str(error_class).strip().lower()
    return key or ErrorClass.OTHER.value


@dataclass
class _BreakerState:
    # error class -> timestamps of recent failures, oldest first
    errors: Dict[str, Deque[float]] = field(default_factory=dict)
    cooldown_until: Optional[float] = None
    trips: int = 0
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def expire(self, provider_id: str, now: float) -> Optional[RouterEvent]:
        """Restore the provider if its cooldown is over. Caller holds the lock."""
        if self.cooldown_until is None or now < self.cooldown_until:
            return None
        self.errors.clear()
        self.cooldown_until = None
        return RouterEvent(kind=RESTORED, provider_id=provider_id, at=now)


class CircuitBreaker:
    """
    Per-provider blacklist driven by per-error-class failure counters.

    States per provider:
    - ACTIVE: selectable; failures accumulate per error class.
    - BLACKLISTED: `error_threshold` failures of one class within a sliding
      `error_window_seconds` trip the provider out of selection until
      `cooldown_seconds` elapse.

    Transitions:
    - ACTIVE -> BLACKLISTED: a class counter reaches the threshold.
    - BLACKLISTED -> ACTIVE: cooldown expiry, observed lazily by
      is_blacklisted() or by the scheduler's expire_cooldowns(). Blacklist mark
      and every error record of the provider are cleared together.

    Counters are never shared across classes, so a burst of one kind of
    failure is not diluted by unrelated transient errors.
    """

    def __init__(
        self,
        provider_ids: Iterable[str],
        error_threshold: int = DEFAULT_ERROR_THRESHOLD,
        cooldown_seconds: float = DEFAULT_COOLDOWN_SECONDS,
        error_window_seconds: Optional[float] = None,
        clock: Optional[Clock] = None,
        events: Optional[EventBus] = None,
    ) -> None:
        if error_threshold < 1:
            raise ValueError(f"error_threshold must be >= 1, got {error_threshold}")
        if cooldown_seconds <= 0:
            raise ValueError(f"cooldown_seconds must be positive, got {cooldown_seconds}")
        self.error_threshold = int(error_threshold)
        self.cooldown_seconds = float(cooldown_seconds)
        self.error_window_seconds = float(
            cooldown_seconds if error_window_seconds is None else error_window_seconds
        )
        self._clock = clock or MonotonicClock()
        self._events = events if events is not None else EventBus()
        self._states: Dict[str, _BreakerState] = {pid: _BreakerState() for pid in provider_ids}

    @property
    def events(self) -> EventBus:
        return self._events

    def _state(self, provider_id: str) -> _BreakerState:
        try:
            return self._states[provider_id]
        except KeyError:
            raise UnknownProviderError(provider_id, list(self._states)) from None

    def _now(self, now: Optional[float]) -> float:
        return self._clock.now() if now is None else float(now)

    def report_error(
        self,
        provider_id: str,
        error_class: Union[str, ErrorClass],
        now: Optional[float] = None,
    ) -> bool:
        """
        Count one failure of `error_class` for the provider.

        Returns True when this report tripped the breaker. Failures reported
        while the provider is blacklisted are ignored and do not extend the
        cooldown.
        """
        st = self._state(provider_id)
        t = self._now(now)
        key = normalize_error_class(error_class)
        emitted: List[RouterEvent] = []
        tripped = False
        count = 0
        with st.lock:
            restored = st.expire(provider_id, t)
            if restored is not None:
                emitted.append(restored)
            if st.cooldown_until is not None:
                logger.debug(
                    "Ignoring %s error for blacklisted provider %s", key, provider_id
                )
            else:
                recent = st.errors.setdefault(key, deque())
                while recent and t - recent[0] >= self.error_window_seconds:
                    recent.popleft()
                recent.append(t)
                count = len(recent)
                if count >= self.error_threshold:
                    st.cooldown_until = t + self.cooldown_seconds
                    st.trips += 1
                    tripped = True
                    emitted.append(
                        RouterEvent(
                            kind=BLACKLISTED,
                            provider_id=provider_id,
                            at=t,
                            error_class=key,
                            cooldown_seconds=self.cooldown_seconds,
                        )
                    )
        if tripped:
            logger.warning(
                "Provider %s blacklisted for %.0fs after %d %s errors",
                provider_id, self.cooldown_seconds, count, key,
            )
        self._publish(emitted)
        return tripped

    def is_blacklisted(self, provider_id: str, now: Optional[float] = None) -> bool:
        """True while now < cooldown_until; restores the provider on the first read after expiry."""
        st = self._state(provider_id)
        t = self._now(now)
        with st.lock:
            restored = st.expire(provider_id, t)
            blacklisted = st.cooldown_until is not None
        if restored is not None:
            self._publish([restored])
        return blacklisted

    def expire_cooldowns(self, now: Optional[float] = None) -> List[str]:
        """Restore every provider whose cooldown elapsed. Returns the restored ids."""
        t = self._now(now)
        emitted: List[RouterEvent] = []
        for pid, st in self._states.items():
            with st.lock:
                restored = st.expire(pid, t)
            if restored is not None:
                emitted.append(restored)
        self._publish(emitted)
        return [e.provider_id for e in emitted]

    def peek_blacklisted(self, provider_id: str, now: Optional[float] = None) -> bool:
        """Blacklist state without restoring expired cooldowns."""
        st = self._state(provider_id)
        t = self._now(now)
        with st.lock:
            return st.cooldown_until is not None and t < st.cooldown_until

    def cooldown_remaining(self, provider_id: str, now: Optional[float] = None) -> float:
        st = self._state(provider_id)
        t = self._now(now)
        with st.lock:
            if st.cooldown_until is None:
                return 0.0
            return max(0.0, st.cooldown_until - t)

    def error_counts(self, provider_id: str) -> Dict[str, int]:
        st = self._state(provider_id)
        with st.lock:
            return {k: len(recent) for k, recent in st.errors.items() if recent}

    def trip_count(self, provider_id: str) -> int:
        st = self._state(provider_id)
        with st.lock:
            return st.trips

    def _publish(self, events: List[RouterEvent]) -> None:
        for event in events:
            if event.kind == RESTORED:
                logger.info("Provider %s restored after cooldown", event.provider_id)
            self._events.publish(event)
