"""
Router events and the observer interface that carries them.

The circuit breaker publishes a RouterEvent when it trips or restores a
provider. Subscribers are either callables or queues; the router knows nothing
about the logging or metrics backend on the other side.
"""
from __future__ import annotations

import logging
import queue
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

BLACKLISTED = "blacklisted"
RESTORED = "restored"

Listener = Callable[["RouterEvent"], None]


@dataclass(frozen=True)
class RouterEvent:
    """Breaker state change for one provider. `at` is clock seconds."""

    kind: str
    provider_id: str
    at: float
    error_class: Optional[str] = None
    cooldown_seconds: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        if self.kind == RESTORED:
            return {"provider_id": self.provider_id, "restored": True}
        return {"provider_id": self.provider_id, "cooldown_seconds": self.cooldown_seconds}


class EventBus:
    """
    Synchronous fan-out of RouterEvents to subscribers.

    publish() never raises: a failing listener is logged and the remaining
    listeners still run. Queue subscribers that are full drop the event.
    """

    def __init__(self) -> None:
        self._listeners: List[Listener] = []
        self._lock = threading.Lock()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a callable; returns a function that unsubscribes it."""
        with self._lock:
            self._listeners.append(listener)

        def _unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _unsubscribe

    def subscribe_queue(self, maxsize: int = 0) -> "queue.Queue[RouterEvent]":
        """Register a queue that receives every published event."""
        q: "queue.Queue[RouterEvent]" = queue.Queue(maxsize=maxsize)

        def _put(event: RouterEvent) -> None:
            try:
                q.put_nowait(event)
            except queue.Full:
                logger.warning(
                    "Event queue full, dropping %s event for %s", event.kind, event.provider_id
                )

        self.subscribe(_put)
        return q

    def publish(self, event: RouterEvent) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(event)
            except Exception:
                logger.exception(
                    "Event listener failed on %s event for %s", event.kind, event.provider_id
                )

    def __len__(self) -> int:
        with self._lock:
            return len(self._listeners)
