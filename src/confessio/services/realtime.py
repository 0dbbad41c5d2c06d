"""In-process realtime channel for confession INSERT events."""

from __future__ import annotations

import logging
from collections.abc import Callable
from threading import Lock

from confessio.schemas.confession import Confession

logger = logging.getLogger(__name__)

InsertCallback = Callable[[Confession], None]
Unsubscribe = Callable[[], None]


class RealtimeChannel:
    """Fan-out of newly inserted confessions to subscribed callbacks."""

    def __init__(self, name: str = "confessions-channel") -> None:
        self.name = name
        self._subscribers: list[InsertCallback] = []
        self._lock = Lock()

    def subscribe(self, callback: InsertCallback) -> Unsubscribe:
        """Register ``callback`` for INSERT events and return its remover."""
        with self._lock:
            self._subscribers.append(callback)

        def _unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return _unsubscribe

    def publish(self, confession: Confession) -> None:
        """Deliver an INSERT event to every current subscriber."""
        with self._lock:
            subscribers = list(self._subscribers)
        for callback in subscribers:
            try:
                callback(confession)
            except Exception:
                logger.exception(
                    "Realtime subscriber on %s failed for confession %s",
                    self.name,
                    confession.id,
                )

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)


_CHANNEL = RealtimeChannel()


def get_realtime_channel() -> RealtimeChannel:
    """Return the shared realtime channel."""
    return _CHANNEL
