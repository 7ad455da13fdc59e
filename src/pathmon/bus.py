from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import Callable, Dict, List

Callback = Callable[[], None]


class Event(Enum):
    INTERVAL_CHANGED = "interval_changed"
    TARGETS_CHANGED = "targets_changed"
    DISPLAY_MODE_CHANGED = "display_mode_changed"
    UPDATED = "updated"


class EventBus:
    """
    Minimal publish/subscribe channel. Events carry no payload; subscribers
    pull whatever state they need from its owner.

    Callbacks run synchronously on the publishing thread, in subscription
    order. A failing callback is logged and does not stop delivery.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscribers: Dict[Event, List[Callback]] = {}

    def subscribe(self, event: Event, callback: Callback) -> Callable[[], None]:
        with self._lock:
            self._subscribers.setdefault(event, []).append(callback)

        def unsubscribe() -> None:
            self.unsubscribe(event, callback)

        return unsubscribe

    def unsubscribe(self, event: Event, callback: Callback) -> None:
        with self._lock:
            callbacks = self._subscribers.get(event, [])
            if callback in callbacks:
                callbacks.remove(callback)

    def publish(self, event: Event) -> None:
        with self._lock:
            callbacks = list(self._subscribers.get(event, []))
        for callback in callbacks:
            try:
                callback()
            except Exception:
                logging.exception("Subscriber for %s raised", event.value)

    def subscriber_count(self, event: Event) -> int:
        with self._lock:
            return len(self._subscribers.get(event, []))
