from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional


class RepeatingTimer:
    """
    Calls ``action`` every ``interval`` seconds on a daemon thread until
    cancelled. The first call happens one interval after ``start()``.

    The wait is corrected for the time the action took, so the cadence is
    kept even when an action is slow; an action longer than the interval
    makes the next call immediate rather than queueing extra calls.
    """

    def __init__(self, interval: float, action: Callable[[], None], name: str = "timer") -> None:
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        self.interval = interval
        self.action = action
        self.name = name
        self._stop_event = threading.Event()
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)

    def start(self) -> "RepeatingTimer":
        self._thread.start()
        return self

    def cancel(self) -> None:
        self._stop_event.set()

    @property
    def cancelled(self) -> bool:
        return self._stop_event.is_set()

    def is_alive(self) -> bool:
        return self._thread.is_alive()

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread is not threading.current_thread() and self._thread.is_alive():
            self._thread.join(timeout)

    def _run(self) -> None:
        next_run = time.monotonic() + self.interval
        while not self._stop_event.wait(max(0.0, next_run - time.monotonic())):
            try:
                self.action()
            except Exception:
                logging.exception("Timer %s action raised", self.name)
            next_run = max(next_run + self.interval, time.monotonic())
