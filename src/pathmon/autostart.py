"""
Starts diagnostics when the machine joins one of the configured networks and
stops them when the network connection goes away.
"""
from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from pathmon.config_loader import SettingsStore
from pathmon.engine import DiagnosticsEngine, TimerFactory
from pathmon.scheduler import RepeatingTimer


class AutoStarter:
    def __init__(
        self,
        engine: DiagnosticsEngine,
        store: SettingsStore,
        network_identity: Callable[[], Optional[str]],
        timer_factory: TimerFactory = RepeatingTimer,
    ) -> None:
        self._engine = engine
        self._store = store
        self._network_identity = network_identity
        self._timer_factory = timer_factory
        self._lock = threading.Lock()
        self._timer: Optional[RepeatingTimer] = None
        self._polled = False
        self._last_identity: Optional[str] = None

    def start(self) -> "AutoStarter":
        """Check the current network right away, then keep polling it."""
        self.poll()
        with self._lock:
            if self._timer is None:
                interval = self._store.settings.network_poll_interval_seconds
                self._timer = self._timer_factory(interval, self.poll, "pathmon-autostart")
                self._timer.start()
        return self

    def cancel(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = None

    def poll(self) -> None:
        """React to a change of network. Repeated polls of the same network do nothing."""
        try:
            identity = self._network_identity()
        except Exception:
            logging.exception("network identity query raised")
            identity = None

        with self._lock:
            if self._polled and identity == self._last_identity:
                return
            self._polled = True
            self._last_identity = identity

        if identity is None:
            if self._engine.running:
                logging.info("Network connection lost, stopping diagnostics")
                self._engine.stop()
            return
        if identity in self._store.settings.auto_start_networks and not self._engine.running:
            logging.info("Joined %s, starting diagnostics", identity)
            self._engine.start()
