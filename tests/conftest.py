from __future__ import annotations

from concurrent.futures import Executor, Future
from typing import Callable, Dict, List, Optional

import pytest

from pathmon.bus import Event, EventBus
from pathmon.config_loader import SettingsStore
from pathmon.engine import DiagnosticsEngine
from pathmon.models import CaptivePortalStatus, Settings
from pathmon.probes import ProbeSet


class InlineExecutor(Executor):
    """Runs submitted work immediately on the calling thread."""

    def submit(self, fn, *args, **kwargs) -> Future:
        future: Future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except BaseException as exc:
            future.set_exception(exc)
        return future


class DeferredExecutor(Executor):
    """Queues work until the test runs it, to model slow probes."""

    def __init__(self) -> None:
        self.queue: List[tuple] = []

    def submit(self, fn, *args, **kwargs) -> Future:
        future: Future = Future()
        self.queue.append((future, fn, args, kwargs))
        return future

    def run_all(self) -> None:
        while self.queue:
            self.run_at(0)

    def run_at(self, index: int) -> None:
        future, fn, args, kwargs = self.queue.pop(index)
        future.set_result(fn(*args, **kwargs))


class FakeTimer:
    def __init__(self, interval: float, action: Callable[[], None], name: str) -> None:
        self.interval = interval
        self.action = action
        self.name = name
        self.started = False
        self.cancelled = False

    def start(self) -> "FakeTimer":
        self.started = True
        return self

    def cancel(self) -> None:
        self.cancelled = True

    def fire(self) -> None:
        self.action()


class FakeNetwork:
    def __init__(self) -> None:
        self.identity: Optional[str] = "HomeWiFi"
        self.gateway: Optional[str] = "192.168.1.1"
        self.dns_server: Optional[str] = "192.168.1.1"
        self.latencies: Dict[str, Optional[float]] = {}
        self.default_latency: Optional[float] = 10.0
        self.dns_latency: Optional[float] = 5.0
        self.portal_status = CaptivePortalStatus.connected()
        self.pinged: List[str] = []
        self.resolved: List[str] = []
        self.gateway_lookups = 0
        self.dns_server_lookups = 0
        self.portal_checks = 0
        self.identity_queries = 0
        self.opened: List[str] = []

    def ping(self, host: str) -> Optional[float]:
        self.pinged.append(host)
        return self.latencies.get(host, self.default_latency)

    def dns_lookup(self, hostname: str) -> Optional[float]:
        self.resolved.append(hostname)
        return self.dns_latency

    def captive_portal(self) -> CaptivePortalStatus:
        self.portal_checks += 1
        return self.portal_status

    def discover_gateway(self) -> Optional[str]:
        self.gateway_lookups += 1
        return self.gateway

    def discover_dns_server(self) -> Optional[str]:
        self.dns_server_lookups += 1
        return self.dns_server

    def network_identity(self) -> Optional[str]:
        self.identity_queries += 1
        return self.identity

    def open_url(self, url: str) -> bool:
        self.opened.append(url)
        return True

    def probe_set(self) -> ProbeSet:
        return ProbeSet(
            ping=self.ping,
            dns_lookup=self.dns_lookup,
            captive_portal=self.captive_portal,
            discover_gateway=self.discover_gateway,
            discover_dns_server=self.discover_dns_server,
            network_identity=self.network_identity,
            open_url=self.open_url,
        )


class Harness:
    def __init__(self, settings: Optional[Settings] = None, executor: Optional[Executor] = None) -> None:
        self.bus = EventBus()
        self.store = SettingsStore(settings or Settings(internet_target="1.1.1.1"), self.bus)
        self.network = FakeNetwork()
        self.timers: List[FakeTimer] = []
        self.updates = 0
        self.bus.subscribe(Event.UPDATED, self._on_update)
        self.engine = DiagnosticsEngine(
            self.store,
            self.bus,
            probes=self.network.probe_set(),
            executor=executor or InlineExecutor(),
            timer_factory=self._make_timer,
        )

    def _make_timer(self, interval: float, action: Callable[[], None], name: str) -> FakeTimer:
        timer = FakeTimer(interval, action, name)
        self.timers.append(timer)
        return timer

    def _on_update(self) -> None:
        self.updates += 1

    def live_timers(self) -> List[FakeTimer]:
        return [t for t in self.timers if t.started and not t.cancelled]

    def timer(self, name: str) -> FakeTimer:
        return [t for t in self.live_timers() if t.name == name][-1]


@pytest.fixture
def harness():
    h = Harness()
    yield h
    h.engine.close()
