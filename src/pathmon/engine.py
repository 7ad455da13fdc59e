"""
Diagnostics engine: runs the router, internet and DNS probes on a fixed
cadence, polls captive-portal state on a slower one, and keeps a bounded
history per probe family.

Each probe result is folded into its history as soon as that probe finishes,
and one update is published once every probe launched by a tick has landed.
A family never has more than one probe in flight, so its samples arrive in
launch order. Each family also carries a generation number that changes
whenever its target changes or its history is cleared, and results from an
older generation or from a previous start/stop cycle are dropped.
"""
from __future__ import annotations

import logging
import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from functools import partial
from typing import Callable, Dict, Iterable, List, Optional, Set, Tuple

from pathmon.bus import Event, EventBus
from pathmon.config_loader import SettingsStore
from pathmon.history import MetricHistory
from pathmon.models import (
    ABSENT,
    CaptivePortalStatus,
    DiagnosticsSnapshot,
    MetricSnapshot,
    PortalState,
    Sample,
    sample_from,
)
from pathmon.probes import ProbeSet
from pathmon.scheduler import RepeatingTimer

ROUTER = "router"
INTERNET = "internet"
DNS = "dns"
FAMILIES = (ROUTER, INTERNET, DNS)

TimerFactory = Callable[[float, Callable[[], None], str], RepeatingTimer]


class _TickBatch:
    """The probes launched by one tick."""

    def __init__(self, run_id: int, generations: Dict[str, int]) -> None:
        self.run_id = run_id
        self.generations = generations
        self.pending: Set[str] = set(generations)

    @property
    def complete(self) -> bool:
        return not self.pending


class DiagnosticsEngine:
    def __init__(
        self,
        store: SettingsStore,
        bus: EventBus,
        probes: Optional[ProbeSet] = None,
        executor: Optional[Executor] = None,
        timer_factory: TimerFactory = RepeatingTimer,
    ) -> None:
        settings = store.settings
        self._store = store
        self._bus = bus
        self._probes = probes or ProbeSet.system(settings)
        self._own_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(max_workers=8, thread_name_prefix="pathmon-probe")
        self._timer_factory = timer_factory

        self._lock = threading.RLock()
        self._running = False
        self._run_id = 0
        self._network_identity: Optional[str] = None
        self._gateway_address: Optional[str] = None
        self._dns_server_address: Optional[str] = None
        self._captive_portal_status = CaptivePortalStatus.unknown()
        self._internet_target = settings.effective_internet_target()
        self._dns_hostname = settings.effective_dns_hostname()
        self._interval = settings.interval_seconds
        self._portal_interval = settings.captive_portal_interval_seconds

        self._histories: Dict[str, MetricHistory] = {
            family: MetricHistory(settings.history_capacity) for family in FAMILIES
        }
        self._generations: Dict[str, int] = {family: 0 for family in FAMILIES}
        self._in_flight: Dict[str, _TickBatch] = {}
        self._sampling = False
        self._ticks = 0

        self._metrics_timer: Optional[RepeatingTimer] = None
        self._portal_timer: Optional[RepeatingTimer] = None

        self._unsubscribers: List[Callable[[], None]] = [
            bus.subscribe(Event.INTERVAL_CHANGED, self._on_interval_changed),
            bus.subscribe(Event.TARGETS_CHANGED, self._on_targets_changed),
        ]

    # Lifecycle

    def start(self) -> None:
        with self._lock:
            if self._running:
                return
            self._running = True
            self._run_id += 1
            run_id = self._run_id
            settings = self._store.settings

        identity = self._call(self._probes.network_identity, "network identity query")
        gateway, dns_server = self._discover()

        with self._lock:
            if run_id != self._run_id:
                return
            self._network_identity = identity
            self._internet_target = settings.effective_internet_target()
            self._dns_hostname = settings.effective_dns_hostname()
            self._interval = settings.interval_seconds
            self._portal_interval = settings.captive_portal_interval_seconds
            self._set_discovery(gateway, dns_server)
            self._reset_families(FAMILIES)
            self._ticks = 0
            logging.info(
                "Diagnostics started: network=%s gateway=%s dns_server=%s internet=%s dns=%s interval=%.2fs",
                identity or "none",
                gateway or "none",
                dns_server or "none",
                self._internet_target,
                self._dns_hostname,
                self._interval,
            )

        self._launch(run_id, identity)

        with self._lock:
            if run_id != self._run_id:
                return
            self._metrics_timer = self._timer_factory(self._interval, self.tick, "pathmon-tick")
            self._metrics_timer.start()
            self._portal_timer = self._timer_factory(
                self._portal_interval, self.check_captive_portal, "pathmon-portal"
            )
            self._portal_timer.start()

        self.check_captive_portal()

    def stop(self) -> None:
        with self._lock:
            if not self._running:
                return
            self._cancel_timers()
            self._running = False
            self._run_id += 1
            self._reset_families(FAMILIES)
            self._in_flight.clear()
            self._captive_portal_status = CaptivePortalStatus.unknown()
            logging.info("Diagnostics stopped")
            self._bus.publish(Event.UPDATED)

    def close(self) -> None:
        self.stop()
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []
        if self._own_executor:
            self._executor.shutdown(wait=False)

    def __enter__(self) -> "DiagnosticsEngine":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # Scheduled work

    def tick(self) -> None:
        """Timer callback: hand one probe cycle to the pool and return."""
        with self._lock:
            if not self._running:
                return
            if self._sampling:
                logging.debug("Skipping tick, network identity query still running")
                return
            self._sampling = True
            run_id = self._run_id
        self._executor.submit(self._sample_and_launch, run_id)

    def check_captive_portal(self) -> None:
        with self._lock:
            if not self._running:
                return
            run_id = self._run_id
        self._executor.submit(self._check_captive_portal, run_id)

    # Background work

    def _sample_and_launch(self, run_id: int) -> None:
        try:
            identity = self._call(self._probes.network_identity, "network identity query")
            self._launch(run_id, identity)
        finally:
            with self._lock:
                self._sampling = False

    def _launch(self, run_id: int, identity: Optional[str]) -> None:
        with self._lock:
            if run_id != self._run_id or not self._running:
                return
            if identity != self._network_identity:
                logging.info("Network changed from %s to %s", self._network_identity or "none", identity or "none")
                self._network_identity = identity
                self._executor.submit(self._rediscover, run_id)

            launches: Dict[str, Tuple[Callable[[str], Optional[float]], str]] = {}
            if self._gateway_address is not None:
                launches[ROUTER] = (self._probes.ping, self._gateway_address)
            launches[INTERNET] = (self._probes.ping, self._internet_target)
            launches[DNS] = (self._probes.dns_lookup, self._dns_hostname)
            for family in list(launches):
                if family in self._in_flight:
                    logging.debug("Skipping %s probe, previous one still running", family)
                    del launches[family]
            if not launches:
                return

            batch = _TickBatch(run_id, {family: self._generations[family] for family in launches})
            for family in launches:
                self._in_flight[family] = batch

        for family, (probe, target) in launches.items():
            future = self._executor.submit(self._probe, probe, target, family)
            future.add_done_callback(partial(self._on_probe_done, batch, family))

    def _probe(self, probe: Callable[[str], Optional[float]], target: str, family: str) -> Sample:
        try:
            latency = probe(target)
        except Exception:
            logging.exception("%s probe of %s raised", family, target)
            return ABSENT
        if latency is None:
            logging.debug("%s probe of %s failed", family, target)
        return sample_from(latency)

    def _on_probe_done(self, batch: _TickBatch, family: str, future: Future) -> None:
        sample = ABSENT if future.cancelled() else future.result()
        with self._lock:
            if self._in_flight.get(family) is batch:
                del self._in_flight[family]
            batch.pending.discard(family)
            if batch.run_id != self._run_id or not self._running:
                return
            if batch.generations[family] == self._generations[family]:
                self._histories[family].add(sample)
            if batch.complete:
                self._ticks += 1
                self._bus.publish(Event.UPDATED)

    def _rediscover(self, run_id: int) -> None:
        gateway, dns_server = self._discover()
        with self._lock:
            if run_id != self._run_id:
                return
            self._set_discovery(gateway, dns_server)
            self._bus.publish(Event.UPDATED)

    def _check_captive_portal(self, run_id: int) -> None:
        try:
            status = self._probes.captive_portal()
        except Exception as exc:
            logging.exception("Captive portal probe raised")
            status = CaptivePortalStatus.no_internet(str(exc) or exc.__class__.__name__)
        with self._lock:
            if run_id != self._run_id:
                return
            if status != self._captive_portal_status:
                logging.info("Connectivity: %s", status.describe())
            self._captive_portal_status = status
            self._bus.publish(Event.UPDATED)

    def _discover(self) -> Tuple[Optional[str], Optional[str]]:
        gateway = self._call(self._probes.discover_gateway, "gateway discovery")
        dns_server = self._call(self._probes.discover_dns_server, "DNS server discovery")
        if gateway is None:
            logging.warning("No default gateway found, router probe disabled")
        if dns_server is None:
            logging.warning("No DNS server found")
        return gateway, dns_server

    # State changes, lock held

    def _set_discovery(self, gateway: Optional[str], dns_server: Optional[str]) -> None:
        if gateway != self._gateway_address:
            logging.info("Gateway is now %s", gateway or "unknown")
        self._gateway_address = gateway
        self._dns_server_address = dns_server
        self._reset_families((ROUTER,))

    def _reset_families(self, families: Iterable[str]) -> None:
        for family in families:
            self._generations[family] += 1
            self._histories[family].clear()

    def _cancel_timers(self) -> None:
        for timer in (self._metrics_timer, self._portal_timer):
            if timer is not None:
                timer.cancel()
        self._metrics_timer = None
        self._portal_timer = None

    # Configuration events

    def _on_interval_changed(self) -> None:
        settings = self._store.settings
        with self._lock:
            self._interval = settings.interval_seconds
            if not self._running:
                return
            if self._metrics_timer is not None:
                self._metrics_timer.cancel()
            self._metrics_timer = self._timer_factory(self._interval, self.tick, "pathmon-tick")
            self._metrics_timer.start()
            logging.info("Ping interval now %.2fs", self._interval)

    def _on_targets_changed(self) -> None:
        settings = self._store.settings
        with self._lock:
            self._internet_target = settings.effective_internet_target()
            self._dns_hostname = settings.effective_dns_hostname()
            self._reset_families((INTERNET, DNS))
            logging.info("Probing internet=%s dns=%s", self._internet_target, self._dns_hostname)
            self._bus.publish(Event.UPDATED)

    # Read-only accessors

    @property
    def running(self) -> bool:
        with self._lock:
            return self._running

    @property
    def network_identity(self) -> Optional[str]:
        with self._lock:
            return self._network_identity

    @property
    def gateway_address(self) -> Optional[str]:
        with self._lock:
            return self._gateway_address

    @property
    def dns_server_address(self) -> Optional[str]:
        with self._lock:
            return self._dns_server_address

    @property
    def captive_portal_status(self) -> CaptivePortalStatus:
        with self._lock:
            return self._captive_portal_status

    @property
    def interval(self) -> float:
        with self._lock:
            return self._interval

    @property
    def internet_target(self) -> str:
        with self._lock:
            return self._internet_target

    @property
    def dns_hostname(self) -> str:
        with self._lock:
            return self._dns_hostname

    # History accessors hand out copies; only the apply step writes the live rings.

    @property
    def router_history(self) -> MetricHistory:
        return self._history_copy(ROUTER)

    @property
    def internet_history(self) -> MetricHistory:
        return self._history_copy(INTERNET)

    @property
    def dns_history(self) -> MetricHistory:
        return self._history_copy(DNS)

    def _history_copy(self, family: str) -> MetricHistory:
        with self._lock:
            return self._histories[family].copy()

    def snapshot(self) -> DiagnosticsSnapshot:
        with self._lock:
            return DiagnosticsSnapshot(
                running=self._running,
                network_identity=self._network_identity,
                gateway_address=self._gateway_address,
                dns_server_address=self._dns_server_address,
                captive_portal_status=self._captive_portal_status,
                router=self._metric_snapshot(ROUTER, self._gateway_address),
                internet=self._metric_snapshot(INTERNET, self._internet_target),
                dns=self._metric_snapshot(DNS, self._dns_hostname),
                ticks=self._ticks,
            )

    def _metric_snapshot(self, family: str, target: Optional[str]) -> MetricSnapshot:
        history = self._histories[family]
        return MetricSnapshot(
            name=family,
            target=target,
            values=tuple(history.values()),
            latest=history.latest(),
            average=history.average(),
            jitter=history.jitter(),
            loss_percentage=history.loss_percentage(),
            recent_weighted_average=history.recent_weighted_average(),
        )

    def open_captive_portal_login(self) -> bool:
        status = self.captive_portal_status
        if status.state is not PortalState.CAPTIVE_PORTAL or not status.login_url:
            return False
        return bool(self._probes.open_url(status.login_url))

    @staticmethod
    def _call(func: Callable[[], Optional[str]], what: str) -> Optional[str]:
        try:
            return func()
        except Exception:
            logging.exception("%s raised", what)
            return None
