from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple, Union

DEFAULT_INTERNET_TARGET = "1.1.1.1"
DEFAULT_DNS_HOSTNAME = "google.com"
DEFAULT_CAPTIVE_PORTAL_URL = "http://captive.apple.com/hotspot-detect.html"
DEFAULT_PING_INTERVAL = 1.0


@dataclass(frozen=True)
class Present:
    latency_ms: float


@dataclass(frozen=True)
class Absent:
    """A failed or timed-out probe. Counts as loss, never as an error."""

    def __repr__(self) -> str:
        return "ABSENT"


ABSENT = Absent()

Sample = Union[Present, Absent]


def sample_from(latency_ms: Optional[float]) -> Sample:
    if latency_ms is None:
        return ABSENT
    return Present(float(latency_ms))


class PortalState(Enum):
    UNKNOWN = "unknown"
    CONNECTED = "connected"
    CAPTIVE_PORTAL = "captive_portal"
    NO_INTERNET = "no_internet"


@dataclass(frozen=True)
class CaptivePortalStatus:
    state: PortalState
    login_url: Optional[str] = None
    reason: Optional[str] = None

    @classmethod
    def unknown(cls) -> "CaptivePortalStatus":
        return cls(PortalState.UNKNOWN)

    @classmethod
    def connected(cls) -> "CaptivePortalStatus":
        return cls(PortalState.CONNECTED)

    @classmethod
    def captive_portal(cls, login_url: str) -> "CaptivePortalStatus":
        return cls(PortalState.CAPTIVE_PORTAL, login_url=login_url)

    @classmethod
    def no_internet(cls, reason: str) -> "CaptivePortalStatus":
        return cls(PortalState.NO_INTERNET, reason=reason)

    def describe(self) -> str:
        if self.state is PortalState.CAPTIVE_PORTAL:
            return f"captive portal ({self.login_url})"
        if self.state is PortalState.NO_INTERNET:
            return f"no internet ({self.reason})"
        return self.state.value


@dataclass
class Settings:
    interval_seconds: float = DEFAULT_PING_INTERVAL
    internet_target: str = DEFAULT_INTERNET_TARGET
    dns_hostname: str = DEFAULT_DNS_HOSTNAME
    captive_portal_url: str = DEFAULT_CAPTIVE_PORTAL_URL
    show_icon_mode: bool = False
    ping_timeout: float = 2.0
    captive_portal_timeout: float = 5.0
    captive_portal_interval_seconds: float = 10.0
    history_capacity: int = 60
    log_path: str = "logs/pathmon.log"
    auto_start_networks: Tuple[str, ...] = ()
    network_poll_interval_seconds: float = 5.0

    def effective_internet_target(self) -> str:
        return self.internet_target.strip() or DEFAULT_INTERNET_TARGET

    def effective_dns_hostname(self) -> str:
        return self.dns_hostname.strip() or DEFAULT_DNS_HOSTNAME


@dataclass(frozen=True)
class MetricSnapshot:
    name: str
    target: Optional[str]
    values: Tuple[Sample, ...]
    latest: Optional[Sample]
    average: Optional[float]
    jitter: Optional[float]
    loss_percentage: float
    recent_weighted_average: Optional[float]

    @property
    def enabled(self) -> bool:
        return self.target is not None

    @property
    def latest_ms(self) -> Optional[float]:
        if isinstance(self.latest, Present):
            return self.latest.latency_ms
        return None


@dataclass(frozen=True)
class DiagnosticsSnapshot:
    running: bool
    network_identity: Optional[str]
    gateway_address: Optional[str]
    dns_server_address: Optional[str]
    captive_portal_status: CaptivePortalStatus
    router: MetricSnapshot
    internet: MetricSnapshot
    dns: MetricSnapshot
    ticks: int
