from __future__ import annotations

import webbrowser
from dataclasses import dataclass, field
from typing import Callable, Optional

from pathmon import discovery
from pathmon.captive_portal import CaptivePortalProbe
from pathmon.dns_probe import DnsProbe
from pathmon.models import CaptivePortalStatus, Settings
from pathmon.pinger import Pinger


@dataclass
class ProbeSet:
    """
    The functions the engine calls to observe the network. Each one may block
    up to its own timeout and reports failure as None (or ``no_internet``)
    instead of raising.
    """

    ping: Callable[[str], Optional[float]]
    dns_lookup: Callable[[str], Optional[float]]
    captive_portal: Callable[[], CaptivePortalStatus]
    discover_gateway: Callable[[], Optional[str]]
    discover_dns_server: Callable[[], Optional[str]]
    network_identity: Callable[[], Optional[str]]
    open_url: Callable[[str], bool] = field(default=webbrowser.open)

    @classmethod
    def system(cls, settings: Settings) -> "ProbeSet":
        pinger = Pinger(settings.ping_timeout)
        dns = DnsProbe()
        portal = CaptivePortalProbe(settings.captive_portal_url, timeout=settings.captive_portal_timeout)
        return cls(
            ping=pinger.latency,
            dns_lookup=dns.lookup,
            captive_portal=portal.check,
            discover_gateway=discovery.detect_gateway,
            discover_dns_server=discovery.detect_dns_server,
            network_identity=discovery.current_network_identity,
            open_url=portal.open_login_page,
        )
