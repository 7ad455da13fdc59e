from __future__ import annotations

import json
import logging
import threading
from dataclasses import replace
from typing import Any, Dict, Optional, Tuple

from pathmon.bus import Event, EventBus
from pathmon.models import (
    DEFAULT_CAPTIVE_PORTAL_URL,
    DEFAULT_DNS_HOSTNAME,
    DEFAULT_INTERNET_TARGET,
    DEFAULT_PING_INTERVAL,
    Settings,
)


def load_settings(path: str) -> Settings:
    data = _read_json(path)
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a JSON object at top level")
    settings = Settings(
        interval_seconds=float(data.get("interval_seconds", DEFAULT_PING_INTERVAL)),
        internet_target=str(data.get("internet_target") or DEFAULT_INTERNET_TARGET).strip(),
        dns_hostname=str(data.get("dns_hostname") or DEFAULT_DNS_HOSTNAME).strip(),
        captive_portal_url=str(data.get("captive_portal_url") or DEFAULT_CAPTIVE_PORTAL_URL),
        show_icon_mode=bool(data.get("show_icon_mode", False)),
        ping_timeout=float(data.get("ping_timeout", 2)),
        captive_portal_timeout=float(data.get("captive_portal_timeout", 5)),
        captive_portal_interval_seconds=float(data.get("captive_portal_interval_seconds", 10)),
        history_capacity=int(data.get("history_capacity", 60)),
        log_path=str(data.get("log_path", "logs/pathmon.log")),
        auto_start_networks=_read_networks(data.get("auto_start_networks", [])),
        network_poll_interval_seconds=float(data.get("network_poll_interval_seconds", 5)),
    )
    validate(settings)
    return settings


def validate(settings: Settings) -> None:
    if settings.interval_seconds <= 0:
        raise ValueError(f"interval_seconds must be positive, got {settings.interval_seconds}")
    if settings.captive_portal_interval_seconds <= 0:
        raise ValueError(
            f"captive_portal_interval_seconds must be positive, got {settings.captive_portal_interval_seconds}"
        )
    if settings.history_capacity <= 0:
        raise ValueError(f"history_capacity must be positive, got {settings.history_capacity}")
    if settings.ping_timeout <= 0:
        raise ValueError(f"ping_timeout must be positive, got {settings.ping_timeout}")
    if settings.network_poll_interval_seconds <= 0:
        raise ValueError(
            f"network_poll_interval_seconds must be positive, got {settings.network_poll_interval_seconds}"
        )


def _read_json(path: str) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def _read_networks(value: Any) -> Tuple[str, ...]:
    if not isinstance(value, list):
        raise ValueError(f"auto_start_networks must be a list of network names, got {value!r}")
    return tuple(str(name).strip() for name in value if str(name).strip())


class SettingsStore:
    """
    Owner of the live settings. Every mutation publishes the matching change
    event on the bus so the engine can react without polling.
    """

    def __init__(self, settings: Settings, bus: EventBus) -> None:
        validate(settings)
        self._settings = settings
        self._bus = bus
        self._lock = threading.Lock()

    @property
    def settings(self) -> Settings:
        with self._lock:
            return self._settings

    def set_interval(self, seconds: float) -> None:
        if seconds <= 0:
            raise ValueError(f"interval must be positive, got {seconds}")
        with self._lock:
            self._settings = replace(self._settings, interval_seconds=float(seconds))
        logging.info("Ping interval set to %.2f s", seconds)
        self._bus.publish(Event.INTERVAL_CHANGED)

    def set_internet_target(self, target: str) -> None:
        self.set_targets(internet_target=target)

    def set_dns_hostname(self, hostname: str) -> None:
        self.set_targets(dns_hostname=hostname)

    def set_targets(self, internet_target: Optional[str] = None, dns_hostname: Optional[str] = None) -> None:
        with self._lock:
            updated = self._settings
            if internet_target is not None:
                updated = replace(updated, internet_target=internet_target.strip())
            if dns_hostname is not None:
                updated = replace(updated, dns_hostname=dns_hostname.strip())
            self._settings = updated
        logging.info(
            "Probe targets set to internet=%s dns=%s",
            updated.effective_internet_target(),
            updated.effective_dns_hostname(),
        )
        self._bus.publish(Event.TARGETS_CHANGED)

    def set_show_icon_mode(self, enabled: bool) -> None:
        with self._lock:
            self._settings = replace(self._settings, show_icon_mode=bool(enabled))
        self._bus.publish(Event.DISPLAY_MODE_CHANGED)

    def apply(self, new_settings: Settings) -> None:
        """Replace all settings, publishing one event per changed concern."""
        validate(new_settings)
        with self._lock:
            old = self._settings
            self._settings = new_settings
        if old.interval_seconds != new_settings.interval_seconds:
            self._bus.publish(Event.INTERVAL_CHANGED)
        if (
            old.effective_internet_target() != new_settings.effective_internet_target()
            or old.effective_dns_hostname() != new_settings.effective_dns_hostname()
        ):
            self._bus.publish(Event.TARGETS_CHANGED)
        if old.show_icon_mode != new_settings.show_icon_mode:
            self._bus.publish(Event.DISPLAY_MODE_CHANGED)
