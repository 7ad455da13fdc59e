"""
Queries of the operating system's current networking state.

Every function here returns None when the answer is unavailable; callers treat
a missing gateway as a disabled router probe rather than a failing one.
"""
from __future__ import annotations

import logging
import re
import subprocess
import sys
from pathlib import Path
from typing import List, Optional

COMMAND_TIMEOUT = 5.0
RESOLV_CONF = Path("/etc/resolv.conf")
WIFI_INTERFACE = "en0"

_IPV4 = r"(\d{1,3}(?:\.\d{1,3}){3})"


def _run(cmd: List[str]) -> Optional[str]:
    try:
        completed = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            timeout=COMMAND_TIMEOUT,
            check=False,
        )
    except subprocess.TimeoutExpired:
        logging.debug("%s timed out", cmd[0])
        return None
    except OSError as exc:
        logging.debug("%s could not run: %s", cmd[0], exc)
        return None
    if completed.returncode != 0:
        return None
    return completed.stdout or ""


def detect_gateway() -> Optional[str]:
    system = sys.platform
    if system == "darwin":
        output = _run(["route", "-n", "get", "default"])
        return parse_route_get(output) if output is not None else None
    if system.startswith("win"):
        output = _run(["ipconfig"])
        return parse_ipconfig_gateway(output) if output is not None else None
    output = _run(["ip", "route", "show", "default"])
    return parse_ip_route(output) if output is not None else None


def detect_dns_server() -> Optional[str]:
    system = sys.platform
    if system == "darwin":
        output = _run(["scutil", "--dns"])
        return parse_scutil_dns(output) if output is not None else None
    if system.startswith("win"):
        output = _run(["ipconfig", "/all"])
        return parse_ipconfig_dns(output) if output is not None else None
    try:
        text = RESOLV_CONF.read_text(encoding="utf-8")
    except OSError as exc:
        logging.debug("Could not read %s: %s", RESOLV_CONF, exc)
        return None
    return parse_resolv_conf(text)


def current_network_identity() -> Optional[str]:
    """SSID of the joined wireless network, None when not on WiFi."""
    system = sys.platform
    if system == "darwin":
        output = _run(["networksetup", "-getairportnetwork", WIFI_INTERFACE])
        return parse_airport_network(output) if output is not None else None
    if system.startswith("win"):
        output = _run(["netsh", "wlan", "show", "interfaces"])
        return parse_netsh_ssid(output) if output is not None else None
    output = _run(["iwgetid", "-r"])
    if output is None:
        return None
    return output.strip() or None


def parse_route_get(output: str) -> Optional[str]:
    for line in output.splitlines():
        trimmed = line.strip()
        if trimmed.startswith("gateway:"):
            value = trimmed.split(":", 1)[1].strip()
            return value or None
    return None


def parse_ip_route(output: str) -> Optional[str]:
    match = re.search(r"^default via (\S+)", output, re.MULTILINE)
    return match.group(1) if match else None


def parse_ipconfig_gateway(output: str) -> Optional[str]:
    match = re.search(r"Default Gateway[ .]*:\s*" + _IPV4, output)
    return match.group(1) if match else None


def parse_ipconfig_dns(output: str) -> Optional[str]:
    match = re.search(r"DNS Servers[ .]*:\s*(\S+)", output)
    return match.group(1) if match else None


def parse_resolv_conf(text: str) -> Optional[str]:
    for line in text.splitlines():
        parts = line.split()
        if len(parts) >= 2 and parts[0] == "nameserver":
            return parts[1]
    return None


def parse_scutil_dns(output: str) -> Optional[str]:
    """
    First nameserver of the first resolver that is not supplemental.

    Supplemental resolvers only answer for specific domains (mDNS, VPN split
    DNS) and carry a ``domain`` entry or a ``Supplemental`` flag.
    """
    # Scoped resolvers repeat the same servers; only the main section counts.
    main_section = output.split("DNS configuration (for scoped queries)")[0]
    for block in re.split(r"^resolver #\d+\s*$", main_section, flags=re.MULTILINE)[1:]:
        if re.search(r"^\s*domain\s*:", block, re.MULTILINE):
            continue
        if re.search(r"^\s*flags\s*:.*Supplemental", block, re.MULTILINE):
            continue
        match = re.search(r"^\s*nameserver\[0\]\s*:\s*(\S+)", block, re.MULTILINE)
        if match:
            return match.group(1)
    return None


def parse_airport_network(output: str) -> Optional[str]:
    prefix = "Current Wi-Fi Network:"
    for line in output.splitlines():
        if line.startswith(prefix):
            return line[len(prefix):].strip() or None
    return None


def parse_netsh_ssid(output: str) -> Optional[str]:
    match = re.search(r"^\s*SSID\s*:\s*(.+?)\s*$", output, re.MULTILINE)
    return match.group(1) if match else None
