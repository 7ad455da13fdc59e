import subprocess

from pathmon import discovery

ROUTE_GET = """   route to: default
destination: default
       mask: default
    gateway: 192.168.1.1
  interface: en0
      flags: <UP,GATEWAY,DONE,STATIC,PRCLONING,GLOBAL>
"""

SCUTIL_DNS = """DNS configuration

resolver #1
  search domain[0] : lan
  nameserver[0] : 192.168.1.1
  nameserver[1] : 1.0.0.1
  if_index : 6 (en0)
  flags    : Request A records
  reach    : 0x00020002 (Reachable,Directly Reachable Address)

resolver #2
  domain   : local
  options  : mdns
  timeout  : 5
  flags    : Request A records
  reach    : 0x00000000 (Not Reachable)

DNS configuration (for scoped queries)

resolver #1
  nameserver[0] : 192.168.1.1
"""

SCUTIL_DNS_SUPPLEMENTAL_FIRST = """DNS configuration

resolver #1
  domain   : corp.example
  nameserver[0] : 10.8.0.1
  flags    : Supplemental, Request A records

resolver #2
  nameserver[0] : 9.9.9.9
"""

IPCONFIG = """Windows IP Configuration

Wireless LAN adapter Wi-Fi:

   Connection-specific DNS Suffix  . : home
   IPv4 Address. . . . . . . . . . . : 192.168.0.23
   Subnet Mask . . . . . . . . . . . : 255.255.255.0
   Default Gateway . . . . . . . . . : 192.168.0.1
   DNS Servers . . . . . . . . . . . : 192.168.0.1
"""

NETSH = """There is 1 interface on the system:

    Name                   : Wi-Fi
    State                  : connected
    SSID                   : Office Guest
    BSSID                  : aa:bb:cc:dd:ee:ff
"""


def test_parse_route_get():
    assert discovery.parse_route_get(ROUTE_GET) == "192.168.1.1"
    assert discovery.parse_route_get("route: writing to routing socket: not in table") is None


def test_parse_ip_route():
    output = "default via 10.0.0.1 dev wlan0 proto dhcp metric 600\n"
    assert discovery.parse_ip_route(output) == "10.0.0.1"
    assert discovery.parse_ip_route("") is None


def test_parse_scutil_skips_supplemental_resolvers():
    assert discovery.parse_scutil_dns(SCUTIL_DNS) == "192.168.1.1"
    assert discovery.parse_scutil_dns(SCUTIL_DNS_SUPPLEMENTAL_FIRST) == "9.9.9.9"
    assert discovery.parse_scutil_dns("No DNS configuration available") is None


def test_parse_resolv_conf():
    text = "# generated\nsearch lan\nnameserver 127.0.0.53\nnameserver 8.8.8.8\n"
    assert discovery.parse_resolv_conf(text) == "127.0.0.53"
    assert discovery.parse_resolv_conf("search lan\n") is None


def test_parse_ipconfig():
    assert discovery.parse_ipconfig_gateway(IPCONFIG) == "192.168.0.1"
    assert discovery.parse_ipconfig_dns(IPCONFIG) == "192.168.0.1"


def test_parse_ssid_outputs():
    assert discovery.parse_airport_network("Current Wi-Fi Network: Home Net\n") == "Home Net"
    assert discovery.parse_airport_network("You are not associated with an AirPort network.\n") is None
    assert discovery.parse_netsh_ssid(NETSH) == "Office Guest"


def test_detect_gateway_on_linux(monkeypatch):
    calls = []

    def run(cmd, **kwargs):
        calls.append(cmd)
        return subprocess.CompletedProcess(cmd, 0, stdout="default via 172.16.0.1 dev eth0\n", stderr="")

    monkeypatch.setattr(discovery.sys, "platform", "linux")
    monkeypatch.setattr(discovery.subprocess, "run", run)
    assert discovery.detect_gateway() == "172.16.0.1"
    assert calls == [["ip", "route", "show", "default"]]


def test_detect_gateway_failure_is_none(monkeypatch):
    def run(cmd, **kwargs):
        raise FileNotFoundError(cmd[0])

    monkeypatch.setattr(discovery.sys, "platform", "linux")
    monkeypatch.setattr(discovery.subprocess, "run", run)
    assert discovery.detect_gateway() is None


def test_detect_dns_server_reads_resolv_conf(monkeypatch, tmp_path):
    resolv = tmp_path / "resolv.conf"
    resolv.write_text("nameserver 192.168.50.1\n", encoding="utf-8")
    monkeypatch.setattr(discovery.sys, "platform", "linux")
    monkeypatch.setattr(discovery, "RESOLV_CONF", resolv)
    assert discovery.detect_dns_server() == "192.168.50.1"


def test_network_identity_none_when_not_on_wifi(monkeypatch):
    def run(cmd, **kwargs):
        return subprocess.CompletedProcess(cmd, 255, stdout="", stderr="")

    monkeypatch.setattr(discovery.sys, "platform", "linux")
    monkeypatch.setattr(discovery.subprocess, "run", run)
    assert discovery.current_network_identity() is None
