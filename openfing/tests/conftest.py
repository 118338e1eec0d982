"""
Shared fixtures: a deterministic stand-in for the system probes.
"""

from typing import Dict, List, Optional, Sequence, Set, Tuple

import pytest

from openfing.modules.probes import DiscoveryProbes


class FakeProbes(DiscoveryProbes):
    """Canned probe outputs with a call log."""

    def __init__(
        self,
        full_scan: str = "",
        sweep: str = "",
        cache: str = "",
        mdns: str = "",
        ssdp: str = "",
        netbios: str = "",
        ports: str = "",
        cache_entries: Optional[Dict[str, str]] = None,
        hostnames: Optional[Dict[str, str]] = None,
        open_ports: Optional[Set[Tuple[str, int]]] = None,
        netbios_installed: bool = True,
        privileged: bool = False,
        tool: bool = False,
    ):
        self.full_scan = full_scan
        self.sweep = sweep
        self.cache = cache
        self.mdns = mdns
        self.ssdp = ssdp
        self.netbios = netbios
        self.ports = ports
        self.cache_entries = cache_entries or {}
        self.hostnames = hostnames or {}
        self.open_ports = open_ports or set()
        self.netbios_installed = netbios_installed
        self.privileged = privileged
        self.tool = tool
        self.calls: List[tuple] = []

    def run_full_scan(self, interface):
        self.calls.append(("run_full_scan", interface))
        return self.full_scan

    def sweep_and_read_cache(self, prefix):
        self.calls.append(("sweep_and_read_cache", prefix))
        return self.sweep

    def read_address_cache(self):
        self.calls.append(("read_address_cache",))
        return self.cache

    def lookup_cache_entry(self, ip):
        self.calls.append(("lookup_cache_entry", ip))
        return self.cache_entries.get(ip, "")

    def name_service_browse(self):
        self.calls.append(("name_service_browse",))
        return self.mdns

    def service_location_query(self):
        self.calls.append(("service_location_query",))
        return self.ssdp

    def name_query_available(self):
        return self.netbios_installed

    def name_query(self, prefix):
        self.calls.append(("name_query", prefix))
        return self.netbios

    def port_reachability_probe(self, prefix, ports: Sequence[int]):
        self.calls.append(("port_reachability_probe", prefix, tuple(ports)))
        return self.ports

    def resolve_hostname(self, ip):
        return self.hostnames.get(ip, "")

    def tcp_connect(self, ip, port):
        return (ip, port) in self.open_ports

    def has_privilege(self):
        return self.privileged

    def full_scan_tool_available(self):
        return self.tool

    def call_names(self) -> List[str]:
        return [c[0] for c in self.calls]


@pytest.fixture
def fake_probes():
    return FakeProbes()
