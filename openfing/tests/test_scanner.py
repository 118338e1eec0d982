"""
Unit tests for the network scanner module.
"""

from unittest.mock import MagicMock

import pytest

from conftest import FakeProbes
from openfing.modules.discovery import Device
from openfing.modules.scanner import (
    METHOD_FULL_SCAN,
    METHOD_MULTI,
    METHOD_PING_SWEEP,
    NetworkScanner,
    discover_devices,
)

SUBNET = "192.168.1.0/24"

FULL_SCAN_OUTPUT = (
    "Interface: en0, type: EN10MB, MAC: aa:bb:cc:dd:ee:01, IPv4: 192.168.1.50\n"
    "Starting arp-scan 1.10.0 with 256 hosts\n"
    "192.168.1.20\tb0:41:6f:0d:78:17\t(Unknown)\n"
    "192.168.1.1\te8:ea:4d:1d:3a:45\tHuawei Technologies\n"
    "2 packets received by filter, 0 packets dropped by kernel\n"
    "Ending arp-scan 1.10.0: 256 hosts scanned in 1.9 seconds\n"
)

CACHE_OUTPUT = (
    "? (192.168.1.1) at e8:ea:4d:1d:3a:45 on en0 ifscope [ethernet]\n"
    "? (192.168.1.20) at b0:41:6f:d:78:17 on en0 ifscope [ethernet]\n"
    "? (192.168.1.255) at ff:ff:ff:ff:ff:ff on en0 ifscope [ethernet]\n"
)

PROBE_STAGES = {
    "run_full_scan",
    "sweep_and_read_cache",
    "read_address_cache",
    "name_service_browse",
    "service_location_query",
    "name_query",
    "port_reachability_probe",
}


def _stage_calls(probes):
    return [name for name in probes.call_names() if name in PROBE_STAGES]


class TestNetworkScanner:
    """Tests for NetworkScanner construction."""

    def test_scanner_initialization(self, fake_probes):
        """Test scanner initialization."""
        scanner = NetworkScanner(probes=fake_probes, interface="en0")

        assert scanner.probes is fake_probes
        assert scanner.interface == "en0"
        assert scanner.last_scan_method is None

    def test_worker_count_floor(self, fake_probes):
        scanner = NetworkScanner(probes=fake_probes, deep_scan_workers=0)
        assert scanner.deep_scan_workers == 1


class TestPrivilegedStrategies:
    """Tests for the privileged discovery paths."""

    def test_full_scan(self):
        """Test a privileged run with arp-scan uses only the full scan."""
        probes = FakeProbes(full_scan=FULL_SCAN_OUTPUT)
        scanner = NetworkScanner(probes=probes, interface="en0")

        devices = scanner.discover(SUBNET, True, True)

        assert [(d.ip, d.mac, d.vendor) for d in devices] == [
            ("192.168.1.1", "E8:EA:4D:1D:3A:45", "Huawei Technologies"),
            ("192.168.1.20", "B0:41:6F:0D:78:17", "Shenzhen Maxtang"),
        ]
        assert _stage_calls(probes) == ["run_full_scan"]
        assert probes.calls[0] == ("run_full_scan", "en0")
        assert scanner.last_scan_method == METHOD_FULL_SCAN

    def test_full_scan_empty_falls_back_to_sweep(self):
        """Test an empty full scan falls through to the ping sweep."""
        probes = FakeProbes(full_scan="", sweep=CACHE_OUTPUT)
        scanner = NetworkScanner(probes=probes)

        devices = scanner.discover(SUBNET, True, True)

        assert _stage_calls(probes) == ["run_full_scan", "sweep_and_read_cache"]
        assert [d.ip for d in devices] == ["192.168.1.1", "192.168.1.20"]
        assert scanner.last_scan_method == METHOD_PING_SWEEP

    def test_ping_sweep_without_tool(self):
        probes = FakeProbes(sweep=CACHE_OUTPUT)
        scanner = NetworkScanner(probes=probes)

        devices = scanner.discover(SUBNET, True, False)

        assert _stage_calls(probes) == ["sweep_and_read_cache"]
        assert ("sweep_and_read_cache", "192.168.1.") in probes.calls
        assert devices[1].mac == "B0:41:6F:0D:78:17"
        assert devices[1].source == "ping-sweep"

    def test_ping_sweep_unknown_subnet_reads_cache(self):
        probes = FakeProbes(cache=CACHE_OUTPUT)
        scanner = NetworkScanner(probes=probes)

        devices = scanner.discover(None, True, False)

        assert _stage_calls(probes) == ["read_address_cache"]
        assert len(devices) == 2


class TestMultiMethodStrategy:
    """Tests for the unprivileged multi-method sequence."""

    def test_stage_order(self):
        """Test the stages run strictly in order."""
        probes = FakeProbes(sweep=CACHE_OUTPUT)
        scanner = NetworkScanner(probes=probes)

        scanner.discover(SUBNET, False, True)

        assert _stage_calls(probes) == [
            "sweep_and_read_cache",
            "name_service_browse",
            "service_location_query",
            "name_query",
            "port_reachability_probe",
        ]
        assert ("port_reachability_probe", "192.168.1.", (22, 80, 443)) in probes.calls
        assert scanner.last_scan_method == METHOD_MULTI

    def test_full_scan_never_attempted_without_privilege(self):
        probes = FakeProbes(full_scan=FULL_SCAN_OUTPUT)
        NetworkScanner(probes=probes).discover(SUBNET, False, True)

        assert "run_full_scan" not in probes.call_names()

    def test_netbios_skipped_when_not_installed(self):
        probes = FakeProbes(netbios="192.168.1.10\n", netbios_installed=False)
        devices = NetworkScanner(probes=probes).discover(SUBNET, False, False)

        assert "name_query" not in probes.call_names()
        assert devices == []

    def test_unknown_subnet_skips_prefix_stages(self):
        probes = FakeProbes(cache=CACHE_OUTPUT)
        devices = NetworkScanner(probes=probes).discover(None, False, False)

        assert _stage_calls(probes) == [
            "read_address_cache",
            "name_service_browse",
            "service_location_query",
        ]
        assert len(devices) == 2

    def test_mdns_cache_trailer(self):
        probes = FakeProbes(mdns=(
            "+;en0;IPv4;Living Room;_airplay._tcp;local\n"
            "? (192.168.1.60) at 4c:20:b8:db:d5:e8 on en0 ifscope [ethernet]\n"
        ))
        devices = NetworkScanner(probes=probes).discover(SUBNET, False, False)

        assert [(d.ip, d.vendor, d.source) for d in devices] == [
            ("192.168.1.60", "Apple", "mdns"),
        ]

    def test_ssdp_uses_targeted_lookup(self):
        """Test SSDP hosts get their MAC from a single cache lookup."""
        probes = FakeProbes(
            ssdp="LOCATION: http://192.168.1.40:49152/description.xml\n",
            cache_entries={
                "192.168.1.40": "? (192.168.1.40) at ac:84:c6:0:0:1 on en0 [ethernet]",
            },
        )
        devices = NetworkScanner(probes=probes).discover(SUBNET, False, False)

        assert [(d.ip, d.mac, d.vendor) for d in devices] == [
            ("192.168.1.40", "AC:84:C6:00:00:01", "Espressif"),
        ]
        assert probes.calls.count(("lookup_cache_entry", "192.168.1.40")) == 1

    def test_unknown_mac_upgraded_by_later_stage(self):
        """Test a MAC-less device is upgraded by a later cache trailer."""
        probes = FakeProbes(
            netbios="192.168.1.30\n",
            ports=(
                "192.168.1.30:22\n"
                "192.168.1.31:80\n"
                "? (192.168.1.30) at 4c:20:b8:db:d5:e8 [ether] on en0\n"
            ),
        )
        devices = NetworkScanner(probes=probes).discover(SUBNET, False, False)

        assert [(d.ip, d.mac, d.vendor) for d in devices] == [
            ("192.168.1.30", "4C:20:B8:DB:D5:E8", "Apple"),
            ("192.168.1.31", "unknown", "Unknown"),
        ]
        assert devices[0].source == "netbios"

    def test_failing_probe_does_not_abort(self):
        """Test a raising probe contributes nothing and later stages still run."""
        probes = FakeProbes(ports="192.168.1.5:443\n")
        probes.name_service_browse = MagicMock(side_effect=OSError("avahi crashed"))

        devices = NetworkScanner(probes=probes).discover(SUBNET, False, False)

        probes.name_service_browse.assert_called_once()
        assert [d.ip for d in devices] == ["192.168.1.5"]

    def test_results_ordered_across_stages(self):
        probes = FakeProbes(
            sweep="? (10.0.1.1) at e8:ea:4d:1d:3a:45 [ether] on eth0\n",
            ports="10.0.0.20:80\n10.0.0.3:22\n",
        )
        devices = NetworkScanner(probes=probes).discover("10.0.0.0/16", False, False)

        assert [d.ip for d in devices] == ["10.0.0.3", "10.0.0.20", "10.0.1.1"]


class TestDeepScan:
    """Tests for hostname and service-port enrichment."""

    def test_only_ssh_open(self):
        probes = FakeProbes(
            sweep=CACHE_OUTPUT,
            open_ports={("192.168.1.1", 22)},
        )
        devices = NetworkScanner(probes=probes).discover(SUBNET, True, False, deep=True)

        assert devices[0].open_ports == "SSH"
        assert devices[1].open_ports == ""

    def test_ports_reported_in_declared_order(self):
        probes = FakeProbes(open_ports={
            ("192.168.1.1", 443), ("192.168.1.1", 22), ("192.168.1.1", 62078),
        })
        scanner = NetworkScanner(probes=probes)

        assert scanner._probe_ports("192.168.1.1") == "SSH,HTTPS,iPhone"

    def test_hostname_trimmed(self):
        probes = FakeProbes(
            sweep=CACHE_OUTPUT,
            hostnames={"192.168.1.1": "  router.lan. \n"},
        )
        devices = NetworkScanner(probes=probes).discover(SUBNET, True, False, deep=True)

        assert devices[0].hostname == "router.lan"
        assert devices[1].hostname == "?"

    def test_resolver_failure_is_unresolved(self):
        probes = FakeProbes()
        probes.resolve_hostname = MagicMock(side_effect=OSError("timeout"))
        scanner = NetworkScanner(probes=probes)

        assert scanner._resolve_hostname("192.168.1.1") == "?"

    def test_connect_failure_counts_as_closed(self):
        probes = FakeProbes()
        probes.tcp_connect = MagicMock(side_effect=OSError("refused"))
        scanner = NetworkScanner(probes=probes)

        assert scanner._probe_ports("192.168.1.1") == ""

    @pytest.mark.parametrize("workers", [1, 4])
    def test_enrich_every_device(self, workers):
        probes = FakeProbes(open_ports={("10.0.0.2", 80), ("10.0.0.3", 9100)})
        scanner = NetworkScanner(probes=probes, deep_scan_workers=workers)
        devices = [Device(ip="10.0.0.2"), Device(ip="10.0.0.3")]

        scanner.enrich(devices)

        assert [d.open_ports for d in devices] == ["HTTP", "Print"]
        assert all(d.hostname == "?" for d in devices)

    def test_deep_flag_off_leaves_devices_untouched(self):
        probes = FakeProbes(sweep=CACHE_OUTPUT, open_ports={("192.168.1.1", 22)})
        devices = NetworkScanner(probes=probes).discover(SUBNET, True, False)

        assert devices[0].hostname is None
        assert devices[0].open_ports == ""


class TestDiscoverDevices:
    """Tests for the module-level helper."""

    def test_discover_devices_helper(self):
        probes = FakeProbes(sweep=CACHE_OUTPUT)

        devices = discover_devices(SUBNET, True, False, probes=probes)

        assert [d.ip for d in devices] == ["192.168.1.1", "192.168.1.20"]
