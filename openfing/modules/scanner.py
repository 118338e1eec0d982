"""
Network Scanner Module

Drives the privilege-dependent discovery strategies, feeds each probe's
raw output to the matching parser, folds the candidates into a
DeviceRegistry and optionally enriches the ordered result with reverse
DNS names and open service ports.

Strategy selection (once per run):
    1. privileged + arp-scan available -> full scan records; done if any
       device was found.
    2. privileged otherwise -> ping sweep, then address cache.
    3. unprivileged -> ping sweep/cache, mDNS browse, SSDP, NetBIOS name
       query and a small TCP port sweep, strictly in that order.
"""

import concurrent.futures
import logging
import time
from typing import Callable, List, Optional

from openfing.config import (
    DEEP_SCAN_PORTS,
    DEEP_SCAN_WORKERS,
    HOSTNAME_UNRESOLVED,
    REACHABILITY_PORTS,
)
from .addresses import find_mac_in_text, is_excluded_mac, subnet_prefix
from .discovery import Device, DeviceRegistry
from .parsers import (
    Candidate,
    parse_address_cache,
    parse_name_query,
    parse_port_reachability,
    parse_scan_records,
    parse_service_locations,
)
from .probes import DiscoveryProbes, SystemProbes

logger = logging.getLogger(__name__)

METHOD_FULL_SCAN = "arp-scan (full scan)"
METHOD_PING_SWEEP = "ping sweep + ARP"
METHOD_MULTI = "multi-method (limited mode)"


class NetworkScanner:
    """Network scanner for device discovery and deep-scan enrichment."""

    def __init__(
        self,
        probes: Optional[DiscoveryProbes] = None,
        interface: Optional[str] = None,
        deep_scan_workers: int = DEEP_SCAN_WORKERS,
    ):
        """
        Initialize network scanner.

        Args:
            probes: Collaborator used for every external probe
                (defaults to SystemProbes)
            interface: Network interface handed to the full scan
            deep_scan_workers: Devices enriched concurrently during a
                deep scan
        """
        self.probes = probes or SystemProbes()
        self.interface = interface
        self.deep_scan_workers = max(1, deep_scan_workers)
        self.last_scan_method: Optional[str] = None

    # ------------------------------------------------------------------
    # Probe invocation
    # ------------------------------------------------------------------

    def _invoke(self, stage: str, probe: Callable[..., str], *args) -> str:
        """Run one probe; any failure collapses to empty text."""
        try:
            text = probe(*args)
        except Exception as e:
            logger.warning(f"Probe for stage '{stage}' failed: {e}")
            return ""
        return text or ""

    def _lookup_mac(self, ip: str) -> Optional[str]:
        """Targeted cache lookup for a single IP."""
        text = self._invoke("cache-lookup", self.probes.lookup_cache_entry, ip)
        mac = find_mac_in_text(text)
        if mac is None or is_excluded_mac(mac):
            return None
        return mac

    def _fold(
        self,
        registry: DeviceRegistry,
        stage: str,
        candidates: List[Candidate],
    ) -> int:
        changed = registry.merge_all(candidates, source=stage)
        logger.info(
            f"Stage '{stage}': {len(candidates)} candidates, "
            f"{changed} registry changes, {registry.device_count} devices total"
        )
        return changed

    # ------------------------------------------------------------------
    # Strategies
    # ------------------------------------------------------------------

    def _full_scan_strategy(self, registry: DeviceRegistry) -> None:
        text = self._invoke("arp-scan", self.probes.run_full_scan, self.interface)
        self._fold(registry, "arp-scan", parse_scan_records(text))

    def _ping_sweep_strategy(
        self, registry: DeviceRegistry, prefix: Optional[str]
    ) -> None:
        if prefix:
            text = self._invoke("ping-sweep", self.probes.sweep_and_read_cache, prefix)
        else:
            logger.warning("Subnet unknown, reading address cache without a sweep")
            text = self._invoke("ping-sweep", self.probes.read_address_cache)
        self._fold(registry, "ping-sweep", parse_address_cache(text))

    def _multi_method_strategy(
        self, registry: DeviceRegistry, prefix: Optional[str]
    ) -> None:
        # (a) ping sweep, then cache
        self._ping_sweep_strategy(registry, prefix)

        # (b) mDNS browse; only the cache trailer yields devices
        text = self._invoke("mdns", self.probes.name_service_browse)
        self._fold(registry, "mdns", parse_address_cache(text))

        # (c) SSDP
        text = self._invoke("ssdp", self.probes.service_location_query)
        self._fold(registry, "ssdp", parse_service_locations(text, self._lookup_mac))
        self._fold(registry, "ssdp-cache", parse_address_cache(text))

        if prefix is None:
            logger.info("Subnet unknown, skipping NetBIOS and port sweep stages")
            return

        # (d) NetBIOS name query
        if self.probes.name_query_available():
            text = self._invoke("netbios", self.probes.name_query, prefix)
            self._fold(registry, "netbios", parse_name_query(text, self._lookup_mac))
            self._fold(registry, "netbios-cache", parse_address_cache(text))
        else:
            logger.info("NetBIOS name query tool not installed, skipping stage")

        # (e) TCP port reachability
        text = self._invoke(
            "port-sweep",
            self.probes.port_reachability_probe,
            prefix,
            REACHABILITY_PORTS,
        )
        self._fold(
            registry, "port-sweep", parse_port_reachability(text, self._lookup_mac)
        )
        self._fold(registry, "port-sweep-cache", parse_address_cache(text))

    # ------------------------------------------------------------------
    # Network scan (main entry point)
    # ------------------------------------------------------------------

    def discover(
        self,
        subnet: Optional[str],
        has_privilege: bool,
        tool_available: bool,
        deep: bool = False,
    ) -> List[Device]:
        """
        Discover devices on the local network.

        Args:
            subnet: Local subnet, e.g. '192.168.1.0/24' (None if unknown)
            has_privilege: Whether the caller runs with root privileges
            tool_available: Whether arp-scan is installed
            deep: Resolve hostnames and probe service ports afterwards

        Returns:
            Devices ordered by ascending IP (empty if nothing was found)
        """
        scan_start = time.time()
        registry = DeviceRegistry()
        prefix = subnet_prefix(subnet)
        method = None

        logger.info(
            f"Starting discovery on {subnet or 'unknown subnet'} "
            f"(privileged={has_privilege}, arp-scan={tool_available}, deep={deep})"
        )

        if has_privilege and tool_available:
            self._full_scan_strategy(registry)
            if registry.device_count > 0:
                method = METHOD_FULL_SCAN
            else:
                logger.info("arp-scan found nothing, falling back to ping sweep")

        if has_privilege and method is None:
            self._ping_sweep_strategy(registry, prefix)
            method = METHOD_PING_SWEEP

        if not has_privilege:
            self._multi_method_strategy(registry, prefix)
            method = METHOD_MULTI

        devices = registry.ordered()

        if deep and devices:
            self.enrich(devices)

        self.last_scan_method = method

        logger.info(
            f"Discovery complete via {method}. Found {len(devices)} devices "
            f"in {time.time() - scan_start:.2f}s."
        )
        return devices

    # ------------------------------------------------------------------
    # Deep scan
    # ------------------------------------------------------------------

    def _resolve_hostname(self, ip: str) -> str:
        name = self._invoke("reverse-dns", self.probes.resolve_hostname, ip)
        name = name.strip().rstrip(".").strip()
        return name or HOSTNAME_UNRESOLVED

    def _probe_ports(self, ip: str) -> str:
        open_labels = []
        for port, label in DEEP_SCAN_PORTS:
            try:
                is_open = self.probes.tcp_connect(ip, port)
            except Exception as e:
                logger.debug(f"Port probe {ip}:{port} failed: {e}")
                is_open = False
            if is_open:
                open_labels.append(label)
        return ",".join(open_labels)

    def deep_scan_device(self, device: Device) -> Device:
        """Attach hostname and open-port summary to one device."""
        device.hostname = self._resolve_hostname(device.ip)
        device.open_ports = self._probe_ports(device.ip)
        logger.debug(
            f"Deep scan {device.ip}: hostname={device.hostname} "
            f"ports={device.open_ports or '-'}"
        )
        return device

    def enrich(self, devices: List[Device]) -> List[Device]:
        """Deep-scan every device of an already aggregated result.

        Devices are processed concurrently; ports within one device are
        probed in their declared order.
        """
        logger.info(
            f"Deep scanning {len(devices)} devices "
            f"({len(DEEP_SCAN_PORTS)} ports each)"
        )
        if self.deep_scan_workers == 1 or len(devices) == 1:
            for device in devices:
                self.deep_scan_device(device)
            return devices

        with concurrent.futures.ThreadPoolExecutor(
            max_workers=self.deep_scan_workers
        ) as executor:
            list(executor.map(self.deep_scan_device, devices))
        return devices


def discover_devices(
    subnet: Optional[str],
    has_privilege: bool,
    tool_available: bool,
    deep: bool = False,
    probes: Optional[DiscoveryProbes] = None,
    interface: Optional[str] = None,
) -> List[Device]:
    """Run one discovery pass and return devices ordered by IP."""
    scanner = NetworkScanner(probes=probes, interface=interface)
    return scanner.discover(subnet, has_privilege, tool_available, deep=deep)
