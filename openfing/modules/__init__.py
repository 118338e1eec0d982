"""
OpenFing Modules Package

Core discovery, aggregation and probing functionality.
"""

from .addresses import (
    is_valid_ipv4, normalize_mac, find_mac_in_text,
    ip_to_int, subnet_prefix,
)
from .vendors import resolve_vendor, classify_vendor, OUI_VENDORS
from .parsers import (
    Candidate,
    parse_scan_records, parse_address_cache, parse_service_locations,
    parse_port_reachability, parse_name_query,
)
from .probes import DiscoveryProbes, SystemProbes, find_full_scan_tool
from .discovery import Device, DeviceRegistry
from .scanner import NetworkScanner, discover_devices
from .hardware_detector import (
    InterfaceInfo, NetworkContext,
    detect_network_interfaces, get_preferred_interface,
    get_default_gateway, detect_network_context,
)

__all__ = [
    "is_valid_ipv4",
    "normalize_mac",
    "find_mac_in_text",
    "ip_to_int",
    "subnet_prefix",
    "resolve_vendor",
    "classify_vendor",
    "OUI_VENDORS",
    "Candidate",
    "parse_scan_records",
    "parse_address_cache",
    "parse_service_locations",
    "parse_port_reachability",
    "parse_name_query",
    "DiscoveryProbes",
    "SystemProbes",
    "find_full_scan_tool",
    "Device",
    "DeviceRegistry",
    "NetworkScanner",
    "discover_devices",
    "InterfaceInfo",
    "NetworkContext",
    "detect_network_interfaces",
    "get_preferred_interface",
    "get_default_gateway",
    "detect_network_context",
]
