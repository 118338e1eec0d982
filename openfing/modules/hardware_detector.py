"""
Hardware Detector Module

Detects network interfaces, the local address, default gateway and
subnet, and the privilege/tool inputs the scanner needs once per run.
"""

import logging
from typing import Dict, List, Optional, Tuple

import netifaces
import psutil

from .probes import SystemProbes

logger = logging.getLogger(__name__)


class InterfaceInfo:
    """Network interface information container."""

    def __init__(
        self,
        name: str,
        mac: Optional[str] = None,
        ipv4_address: Optional[str] = None,
        netmask: Optional[str] = None,
        is_up: bool = False,
    ):
        self.name = name
        self.mac = mac
        self.ipv4_address = ipv4_address
        self.netmask = netmask
        self.is_up = is_up

    def to_dict(self) -> Dict:
        """Convert to dictionary representation."""
        return {
            "interface_name": self.name,
            "mac": self.mac,
            "ipv4_address": self.ipv4_address,
            "netmask": self.netmask,
            "is_up": self.is_up,
        }

    def __repr__(self) -> str:
        return f"<InterfaceInfo {self.name} ({self.ipv4_address or 'no IPv4'})>"


class NetworkContext:
    """Everything the CLI hands to the scanner for one run."""

    def __init__(
        self,
        interface: Optional[str],
        local_ip: Optional[str],
        gateway_ip: Optional[str],
        subnet: Optional[str],
        is_privileged: bool,
        full_scan_tool: bool,
    ):
        self.interface = interface
        self.local_ip = local_ip
        self.gateway_ip = gateway_ip
        self.subnet = subnet
        self.is_privileged = is_privileged
        self.full_scan_tool = full_scan_tool

    def to_dict(self) -> Dict:
        return {
            "interface": self.interface,
            "local_ip": self.local_ip,
            "gateway_ip": self.gateway_ip,
            "subnet": self.subnet,
            "is_privileged": self.is_privileged,
            "full_scan_tool": self.full_scan_tool,
        }


def is_loopback(interface_name: str) -> bool:
    return interface_name == "lo" or interface_name.startswith("lo0")


def get_interface_mac(interface_name: str) -> Optional[str]:
    """
    Get MAC address for a network interface.

    Args:
        interface_name: Network interface name

    Returns:
        MAC address or None if not available
    """
    try:
        addrs = netifaces.ifaddresses(interface_name)
        if netifaces.AF_LINK in addrs:
            return addrs[netifaces.AF_LINK][0].get('addr')
    except (ValueError, KeyError, IndexError):
        pass
    return None


def get_interface_ipv4(interface_name: str) -> Tuple[Optional[str], Optional[str]]:
    """
    Get the first IPv4 address and netmask assigned to an interface.

    Args:
        interface_name: Network interface name

    Returns:
        Tuple of (address, netmask), either may be None
    """
    try:
        addrs = netifaces.ifaddresses(interface_name)
        for addr_info in addrs.get(netifaces.AF_INET, []):
            ip = addr_info.get('addr')
            if ip:
                return ip, addr_info.get('netmask')
    except (ValueError, KeyError):
        pass
    return None, None


def is_interface_up(interface_name: str) -> bool:
    """
    Check if a network interface is up.

    Args:
        interface_name: Network interface name

    Returns:
        True if interface is up
    """
    try:
        stats = psutil.net_if_stats().get(interface_name)
        if stats:
            return stats.isup
    except Exception as e:
        logger.debug(f"Error checking if {interface_name} is up: {e}")

    return False


def detect_network_interfaces() -> List[InterfaceInfo]:
    """
    Detect all non-loopback network interfaces.

    Returns:
        List of InterfaceInfo objects, interfaces with an IPv4 address
        that are up sorted first
    """
    interfaces = []

    for iface_name in netifaces.interfaces():
        if is_loopback(iface_name):
            continue
        ip, netmask = get_interface_ipv4(iface_name)
        info = InterfaceInfo(
            name=iface_name,
            mac=get_interface_mac(iface_name),
            ipv4_address=ip,
            netmask=netmask,
            is_up=is_interface_up(iface_name),
        )
        interfaces.append(info)
        logger.debug(f"Detected interface: {info}")

    def sort_key(info: InterfaceInfo) -> Tuple[int, str]:
        if info.is_up and info.ipv4_address:
            return (0, info.name)
        elif info.ipv4_address:
            return (1, info.name)
        return (2, info.name)

    interfaces.sort(key=sort_key)
    return interfaces


def get_default_gateway() -> Tuple[Optional[str], Optional[str]]:
    """
    Detect the default IPv4 gateway.

    Returns:
        Tuple of (gateway IP, interface name), (None, None) if not found
    """
    try:
        gateways = netifaces.gateways()
        default = gateways.get('default', {}).get(netifaces.AF_INET)
        if default:
            return default[0], default[1]
    except Exception as e:
        logger.debug(f"Gateway detection failed: {e}")
    return None, None


def get_preferred_interface() -> Optional[InterfaceInfo]:
    """
    Get the preferred network interface for scanning.

    Priority:
    1. The interface carrying the default route
    2. Any interface that is up and has an IPv4 address
    3. First available interface

    Returns:
        InterfaceInfo for preferred interface or None if none available
    """
    interfaces = detect_network_interfaces()

    if not interfaces:
        logger.error("No network interfaces detected")
        return None

    _, gateway_iface = get_default_gateway()
    if gateway_iface:
        for iface in interfaces:
            if iface.name == gateway_iface:
                logger.info(f"Using default-route interface: {iface.name}")
                return iface

    for iface in interfaces:
        if iface.is_up and iface.ipv4_address:
            logger.info(f"Using interface: {iface.name}")
            return iface

    first_iface = interfaces[0]
    logger.warning(f"No usable interface is up, defaulting to: {first_iface.name}")
    return first_iface


def get_subnet(local_ip: Optional[str]) -> Optional[str]:
    """
    Derive the /24 scanned around the local address.

    Args:
        local_ip: Local IPv4 address, e.g. '192.168.1.23'

    Returns:
        Subnet such as '192.168.1.0/24', or None
    """
    if not local_ip:
        return None
    last_dot = local_ip.rfind(".")
    if last_dot <= 0:
        return None
    return f"{local_ip[:last_dot]}.0/24"


def detect_network_context(
    interface: Optional[str] = None,
    probes: Optional[SystemProbes] = None,
) -> NetworkContext:
    """
    Gather interface, addresses, subnet and gating flags for a scan run.

    Args:
        interface: Interface requested by the user (None for auto-detect)
        probes: Probe implementation answering the privilege/tool checks

    Returns:
        NetworkContext (fields are None when they could not be detected)
    """
    probes = probes or SystemProbes()

    selected: Optional[InterfaceInfo] = None
    if interface:
        ip, netmask = get_interface_ipv4(interface)
        selected = InterfaceInfo(
            name=interface,
            mac=get_interface_mac(interface),
            ipv4_address=ip,
            netmask=netmask,
            is_up=is_interface_up(interface),
        )
        if not ip:
            logger.warning(f"Interface '{interface}' has no IPv4 address assigned")
    else:
        selected = get_preferred_interface()

    gateway_ip, _ = get_default_gateway()
    local_ip = selected.ipv4_address if selected else None

    context = NetworkContext(
        interface=selected.name if selected else None,
        local_ip=local_ip,
        gateway_ip=gateway_ip,
        subnet=get_subnet(local_ip),
        is_privileged=probes.has_privilege(),
        full_scan_tool=probes.full_scan_tool_available(),
    )
    logger.info(f"Network context: {context.to_dict()}")
    return context
