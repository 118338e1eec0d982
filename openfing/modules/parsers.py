"""
Probe Output Parsers

One parser per discovery technique.  Each takes the raw text captured
from an external probe and returns zero or more ``Candidate`` records.
Lines that do not fit the expected shape, or that fail address
validation, are skipped; a parser never raises on bad input.
"""

import logging
import re
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from openfing.config import (
    SCAN_RECORD_BANNER_PREFIXES,
    SCAN_RECORD_SKIP_SUBSTRINGS,
    UNKNOWN_MAC,
    UNKNOWN_VENDOR,
)
from .addresses import (
    find_canonical_mac,
    find_mac_in_text,
    is_broadcast_or_multicast_ip,
    is_excluded_mac,
    is_valid_ipv4,
    normalize_mac,
)

logger = logging.getLogger(__name__)

# mac_lookup(ip) -> canonical MAC or None
MacLookup = Callable[[str], Optional[str]]

_LOCATION_RE = re.compile(r'location:', re.IGNORECASE)


@dataclass
class Candidate:
    """A raw ``(ip, mac?)`` observation emitted by a parser."""
    ip: str
    mac: Optional[str] = None
    vendor: Optional[str] = None


def _reportable_ip(ip: str) -> bool:
    return is_valid_ipv4(ip) and not is_broadcast_or_multicast_ip(ip)


# ---------------------------------------------------------------------------
# arp-scan records
# ---------------------------------------------------------------------------

def _clean_scan_vendor(vendor: str) -> str:
    dup_idx = vendor.find("(DUP:")
    if dup_idx > 0:
        vendor = vendor[:dup_idx].rstrip(" ")
    if vendor.startswith("(Unknown"):
        return UNKNOWN_VENDOR
    return vendor.strip() or UNKNOWN_VENDOR


def parse_scan_records(text: str) -> List[Candidate]:
    """Parse ``arp-scan`` output: ``ip<TAB>mac<TAB>vendor`` per host.

    Banner/footer lines and packet-count summaries are skipped, a
    ``(Unknown...)`` vendor becomes ``"Unknown"`` and a trailing
    ``(DUP: n)`` marker is removed.
    """
    candidates: List[Candidate] = []
    for line in (text or "").splitlines():
        if not line:
            continue
        if line.startswith(SCAN_RECORD_BANNER_PREFIXES):
            continue
        if any(s in line for s in SCAN_RECORD_SKIP_SUBSTRINGS):
            continue

        parts = line.split("\t")
        if len(parts) < 2:
            continue
        ip = parts[0].strip()
        if not _reportable_ip(ip):
            continue

        mac = normalize_mac(parts[1])
        if mac is None or is_excluded_mac(mac):
            continue

        vendor = _clean_scan_vendor(parts[2]) if len(parts) > 2 else UNKNOWN_VENDOR
        candidates.append(Candidate(ip=ip, mac=mac, vendor=vendor))

    logger.debug("Scan-record parser produced %d candidates", len(candidates))
    return candidates


# ---------------------------------------------------------------------------
# Address cache (arp -a)
# ---------------------------------------------------------------------------

def parse_address_cache(text: str) -> List[Candidate]:
    """Parse address-cache lines of the form ``name (ip) at mac ...``.

    The MAC is taken from a standalone ``xx:xx:xx:xx:xx:xx`` run when one
    follows the IP, otherwise located with the free-text scanner (handles
    the non-zero-padded form printed by macOS).  Incomplete entries and
    broadcast/multicast addresses are dropped.
    """
    candidates: List[Candidate] = []
    for line in (text or "").splitlines():
        ip_start = line.find("(")
        if ip_start < 0:
            continue
        ip_end = line.find(")", ip_start)
        if ip_end < 0:
            continue
        ip = line[ip_start + 1:ip_end]
        if not _reportable_ip(ip):
            continue

        rest = line[ip_end + 1:]
        mac = find_canonical_mac(rest) or find_mac_in_text(rest)
        if mac is None or is_excluded_mac(mac):
            continue

        candidates.append(Candidate(ip=ip, mac=mac))

    logger.debug("Address-cache parser produced %d candidates", len(candidates))
    return candidates


# ---------------------------------------------------------------------------
# Liveness-only parsers (MAC resolved by a targeted cache lookup)
# ---------------------------------------------------------------------------

def _with_lookup(
    ip: str,
    mac_lookup: Optional[MacLookup],
    seen: Dict[str, Candidate],
) -> Optional[Candidate]:
    if ip in seen:
        return None
    mac = mac_lookup(ip) if mac_lookup else None
    if mac is not None and is_excluded_mac(mac):
        mac = None
    candidate = Candidate(ip=ip, mac=mac or UNKNOWN_MAC)
    seen[ip] = candidate
    return candidate


def _location_host(line: str) -> Optional[str]:
    match = _LOCATION_RE.search(line)
    if not match:
        return None
    url = line[match.end():].strip()
    scheme_idx = url.find("://")
    if scheme_idx >= 0:
        url = url[scheme_idx + 3:]
    end = len(url)
    for stop in (":", "/", " "):
        idx = url.find(stop)
        if 0 <= idx < end:
            end = idx
    return url[:end]


def parse_service_locations(
    text: str, mac_lookup: Optional[MacLookup] = None
) -> List[Candidate]:
    """Parse SSDP replies, using the host of each ``LOCATION:`` URL."""
    seen: Dict[str, Candidate] = {}
    candidates: List[Candidate] = []
    for line in (text or "").splitlines():
        host = _location_host(line)
        if not host or not _reportable_ip(host):
            continue
        candidate = _with_lookup(host, mac_lookup, seen)
        if candidate:
            candidates.append(candidate)

    logger.debug("Service-location parser produced %d candidates", len(candidates))
    return candidates


def parse_port_reachability(
    text: str, mac_lookup: Optional[MacLookup] = None
) -> List[Candidate]:
    """Parse ``ip:port`` lines; the port only proves the host is alive."""
    seen: Dict[str, Candidate] = {}
    candidates: List[Candidate] = []
    for line in (text or "").splitlines():
        line = line.strip()
        ip, sep, port = line.rpartition(":")
        if not sep or not port.isdigit():
            continue
        if not _reportable_ip(ip):
            continue
        candidate = _with_lookup(ip, mac_lookup, seen)
        if candidate:
            candidates.append(candidate)

    logger.debug("Port-reachability parser produced %d candidates", len(candidates))
    return candidates


def parse_name_query(
    text: str, mac_lookup: Optional[MacLookup] = None
) -> List[Candidate]:
    """Parse NetBIOS name-query output reduced to one responding IP per line."""
    seen: Dict[str, Candidate] = {}
    candidates: List[Candidate] = []
    for line in (text or "").splitlines():
        ip = line.strip()
        if not _reportable_ip(ip):
            continue
        candidate = _with_lookup(ip, mac_lookup, seen)
        if candidate:
            candidates.append(candidate)

    logger.debug("Name-query parser produced %d candidates", len(candidates))
    return candidates
