"""
Device Aggregation Module

Folds the candidates produced by every discovery stage into one canonical
device set and hands it back in ascending IP order.

Architecture:
    - Device:  the single domain record (ip, mac, vendor, hostname,
      open_ports).  Created on first sighting, mutated in place by later
      stages, discarded with the run.
    - DeviceRegistry:  in-memory dict of devices keyed by IP.  Applies the
      merge rule (first-seen wins, except that an unknown MAC is upgraded
      when a later stage resolves it) and produces the ordered result.

All public registry methods are thread-safe.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Dict, List, Optional

from openfing.config import UNKNOWN_MAC, UNKNOWN_VENDOR
from .addresses import (
    ip_to_int,
    is_broadcast_or_multicast_ip,
    is_excluded_mac,
    is_valid_ipv4,
    normalize_mac,
)
from .parsers import Candidate
from .vendors import resolve_vendor

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Data structures
# ---------------------------------------------------------------------------

@dataclass
class Device:
    """A device discovered on the local network."""
    ip: str
    mac: str = UNKNOWN_MAC
    vendor: str = UNKNOWN_VENDOR
    hostname: Optional[str] = None  # only set by a deep scan
    open_ports: str = ""
    source: str = ""

    @property
    def has_mac(self) -> bool:
        return self.mac != UNKNOWN_MAC

    def to_dict(self) -> Dict:
        return {
            "ip": self.ip,
            "mac": self.mac,
            "vendor": self.vendor,
            "hostname": self.hostname,
            "open_ports": self.open_ports,
            "source": self.source,
        }


def _vendor_for(mac: str, supplied: Optional[str]) -> str:
    if supplied and supplied != UNKNOWN_VENDOR:
        return supplied
    if mac == UNKNOWN_MAC:
        return UNKNOWN_VENDOR
    return resolve_vendor(mac)


# ---------------------------------------------------------------------------
# Device Registry
# ---------------------------------------------------------------------------

class DeviceRegistry:
    """In-memory device set for one discovery run, keyed by IP."""

    def __init__(self):
        self._devices: Dict[str, Device] = {}
        self._lock = threading.Lock()

    # -- read helpers --------------------------------------------------------

    @property
    def device_count(self) -> int:
        with self._lock:
            return len(self._devices)

    def get(self, ip: str) -> Optional[Device]:
        with self._lock:
            return self._devices.get(ip)

    def ordered(self) -> List[Device]:
        """Devices sorted ascending by the numeric value of their IP."""
        with self._lock:
            return sorted(self._devices.values(), key=lambda d: ip_to_int(d.ip))

    def snapshot(self) -> Dict[str, Dict]:
        """Return a JSON-serialisable snapshot."""
        with self._lock:
            return {ip: dev.to_dict() for ip, dev in self._devices.items()}

    # -- write helpers -------------------------------------------------------

    def merge(self, candidate: Candidate, source: str = "") -> bool:
        """Fold one candidate into the registry.

        - Unknown IP: a new Device is created.
        - Known IP whose MAC is still unknown, candidate with a valid MAC:
          the MAC is replaced and the vendor recomputed.
        - Anything else leaves the existing Device untouched.

        Returns:
            True if the registry changed.
        """
        ip = candidate.ip
        if not is_valid_ipv4(ip) or is_broadcast_or_multicast_ip(ip):
            return False

        mac = UNKNOWN_MAC
        if candidate.mac and candidate.mac != UNKNOWN_MAC:
            normalized = normalize_mac(candidate.mac)
            if normalized is None or is_excluded_mac(normalized):
                return False
            mac = normalized

        with self._lock:
            existing = self._devices.get(ip)
            if existing is None:
                self._devices[ip] = Device(
                    ip=ip,
                    mac=mac,
                    vendor=_vendor_for(mac, candidate.vendor),
                    source=source,
                )
                logger.debug("New device %s (%s) via %s", ip, mac, source)
                return True

            if not existing.has_mac and mac != UNKNOWN_MAC:
                existing.mac = mac
                existing.vendor = _vendor_for(mac, candidate.vendor)
                logger.debug("Resolved MAC for %s -> %s via %s", ip, mac, source)
                return True

            return False

    def merge_all(self, candidates: List[Candidate], source: str = "") -> int:
        """Merge a batch of candidates; returns how many changed the registry."""
        return sum(1 for c in candidates if self.merge(c, source))
