"""
OUI / MAC vendor lookup

Deterministic manufacturer resolution from the first three octets of a
hardware address, backed by a small static table of common home and
office network vendors.
"""

import logging
from typing import Dict, List, Tuple

from openfing.config import UNKNOWN_VENDOR

logger = logging.getLogger(__name__)

_VENDOR_PREFIXES: Dict[str, List[str]] = {
    "VMware": ["00163E", "000C29", "005056"],
    "Apple": [
        "0017F2", "002481", "00037A", "ACDE48", "D0817A", "F0D1A9",
        "5C5027", "F0B479", "ACBC32", "7CD1C3", "A4B197", "3C06A7",
        "4C20B8",
    ],
    "Samsung": ["9C5C8E", "98D6BB", "C44202"],
    "Huawei": ["B8D7AF", "E8BBA8", "48A472", "E8EA4D"],
    "Xiaomi": ["64B473", "8CBEBE", "F8A45F"],
    "Realtek": ["00E04C", "525400", "4CED24"],
    "Intel": ["001E58", "8C8CAA", "A4C3F0"],
    "Dell": ["B499BA", "F8BC12", "4C7625"],
    "HP": ["3C970E", "98E7F4"],
    "Lenovo": ["94E6F7", "C82A14", "E89216"],
    "TP-Link": ["B0BE76", "E0E62E", "6466B3"],
    "Netgear": ["1062EB", "9CD36D", "C43DC7"],
    "Cisco": ["F832E4", "001D7E"],
    "ASUS": ["2CFDA1", "08606E", "10C37B"],
    "Espressif": ["240DC2", "A020A6", "AC84C6"],
    "Amazon": ["F0272D", "74C246", "A002DC"],
    "Google": ["3C5AB4", "F4F5D8", "54609A"],
    "Nest": ["18B430", "64166D"],
    "Ring": ["343EA4", "54E019"],
    "Sonos": ["B8E937", "5CA6E6", "947AF0"],
    "Raspberry Pi": ["B827EB", "DCA632", "E45F01"],
    "Microsoft": ["001DD8", "7CB27D", "98DE00"],
    "Sony": ["001FA7", "0004FF", "F8461C"],
    "Nintendo": ["002709", "0022AA", "E0E751"],
    "Roku": ["B8A1B8", "D02544", "84EA64"],
    "Ubiquiti": ["802AA8", "F09FC2", "68D79A"],
    "MikroTik": ["4C5E0C", "D4CA6D", "E4D332"],
    "Shenzhen Maxtang": ["B0416F"],
}

OUI_VENDORS: Dict[str, str] = {
    prefix: vendor
    for vendor, prefixes in _VENDOR_PREFIXES.items()
    for prefix in prefixes
}

# Coarse device categories, checked in order against the vendor label
DEVICE_CATEGORIES: List[Tuple[str, Tuple[str, ...]]] = [
    ("Apple Devices", ("apple", "iphone", "ipad")),
    ("Android/Mobile", ("samsung", "huawei", "xiaomi", "oppo", "oneplus")),
    ("Network Equip.", (
        "cisco", "netgear", "tp-link", "asus", "linksys", "ubiquiti", "mikrotik",
    )),
    ("Computers", ("dell", "hp", "lenovo", "intel", "realtek", "microsoft")),
    ("IoT/Smart Home", (
        "espressif", "tuya", "amazon", "google", "nest", "ring", "sonos",
    )),
]
OTHER_CATEGORY = "Other/Unknown"


def resolve_vendor(mac: str) -> str:
    """Look up the manufacturer for a hardware address.

    The first six significant characters (separators ignored) are matched
    case-insensitively against ``OUI_VENDORS``.  Anything shorter or
    unmatched resolves to ``"Unknown"``.
    """
    if not mac:
        return UNKNOWN_VENDOR

    prefix = "".join(ch for ch in mac if ch not in ":-")[:6].upper()
    if len(prefix) < 6:
        return UNKNOWN_VENDOR

    vendor = OUI_VENDORS.get(prefix, UNKNOWN_VENDOR)
    logger.debug("Vendor lookup %s -> %s", prefix, vendor)
    return vendor


def classify_vendor(vendor: str) -> str:
    """Estimate a device category from a vendor label."""
    label = (vendor or "").lower()
    for category, keywords in DEVICE_CATEGORIES:
        if any(keyword in label for keyword in keywords):
            return category
    return OTHER_CATEGORY
