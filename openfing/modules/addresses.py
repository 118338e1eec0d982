"""
Address Helpers

Lenient IPv4 validation, hardware address canonicalization and the
free-text MAC scanner shared by every probe output parser.

All MAC comparisons in the scanner happen on the canonical
``XX:XX:XX:XX:XX:XX`` form produced here.
"""

import re
from typing import Optional

HEX_DIGITS = "0123456789abcdefABCDEF"

BROADCAST_MAC = "FF:FF:FF:FF:FF:FF"
MULTICAST_MAC_PREFIX = "01:"

# Six colon/hyphen separated groups of one or two hex digits
_MAC_FIELD_RE = re.compile(
    r'^([0-9A-Fa-f]{1,2})([:-][0-9A-Fa-f]{1,2}){5}$'
)

# Standalone, already zero-padded address as printed by most tools
_CANONICAL_RUN_RE = re.compile(
    r'(?<![0-9A-Fa-f:])([0-9A-Fa-f]{2}(?::[0-9A-Fa-f]{2}){5})(?![0-9A-Fa-f:])'
)


def is_valid_ipv4(value: str) -> bool:
    """Return True when *value* looks like a dotted quad.

    Only the shape is checked: exactly three dots and nothing but decimal
    digits otherwise.  Octet ranges and leading zeros are not validated.
    """
    if not value:
        return False
    dots = 0
    for ch in value:
        if ch == ".":
            dots += 1
        elif ch not in "0123456789":
            return False
    return dots == 3


def normalize_mac(value: str) -> Optional[str]:
    """Canonicalize a hardware address.

    Accepts colon or hyphen separators, mixed case and octets written
    with a single hex digit (``b0:41:6f:d:78:17``).

    Returns:
        ``XX:XX:XX:XX:XX:XX`` or None when *value* is not six octets.
    """
    if not value:
        return None
    value = value.strip()
    if not _MAC_FIELD_RE.match(value):
        return None
    octets = re.split(r'[:-]', value)
    return ":".join(octet.zfill(2).upper() for octet in octets)


def find_mac_in_text(text: str) -> Optional[str]:
    """Locate the first embedded hardware address in free text.

    Scans left to right for a run of colon-delimited groups of one or two
    hex digits.  A run may not begin inside a longer hex token and is
    accepted only once it has accumulated exactly six groups; shorter runs
    are discarded and scanning resumes after them.  This is a greedy
    first match, so six colon-separated numbers that are not a MAC will
    still be reported.

    Returns:
        Canonical address or None when no run qualifies.
    """
    if not text:
        return None

    length = len(text)
    i = 0
    while i < length:
        if text[i] not in HEX_DIGITS or (i > 0 and text[i - 1] in HEX_DIGITS):
            i += 1
            continue

        groups = []
        pos = i
        while True:
            end = pos
            while end < length and end - pos < 2 and text[end] in HEX_DIGITS:
                end += 1
            group = text[pos:end]
            if not group or (end < length and text[end] in HEX_DIGITS):
                # Empty group or a token longer than two hex digits
                break
            if int(group, 16) > 255:
                break
            groups.append(group)
            if len(groups) == 6:
                break
            if end < length - 1 and text[end] == ":" and text[end + 1] in HEX_DIGITS:
                pos = end + 1
                continue
            break

        if len(groups) == 6:
            return ":".join(g.zfill(2).upper() for g in groups)

        i += 1

    return None


def find_canonical_mac(text: str) -> Optional[str]:
    """Return the first standalone 17-character ``xx:xx:..`` run, uppercased."""
    if not text:
        return None
    match = _CANONICAL_RUN_RE.search(text)
    if match:
        return match.group(1).upper()
    return None


def is_excluded_mac(mac: Optional[str]) -> bool:
    """True for the all-ones broadcast address and multicast addresses."""
    if not mac:
        return False
    mac = mac.upper()
    return mac == BROADCAST_MAC or mac.startswith(MULTICAST_MAC_PREFIX)


def is_broadcast_or_multicast_ip(ip: str) -> bool:
    """True for ``*.255`` and for 224.0.0.0 - 239.255.255.255."""
    if ip.endswith(".255"):
        return True
    first_octet = ip.split(".", 1)[0]
    if first_octet.isdigit() and 224 <= int(first_octet) <= 239:
        return True
    return False


def ip_to_int(ip: str) -> int:
    """Convert a dotted quad to its 32-bit big-endian integer value.

    Mirrors the lenient validator: characters other than digits and dots
    are ignored and oversized octets wrap instead of raising.
    """
    result = 0
    octet = 0
    shift = 24
    for ch in ip:
        if ch == ".":
            result |= (octet << shift) & 0xFFFFFFFF
            octet = 0
            if shift >= 8:
                shift -= 8
        elif ch.isdigit():
            octet = (octet * 10 + int(ch)) & 0xFFFFFFFF
    result |= octet
    return result & 0xFFFFFFFF


def subnet_prefix(subnet: Optional[str]) -> Optional[str]:
    """Network prefix used for per-host sweeps.

    ``"192.168.1.0/24"`` -> ``"192.168.1."``.  Returns None when the subnet
    is unknown or has no dot.
    """
    if not subnet:
        return None
    address = subnet.split("/", 1)[0].strip()
    last_dot = address.rfind(".")
    if last_dot <= 0:
        return None
    return address[:last_dot + 1]
