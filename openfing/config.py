"""
OpenFing Configuration Module

Contains all configuration constants and default values for the scanner.
"""

import os
from pathlib import Path
from typing import List, Tuple


# Environment Variable Overrides
def get_env_int(key: str, default: int) -> int:
    """Get integer from environment variable with fallback to default."""
    try:
        return int(os.getenv(key, default))
    except (ValueError, TypeError):
        return default

def get_env_float(key: str, default: float) -> float:
    """Get float from environment variable with fallback to default."""
    try:
        return float(os.getenv(key, default))
    except (ValueError, TypeError):
        return default

def get_env_bool(key: str, default: bool) -> bool:
    """Get boolean from environment variable with fallback to default."""
    value = os.getenv(key, str(default)).lower()
    return value in ("true", "1", "yes", "on")

def get_env_str(key: str, default: str) -> str:
    """Get string from environment variable with fallback to default."""
    value = os.getenv(key)
    return value.strip() if value else default


# Project Paths
APP_HOME = Path(get_env_str("OPENFING_HOME", str(Path.home() / ".openfing")))
LOGS_DIR = APP_HOME / "logs"

# Full scan tool (arp-scan) lookup locations, tried after $PATH
FULL_SCAN_TOOL = "arp-scan"
FULL_SCAN_TOOL_PATHS = [
    "/opt/homebrew/bin/arp-scan",
    "/usr/sbin/arp-scan",
    "/usr/local/bin/arp-scan",
]
FULL_SCAN_TIMEOUT = 30  # seconds

# Scan-record banner lines emitted by arp-scan
SCAN_RECORD_BANNER_PREFIXES = ("Interface:", "Starting", "Ending")
SCAN_RECORD_SKIP_SUBSTRINGS = ("packets",)

# Ping sweep
PING_SWEEP_FIRST_HOST = 1
PING_SWEEP_LAST_HOST = 254
PING_TIMEOUT = 1  # seconds, per probe
PING_SWEEP_SETTLE = get_env_float("OPENFING_SWEEP_SETTLE", 2.0)  # seconds

# Address cache
ARP_CACHE_TIMEOUT = 5  # seconds
PROC_NET_ARP = Path("/proc/net/arp")

# Name service (mDNS) browse
NAME_SERVICE_TIMEOUT = 4  # seconds

# Service location (SSDP)
SSDP_ADDR = "239.255.255.250"
SSDP_PORT = 1900
SSDP_MX = 2
SSDP_TIMEOUT = 3.0  # seconds of listening for replies

# Name query (NetBIOS)
NAME_QUERY_TOOL = "nmblookup"
NAME_QUERY_TIMEOUT = 5  # seconds

# Bare port reachability sweep
REACHABILITY_PORTS: Tuple[int, ...] = (22, 80, 443)
REACHABILITY_TIMEOUT = 0.3  # seconds, per connect
REACHABILITY_WORKERS = 64

# Deep scan
HOSTNAME_TIMEOUT = 1.0  # seconds
DEEP_SCAN_PORT_TIMEOUT = 0.5  # seconds, per connect
DEEP_SCAN_WORKERS = get_env_int("OPENFING_DEEP_SCAN_WORKERS", 8)
DEEP_SCAN_PORTS: List[Tuple[int, str]] = [
    (22, "SSH"),
    (80, "HTTP"),
    (443, "HTTPS"),
    (445, "SMB"),
    (548, "AFP"),
    (3389, "RDP"),
    (5000, "UPnP"),
    (8080, "HTTP-Alt"),
    (9100, "Print"),
    (62078, "iPhone"),
]

# Sentinels
UNKNOWN_MAC = "unknown"
UNKNOWN_VENDOR = "Unknown"
HOSTNAME_UNRESOLVED = "?"

# Logging Configuration
LOG_FILE = LOGS_DIR / "openfing.log"
LOG_MAX_BYTES = 5 * 1024 * 1024  # 5MB
LOG_BACKUP_COUNT = 3
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Display
TABLE_LABEL_WIDTH = 34

DEBUG_MODE = get_env_bool("OPENFING_DEBUG", False)
