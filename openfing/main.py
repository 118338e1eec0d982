#!/usr/bin/env python3
"""
OpenFing - Fast Network Scanner for Your Terminal

Main entry point for the application.

Flow:
    1. Detect interface, local IP, gateway, subnet, privilege and whether
       arp-scan is installed.
    2. Run NetworkScanner.discover() (full scan, ping sweep, or the
       unprivileged multi-method sequence).
    3. Optionally deep scan (reverse DNS + service ports).
    4. Print the device table, a summary and an estimated device-type
       breakdown; optionally export the results as JSON or CSV.
"""

import argparse
import csv
import json
import logging
import sys
from collections import Counter
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import List, Optional, Sequence

from openfing import __version__
from openfing.config import (
    HOSTNAME_UNRESOLVED,
    LOG_BACKUP_COUNT,
    LOG_DATE_FORMAT,
    LOG_FILE,
    LOG_FORMAT,
    LOG_MAX_BYTES,
    LOGS_DIR,
    TABLE_LABEL_WIDTH,
    DEBUG_MODE,
)
from openfing.modules import (
    Device,
    NetworkContext,
    NetworkScanner,
    classify_vendor,
    detect_network_context,
)
from openfing.modules.vendors import DEVICE_CATEGORIES, OTHER_CATEGORY

BANNER_WIDTH = 78
RULE = "+" + "-" * (BANNER_WIDTH - 1) + "+"

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """
    Setup application logging.

    Args:
        verbose: Show info/debug messages on the console
    """
    level = logging.DEBUG if verbose else logging.WARNING

    formatter = logging.Formatter(LOG_FORMAT, LOG_DATE_FORMAT)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    # File handler with rotation
    try:
        LOGS_DIR.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            LOG_FILE,
            maxBytes=LOG_MAX_BYTES,
            backupCount=LOG_BACKUP_COUNT
        )
        file_handler.setFormatter(formatter)
        file_handler.setLevel(logging.DEBUG)
        root_logger.addHandler(file_handler)
    except OSError as e:
        print(f"Warning: file logging disabled ({e})", file=sys.stderr)

    # Console handler; stdout is reserved for the results table
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    console_handler.setLevel(level)
    root_logger.addHandler(console_handler)

    logging.info("Logging initialized")


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------

def truncate(value: str, max_len: int) -> str:
    return value if len(value) <= max_len else value[:max_len]


def render_header() -> str:
    title = f"OpenFing v{__version__}"
    subtitle = "Fast Network Scanner for Your Terminal"
    inner = BANNER_WIDTH - 1
    return "\n".join([
        "+" + "=" * inner + "+",
        "|" + title.center(inner) + "|",
        "|" + subtitle.center(inner) + "|",
        "+" + "=" * inner + "+",
    ])


def render_network_info(context: NetworkContext) -> str:
    lines = [
        "Network Information:",
        "--------------------",
        f"  Your IP       : {context.local_ip or 'unknown'}",
        f"  Gateway       : {context.gateway_ip or 'unknown'}",
        f"  Subnet        : {context.subnet or 'unknown'}",
        f"  Interface     : {context.interface or 'unknown'}",
        f"  Running as    : "
        f"{'root/sudo' if context.is_privileged else 'user (limited mode)'}",
    ]
    if not context.is_privileged:
        lines += [
            "",
            RULE,
            "| NOTE: Running without sudo - using limited discovery methods".ljust(BANNER_WIDTH) + "|",
            "| For a full network scan, run: sudo openfing".ljust(BANNER_WIDTH) + "|",
            RULE,
        ]
    elif not context.full_scan_tool:
        lines += [
            "",
            "arp-scan not found, using ping sweep. Install it for a full scan:",
            "  brew install arp-scan | sudo apt install arp-scan",
        ]
    return "\n".join(lines)


def device_label(device: Device, context: Optional[NetworkContext] = None) -> str:
    """Vendor/hostname column text, tagging this host and the gateway."""
    if context is not None and context.local_ip == device.ip:
        return f"{truncate(device.vendor, 20)} (THIS DEVICE)"
    if context is not None and context.gateway_ip == device.ip:
        return f"{truncate(device.vendor, 22)} (GATEWAY)"
    if device.hostname and device.hostname != HOSTNAME_UNRESOLVED:
        return device.hostname
    return device.vendor


def render_device_table(
    devices: Sequence[Device],
    method: Optional[str],
    context: Optional[NetworkContext] = None,
    deep: bool = False,
) -> str:
    last_header = "OPEN PORTS" if deep else "STATUS"
    lines = [
        RULE,
        f"| DISCOVERED DEVICES ({len(devices)} found via {method or 'unknown'})",
        RULE,
        "",
        f"{'IP ADDRESS':<17} | {'MAC ADDRESS':<18} | "
        f"{'VENDOR/HOSTNAME':<{TABLE_LABEL_WIDTH}} | {last_header}",
        f"{'-' * 18}+{'-' * 20}+{'-' * (TABLE_LABEL_WIDTH + 2)}+{'-' * 12}",
    ]
    for device in devices:
        label = truncate(device_label(device, context), TABLE_LABEL_WIDTH)
        last = (device.open_ports or "-") if deep else "Online"
        lines.append(
            f"{device.ip:<17} | {device.mac:<18} | "
            f"{label:<{TABLE_LABEL_WIDTH}} | {last}"
        )
    return "\n".join(lines)


def render_summary(devices: Sequence[Device]) -> str:
    counts = Counter(classify_vendor(d.vendor) for d in devices)
    lines = [
        RULE,
        "| SUMMARY".ljust(BANNER_WIDTH) + "|",
        RULE,
        f"| Total Devices   : {len(devices):<58}|",
        f"| Online          : {len(devices):<58}|",
        RULE,
        "",
        "Device Types (estimated):",
        "-------------------------",
    ]
    for category in [name for name, _ in DEVICE_CATEGORIES] + [OTHER_CATEGORY]:
        if counts.get(category):
            lines.append(f"  {category:<16}: {counts[category]}")
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Export
# ---------------------------------------------------------------------------

EXPORT_FIELDS = ["ip", "mac", "vendor", "hostname", "open_ports", "source"]


def export_json(devices: Sequence[Device], path: Path) -> None:
    with open(path, "w") as f:
        json.dump([d.to_dict() for d in devices], f, indent=2)
    logger.info(f"Exported {len(devices)} devices to {path}")


def export_csv(devices: Sequence[Device], path: Path) -> None:
    with open(path, "w", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=EXPORT_FIELDS)
        writer.writeheader()
        for device in devices:
            writer.writerow(device.to_dict())
    logger.info(f"Exported {len(devices)} devices to {path}")


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="openfing",
        description="OpenFing - Fast Network Scanner for Your Terminal",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  openfing
  sudo openfing en0
  openfing --deep --json devices.json
        """
    )

    parser.add_argument(
        'interface',
        nargs='?',
        default=None,
        help='Network interface to scan (default: auto-detect)'
    )

    parser.add_argument(
        '-d', '--deep',
        action='store_true',
        help='Resolve hostnames and probe common service ports'
    )

    parser.add_argument(
        '--json',
        type=Path,
        default=None,
        metavar='PATH',
        help='Also write the device list as JSON'
    )

    parser.add_argument(
        '--csv',
        type=Path,
        default=None,
        metavar='PATH',
        help='Also write the device list as CSV'
    )

    parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        default=DEBUG_MODE,
        help='Enable verbose logging'
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'OpenFing {__version__}'
    )

    return parser


def run(args: argparse.Namespace, scanner: Optional[NetworkScanner] = None) -> int:
    """Execute one scan and print the results; returns the exit status."""
    context = detect_network_context(args.interface)

    print()
    print(render_header())
    print()
    print(render_network_info(context))
    print()
    print("Scanning network for devices...")
    print()

    scanner = scanner or NetworkScanner(interface=context.interface)
    if scanner.interface is None:
        scanner.interface = context.interface
    devices = scanner.discover(
        context.subnet,
        context.is_privileged,
        context.full_scan_tool,
        deep=args.deep,
    )

    if not devices:
        print("No devices found.", file=sys.stderr)
        if not context.is_privileged:
            print("Try running with sudo for a full scan: sudo openfing", file=sys.stderr)
        return 1

    print(render_device_table(devices, scanner.last_scan_method, context, deep=args.deep))
    print()
    print(render_summary(devices))
    print()

    if args.json:
        export_json(devices, args.json)
    if args.csv:
        export_csv(devices, args.csv)

    return 0


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)
    logger.info("OpenFing v%s starting", __version__)

    try:
        status = run(args)
    except KeyboardInterrupt:
        logger.info("Scan stopped by user")
        sys.exit(0)
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        sys.exit(1)

    sys.exit(status)


if __name__ == "__main__":
    main()
