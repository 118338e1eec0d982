"""
Discovery Probes

The scanner never talks to the network itself.  Every probe is an
external collaborator that returns raw text (or a boolean) and is
injected into ``NetworkScanner``, so tests can substitute a
deterministic fake for the real system commands.

``SystemProbes`` is the production implementation: it shells out to
``arp-scan``, ``ping``, ``arp``, ``avahi-browse``/``dns-sd`` and
``nmblookup``, and uses plain sockets for SSDP, TCP connects and reverse
DNS.  Every method degrades to empty text / False on failure.
"""

import concurrent.futures
import logging
import os
import platform
import shutil
import socket
import subprocess
import time
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence, Tuple

from openfing.config import (
    ARP_CACHE_TIMEOUT,
    DEEP_SCAN_PORT_TIMEOUT,
    FULL_SCAN_TIMEOUT,
    FULL_SCAN_TOOL,
    FULL_SCAN_TOOL_PATHS,
    HOSTNAME_TIMEOUT,
    NAME_QUERY_TIMEOUT,
    NAME_QUERY_TOOL,
    NAME_SERVICE_TIMEOUT,
    PING_SWEEP_FIRST_HOST,
    PING_SWEEP_LAST_HOST,
    PING_SWEEP_SETTLE,
    PING_TIMEOUT,
    PROC_NET_ARP,
    REACHABILITY_TIMEOUT,
    REACHABILITY_WORKERS,
    SSDP_ADDR,
    SSDP_MX,
    SSDP_PORT,
    SSDP_TIMEOUT,
)

logger = logging.getLogger(__name__)

ZERO_MAC = "00:00:00:00:00:00"
INCOMPLETE_ARP_FLAGS = "0x0"


class DiscoveryProbes(ABC):
    """Contract between the scanner and the outside world."""

    @abstractmethod
    def run_full_scan(self, interface: Optional[str]) -> str:
        """arp-scan style records for every responding host, or ``""``."""

    @abstractmethod
    def sweep_and_read_cache(self, prefix: str) -> str:
        """Best-effort liveness sweep of ``prefix``1-254, then a cache dump."""

    @abstractmethod
    def read_address_cache(self) -> str:
        """Address-cache dump without a sweep."""

    @abstractmethod
    def lookup_cache_entry(self, ip: str) -> str:
        """Address-cache text for a single IP."""

    @abstractmethod
    def name_service_browse(self) -> str:
        """mDNS browse output followed by a cache dump, ``""`` if no tool."""

    @abstractmethod
    def service_location_query(self) -> str:
        """SSDP replies (``LOCATION:`` headers) followed by a cache dump."""

    @abstractmethod
    def name_query_available(self) -> bool:
        """Whether the NetBIOS name-query tool is installed."""

    @abstractmethod
    def name_query(self, prefix: str) -> str:
        """Responding IPs, one per line, followed by a cache dump."""

    @abstractmethod
    def port_reachability_probe(self, prefix: str, ports: Sequence[int]) -> str:
        """``ip:port`` lines for open ports, followed by a cache dump."""

    @abstractmethod
    def resolve_hostname(self, ip: str) -> str:
        """Reverse-DNS name or ``""``."""

    @abstractmethod
    def tcp_connect(self, ip: str, port: int) -> bool:
        """True if a TCP connection to ``ip:port`` succeeds."""

    @abstractmethod
    def has_privilege(self) -> bool:
        """True when running with root privileges."""

    @abstractmethod
    def full_scan_tool_available(self) -> bool:
        """True when arp-scan can be found."""


def find_full_scan_tool() -> Optional[str]:
    """Locate the arp-scan binary on $PATH or in the usual install paths."""
    found = shutil.which(FULL_SCAN_TOOL)
    if found:
        return found
    for path in FULL_SCAN_TOOL_PATHS:
        if os.path.isfile(path) and os.access(path, os.X_OK):
            return path
    return None


class SystemProbes(DiscoveryProbes):
    """Probe implementation backed by system commands and sockets."""

    def __init__(
        self,
        settle_seconds: float = PING_SWEEP_SETTLE,
        connect_timeout: float = DEEP_SCAN_PORT_TIMEOUT,
    ):
        """
        Args:
            settle_seconds: Pause between firing the ping sweep and
                reading the address cache.
            connect_timeout: Per-connect timeout for deep-scan port probes.
        """
        self.settle_seconds = settle_seconds
        self.connect_timeout = connect_timeout
        self._is_macos = platform.system() == "Darwin"

    # ------------------------------------------------------------------
    # Command execution
    # ------------------------------------------------------------------

    def _run_command(
        self, cmd: List[str], timeout: float = ARP_CACHE_TIMEOUT
    ) -> Tuple[str, str, int]:
        """
        Execute a command and return output.

        Args:
            cmd: Command and arguments
            timeout: Command timeout in seconds

        Returns:
            Tuple of (stdout, stderr, return_code)
        """
        try:
            logger.debug(f"Running command: {' '.join(cmd)}")
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=timeout,
            )
            return result.stdout, result.stderr, result.returncode
        except subprocess.TimeoutExpired:
            logger.debug(f"Command timed out after {timeout}s: {' '.join(cmd)}")
            return "", "Command timed out", -1
        except FileNotFoundError:
            logger.debug(f"Command not found: {cmd[0]}")
            return "", f"Command not found: {cmd[0]}", -1
        except PermissionError:
            logger.warning(f"Permission denied running: {cmd[0]}")
            return "", f"Permission denied: {cmd[0]}", -1
        except OSError as e:
            logger.error(f"OS error running command {cmd[0]}: {e}")
            return "", str(e), -1

    def _capture(self, cmd: List[str], timeout: float = ARP_CACHE_TIMEOUT) -> str:
        """stdout of a successful command, ``""`` otherwise."""
        stdout, stderr, returncode = self._run_command(cmd, timeout=timeout)
        if returncode != 0:
            if stderr:
                logger.debug(f"{cmd[0]} exited with {returncode}: {stderr.strip()}")
            return ""
        return stdout

    def _with_cache_trailer(self, text: str) -> str:
        cache = self.read_address_cache()
        if not text:
            return cache
        return f"{text.rstrip()}\n{cache}"

    # ------------------------------------------------------------------
    # Full scan
    # ------------------------------------------------------------------

    def full_scan_tool_available(self) -> bool:
        return find_full_scan_tool() is not None

    def run_full_scan(self, interface: Optional[str]) -> str:
        tool = find_full_scan_tool()
        if tool is None:
            logger.debug("arp-scan not installed")
            return ""
        cmd = [tool, "--localnet"]
        if interface:
            cmd.extend(["-I", interface])
        return self._capture(cmd, timeout=FULL_SCAN_TIMEOUT)

    # ------------------------------------------------------------------
    # Address cache
    # ------------------------------------------------------------------

    def read_address_cache(self) -> str:
        """Dump the ARP cache via ``arp -an``.

        Falls back to rendering ``/proc/net/arp`` in the same
        ``? (ip) at mac [ether] on dev`` shape when net-tools is missing.
        """
        stdout = self._capture(["arp", "-an"], timeout=ARP_CACHE_TIMEOUT)
        if stdout:
            return stdout
        return self._read_proc_arp()

    @staticmethod
    def _read_proc_arp() -> str:
        lines = []
        try:
            with open(PROC_NET_ARP, "r") as f:
                for line in f.readlines()[1:]:  # skip header
                    parts = line.split()
                    if len(parts) < 6:
                        continue
                    # Incomplete neighbour entries left behind by the sweep
                    if parts[2] == INCOMPLETE_ARP_FLAGS or parts[3] == ZERO_MAC:
                        continue
                    lines.append(
                        f"? ({parts[0]}) at {parts[3]} [ether] on {parts[5]}"
                    )
        except OSError as e:
            logger.debug("Could not read %s: %s", PROC_NET_ARP, e)
        return "\n".join(lines)

    def lookup_cache_entry(self, ip: str) -> str:
        stdout = self._capture(["arp", "-n", ip], timeout=ARP_CACHE_TIMEOUT)
        if stdout:
            return stdout
        needle = f"({ip})"
        return "\n".join(
            line for line in self._read_proc_arp().splitlines() if needle in line
        )

    def _ping_command(self, ip: str) -> List[str]:
        if self._is_macos:
            return ["ping", "-c", "1", "-t", str(PING_TIMEOUT), ip]
        return ["ping", "-c", "1", "-W", str(PING_TIMEOUT), ip]

    def sweep_and_read_cache(self, prefix: str) -> str:
        """Fire one ping per host without waiting, settle, then read the cache."""
        procs: List[subprocess.Popen] = []
        for host in range(PING_SWEEP_FIRST_HOST, PING_SWEEP_LAST_HOST + 1):
            try:
                procs.append(subprocess.Popen(
                    self._ping_command(f"{prefix}{host}"),
                    stdout=subprocess.DEVNULL,
                    stderr=subprocess.DEVNULL,
                ))
            except OSError as e:
                logger.warning(f"Ping sweep aborted: {e}")
                break

        logger.debug(
            "Fired %d pings on %s*, settling %.1fs",
            len(procs), prefix, self.settle_seconds,
        )
        time.sleep(self.settle_seconds)

        finished = sum(1 for proc in procs if proc.poll() is not None)
        logger.debug("%d/%d pings finished before cache read", finished, len(procs))

        cache = self.read_address_cache()

        # Late replies can no longer reach the cache dump
        for proc in procs:
            if proc.poll() is None:
                proc.kill()
                proc.wait()

        return cache

    # ------------------------------------------------------------------
    # Multicast / broadcast discovery
    # ------------------------------------------------------------------

    def name_service_browse(self) -> str:
        if shutil.which("avahi-browse"):
            cmd = ["avahi-browse", "-a", "-t", "-r", "-p"]
        elif shutil.which("dns-sd"):
            # dns-sd never exits on its own; the timeout ends the browse
            cmd = ["dns-sd", "-B", "_services._dns-sd._udp", "local."]
        else:
            logger.debug("No mDNS browse tool installed")
            return ""
        stdout, _, _ = self._run_command(cmd, timeout=NAME_SERVICE_TIMEOUT)
        return self._with_cache_trailer(stdout)

    def service_location_query(self) -> str:
        request = (
            "M-SEARCH * HTTP/1.1\r\n"
            f"HOST: {SSDP_ADDR}:{SSDP_PORT}\r\n"
            'MAN: "ssdp:discover"\r\n'
            f"MX: {SSDP_MX}\r\n"
            "ST: ssdp:all\r\n"
            "\r\n"
        ).encode()

        responses: List[str] = []
        sock = None
        try:
            sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
            sock.setsockopt(socket.IPPROTO_IP, socket.IP_MULTICAST_TTL, 2)
            sock.settimeout(0.5)
            sock.sendto(request, (SSDP_ADDR, SSDP_PORT))

            deadline = time.monotonic() + SSDP_TIMEOUT
            while time.monotonic() < deadline:
                try:
                    data, _addr = sock.recvfrom(4096)
                except socket.timeout:
                    continue
                responses.append(data.decode("utf-8", errors="ignore"))
        except OSError as e:
            logger.debug(f"SSDP query failed: {e}")
        finally:
            if sock is not None:
                sock.close()

        logger.debug("SSDP query received %d replies", len(responses))
        return self._with_cache_trailer("\n".join(responses))

    def name_query_available(self) -> bool:
        return shutil.which(NAME_QUERY_TOOL) is not None

    def name_query(self, prefix: str) -> str:
        if not self.name_query_available():
            return ""
        stdout, _, _ = self._run_command(
            [NAME_QUERY_TOOL, "-B", f"{prefix}255", "*"],
            timeout=NAME_QUERY_TIMEOUT,
        )
        # "192.168.1.10 *<00>" -> "192.168.1.10"
        ips = [line.split()[0] for line in stdout.splitlines() if line.split()]
        return self._with_cache_trailer("\n".join(ips))

    def port_reachability_probe(self, prefix: str, ports: Sequence[int]) -> str:
        targets = [
            (f"{prefix}{host}", port)
            for host in range(PING_SWEEP_FIRST_HOST, PING_SWEEP_LAST_HOST + 1)
            for port in ports
        ]
        with concurrent.futures.ThreadPoolExecutor(
            max_workers=REACHABILITY_WORKERS
        ) as executor:
            results = list(executor.map(
                lambda target: self._connect(target[0], target[1], REACHABILITY_TIMEOUT),
                targets,
            ))

        lines = [
            f"{ip}:{port}" for (ip, port), is_open in zip(targets, results) if is_open
        ]
        logger.debug("Port reachability found %d open ip:port pairs", len(lines))
        return self._with_cache_trailer("\n".join(lines))

    # ------------------------------------------------------------------
    # Per-device probes
    # ------------------------------------------------------------------

    @staticmethod
    def _connect(ip: str, port: int, timeout: float) -> bool:
        try:
            with socket.create_connection((ip, port), timeout=timeout):
                return True
        except OSError:
            return False

    def tcp_connect(self, ip: str, port: int) -> bool:
        return self._connect(ip, port, self.connect_timeout)

    def resolve_hostname(self, ip: str) -> str:
        executor = concurrent.futures.ThreadPoolExecutor(max_workers=1)
        future = executor.submit(socket.gethostbyaddr, ip)
        try:
            hostname, _, _ = future.result(timeout=HOSTNAME_TIMEOUT)
            return hostname
        except concurrent.futures.TimeoutError:
            logger.debug(f"Reverse DNS timed out for {ip}")
            return ""
        except OSError:
            return ""
        finally:
            executor.shutdown(wait=False)

    # ------------------------------------------------------------------
    # Gating inputs
    # ------------------------------------------------------------------

    def has_privilege(self) -> bool:
        geteuid = getattr(os, "geteuid", None)
        return geteuid is not None and geteuid() == 0
