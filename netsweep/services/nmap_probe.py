"""Optional nmap-backed probe for service version detection."""

import asyncio
import logging
import os
import shutil
import xml.etree.ElementTree as ET
from collections.abc import Sequence

from ..errors import ProbeTimeoutError, ProbeTransportError
from ..models.scan_result import ProbeResult

logger = logging.getLogger(__name__)


def format_ports(ports: Sequence[int]) -> str:
    """Compress a port list for nmap's -p flag, e.g. [1, 2, 3, 80] -> "1-3,80"."""
    ordered = sorted(set(ports))
    if not ordered:
        return ""

    parts = []
    start = prev = ordered[0]
    for port in ordered[1:]:
        if port == prev + 1:
            prev = port
            continue
        parts.append(f"{start}-{prev}" if start != prev else str(start))
        start = prev = port
    parts.append(f"{start}-{prev}" if start != prev else str(start))
    return ",".join(parts)


def _is_root() -> bool:
    if hasattr(os, "geteuid"):
        return os.geteuid() == 0
    return False


class NmapProbe:
    """Probe a single address with nmap (optional).

    With ``snmp_check`` the scan also covers UDP 161, so version detection can
    report SNMP community strings. This is the only backend that sees SNMP;
    the TCP and ARP probes only test TCP ports. UDP scans need root, so the
    check is on by default only for root users with service detection.
    """

    def __init__(self, service_detection: bool = False, snmp_check: bool | None = None):
        self.service_detection = service_detection
        if snmp_check is None:
            snmp_check = service_detection and _is_root()
        self.snmp_check = snmp_check
        self._nmap_available = shutil.which("nmap") is not None

    @property
    def available(self) -> bool:
        """Check if nmap is available for scanning."""
        return self._nmap_available

    async def probe(self, address: str, ports: Sequence[int], timeout: float) -> ProbeResult:
        if not self._nmap_available:
            raise ProbeTransportError(address, "nmap not installed")

        cmd = self._build_command(address, ports, timeout)
        logger.debug(f"Running nmap: {' '.join(cmd)}")

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise ProbeTransportError(address, "nmap not found in PATH") from e

        try:
            stdout, stderr = await process.communicate()
        except asyncio.CancelledError:
            process.kill()
            raise

        if process.returncode != 0:
            error_msg = stderr.decode().strip() or f"nmap exited with code {process.returncode}"
            raise ProbeTransportError(address, error_msg)

        result = self.parse_xml(stdout.decode(), address)
        if result is None:
            raise ProbeTimeoutError(address, "nmap reported no host")
        return result

    def _build_command(self, address: str, ports: Sequence[int], timeout: float) -> list[str]:
        """Build nmap command with appropriate flags."""
        cmd = ["nmap", "-oX", "-", "-n"]  # XML output to stdout, no DNS

        port_spec = format_ports(ports)
        if port_spec and self.snmp_check:
            cmd.extend(["-sT", "-sU", "-p", f"T:{port_spec},U:161"])
        elif port_spec:
            cmd.extend(["-sT", "-p", port_spec])
        else:
            cmd.append("-sn")  # Ping scan only

        if self.service_detection:
            cmd.append("-sV")

        host_timeout = max(1, int(timeout * max(len(ports), 1)))
        cmd.extend(["--host-timeout", f"{host_timeout}s"])

        if ":" in address:
            cmd.append("-6")
        cmd.append(address)
        return cmd

    def parse_xml(self, xml_content: str, address: str) -> ProbeResult | None:
        """Parse nmap XML output for one host. Returns None if nmap listed no host."""
        try:
            root = ET.fromstring(xml_content)
        except ET.ParseError as e:
            logger.error(f"Failed to parse nmap XML: {e}")
            raise ProbeTransportError(address, f"unreadable nmap output: {e}") from e

        host_elem = root.find(".//host")
        if host_elem is None:
            return None

        status_elem = host_elem.find("status")
        live = status_elem is not None and status_elem.get("state") == "up"

        mac = ""
        vendor = ""
        for addr in host_elem.findall("address"):
            if addr.get("addrtype") == "mac":
                mac = addr.get("addr", "").upper()
                vendor = addr.get("vendor", "")

        hostname = ""
        hostnames_elem = host_elem.find("hostnames")
        if hostnames_elem is not None:
            hostname_elem = hostnames_elem.find("hostname")
            if hostname_elem is not None:
                hostname = hostname_elem.get("name", "").split(".")[0]

        open_ports = []
        banners: dict[int, str] = {}
        ports_elem = host_elem.find("ports")
        if ports_elem is not None:
            for port in ports_elem.findall("port"):
                state = port.find("state")
                port_id = port.get("portid")
                if state is None or state.get("state") != "open" or not port_id:
                    continue
                open_ports.append(int(port_id))

                banner = self._service_banner(port)
                if banner:
                    banners[int(port_id)] = banner

        return ProbeResult(
            address=address,
            live=live or bool(open_ports),
            open_ports=open_ports,
            banners=banners,
            hostname=hostname,
            mac=mac,
            vendor=vendor,
        )

    def _service_banner(self, port_elem: ET.Element) -> str:
        """Join service product/version info and script output into one line."""
        parts = []
        service = port_elem.find("service")
        if service is not None:
            product = service.get("product", "")
            version = service.get("version", "")
            if product and version:
                parts.append(f"{product}/{version}")
            elif product:
                parts.append(product)
            extra = service.get("extrainfo", "")
            if extra:
                parts.append(extra)
        for script in port_elem.findall("script"):
            output = script.get("output", "")
            if output:
                parts.append(" ".join(output.split()))
        return " ".join(parts)
