"""ARP liveness probe using scapy, for hosts on the local segment."""

import asyncio
import logging
import os
from collections.abc import Sequence

from ..errors import ProbeTransportError
from ..models.scan_result import ProbeResult
from .probe import Probe, TcpConnectProbe

logger = logging.getLogger(__name__)

# Used when the vendor database has no entry for a prefix
FALLBACK_VENDORS = {
    "00-50-56": "VMware",
    "00-0C-29": "VMware",
    "08-00-27": "VirtualBox",
    "52-54-00": "QEMU",
    "B8-27-EB": "Raspberry Pi",
    "DC-A6-32": "Raspberry Pi",
    "E4-5F-01": "Raspberry Pi",
    "00-17-88": "Philips Hue",
    "EC-B5-FA": "Philips Hue",
}

VENDOR_SHORTENINGS = {
    "Apple, Inc.": "Apple",
    "Samsung Electronics Co.,Ltd": "Samsung",
    "Intel Corporate": "Intel",
    "Raspberry Pi Foundation": "Raspberry Pi",
    "Raspberry Pi Trading Ltd": "Raspberry Pi",
    "HUAWEI TECHNOLOGIES CO.,LTD": "Huawei",
    "Amazon Technologies Inc.": "Amazon",
    "Google, Inc.": "Google",
    "Xiaomi Communications Co Ltd": "Xiaomi",
    "TP-LINK TECHNOLOGIES CO.,LTD.": "TP-Link",
    "Hewlett Packard": "HP",
    "Synology Incorporated": "Synology",
    "QNAP Systems, Inc.": "QNAP",
    "Brother Industries, LTD.": "Brother",
    "Seiko Epson Corporation": "Epson",
    "Espressif Inc.": "Espressif",
}


class ArpProbe:
    """Checks liveness with an ARP who-has, then probes ports with an inner probe.

    Hosts that answer ARP are live even when every port is closed or filtered.
    Needs scapy and root privileges; check ``available`` before use.
    """

    def __init__(self, ports_probe: Probe | None = None, arp_timeout: float = 1.0):
        self.ports_probe = ports_probe or TcpConnectProbe()
        self.arp_timeout = arp_timeout
        self._scapy_available = self._check_scapy()
        self._has_privileges = self._check_privileges()
        self._mac_lookup = None

    def _check_scapy(self) -> bool:
        """Check if scapy can be imported."""
        try:
            from scapy.all import conf  # noqa: F401

            return True
        except ImportError:
            logger.warning("scapy not installed - ARP probing disabled")
            return False
        except OSError as e:
            logger.warning(f"scapy error: {e}")
            return False

    def _check_privileges(self) -> bool:
        """Check if we have root privileges for raw socket access."""
        if hasattr(os, "geteuid"):
            return os.geteuid() == 0
        return True

    @property
    def available(self) -> bool:
        return self._scapy_available and self._has_privileges

    def get_status_message(self) -> str | None:
        """Explain why ARP probing is unavailable, or None if it is usable."""
        if not self._scapy_available:
            return "scapy not installed - ARP probing disabled"
        if not self._has_privileges:
            return "Run with sudo for ARP probing"
        return None

    async def probe(self, address: str, ports: Sequence[int], timeout: float) -> ProbeResult:
        if not self.available:
            raise ProbeTransportError(address, self.get_status_message() or "ARP unavailable")

        loop = asyncio.get_running_loop()
        try:
            mac = await loop.run_in_executor(None, self._arp_request, address)
        except PermissionError as e:
            raise ProbeTransportError(address, f"permission denied: {e}") from e
        except OSError as e:
            raise ProbeTransportError(address, str(e)) from e

        result = await self.ports_probe.probe(address, ports, timeout)
        if not mac:
            return result

        vendor = await self._get_vendor(mac)
        return result.model_copy(update={"live": True, "mac": mac, "vendor": vendor})

    def _arp_request(self, address: str) -> str:
        """Send one ARP request (runs in thread pool). Returns the MAC or ''."""
        from scapy.all import ARP, Ether, conf, srp

        conf.verb = 0

        packet = Ether(dst="ff:ff:ff:ff:ff:ff") / ARP(pdst=address)
        answered = srp(packet, timeout=self.arp_timeout, verbose=False)[0]
        for _, received in answered:
            if received.psrc == address:
                return received.hwsrc.upper()
        return ""

    async def _get_vendor(self, mac: str) -> str:
        """Get vendor name from MAC address using mac-vendor-lookup or fallback."""
        if self._mac_lookup is None:
            from mac_vendor_lookup import AsyncMacLookup

            self._mac_lookup = AsyncMacLookup()

        try:
            vendor = await self._mac_lookup.lookup(mac)
            if vendor:
                return VENDOR_SHORTENINGS.get(vendor, vendor)
        except KeyError:
            pass  # Not in the database
        except (OSError, ValueError) as e:
            logger.debug(f"Vendor lookup failed for {mac}: {e}")

        oui_prefix = mac[:8].upper().replace(":", "-")
        return FALLBACK_VENDORS.get(oui_prefix, "")
