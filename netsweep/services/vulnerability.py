"""Heuristic vulnerability checks over a device's open ports and banners."""

import re
from collections.abc import Callable

from ..models.catalog import FindingName
from ..models.scan_result import Device, Finding

LEGACY_SMB_BANNER = re.compile(
    r"smb\s*v?1\b|\bsmb1\b|nt lm 0\.12|lanman|samba\s+[23]\.|windows (?:xp|2000|server 2003)", re.I
)
DEFAULT_COMMUNITY_BANNER = re.compile(r"\b(?:public|private)\b", re.I)
UPNP_BANNER = re.compile(r"upnp", re.I)
DEFAULT_CREDENTIALS_BANNER = re.compile(
    r"default (?:password|credentials|login)"
    r"|\b(?:admin|root)\s*/\s*(?:admin|root|password|1234)\b"
    r"|password is (?:admin|password|1234)\b",
    re.I,
)

# 161 is UDP, scanned only by the nmap probe with its SNMP check
SNMP_PORTS = {161, 199}

# (product pattern capturing a version, first version considered up to date)
FIRMWARE_THRESHOLDS: list[tuple[re.Pattern, tuple[int, ...]]] = [
    (re.compile(r"openssh[_/ -]v?(\d+(?:\.\d+)*)", re.I), (8, 8)),
    (re.compile(r"dropbear[_/ ](?:sshd[_/ ])?v?(\d+(?:\.\d+)*)", re.I), (2020, 81)),
    (re.compile(r"apache(?: httpd)?[/ ](\d+(?:\.\d+)*)", re.I), (2, 4, 54)),
    (re.compile(r"nginx[/ ](\d+(?:\.\d+)*)", re.I), (1, 20, 0)),
    (re.compile(r"lighttpd[/ ](\d+(?:\.\d+)*)", re.I), (1, 4, 64)),
    (re.compile(r"busybox v?(\d+(?:\.\d+)*)", re.I), (1, 33, 0)),
    (re.compile(r"rompager/(\d+(?:\.\d+)*)", re.I), (4, 34)),
    (re.compile(r"boa/(\d+(?:\.\d+)*)", re.I), (1, 0)),
]


def parse_version(text: str) -> tuple[int, ...]:
    """Turn "2.4.49" into (2, 4, 49)."""
    return tuple(int(part) for part in text.split(".") if part.isdigit())


def _any_banner(device: Device, pattern: re.Pattern, ports: set[int] | None = None) -> bool:
    return any(
        pattern.search(banner)
        for port, banner in device.banners.items()
        if ports is None or port in ports
    )


def _open_telnet(device: Device) -> bool:
    return 23 in device.open_ports


def _smb_v1(device: Device) -> bool:
    return 445 in device.open_ports and _any_banner(device, LEGACY_SMB_BANNER, {445})


def _open_snmp(device: Device) -> bool:
    open_snmp = SNMP_PORTS.intersection(device.open_ports)
    return bool(open_snmp) and _any_banner(device, DEFAULT_COMMUNITY_BANNER, open_snmp)


def _http_without_tls(device: Device) -> bool:
    return 80 in device.open_ports and 443 not in device.open_ports


def _upnp_enabled(device: Device) -> bool:
    return _any_banner(device, UPNP_BANNER)


def _default_credentials(device: Device) -> bool:
    return _any_banner(device, DEFAULT_CREDENTIALS_BANNER)


def _outdated_firmware(device: Device) -> bool:
    for banner in device.banners.values():
        for pattern, minimum in FIRMWARE_THRESHOLDS:
            match = pattern.search(banner)
            if match and parse_version(match.group(1)) < minimum:
                return True
    return False


# Catalog order is the order findings are reported in
RULES: list[tuple[FindingName, Callable[[Device], bool]]] = [
    (FindingName.OPEN_TELNET, _open_telnet),
    (FindingName.SMB_V1, _smb_v1),
    (FindingName.OPEN_SNMP, _open_snmp),
    (FindingName.HTTP_WITHOUT_TLS, _http_without_tls),
    (FindingName.UPNP_ENABLED, _upnp_enabled),
    (FindingName.DEFAULT_CREDENTIALS, _default_credentials),
    (FindingName.OUTDATED_FIRMWARE, _outdated_firmware),
]


def analyze(device: Device) -> list[Finding]:
    """Return every finding whose condition holds for the device.

    An empty list means the device looks clean.
    """
    return [Finding.from_name(name) for name, check in RULES if check(device)]
