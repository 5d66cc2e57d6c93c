"""Rule-based device type classification."""

import hashlib
import ipaddress
import re
from collections.abc import Callable
from dataclasses import dataclass

from ..models.scan_result import DeviceCategory, ProbeResult

ROUTER_BANNER = re.compile(r"router|gateway|routeros|mikrotik|openwrt|dd-wrt|fritz!?box|ubiquiti|edgeos", re.I)
NAS_BANNER = re.compile(r"\bnas\b|synology|qnap|freenas|truenas|readynas|diskstation|asustor", re.I)
PRINTER_BANNER = re.compile(r"printer|jetdirect|laserjet|officejet|epson|brother|kyocera|lexmark|cups", re.I)
IOT_BANNER = re.compile(r"upnp|mqtt|mosquitto|hikvision|dahua|tasmota|esp8266|esp32|chromecast|roku|sonos", re.I)

PRINTER_VENDORS = ("hewlett", "hp", "brother", "epson", "canon", "kyocera", "lexmark", "xerox")
NAS_VENDORS = ("synology", "qnap", "western digital", "asustor", "netgear readynas")
IOT_VENDORS = ("espressif", "philips", "amazon", "google", "sonos", "tuya", "shelly", "roku")
MOBILE_VENDORS = ("apple", "samsung", "xiaomi", "huawei", "oneplus", "oppo")

SERVER_PORTS = {25, 110, 143, 389, 636, 1433, 3306, 5432, 6379, 27017}

# Name prefix used when no hostname was resolved
NAME_PREFIXES = {
    DeviceCategory.ROUTER: "Router",
    DeviceCategory.SERVER: "Server",
    DeviceCategory.MOBILE: "Mobile",
    DeviceCategory.WORKSTATION: "PC",
    DeviceCategory.IOT: "IoT",
    DeviceCategory.PRINTER: "Printer",
    DeviceCategory.NAS: "NAS",
}


@dataclass(frozen=True)
class Classification:
    """Category and display identity for a probed host."""

    category: DeviceCategory
    identifier: str
    display_name: str


def _banner_matches(result: ProbeResult, pattern: re.Pattern, ports: set[int] | None = None) -> bool:
    for port, banner in result.banners.items():
        if ports is not None and port not in ports:
            continue
        if pattern.search(banner):
            return True
    return False


def _vendor_is(result: ProbeResult, vendors: tuple[str, ...]) -> bool:
    vendor = result.vendor.lower()
    return any(vendor == v or vendor.startswith(v + " ") or vendor.startswith(v + ",") for v in vendors)


def _is_printer(r: ProbeResult, ports: set[int]) -> bool:
    if ports & {9100, 515, 631}:
        return True
    return _banner_matches(r, PRINTER_BANNER) or (_vendor_is(r, PRINTER_VENDORS) and bool(ports & {80, 443}))


def _is_nas(r: ProbeResult, ports: set[int]) -> bool:
    if ports & {445, 139, 548, 5000, 5001} and _banner_matches(r, NAS_BANNER):
        return True
    return _vendor_is(r, NAS_VENDORS)


def _is_router(r: ProbeResult, ports: set[int]) -> bool:
    if _banner_matches(r, ROUTER_BANNER):
        return True
    return 53 in ports and bool(ports & {80, 443})


def _is_iot(r: ProbeResult, ports: set[int]) -> bool:
    if ports & {1883, 8883, 1900, 554}:
        return True
    return _banner_matches(r, IOT_BANNER) or _vendor_is(r, IOT_VENDORS)


def _is_mobile(r: ProbeResult, ports: set[int]) -> bool:
    if ports & {62078, 5555}:
        return True
    return _vendor_is(r, MOBILE_VENDORS) and not ports


def _is_server(r: ProbeResult, ports: set[int]) -> bool:
    if ports & SERVER_PORTS:
        return True
    return 22 in ports and bool(ports & {80, 443, 8080, 8443})


# Evaluated in order, first match wins
RULES: list[tuple[DeviceCategory, Callable[[ProbeResult, set[int]], bool]]] = [
    (DeviceCategory.PRINTER, _is_printer),
    (DeviceCategory.NAS, _is_nas),
    (DeviceCategory.ROUTER, _is_router),
    (DeviceCategory.IOT, _is_iot),
    (DeviceCategory.MOBILE, _is_mobile),
    (DeviceCategory.SERVER, _is_server),
]


def categorize(result: ProbeResult) -> DeviceCategory:
    """Pick a device category from open ports, banners and vendor."""
    ports = set(result.open_ports)
    for category, rule in RULES:
        if rule(result, ports):
            return category
    return DeviceCategory.WORKSTATION


def synthesize_identifier(address: str) -> str:
    """Derive a stable, locally administered MAC-style identifier from an address."""
    packed = ipaddress.ip_address(address).packed
    digest = hashlib.sha256(packed).digest()
    octets = [0x02, *digest[:5]]
    return ":".join(f"{b:02X}" for b in octets)


def classify(
    result: ProbeResult, sequence: int = 1, category: DeviceCategory | None = None
) -> Classification:
    """Classify a live probe result.

    Args:
        result: Probe result for one address
        sequence: Position of this device within its category for the session,
            used to name hosts that have no resolvable hostname
        category: Category already picked by categorize(), to skip the rule table

    Returns:
        The category, a hardware identifier and a display name. Identical
        input always yields identical output.
    """
    if category is None:
        category = categorize(result)
    identifier = result.mac.upper() if result.mac else synthesize_identifier(result.address)
    if result.hostname:
        display_name = result.hostname
    else:
        display_name = f"{NAME_PREFIXES[category]}-{sequence}"
    return Classification(category=category, identifier=identifier, display_name=display_name)
