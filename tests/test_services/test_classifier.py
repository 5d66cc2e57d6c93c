"""Tests for the device classifier."""

import re

import pytest

from netsweep.models.scan_result import DeviceCategory, ProbeResult
from netsweep.services.classifier import categorize, classify, synthesize_identifier

MAC_PATTERN = re.compile(r"^02(:[0-9A-F]{2}){5}$")


class TestCategorize:
    """Tests for category rules."""

    @pytest.mark.parametrize(
        "ports,banners,expected",
        [
            ([23, 80], {}, DeviceCategory.WORKSTATION),
            ([], {}, DeviceCategory.WORKSTATION),
            ([3389], {}, DeviceCategory.WORKSTATION),
            ([9100], {}, DeviceCategory.PRINTER),
            ([80, 631], {}, DeviceCategory.PRINTER),
            ([80], {80: "HTTP/1.1 200 OK Server: HP HTTP Server; HP LaserJet"}, DeviceCategory.PRINTER),
            ([445], {445: "Synology DiskStation"}, DeviceCategory.NAS),
            ([445], {}, DeviceCategory.WORKSTATION),
            ([53, 80, 443], {80: "Server: RouterOS"}, DeviceCategory.ROUTER),
            ([53, 80], {}, DeviceCategory.ROUTER),
            ([22, 80], {22: "SSH-2.0-dropbear", 80: "Server: OpenWrt"}, DeviceCategory.ROUTER),
            ([1883], {}, DeviceCategory.IOT),
            ([5000], {5000: "Server: Linux UPnP/1.0 Sonos/63.2"}, DeviceCategory.IOT),
            ([62078], {}, DeviceCategory.MOBILE),
            ([5555], {}, DeviceCategory.MOBILE),
            ([22, 443], {}, DeviceCategory.SERVER),
            ([3306], {}, DeviceCategory.SERVER),
            ([22], {}, DeviceCategory.WORKSTATION),
        ],
    )
    def test_port_and_banner_rules(self, ports, banners, expected):
        """Test characteristic port and banner combinations."""
        result = ProbeResult(address="10.0.0.1", live=True, open_ports=ports, banners=banners)
        assert categorize(result) == expected

    def test_printer_wins_over_server(self):
        """Test that earlier rules take precedence."""
        result = ProbeResult(address="10.0.0.1", live=True, open_ports=[22, 80, 9100])
        assert categorize(result) == DeviceCategory.PRINTER

    @pytest.mark.parametrize(
        "vendor,ports,expected",
        [
            ("Synology", [], DeviceCategory.NAS),
            ("Apple", [], DeviceCategory.MOBILE),
            ("Espressif", [], DeviceCategory.IOT),
            ("HP", [80], DeviceCategory.PRINTER),
            ("HP", [], DeviceCategory.WORKSTATION),
            ("Intel", [], DeviceCategory.WORKSTATION),
        ],
    )
    def test_vendor_hints(self, vendor, ports, expected):
        """Test classification from the MAC vendor."""
        result = ProbeResult(address="10.0.0.1", live=True, open_ports=ports, vendor=vendor)
        assert categorize(result) == expected


class TestIdentifier:
    """Tests for synthesized hardware identifiers."""

    def test_format(self):
        """Test that identifiers look like locally administered MACs."""
        assert MAC_PATTERN.match(synthesize_identifier("192.168.1.10"))

    def test_stable_per_address(self):
        """Test that the same address always yields the same identifier."""
        assert synthesize_identifier("192.168.1.10") == synthesize_identifier("192.168.1.10")

    def test_differs_between_addresses(self):
        """Test that different addresses get different identifiers."""
        assert synthesize_identifier("192.168.1.10") != synthesize_identifier("192.168.1.11")

    def test_ipv6(self):
        """Test IPv6 addresses are supported."""
        assert MAC_PATTERN.match(synthesize_identifier("fe80::1"))


class TestClassify:
    """Tests for the full classification."""

    def test_generated_name(self):
        """Test that hosts without a hostname get a category name with sequence."""
        result = ProbeResult(address="10.0.0.1", live=True, open_ports=[23, 80])
        identity = classify(result, sequence=3)
        assert identity.category == DeviceCategory.WORKSTATION
        assert identity.display_name == "PC-3"
        assert MAC_PATTERN.match(identity.identifier)

    def test_hostname_is_display_name(self):
        """Test that a resolved hostname is used as display name."""
        result = ProbeResult(address="10.0.0.1", live=True, open_ports=[9100], hostname="office-mfp")
        identity = classify(result)
        assert identity.category == DeviceCategory.PRINTER
        assert identity.display_name == "office-mfp"

    def test_precomputed_category(self):
        """Test that a category from categorize() is used as given."""
        result = ProbeResult(address="10.0.0.1", live=True, open_ports=[9100])
        identity = classify(result, sequence=2, category=categorize(result))
        assert identity.category == DeviceCategory.PRINTER
        assert identity.display_name == "Printer-2"
        assert identity == classify(result, sequence=2)

    def test_observed_mac_is_identifier(self):
        """Test that a real MAC from the probe is preferred."""
        result = ProbeResult(address="10.0.0.1", live=True, mac="dc:a6:32:6e:ec:7c")
        assert classify(result).identifier == "DC:A6:32:6E:EC:7C"

    def test_deterministic(self):
        """Test that identical input yields identical output."""
        result = ProbeResult(
            address="10.0.0.7",
            live=True,
            open_ports=[53, 80, 443],
            banners={80: "Server: mikrotik"},
        )
        assert classify(result, sequence=2) == classify(result.model_copy(deep=True), sequence=2)
