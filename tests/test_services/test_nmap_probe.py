"""Tests for the nmap probe."""

import pytest

from netsweep.errors import ProbeTransportError
from netsweep.services import nmap_probe
from netsweep.services.nmap_probe import NmapProbe, format_ports

NMAP_XML = """<?xml version="1.0"?>
<nmaprun scanner="nmap">
  <host>
    <status state="up" reason="arp-response"/>
    <address addr="192.168.1.20" addrtype="ipv4"/>
    <address addr="dc:a6:32:6e:ec:7c" addrtype="mac" vendor="Raspberry Pi Trading"/>
    <hostnames><hostname name="pihole.home.lan" type="PTR"/></hostnames>
    <ports>
      <port protocol="tcp" portid="22">
        <state state="open"/>
        <service name="ssh" product="OpenSSH" version="7.9p1" extrainfo="Raspbian 10"/>
      </port>
      <port protocol="tcp" portid="53">
        <state state="open"/>
        <service name="domain" product="dnsmasq" version="2.80"/>
      </port>
      <port protocol="tcp" portid="80">
        <state state="open"/>
        <service name="http" product="lighttpd" version="1.4.53"/>
        <script id="http-title" output="Pi-hole&#10;Admin Console"/>
      </port>
      <port protocol="tcp" portid="443">
        <state state="closed"/>
      </port>
    </ports>
  </host>
</nmaprun>
"""

SNMP_XML = """<?xml version="1.0"?>
<nmaprun scanner="nmap">
  <host>
    <status state="up" reason="echo-reply"/>
    <address addr="192.168.1.1" addrtype="ipv4"/>
    <ports>
      <port protocol="tcp" portid="80">
        <state state="open"/>
      </port>
      <port protocol="udp" portid="161">
        <state state="open"/>
        <service name="snmp" product="net-snmp" version="5.7.3" extrainfo="public"/>
      </port>
    </ports>
  </host>
</nmaprun>
"""

NO_HOST_XML = """<?xml version="1.0"?>
<nmaprun scanner="nmap"><runstats><hosts up="0" down="1" total="1"/></runstats></nmaprun>
"""


class TestFormatPorts:
    """Tests for nmap port specs."""

    def test_ranges_and_singles(self):
        """Test consecutive ports collapse into ranges."""
        assert format_ports([80, 1, 2, 3, 443, 444]) == "1-3,80,443-444"

    def test_single(self):
        """Test a single port."""
        assert format_ports([22]) == "22"

    def test_empty(self):
        """Test no ports."""
        assert format_ports([]) == ""


class TestParseXml:
    """Tests for nmap XML parsing."""

    @pytest.fixture
    def probe(self):
        return NmapProbe()

    def test_parses_host(self, probe):
        """Test ports, banners, MAC and hostname are extracted."""
        result = probe.parse_xml(NMAP_XML, "192.168.1.20")
        assert result.live is True
        assert result.open_ports == [22, 53, 80]
        assert result.banners[22] == "OpenSSH/7.9p1 Raspbian 10"
        assert result.banners[80] == "lighttpd/1.4.53 Pi-hole Admin Console"
        assert result.mac == "DC:A6:32:6E:EC:7C"
        assert result.vendor == "Raspberry Pi Trading"
        assert result.hostname == "pihole"

    def test_udp_snmp_port(self, probe):
        """Test that an open UDP SNMP port is reported with its community banner."""
        result = probe.parse_xml(SNMP_XML, "192.168.1.1")
        assert result.open_ports == [80, 161]
        assert result.banners == {161: "net-snmp/5.7.3 public"}

    def test_no_host(self, probe):
        """Test output without a host element."""
        assert probe.parse_xml(NO_HOST_XML, "192.168.1.21") is None

    def test_invalid_xml(self, probe):
        """Test unreadable output is a transport error."""
        with pytest.raises(ProbeTransportError):
            probe.parse_xml("<nmaprun", "192.168.1.21")


class TestBuildCommand:
    """Tests for nmap command construction."""

    def test_port_scan(self):
        """Test a TCP connect scan of selected ports."""
        cmd = NmapProbe()._build_command("10.0.0.1", [22, 80, 81], timeout=1.0)
        assert cmd[:4] == ["nmap", "-oX", "-", "-n"]
        assert ["-sT", "-p", "22,80-81"] == cmd[4:7]
        assert "-sV" not in cmd
        assert cmd[cmd.index("--host-timeout") + 1] == "3s"
        assert cmd[-1] == "10.0.0.1"

    def test_service_detection(self):
        """Test deep scans add version detection."""
        probe = NmapProbe(service_detection=True, snmp_check=False)
        cmd = probe._build_command("10.0.0.1", [22], timeout=1.0)
        assert "-sV" in cmd

    def test_snmp_check(self):
        """Test that the SNMP check adds a UDP scan of port 161."""
        cmd = NmapProbe(snmp_check=True)._build_command("10.0.0.1", [22, 80], timeout=1.0)
        assert ["-sT", "-sU", "-p", "T:22,80,U:161"] == cmd[4:8]

    def test_snmp_check_needs_root(self, monkeypatch):
        """Test that the SNMP check defaults on only for root with service detection."""
        monkeypatch.setattr(nmap_probe, "_is_root", lambda: False)
        assert NmapProbe(service_detection=True).snmp_check is False
        monkeypatch.setattr(nmap_probe, "_is_root", lambda: True)
        assert NmapProbe(service_detection=True).snmp_check is True
        assert NmapProbe().snmp_check is False

    def test_ping_only(self):
        """Test that no ports means a ping scan."""
        cmd = NmapProbe()._build_command("10.0.0.1", [], timeout=1.0)
        assert "-sn" in cmd

    def test_ipv6(self):
        """Test IPv6 targets."""
        cmd = NmapProbe()._build_command("fe80::1", [22], timeout=1.0)
        assert cmd[-2:] == ["-6", "fe80::1"]


class TestAvailability:
    """Tests for nmap availability."""

    @pytest.mark.asyncio
    async def test_missing_nmap(self, monkeypatch):
        """Test probing without nmap installed is a transport error."""
        monkeypatch.setattr(nmap_probe.shutil, "which", lambda name: None)
        probe = NmapProbe()
        assert probe.available is False
        with pytest.raises(ProbeTransportError):
            await probe.probe("10.0.0.1", [22], timeout=1.0)
