"""Static lookup tables for well-known ports and security findings."""

from enum import Enum

from pydantic import BaseModel


class PortService(BaseModel):
    """A well-known service that usually listens on a port."""

    port: int
    service: str
    description: str


_PORTS = [
    (21, "FTP", "File Transfer Protocol"),
    (22, "SSH", "Secure Shell"),
    (23, "Telnet", "Remote Login Service (Insecure)"),
    (25, "SMTP", "Simple Mail Transfer Protocol"),
    (53, "DNS", "Domain Name System"),
    (80, "HTTP", "Web Server (Unencrypted)"),
    (110, "POP3", "Post Office Protocol"),
    (139, "NetBIOS", "NetBIOS Session Service"),
    (143, "IMAP", "Internet Message Access Protocol"),
    (161, "SNMP", "Simple Network Management Protocol"),
    (199, "SMUX", "SNMP Multiplexer"),
    (443, "HTTPS", "Web Server (Encrypted)"),
    (445, "SMB", "Server Message Block"),
    (515, "LPD", "Line Printer Daemon"),
    (548, "AFP", "Apple Filing Protocol"),
    (554, "RTSP", "Real Time Streaming Protocol"),
    (631, "IPP", "Internet Printing Protocol"),
    (1883, "MQTT", "Message Queuing Telemetry Transport"),
    (1900, "SSDP", "UPnP Discovery"),
    (3306, "MySQL", "MySQL Database"),
    (3389, "RDP", "Remote Desktop Protocol"),
    (5000, "UPnP/HTTP", "Web Admin or UPnP Service"),
    (5001, "HTTPS Alt", "Web Admin (Encrypted)"),
    (5353, "mDNS", "Multicast DNS"),
    (5432, "PostgreSQL", "PostgreSQL Database"),
    (5555, "ADB", "Android Debug Bridge"),
    (5900, "VNC", "Virtual Network Computing"),
    (8080, "HTTP Alt", "Alternative HTTP Port"),
    (8443, "HTTPS Alt", "Alternative HTTPS Port"),
    (9100, "JetDirect", "Raw Printing"),
    (62078, "iPhone Sync", "Apple Device Sync Service"),
]

COMMON_PORTS: dict[int, PortService] = {
    port: PortService(port=port, service=service, description=description)
    for port, service, description in _PORTS
}


def lookup_port(port: int) -> PortService:
    """Return the catalog entry for a port, or an "Unknown" entry."""
    return COMMON_PORTS.get(port) or PortService(port=port, service="Unknown", description="")


class FindingName(str, Enum):
    """Fixed catalog of heuristic security findings."""

    OPEN_TELNET = "Open Telnet"
    SMB_V1 = "SMB v1"
    OPEN_SNMP = "Open SNMP"
    HTTP_WITHOUT_TLS = "HTTP Without TLS"
    UPNP_ENABLED = "UPnP Enabled"
    DEFAULT_CREDENTIALS = "Default Credentials"
    OUTDATED_FIRMWARE = "Outdated Firmware"


FINDING_DESCRIPTIONS: dict[FindingName, str] = {
    FindingName.OPEN_TELNET: "Telnet service is enabled and accessible",
    FindingName.SMB_V1: "Outdated SMB protocol version detected",
    FindingName.OPEN_SNMP: "SNMP service with default community strings",
    FindingName.HTTP_WITHOUT_TLS: "Web server without encryption",
    FindingName.UPNP_ENABLED: "Universal Plug and Play is enabled and could be exploited",
    FindingName.DEFAULT_CREDENTIALS: "Device may be using default login credentials",
    FindingName.OUTDATED_FIRMWARE: "Device may be running outdated firmware",
}
