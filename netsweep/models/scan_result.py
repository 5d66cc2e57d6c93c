"""Network scan result models."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator

from .catalog import FINDING_DESCRIPTIONS, FindingName, PortService, lookup_port
from .config import AddressRange, PortRange, ScanType


def _sorted_ports(ports: list[int]) -> list[int]:
    return sorted(set(ports))


class ProbeResult(BaseModel):
    """Outcome of probing a single address."""

    address: str
    live: bool = False
    open_ports: list[int] = Field(default_factory=list)
    banners: dict[int, str] = Field(default_factory=dict)
    hostname: str = ""
    mac: str = ""  # Only set when the probe observed a real hardware address
    vendor: str = ""

    @field_validator("open_ports")
    @classmethod
    def normalize_ports(cls, v: list[int]) -> list[int]:
        """Keep open ports ascending and unique."""
        return _sorted_ports(v)


class DeviceCategory(str, Enum):
    """Device type assigned by the classifier."""

    ROUTER = "router"
    SERVER = "server"
    MOBILE = "mobile"
    WORKSTATION = "workstation"
    IOT = "iot"
    PRINTER = "printer"
    NAS = "nas"

    @property
    def label(self) -> str:
        """Human readable category name."""
        return _CATEGORY_LABELS[self]


_CATEGORY_LABELS = {
    DeviceCategory.ROUTER: "Router/Gateway",
    DeviceCategory.SERVER: "Server",
    DeviceCategory.MOBILE: "Mobile Device",
    DeviceCategory.WORKSTATION: "Computer",
    DeviceCategory.IOT: "IoT Device",
    DeviceCategory.PRINTER: "Printer",
    DeviceCategory.NAS: "NAS",
}


class Device(BaseModel):
    """A discovered host committed to the result store."""

    id: int
    address: str
    identifier: str  # MAC-like hardware identifier
    display_name: str
    category: DeviceCategory = DeviceCategory.WORKSTATION
    open_ports: list[int] = Field(default_factory=list)
    banners: dict[int, str] = Field(default_factory=dict)
    vendor: str = ""
    last_seen_at: datetime = Field(default_factory=datetime.now)

    @field_validator("open_ports")
    @classmethod
    def normalize_ports(cls, v: list[int]) -> list[int]:
        """Keep open ports ascending and unique."""
        return _sorted_ports(v)

    @property
    def services(self) -> list[PortService]:
        """Well-known services for the open ports, in port order."""
        return [lookup_port(port) for port in self.open_ports]


class Finding(BaseModel):
    """A named heuristic security observation about a device."""

    name: FindingName
    description: str

    @classmethod
    def from_name(cls, name: FindingName) -> "Finding":
        return cls(name=name, description=FINDING_DESCRIPTIONS[name])


class LogEntry(BaseModel):
    """A single line of the scan log."""

    timestamp: datetime = Field(default_factory=datetime.now)
    message: str

    @property
    def display_time(self) -> str:
        return self.timestamp.strftime("%H:%M:%S")


class ScanState(str, Enum):
    """Lifecycle state of a scan session."""

    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ScanSession(BaseModel):
    """One run of the scan engine over an address range."""

    session_id: int = 0
    state: ScanState = ScanState.IDLE
    progress_percent: int = Field(default=0, ge=0, le=100)
    scan_type: ScanType = ScanType.QUICK
    address_range: AddressRange | None = None
    port_range: PortRange | None = None
    addresses_total: int = 0
    addresses_processed: int = 0
    started_at: datetime | None = None
    finished_at: datetime | None = None

    @property
    def is_running(self) -> bool:
        return self.state == ScanState.RUNNING

    @property
    def duration_seconds(self) -> float:
        """Elapsed scan time, up to now while still running."""
        if self.started_at is None:
            return 0.0
        end = self.finished_at or datetime.now()
        return (end - self.started_at).total_seconds()


class ScanHandle(BaseModel):
    """Opaque reference to a started session."""

    session_id: int


class ScanSnapshot(BaseModel):
    """Consistent read-only copy of the scan state."""

    session: ScanSession
    devices: list[Device] = Field(default_factory=list)
    findings_by_device_id: dict[int, list[Finding]] = Field(default_factory=dict)
    log: list[LogEntry] = Field(default_factory=list)

    @property
    def vulnerable_devices(self) -> list[Device]:
        """Devices with at least one finding."""
        return [d for d in self.devices if self.findings_by_device_id.get(d.id)]


class DeviceDetail(BaseModel):
    """Everything known about one device, for a detail view."""

    device: Device
    findings: list[Finding] = Field(default_factory=list)
    services: list[PortService] = Field(default_factory=list)
    analyzed: bool = False  # False until the analyzer has run on this device


class ScanEventType(str, Enum):
    """Kinds of change notifications sent to store listeners."""

    SESSION = "session"
    DEVICE = "device"
    FINDINGS = "findings"
    LOG = "log"


class ScanEvent(BaseModel):
    """A change notification from the result store."""

    type: ScanEventType
    payload: dict[str, Any] = Field(default_factory=dict)
