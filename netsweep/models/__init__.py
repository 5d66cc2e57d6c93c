"""Data models for the scan engine."""

from .catalog import COMMON_PORTS, FINDING_DESCRIPTIONS, FindingName, PortService
from .config import (
    AddressRange,
    Config,
    PortRange,
    ProbeProfile,
    ProbeSettings,
    ScanConfig,
    ScanType,
    Settings,
)
from .scan_result import (
    Device,
    DeviceCategory,
    DeviceDetail,
    Finding,
    LogEntry,
    ProbeResult,
    ScanEvent,
    ScanEventType,
    ScanHandle,
    ScanSession,
    ScanSnapshot,
    ScanState,
)

__all__ = [
    "COMMON_PORTS",
    "FINDING_DESCRIPTIONS",
    "AddressRange",
    "Config",
    "Device",
    "DeviceCategory",
    "DeviceDetail",
    "Finding",
    "FindingName",
    "LogEntry",
    "PortRange",
    "PortService",
    "ProbeProfile",
    "ProbeResult",
    "ProbeSettings",
    "ScanConfig",
    "ScanEvent",
    "ScanEventType",
    "ScanHandle",
    "ScanSession",
    "ScanSnapshot",
    "ScanState",
    "ScanType",
    "Settings",
]
