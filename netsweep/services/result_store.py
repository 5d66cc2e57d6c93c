"""In-memory store for the current scan session, devices, findings and log."""

import logging
import threading
from collections.abc import Callable
from datetime import datetime
from typing import Any

from ..models.catalog import lookup_port
from ..models.scan_result import (
    Device,
    DeviceDetail,
    Finding,
    LogEntry,
    ScanEvent,
    ScanEventType,
    ScanSession,
    ScanSnapshot,
)

logger = logging.getLogger(__name__)

Listener = Callable[[ScanEvent], None]


class ResultStore:
    """Holds the results of the current session.

    The orchestrator is the only writer. Readers get deep copies, taken under
    the same lock that guards writes, so a snapshot never contains a device
    without its findings or findings for a device that is not there.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._session = ScanSession()
        self._devices: dict[int, Device] = {}  # Keyed by device id, in commit order
        self._ids_by_address: dict[str, int] = {}
        self._findings: dict[int, list[Finding]] = {}
        self._log: list[LogEntry] = []
        self._next_id = 1
        self._listeners: list[Listener] = []

    def reset(self, session: ScanSession) -> None:
        """Clear all results and install a new session."""
        with self._lock:
            self._session = session.model_copy(deep=True)
            self._devices = {}
            self._ids_by_address = {}
            self._findings = {}
            self._log = []
            self._next_id = 1
            payload = self._session.model_dump(mode="json")
        self._notify(ScanEventType.SESSION, payload)

    @property
    def session(self) -> ScanSession:
        with self._lock:
            return self._session.model_copy(deep=True)

    def update_session(self, **changes: Any) -> ScanSession:
        """Apply field changes to the current session."""
        with self._lock:
            self._session = self._session.model_copy(update=changes)
            session = self._session.model_copy(deep=True)
        self._notify(ScanEventType.SESSION, session.model_dump(mode="json"))
        return session

    def commit_device(self, device: Device, findings: list[Finding]) -> Device:
        """Add a device and its findings in one step.

        A device seen again at the same address keeps its id; its open ports
        are merged, last_seen_at is refreshed and new findings are appended.
        """
        with self._lock:
            existing_id = self._ids_by_address.get(device.address)
            if existing_id is None:
                committed = device.model_copy(update={"id": self._next_id}, deep=True)
                self._next_id += 1
                self._devices[committed.id] = committed
                self._ids_by_address[committed.address] = committed.id
                self._findings[committed.id] = list(findings)
            else:
                current = self._devices[existing_id]
                committed = current.model_copy(
                    update={
                        "open_ports": sorted(set(current.open_ports) | set(device.open_ports)),
                        "banners": {**current.banners, **device.banners},
                        "last_seen_at": datetime.now(),
                    },
                    deep=True,
                )
                self._devices[existing_id] = committed
                known = {f.name for f in self._findings[existing_id]}
                self._findings[existing_id].extend(f for f in findings if f.name not in known)

            result = committed.model_copy(deep=True)
            device_payload = result.model_dump(mode="json")
            findings_payload = {
                "device_id": result.id,
                "findings": [f.model_dump(mode="json") for f in self._findings[result.id]],
            }

        self._notify(ScanEventType.DEVICE, device_payload)
        self._notify(ScanEventType.FINDINGS, findings_payload)
        return result

    def append_log(self, message: str) -> LogEntry:
        """Append a message to the scan log."""
        entry = LogEntry(message=message)
        with self._lock:
            self._log.append(entry)
        logger.debug(f"scan log: {message}")
        self._notify(ScanEventType.LOG, entry.model_dump(mode="json"))
        return entry

    def snapshot(self) -> ScanSnapshot:
        """Return a consistent copy of the whole store."""
        with self._lock:
            return ScanSnapshot(
                session=self._session.model_copy(deep=True),
                devices=[d.model_copy(deep=True) for d in self._devices.values()],
                findings_by_device_id={
                    device_id: [f.model_copy() for f in findings]
                    for device_id, findings in self._findings.items()
                },
                log=[entry.model_copy() for entry in self._log],
            )

    def get_device_detail(self, device_id: int) -> DeviceDetail | None:
        """Return a device with its findings and known services."""
        with self._lock:
            device = self._devices.get(device_id)
            if device is None:
                return None
            findings = self._findings.get(device_id)
            return DeviceDetail(
                device=device.model_copy(deep=True),
                findings=[f.model_copy() for f in findings or []],
                services=[lookup_port(port) for port in device.open_ports],
                analyzed=findings is not None,
            )

    @property
    def device_count(self) -> int:
        with self._lock:
            return len(self._devices)

    def add_listener(self, listener: Listener) -> None:
        """Register a callback for store change events."""
        with self._lock:
            if listener not in self._listeners:
                self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def _notify(self, event_type: ScanEventType, payload: dict[str, Any]) -> None:
        with self._lock:
            listeners = list(self._listeners)
        if not listeners:
            return

        event = ScanEvent(type=event_type, payload=payload)
        for listener in listeners:
            try:
                listener(event)
            except Exception as e:
                logger.error(f"Scan listener {listener!r} failed on {event_type.value} event: {e}")
