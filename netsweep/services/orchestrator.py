"""Scan orchestrator: runs one scan session over an address range."""

import asyncio
import logging
from collections import Counter, deque
from collections.abc import Mapping, Sequence
from datetime import datetime
from typing import Any

from ..errors import ProbeTimeoutError, ProbeTransportError, ScanInProgressError, SessionNotFoundError
from ..models.config import ProbeProfile, ProbeSettings, ScanConfig
from ..models.scan_result import (
    Device,
    DeviceCategory,
    DeviceDetail,
    ProbeResult,
    ScanHandle,
    ScanSession,
    ScanSnapshot,
    ScanState,
)
from .classifier import categorize, classify
from .probe import Probe, TcpConnectProbe
from .result_store import Listener, ResultStore
from .vulnerability import analyze

logger = logging.getLogger(__name__)


class ScanOrchestrator:
    """Owns the scan lifecycle and is the only writer to the result store.

    Addresses are probed through a sliding window of up to
    ``ProbeProfile.max_workers`` concurrent probes, but results are always
    consumed in ascending address order, so devices are committed and log
    entries emitted in address order no matter which probe finishes first.

    All methods must be called from the event loop the scan runs on.
    """

    def __init__(
        self,
        probe: Probe | None = None,
        probe_settings: ProbeSettings | None = None,
        store: ResultStore | None = None,
    ):
        self.probe = probe or TcpConnectProbe()
        self.probe_settings = probe_settings or ProbeSettings()
        self.store = store or ResultStore()
        self._last_session_id = 0
        self._task: asyncio.Task | None = None
        self._cancel_event: asyncio.Event | None = None
        self._category_counts: Counter[DeviceCategory] = Counter()

    @property
    def current_handle(self) -> ScanHandle | None:
        """Handle of the most recent session, if any was started."""
        if self._last_session_id == 0:
            return None
        return ScanHandle(session_id=self._last_session_id)

    def start_scan(self, config: ScanConfig | Mapping[str, Any]) -> ScanHandle:
        """Validate the configuration and start a new session in the background.

        Raises:
            ScanInProgressError: A session is already running. Nothing changes.
            InvalidRangeError: Address or port range is malformed.
            InvalidScanTypeError: Scan type is not quick or deep.
        """
        current = self.store.session
        if current.is_running:
            raise ScanInProgressError(current.session_id)

        scan_config = ScanConfig.parse(config)
        loop = asyncio.get_running_loop()

        profile = self.probe_settings.profile_for(scan_config.scan_type)
        ports = profile.select_ports(scan_config.port_range)
        if not ports:
            logger.warning(
                f"No {scan_config.scan_type.value} scan ports fall inside {scan_config.port_range}; "
                "hosts will only be found by probes that detect liveness without open ports"
            )

        self._last_session_id += 1
        session = ScanSession(
            session_id=self._last_session_id,
            state=ScanState.RUNNING,
            scan_type=scan_config.scan_type,
            address_range=scan_config.address_range,
            port_range=scan_config.port_range,
            addresses_total=scan_config.address_range.size,
            started_at=datetime.now(),
        )
        self._category_counts = Counter()
        self._cancel_event = asyncio.Event()
        self.store.reset(session)
        self.store.append_log("Starting network scan...")

        logger.info(
            f"Starting {scan_config.scan_type.value} scan {session.session_id} of "
            f"{scan_config.address_range} ({session.addresses_total} addresses, {len(ports)} ports)"
        )

        self._task = loop.create_task(
            self._run(session.session_id, scan_config, profile, ports, self._cancel_event)
        )
        return ScanHandle(session_id=session.session_id)

    def cancel_scan(self, handle: ScanHandle | None = None) -> bool:
        """Stop the running session. Returns False if there was nothing to cancel.

        Devices already committed stay in the store and progress is left where
        it was. No log entries follow the cancellation entry.
        """
        session = self.store.session
        if not session.is_running:
            return False
        if handle is not None and handle.session_id != session.session_id:
            return False

        if self._cancel_event is not None:
            self._cancel_event.set()
        self.store.update_session(state=ScanState.CANCELLED, finished_at=datetime.now())
        self.store.append_log("Scan cancelled.")
        logger.info(
            f"Scan {session.session_id} cancelled after "
            f"{session.addresses_processed}/{session.addresses_total} addresses"
        )
        return True

    def get_snapshot(self, handle: ScanHandle | None = None) -> ScanSnapshot:
        """Return a consistent read-only copy of the current session's state."""
        snapshot = self.store.snapshot()
        if handle is not None and handle.session_id != snapshot.session.session_id:
            raise SessionNotFoundError(f"Session {handle.session_id} is no longer available")
        return snapshot

    def get_device_detail(self, device_id: int) -> DeviceDetail | None:
        return self.store.get_device_detail(device_id)

    def subscribe(self, listener: Listener) -> None:
        """Receive a ScanEvent for every session, device, findings and log change."""
        self.store.add_listener(listener)

    def unsubscribe(self, listener: Listener) -> None:
        self.store.remove_listener(listener)

    async def wait(self, handle: ScanHandle | None = None) -> ScanSnapshot:
        """Wait for the session to finish and return its final snapshot."""
        if handle is not None and handle.session_id != self._last_session_id:
            raise SessionNotFoundError(f"Session {handle.session_id} is no longer available")
        if self._task is not None:
            await asyncio.shield(self._task)
        return self.get_snapshot(handle)

    async def run_scan(self, config: ScanConfig | Mapping[str, Any]) -> ScanSnapshot:
        """Start a scan and wait for it to finish."""
        handle = self.start_scan(config)
        return await self.wait(handle)

    async def _run(
        self,
        session_id: int,
        config: ScanConfig,
        profile: ProbeProfile,
        ports: list[int],
        cancel_event: asyncio.Event,
    ) -> None:
        total = config.address_range.size
        processed = 0
        addresses = config.address_range.addresses()
        window: deque[tuple[str, asyncio.Task]] = deque()
        cancelled = asyncio.ensure_future(cancel_event.wait())

        try:
            while True:
                while len(window) < profile.max_workers and not cancel_event.is_set():
                    address = next(addresses, None)
                    if address is None:
                        break
                    task = asyncio.create_task(self._probe_host(address, ports, profile))
                    window.append((address, task))

                if not window or cancel_event.is_set():
                    break

                address, task = window.popleft()
                self.store.append_log(f"Scanning IP: {address}")
                await asyncio.wait({task, cancelled}, return_when=asyncio.FIRST_COMPLETED)
                if cancel_event.is_set():
                    task.cancel()
                    break

                result, error = task.result()
                if error:
                    self.store.append_log(f"Probe failed for {address}: {error}")
                elif result.live:
                    self._commit(result)

                # Listeners may have cancelled the scan while handling the writes above
                if cancel_event.is_set():
                    break

                processed += 1
                self.store.update_session(
                    addresses_processed=processed,
                    progress_percent=processed * 100 // total,
                )

            if not cancel_event.is_set():
                device_count = self.store.device_count
                self.store.update_session(
                    state=ScanState.COMPLETED,
                    progress_percent=100,
                    finished_at=datetime.now(),
                )
                self.store.append_log(f"Scan completed. Found {device_count} devices.")
                logger.info(f"Scan {session_id} completed: {device_count} devices in {total} addresses")

        except Exception as e:
            logger.error(f"Scan {session_id} aborted: {e}")
            if self.store.session.is_running:
                self.store.update_session(state=ScanState.CANCELLED, finished_at=datetime.now())
                self.store.append_log(f"Scan aborted: {e}")
            raise
        finally:
            cancelled.cancel()
            for _, pending in window:
                pending.cancel()

    async def _probe_host(
        self, address: str, ports: Sequence[int], profile: ProbeProfile
    ) -> tuple[ProbeResult, str | None]:
        """Probe one host within its deadline. Failures are returned, never raised."""
        deadline = profile.host_deadline(len(ports))
        try:
            result = await asyncio.wait_for(
                self.probe.probe(address, ports, profile.timeout_seconds), timeout=deadline
            )
            return result, None
        except (TimeoutError, ProbeTimeoutError):
            logger.debug(f"No answer from {address} within {deadline:.1f}s")
            return ProbeResult(address=address, live=False), None
        except ProbeTransportError as e:
            logger.warning(f"Probe failed for {address}: {e.reason}")
            return ProbeResult(address=address, live=False), e.reason
        except Exception as e:
            logger.error(f"Unexpected probe error for {address}: {e}")
            return ProbeResult(address=address, live=False), str(e) or type(e).__name__

    def _commit(self, result: ProbeResult) -> Device:
        """Classify, analyze and store a live host, then log it."""
        category = categorize(result)
        self._category_counts[category] += 1
        identity = classify(result, sequence=self._category_counts[category], category=category)

        device = Device(
            id=0,  # Assigned by the store
            address=result.address,
            identifier=identity.identifier,
            display_name=identity.display_name,
            category=identity.category,
            open_ports=result.open_ports,
            banners=result.banners,
            vendor=result.vendor,
        )
        findings = analyze(device)
        committed = self.store.commit_device(device, findings)

        if self.store.session.is_running:
            self.store.append_log(f"Found device: {committed.display_name} ({committed.address})")
        if findings and self.store.session.is_running:
            self.store.append_log(f"Potential vulnerabilities found on {committed.display_name}")
        return committed
