"""Exception types raised by the scan engine."""


class NetsweepError(Exception):
    """Base class for all scan engine errors."""


class ScanConfigError(NetsweepError, ValueError):
    """Scan configuration could not be parsed or validated."""


class InvalidRangeError(ScanConfigError):
    """Address or port range is malformed or empty."""


class InvalidScanTypeError(ScanConfigError):
    """Scan type is not one of the supported values."""


class ScanInProgressError(NetsweepError):
    """A scan was requested while another session is still running."""

    def __init__(self, session_id: int):
        super().__init__(f"Scan session {session_id} is already running")
        self.session_id = session_id


class SessionNotFoundError(NetsweepError):
    """The requested session is not the current session."""


class ProbeError(NetsweepError):
    """Base class for probe failures."""

    def __init__(self, address: str, reason: str):
        super().__init__(f"{address}: {reason}")
        self.address = address
        self.reason = reason


class ProbeTimeoutError(ProbeError):
    """Host or port did not answer in time. Treated as not live."""


class ProbeTransportError(ProbeError):
    """Probe could not be sent (permissions, missing interface, tooling)."""
