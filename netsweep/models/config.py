"""Configuration models using Pydantic for validation."""

import ipaddress
from collections.abc import Iterator, Mapping
from enum import Enum
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, IPvAnyAddress, ValidationError, model_validator

from ..errors import InvalidRangeError, InvalidScanTypeError, ScanConfigError

# Ports probed by a quick scan (intersected with the configured port range)
QUICK_PORTS = [
    21, 22, 23, 25, 53, 80, 110, 139, 143, 161, 443, 445, 515, 548, 554, 631,
    1883, 1900, 3306, 3389, 5000, 5001, 5353, 5555, 5900, 8080, 8443, 9100, 62078,
]


def _first_error(exc: ValidationError) -> str:
    """Return the first validation message without pydantic's boilerplate."""
    errors = exc.errors()
    if not errors:
        return str(exc)
    message = errors[0].get("msg", "")
    return message.removeprefix("Value error, ")


class ScanType(str, Enum):
    """How thoroughly each host is probed."""

    QUICK = "quick"
    DEEP = "deep"

    @classmethod
    def parse(cls, value: Any) -> "ScanType":
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        raise InvalidScanTypeError(
            f"Invalid scan type '{value}': expected one of {', '.join(t.value for t in cls)}"
        )


class AddressRange(BaseModel):
    """Inclusive range of host addresses of a single IP family."""

    start: IPvAnyAddress
    end: IPvAnyAddress

    @model_validator(mode="after")
    def validate_bounds(self) -> "AddressRange":
        """Ensure both ends share a family and are in ascending order."""
        if self.start.version != self.end.version:
            raise ValueError("start and end must be the same address family")
        if int(self.start) > int(self.end):
            raise ValueError(f"start {self.start} is after end {self.end}")
        return self

    @classmethod
    def parse(cls, value: Any) -> "AddressRange":
        """Parse "A-B", "A-N" (last octet shorthand), a single address or a mapping."""
        if isinstance(value, cls):
            return value

        if isinstance(value, Mapping):
            start, end = value.get("start"), value.get("end")
            if start is None or end is None:
                raise InvalidRangeError(f"Address range needs 'start' and 'end', got {dict(value)}")
        elif isinstance(value, str):
            text = value.strip()
            if not text:
                raise InvalidRangeError("Address range is empty")
            if "-" in text:
                start, _, end = (part.strip() for part in text.partition("-"))
                # "192.168.1.1-254" means the last octet runs up to 254
                if end.isdigit() and "." in start:
                    end = f"{start.rsplit('.', 1)[0]}.{end}"
            else:
                start = end = text
        else:
            raise InvalidRangeError(f"Unsupported address range value: {value!r}")

        try:
            return cls(start=start, end=end)
        except ValidationError as e:
            raise InvalidRangeError(f"Invalid address range '{value}': {_first_error(e)}") from e

    @property
    def size(self) -> int:
        """Number of addresses in the range."""
        return int(self.end) - int(self.start) + 1

    def addresses(self) -> Iterator[str]:
        """Yield every address from start to end inclusive, ascending."""
        address_cls = ipaddress.IPv4Address if self.start.version == 4 else ipaddress.IPv6Address
        for ordinal in range(int(self.start), int(self.end) + 1):
            yield str(address_cls(ordinal))

    def __str__(self) -> str:
        return f"{self.start}-{self.end}"


class PortRange(BaseModel):
    """Inclusive range of TCP/UDP port numbers."""

    start: int = Field(..., ge=1, le=65535)
    end: int = Field(..., ge=1, le=65535)

    @model_validator(mode="after")
    def validate_bounds(self) -> "PortRange":
        if self.start > self.end:
            raise ValueError(f"start port {self.start} is after end port {self.end}")
        return self

    @classmethod
    def parse(cls, value: Any) -> "PortRange":
        """Parse "M-N", a single port or a mapping with start/end."""
        if isinstance(value, cls):
            return value

        if isinstance(value, Mapping):
            start, end = value.get("start"), value.get("end")
            if start is None or end is None:
                raise InvalidRangeError(f"Port range needs 'start' and 'end', got {dict(value)}")
        elif isinstance(value, int) and not isinstance(value, bool):
            start = end = value
        elif isinstance(value, str):
            text = value.strip()
            start, sep, end = (part.strip() for part in text.partition("-"))
            if not sep:
                end = start
            if not (start.isdigit() and end.isdigit()):
                raise InvalidRangeError(f"Invalid port range '{value}': expected 'M-N'")
            start, end = int(start), int(end)
        else:
            raise InvalidRangeError(f"Unsupported port range value: {value!r}")

        try:
            return cls(start=start, end=end)
        except ValidationError as e:
            raise InvalidRangeError(f"Invalid port range '{value}': {_first_error(e)}") from e

    def ports(self) -> range:
        return range(self.start, self.end + 1)

    def __contains__(self, port: int) -> bool:
        return self.start <= port <= self.end

    def __str__(self) -> str:
        return f"{self.start}-{self.end}"


class ScanConfig(BaseModel):
    """Validated input for a single scan session."""

    scan_type: ScanType = ScanType.QUICK
    address_range: AddressRange
    port_range: PortRange

    @classmethod
    def parse(cls, raw: "ScanConfig | Mapping[str, Any]") -> "ScanConfig":
        """Validate raw scan input, accepting snake_case or camelCase keys.

        Raises InvalidRangeError or InvalidScanTypeError before any probing.
        """
        if isinstance(raw, cls):
            return raw
        if not isinstance(raw, Mapping):
            raise ScanConfigError(f"Scan configuration must be a mapping, got {type(raw).__name__}")

        def pick(snake: str, camel: str, default: Any = None) -> Any:
            if snake in raw:
                return raw[snake]
            return raw.get(camel, default)

        address_range = pick("address_range", "addressRange")
        port_range = pick("port_range", "portRange")
        if address_range is None:
            raise InvalidRangeError("Address range is required")
        if port_range is None:
            raise InvalidRangeError("Port range is required")

        return cls(
            scan_type=ScanType.parse(pick("scan_type", "scanType", ScanType.QUICK)),
            address_range=AddressRange.parse(address_range),
            port_range=PortRange.parse(port_range),
        )


class ProbeProfile(BaseModel):
    """Per-host probe limits for one scan type."""

    ports: list[int] | None = None  # None probes the whole port range
    timeout_seconds: float = Field(default=1.0, gt=0)
    host_timeout_seconds: float | None = None  # Defaults to timeout x (port count + 1)
    max_workers: int = Field(default=16, ge=1)  # Hosts probed concurrently
    port_concurrency: int = Field(default=64, ge=1)  # Ports probed concurrently per host

    def select_ports(self, port_range: PortRange) -> list[int]:
        """Ports to probe for this profile, bounded by the configured range."""
        if self.ports is None:
            return list(port_range.ports())
        return sorted({p for p in self.ports if p in port_range})

    def host_deadline(self, port_count: int) -> float:
        """Upper bound on how long a single host may be probed.

        One timeout per port, plus one more for hostname resolution.
        """
        if self.host_timeout_seconds is not None:
            return self.host_timeout_seconds
        return self.timeout_seconds * (max(port_count, 1) + 1)


class ProbeSettings(BaseModel):
    """Probe backend and per scan type limits."""

    backend: Literal["tcp", "arp", "nmap"] = "tcp"
    quick: ProbeProfile = Field(
        default_factory=lambda: ProbeProfile(
            ports=list(QUICK_PORTS), timeout_seconds=0.5, max_workers=32, port_concurrency=32
        )
    )
    deep: ProbeProfile = Field(
        default_factory=lambda: ProbeProfile(
            ports=None, timeout_seconds=1.5, max_workers=16, port_concurrency=128
        )
    )

    def profile_for(self, scan_type: ScanType) -> ProbeProfile:
        return self.deep if scan_type == ScanType.DEEP else self.quick


class ScanDefaults(BaseModel):
    """Default scan input used when the command line does not override it."""

    scan_type: Literal["quick", "deep"] = "quick"
    address_range: str = "192.168.1.1-254"
    port_range: str = "1-1024"


class Settings(BaseModel):
    """General application settings."""

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"


class Config(BaseModel):
    """Main configuration model."""

    scan: ScanDefaults = Field(default_factory=ScanDefaults)
    probe: ProbeSettings = Field(default_factory=ProbeSettings)
    settings: Settings = Field(default_factory=Settings)

    @classmethod
    def load(cls, path: Path | str = "config.json") -> "Config":
        """Load configuration from a JSON file."""
        import json

        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        with open(path) as f:
            data = json.load(f)

        return cls.model_validate(data)

    @classmethod
    def load_or_default(cls, path: Path | str = "config.json") -> "Config":
        """Load configuration or return default if file doesn't exist."""
        try:
            return cls.load(path)
        except FileNotFoundError:
            return cls()
