"""Pytest configuration and fixtures."""

import asyncio
import json
import tempfile
from collections.abc import Sequence
from pathlib import Path

import pytest

from netsweep.models.scan_result import ProbeResult


class FakeProbe:
    """Scripted probe: canned results, optional delays, errors and gates per address."""

    def __init__(
        self,
        hosts: dict[str, ProbeResult] | None = None,
        delays: dict[str, float] | None = None,
        errors: dict[str, Exception] | None = None,
        gates: dict[str, asyncio.Event] | None = None,
    ):
        self.hosts = hosts or {}
        self.delays = delays or {}
        self.errors = errors or {}
        self.gates = gates or {}
        self.calls: list[tuple[str, list[int], float]] = []

    async def probe(self, address: str, ports: Sequence[int], timeout: float) -> ProbeResult:
        self.calls.append((address, list(ports), timeout))
        if address in self.gates:
            await self.gates[address].wait()
        delay = self.delays.get(address, 0)
        if delay:
            await asyncio.sleep(delay)
        if address in self.errors:
            raise self.errors[address]
        return self.hosts.get(address, ProbeResult(address=address, live=False))

    @property
    def addresses(self) -> list[str]:
        return [call[0] for call in self.calls]


def _live_host(address: str, ports: list[int], **kwargs) -> ProbeResult:
    """Build a live probe result for an address."""
    return ProbeResult(address=address, live=True, open_ports=ports, **kwargs)


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def make_probe():
    """Factory for scripted fake probes."""
    return FakeProbe


@pytest.fixture
def live_host():
    """Factory for live probe results."""
    return _live_host


@pytest.fixture
def sample_config_data():
    """Sample configuration data for testing."""
    return {
        "scan": {
            "scan_type": "deep",
            "address_range": "10.0.0.1-10",
            "port_range": "20-25",
        },
        "probe": {
            "backend": "nmap",
            "quick": {
                "ports": [22, 80],
                "timeout_seconds": 0.2,
                "max_workers": 4,
            },
        },
        "settings": {
            "log_level": "DEBUG",
        },
    }


@pytest.fixture
def sample_config_file(temp_dir, sample_config_data):
    """Create a sample config file for testing."""
    config_path = temp_dir / "config.json"
    with open(config_path, "w") as f:
        json.dump(sample_config_data, f)
    return config_path
