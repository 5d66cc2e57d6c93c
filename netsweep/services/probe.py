"""Probe layer: reachability, open port and banner checks for one address."""

import asyncio
import errno
import logging
import socket
from collections.abc import Sequence
from enum import Enum
from typing import Protocol

from ..errors import ProbeTransportError
from ..models.scan_result import ProbeResult

logger = logging.getLogger(__name__)

# Ports that only answer after a request is sent
HTTP_PORTS = {80, 5000, 8000, 8008, 8080}
BANNER_BYTES = 512
MAX_BANNER_LENGTH = 256

# Errors that mean the local side cannot send at all, not that the host is down
TRANSPORT_ERRNOS = {errno.ENETUNREACH, errno.EADDRNOTAVAIL, errno.EACCES, errno.EPERM}


class Probe(Protocol):
    """Anything that can check one address for liveness and open ports."""

    async def probe(self, address: str, ports: Sequence[int], timeout: float) -> ProbeResult:
        """Probe ``ports`` on ``address``, waiting at most ``timeout`` per port.

        Unreachable hosts come back as ``live=False``. Failures to send probes
        at all raise ProbeTransportError.
        """
        ...


class PortState(str, Enum):
    """Outcome of a single port check."""

    OPEN = "open"
    CLOSED = "closed"  # Host answered with a reset
    FILTERED = "filtered"  # No answer within the timeout
    ERROR = "error"


def clean_banner(data: bytes) -> str:
    """Collapse a raw service banner to one printable line."""
    text = data.decode("utf-8", errors="replace")
    return " ".join(text.split())[:MAX_BANNER_LENGTH]


class TcpConnectProbe:
    """Probe using plain TCP connects, no privileges required."""

    def __init__(
        self,
        port_concurrency: int = 64,
        banner_timeout: float = 1.0,
        dns_timeout: float = 1.0,
        resolve_hostnames: bool = True,
    ):
        self.port_concurrency = port_concurrency
        self.banner_timeout = banner_timeout
        self.dns_timeout = dns_timeout
        self.resolve_hostnames = resolve_hostnames

    async def probe(self, address: str, ports: Sequence[int], timeout: float) -> ProbeResult:
        semaphore = asyncio.Semaphore(self.port_concurrency)

        async def check(port: int) -> tuple[int, PortState, str]:
            async with semaphore:
                state, detail = await self._check_port(address, port, timeout)
                return port, state, detail

        outcomes = await asyncio.gather(*(check(port) for port in ports))

        open_ports: list[int] = []
        banners: dict[int, str] = {}
        errors: list[str] = []
        responded = False
        for port, state, detail in outcomes:
            if state == PortState.OPEN:
                responded = True
                open_ports.append(port)
                if detail:
                    banners[port] = detail
            elif state == PortState.CLOSED:
                responded = True
            elif state == PortState.ERROR:
                errors.append(detail)

        if not responded and errors and len(errors) == len(outcomes):
            raise ProbeTransportError(address, errors[0])

        hostname = ""
        if responded and self.resolve_hostnames:
            # Half a port timeout, so name lookup stays inside the host deadline
            hostname = await self._resolve_hostname(address, min(self.dns_timeout, timeout / 2))

        return ProbeResult(
            address=address,
            live=responded,
            open_ports=open_ports,
            banners=banners,
            hostname=hostname,
        )

    async def _check_port(self, address: str, port: int, timeout: float) -> tuple[PortState, str]:
        """Connect to one port. Returns the state and a banner or error text.

        Connecting and reading the banner together take at most ``timeout``.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        try:
            reader, writer = await asyncio.wait_for(
                asyncio.open_connection(address, port), timeout=timeout
            )
        except TimeoutError:
            return PortState.FILTERED, ""
        except ConnectionRefusedError:
            return PortState.CLOSED, ""
        except PermissionError as e:
            return PortState.ERROR, f"permission denied: {e}"
        except OSError as e:
            if e.errno in TRANSPORT_ERRNOS:
                return PortState.ERROR, str(e)
            logger.debug(f"{address}:{port} unreachable: {e}")
            return PortState.FILTERED, ""

        try:
            remaining = deadline - loop.time()
            banner = ""
            if remaining > 0:
                banner = await self._read_banner(
                    address, port, reader, writer, min(remaining, self.banner_timeout)
                )
        finally:
            writer.close()
            try:
                await writer.wait_closed()
            except OSError:
                pass  # Peer already gone

        return PortState.OPEN, banner

    async def _read_banner(
        self,
        address: str,
        port: int,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        timeout: float,
    ) -> str:
        try:
            if port in HTTP_PORTS:
                writer.write(f"HEAD / HTTP/1.0\r\nHost: {address}\r\n\r\n".encode())
                await writer.drain()
            data = await asyncio.wait_for(reader.read(BANNER_BYTES), timeout=timeout)
        except (TimeoutError, OSError) as e:
            logger.debug(f"No banner from {address}:{port}: {e!r}")
            return ""
        return clean_banner(data)

    async def _resolve_hostname(self, address: str, timeout: float) -> str:
        """Reverse DNS lookup, returning the short hostname or an empty string."""
        loop = asyncio.get_running_loop()
        try:
            hostname, _, _ = await asyncio.wait_for(
                loop.run_in_executor(None, socket.gethostbyaddr, address),
                timeout=timeout,
            )
            if hostname == address:
                return ""
            return hostname.split(".")[0]  # Use short hostname
        except TimeoutError:
            logger.debug(f"DNS lookup timeout for {address}")
        except (socket.herror, socket.gaierror):
            pass  # No reverse DNS
        except OSError as e:
            logger.debug(f"DNS lookup error for {address}: {e}")
        return ""
