"""Entry point for running a scan from the command line."""

import argparse
import asyncio
import atexit
import logging
import signal
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from .errors import ScanConfigError
from .models.config import Config, ScanType
from .models.scan_result import ScanEvent, ScanEventType, ScanSnapshot, ScanState
from .services.arp_probe import ArpProbe
from .services.nmap_probe import NmapProbe
from .services.orchestrator import ScanOrchestrator
from .services.probe import Probe, TcpConnectProbe

_logger = logging.getLogger(__name__)


def setup_logging(log_level: str = "INFO") -> None:
    """Configure logging with rotation support.

    Args:
        log_level: The logging level (DEBUG, INFO, WARNING, ERROR)
    """
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]

    # Try to add rotating file handler
    log_dir = Path("logs")
    try:
        log_dir.mkdir(exist_ok=True)
        # Rotate at 10MB, keep 5 backup files
        file_handler = RotatingFileHandler(
            log_dir / "netsweep.log",
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5,
            encoding="utf-8",
        )
        handlers.append(file_handler)
    except (PermissionError, OSError):
        pass  # Skip file logging if we can't write

    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
    )


def _cleanup() -> None:
    """Cleanup handler called on exit."""
    _logger.info("netsweep shutdown complete")


def build_probe(backend: str, scan_type: ScanType, config: Config) -> Probe:
    """Create the probe for the chosen backend, falling back to TCP connects."""
    profile = config.probe.profile_for(scan_type)
    tcp_probe = TcpConnectProbe(port_concurrency=profile.port_concurrency)

    if backend == "arp":
        arp_probe = ArpProbe(ports_probe=tcp_probe, arp_timeout=profile.timeout_seconds)
        if arp_probe.available:
            return arp_probe
        print(f"{arp_probe.get_status_message()}; using TCP connect probing", file=sys.stderr)
    elif backend == "nmap":
        nmap_probe = NmapProbe(service_detection=scan_type == ScanType.DEEP)
        if nmap_probe.available:
            return nmap_probe
        print("nmap not installed; using TCP connect probing", file=sys.stderr)

    return tcp_probe


def _print_log_entry(event: ScanEvent) -> None:
    if event.type == ScanEventType.LOG:
        print(f"[{event.payload['timestamp'][11:19]}] {event.payload['message']}")


def print_report(snapshot: ScanSnapshot) -> None:
    """Print devices and findings as plain text."""
    session = snapshot.session
    print()
    print(
        f"Scan {session.state.value}: {len(snapshot.devices)} devices, "
        f"{session.progress_percent}% of {session.addresses_total} addresses "
        f"in {session.duration_seconds:.1f}s"
    )
    if not snapshot.devices:
        return

    print()
    print(f"{'IP Address':<16} {'Identifier':<18} {'Name':<20} {'Type':<15} Open Ports")
    for device in snapshot.devices:
        ports = ", ".join(str(p) for p in device.open_ports) or "-"
        print(
            f"{device.address:<16} {device.identifier:<18} {device.display_name:<20} "
            f"{device.category.label:<15} {ports}"
        )

    vulnerable = snapshot.vulnerable_devices
    if vulnerable:
        print()
        print("Potential vulnerabilities:")
        for device in vulnerable:
            print(f"  {device.display_name} ({device.address})")
            for finding in snapshot.findings_by_device_id[device.id]:
                print(f"    - {finding.name.value}: {finding.description}")


async def run_scan(args: argparse.Namespace, config: Config) -> int:
    """Run one scan and print the results. Returns the process exit code."""
    scan_input = {
        "scan_type": args.type or config.scan.scan_type,
        "address_range": args.range or config.scan.address_range,
        "port_range": args.ports or config.scan.port_range,
    }
    try:
        scan_type = ScanType.parse(scan_input["scan_type"])
    except ScanConfigError as e:
        print(f"Invalid scan configuration: {e}", file=sys.stderr)
        return 2

    probe = build_probe(args.probe or config.probe.backend, scan_type, config)
    orchestrator = ScanOrchestrator(probe=probe, probe_settings=config.probe)
    if not args.json:
        orchestrator.subscribe(_print_log_entry)

    try:
        handle = orchestrator.start_scan(scan_input)
    except ScanConfigError as e:
        print(f"Invalid scan configuration: {e}", file=sys.stderr)
        return 2

    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, orchestrator.cancel_scan, handle)
        except NotImplementedError:
            pass  # Not supported on Windows event loops

    snapshot = await orchestrator.wait(handle)

    if args.json:
        print(snapshot.model_dump_json(indent=2))
    else:
        print_report(snapshot)

    return 0 if snapshot.session.state == ScanState.COMPLETED else 130


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="netsweep - discover hosts on a network and flag likely vulnerabilities"
    )
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=Path("config.json"),
        help="Path to configuration file (default: config.json)",
    )
    parser.add_argument("-r", "--range", help="Address range, e.g. 192.168.1.1-254")
    parser.add_argument("-p", "--ports", help="Port range, e.g. 1-1024")
    parser.add_argument("-t", "--type", help="Scan type: quick or deep")
    parser.add_argument(
        "--probe",
        choices=["tcp", "arp", "nmap"],
        help="Probe backend (default from config, normally tcp)",
    )
    parser.add_argument("--json", action="store_true", help="Print the final snapshot as JSON")
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    parser.add_argument(
        "-V",
        "--version",
        action="store_true",
        help="Show version and exit",
    )

    args = parser.parse_args()

    # Handle version flag
    if args.version:
        from . import __version__

        print(f"netsweep v{__version__}")
        sys.exit(0)

    config = Config.load_or_default(args.config)

    # Setup logging
    log_level = "DEBUG" if args.verbose else config.settings.log_level
    setup_logging(log_level)
    atexit.register(_cleanup)

    _logger.info("Starting netsweep")
    sys.exit(asyncio.run(run_scan(args, config)))


if __name__ == "__main__":
    main()
