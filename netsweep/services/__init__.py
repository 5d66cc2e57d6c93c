"""Services for probing, classifying, analyzing and orchestrating scans."""

from .arp_probe import ArpProbe
from .nmap_probe import NmapProbe
from .orchestrator import ScanOrchestrator
from .probe import Probe, TcpConnectProbe
from .result_store import ResultStore

__all__ = ["ArpProbe", "NmapProbe", "Probe", "ResultStore", "ScanOrchestrator", "TcpConnectProbe"]
