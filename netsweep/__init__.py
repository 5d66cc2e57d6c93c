"""Network discovery and vulnerability flagging engine."""

__version__ = "0.1.0"
