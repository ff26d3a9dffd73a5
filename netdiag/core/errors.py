"""
Error types raised by probes and the monitoring orchestrator.
"""

from typing import Optional


class NetDiagError(Exception):
    """Base class for all netdiag errors."""


class ConnectivityError(NetDiagError):
    """No internet reachable; aborts a full test before any measurement."""

    def __init__(self, message: str = "No internet connection available"):
        super().__init__(message)


class ProbeError(NetDiagError):
    """A single probe failed. Recovered locally with a fallback value."""

    def __init__(self, probe: str, reason: Optional[str] = None):
        self.probe = probe
        self.reason = reason
        super().__init__(f"{probe} probe failed" + (f": {reason}" if reason else ""))


class ProbeTimeout(ProbeError):
    """A single probe exceeded its time budget."""

    def __init__(self, probe: str, timeout: float):
        self.timeout = timeout
        super().__init__(probe, f"timed out after {timeout:.1f}s")


class AggregateFailure(NetDiagError):
    """Unexpected failure during a multi-phase sequence."""

    def __init__(self, phase: str, cause: BaseException):
        self.phase = phase
        self.cause = cause
        super().__init__(f"{phase} failed: {type(cause).__name__}: {cause}")
