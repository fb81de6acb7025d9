"""Probe abstraction for latency data sources."""

from datetime import timedelta
from typing import Protocol


class ProbeSetupError(OSError):
    """Raised when a probe cannot be created on this system."""


class ProbeAdapter(Protocol):
    """Protocol defining the interface for latency probes."""

    def probe(self, host: str) -> timedelta | None:
        """Probe the host once; return the round-trip time, or None on timeout."""
        ...
