"""Exceptions raised by cpuspot."""


class SamplingError(Exception):
    """Raised when a sampling run cannot produce any usable snapshots."""
