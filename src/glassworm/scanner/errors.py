"""Scanner exceptions."""

from __future__ import annotations


class ScannerError(Exception):
    """Base class for scanner errors."""


class ScannerFatalError(ScannerError):
    """The scan cannot start at all, e.g. the root path is not traversable."""
