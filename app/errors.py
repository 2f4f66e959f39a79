"""Error types raised while acquiring remote poster resources.

None of the resource errors escape the loader or the scanner: they are
caught at the probe boundary and turned into a stage change or a scan
status. ``ScanInProgressError`` is the one operator-facing error.
"""

from __future__ import annotations


class ResourceError(Exception):
    """Base class for failures while probing a remote resource."""

    kind = "resource_error"

    def __init__(self, url: str, message: str | None = None):
        self.url = url
        super().__init__(message or f"{self.kind}: {url or '<empty>'}")


class TransportError(ResourceError):
    """The remote fetch failed or returned a non-success response."""

    kind = "transport_error"


class ProbeTimeoutError(ResourceError, TimeoutError):
    """A bounded wait elapsed before the fetch resolved."""

    kind = "timeout"


class EmptyReferenceError(ResourceError):
    """No origin URL was supplied for the resource."""

    kind = "empty_reference"


class ScanInProgressError(RuntimeError):
    """Raised when a scan is requested while another run is active."""
