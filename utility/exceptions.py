"""
Exception types for the weighing transmitter link.

Open failures carry a ``kind`` so a caller can tell a missing port from a
permission problem or a port held by another program.
"""


class WeighCellError(Exception):
    """Base error."""


class OpenError(WeighCellError):
    """The serial port could not be opened."""

    kind = "unknown"

    def __init__(self, port, message=""):
        self.port = port
        super().__init__(message or f"could not open {port}")


class PortNotFound(OpenError):
    kind = "port_missing"


class PortPermissionDenied(OpenError):
    kind = "permission_denied"


class PortBusy(OpenError):
    kind = "already_in_use"


class ProbeTimeout(WeighCellError):
    """Device did not answer the wake/probe command in time."""


class DecodeError(WeighCellError):
    """A single response frame was rejected."""


class FrameTooShort(DecodeError):
    pass


class FrameMalformed(DecodeError):
    pass


class ChecksumMismatch(DecodeError):
    def __init__(self, computed, received):
        self.computed = computed
        self.received = received
        super().__init__(
            f"checksum mismatch (computed: {computed:02X}, received: {received:02X})"
        )


class SensorUnresponsive(WeighCellError):
    """Too many missed polls, or no good response for too long."""


class WaitCancelled(WeighCellError):
    """A bounded wait was interrupted by a stop request."""


__all__ = [
    "WeighCellError",
    "OpenError",
    "PortNotFound",
    "PortPermissionDenied",
    "PortBusy",
    "ProbeTimeout",
    "DecodeError",
    "FrameTooShort",
    "FrameMalformed",
    "ChecksumMismatch",
    "SensorUnresponsive",
    "WaitCancelled",
]
