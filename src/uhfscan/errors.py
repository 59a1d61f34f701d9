"""Exceptions raised by gateways and the reader core."""


class ReaderError(Exception):
    """Base class for reader errors."""


class DeviceUninitializedError(ReaderError):
    """Raised when a device operation is attempted outside the init window."""


class DeviceCommandFailedError(ReaderError):
    """Raised when the device rejects or errors on a command."""
