"""
Custom exception classes for the Celestron focuser core.
"""


class FocuserException(Exception):
    """Base exception for all focuser core errors."""
    pass


class InvalidValueError(FocuserException):
    """Invalid parameter value (e.g. target does not fit the 24-bit position field)."""
    pass


class CommandError(FocuserException):
    """A single command/response exchange failed."""
    pass


class TransportFailure(CommandError):
    """Write/read error on the byte stream."""
    pass


class SerialTimeoutError(TransportFailure):
    """Serial port timeout (no reply from hardware within the channel timeout)."""
    pass


class NotConnectedError(TransportFailure):
    """Raised when operation requires an open transport but it is closed."""
    pass


class FramingError(CommandError):
    """Malformed AUX frame (bad preamble, wrong length, truncated packet)."""
    pass


class ChecksumMismatchError(FramingError):
    """Checksum validation failed."""
    pass


class DriverError(FocuserException):
    """General driver error."""
    pass


class PortNotFoundError(DriverError):
    """Serial port does not exist."""
    pass


class PortInUseError(DriverError):
    """Serial port is already open by another application."""
    pass


class HandshakeError(DriverError):
    """Focuser did not answer the firmware version query."""
    pass
