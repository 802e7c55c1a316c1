"""
Abstract byte-stream transport.

This interface allows transparent substitution between the real serial port
and the simulator.
"""

from abc import ABC, abstractmethod


class Transport(ABC):
    """Abstract base class for the link carrying AUX frames."""

    @abstractmethod
    def open(self) -> None:
        """
        Open the link.

        Raises:
            PortNotFoundError: If serial port does not exist.
            PortInUseError: If port is already open.
        """
        pass

    @abstractmethod
    def close(self) -> None:
        """Close the link."""
        pass

    @abstractmethod
    def is_open(self) -> bool:
        """
        Check if the link is open.

        Returns:
            True if open, False otherwise.
        """
        pass

    @abstractmethod
    def write(self, data: bytes) -> None:
        """
        Write bytes, blocking until they are handed to the device.

        Raises:
            NotConnectedError: If not open.
            TransportFailure: On write error.
        """
        pass

    @abstractmethod
    def read(self, size: int, timeout: float) -> bytes:
        """
        Read up to `size` bytes, blocking at most `timeout` seconds.

        Returns:
            The bytes received; fewer than `size` (possibly none) on timeout.

        Raises:
            NotConnectedError: If not open.
            TransportFailure: On read error.
        """
        pass

    @abstractmethod
    def reset_input_buffer(self) -> None:
        """Discard any unread input."""
        pass

    @property
    def name(self) -> str:
        return type(self).__name__
