"""
Serial transport for the Celestron AUX bus.

Implements Transport using pyserial. The focuser motor controller is reached
through the hand controller PC port or the USB port of the focuser itself;
both run 19200 8N1.
"""

import logging
import threading
from typing import Optional

import serial
from serial import SerialException

from celestron_focuser.protocol.interface import Transport
from celestron_focuser.config.models import SerialConfig
from celestron_focuser.utils.exceptions import (
    NotConnectedError,
    PortNotFoundError,
    PortInUseError,
    TransportFailure,
)


logger = logging.getLogger(__name__)


class SerialTransport(Transport):
    """Real hardware byte stream over an RS-232/USB serial port."""

    DATA_BITS = 8
    PARITY = serial.PARITY_NONE
    STOP_BITS = serial.STOPBITS_ONE

    def __init__(self, config: SerialConfig):
        """
        Initialize serial transport.

        Args:
            config: Serial port configuration.
        """
        self._config = config
        self._port: Optional[serial.Serial] = None
        self._lock = threading.Lock()

    @property
    def name(self) -> str:
        return self._config.port

    def open(self) -> None:
        """Open the serial port and flush stale bytes."""
        if self.is_open():
            logger.warning("Already open")
            return

        port_name = self._config.port
        timeout = self._config.timeout_seconds

        logger.info(f"Opening serial port {port_name} at {self._config.baud} baud")

        try:
            self._port = serial.Serial(
                port=port_name,
                baudrate=self._config.baud,
                bytesize=self.DATA_BITS,
                parity=self.PARITY,
                stopbits=self.STOP_BITS,
                timeout=timeout,
                write_timeout=timeout,
            )
        except SerialException as e:
            error_msg = str(e).lower()
            if "filenotfounderror" in error_msg or "no such file" in error_msg:
                raise PortNotFoundError(f"Failed to open {port_name}: Port not found") from e
            elif "access" in error_msg or "permission" in error_msg or "in use" in error_msg or "busy" in error_msg:
                raise PortInUseError(f"{port_name} is already in use by another application") from e
            else:
                raise PortNotFoundError(f"Failed to open {port_name}: {e}") from e

        self._port.reset_input_buffer()
        self._port.reset_output_buffer()

    def close(self) -> None:
        """Close serial port."""
        if self._port and self._port.is_open:
            self._port.close()
            logger.info("Serial port closed")
        self._port = None

    def is_open(self) -> bool:
        return self._port is not None and self._port.is_open

    def write(self, data: bytes) -> None:
        port = self._require_port()
        try:
            port.write(data)
            port.flush()
        except (SerialException, OSError) as e:
            raise TransportFailure(f"Write to {self.name} failed: {e}") from e

    def read(self, size: int, timeout: float) -> bytes:
        port = self._require_port()
        with self._lock:
            original_timeout = port.timeout
            try:
                port.timeout = timeout
                data = bytes(port.read(size))
            except (SerialException, OSError) as e:
                raise TransportFailure(f"Read from {self.name} failed: {e}") from e
            try:
                port.timeout = original_timeout
            except (SerialException, OSError) as e:
                raise TransportFailure(f"Could not restore timeout on {self.name}: {e}") from e
            return data

    def reset_input_buffer(self) -> None:
        if not self.is_open():
            return
        try:
            self._port.reset_input_buffer()
        except (SerialException, OSError) as e:
            raise TransportFailure(f"Flush of {self.name} failed: {e}") from e

    def _require_port(self) -> serial.Serial:
        if not self.is_open():
            raise NotConnectedError("Serial port not open")
        return self._port
