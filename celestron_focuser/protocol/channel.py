"""
Synchronous command/response channel for the AUX bus.

The focuser motor controller cannot pipeline commands: every exchange is one
frame out, one frame back. The channel holds a lock for the full exchange so
no second command is ever written while a reply is still outstanding.
"""

import logging
import threading
import time
from typing import Optional

from celestron_focuser.protocol.interface import Transport
from celestron_focuser.protocol.checksum import PREAMBLE
from celestron_focuser.protocol.encoder import AuxPacket, Command, Target, decode_frame
from celestron_focuser.protocol.logger import ProtocolLogger, get_protocol_logger
from celestron_focuser.utils.exceptions import (
    CommandError,
    FramingError,
    NotConnectedError,
    SerialTimeoutError,
)


logger = logging.getLogger(__name__)


class CommandChannel:
    """
    Single-flight request/response primitive over a Transport.

    `send()` raises on failure; `send_blind()` reports success as a boolean.
    Neither retries: the next poll tick is the natural retry.
    """

    DEFAULT_TIMEOUT = 1.0

    def __init__(
        self,
        transport: Transport,
        timeout_seconds: float = DEFAULT_TIMEOUT,
        source: int = Target.APP,
        protocol_logger: Optional[ProtocolLogger] = None
    ):
        """
        Initialize command channel.

        Args:
            transport: Open (or to be opened) byte stream.
            timeout_seconds: Bounded wait for each reply.
            source: Our own bus address.
            protocol_logger: Frame log; the global one when omitted.
        """
        self._transport = transport
        self._timeout = timeout_seconds
        self._source = int(source)
        self._protocol_logger = protocol_logger or get_protocol_logger()
        self._lock = threading.Lock()

    @property
    def source(self) -> int:
        return self._source

    @property
    def transport(self) -> Transport:
        return self._transport

    def command(self, destination: int, opcode: int, payload: bytes = b"") -> Command:
        """Build a command addressed from this channel."""
        return Command(self._source, int(destination), int(opcode), bytes(payload))

    def send(self, command: Command) -> bytes:
        """
        Send a command and wait for its reply.

        Args:
            command: Command to send.

        Returns:
            Reply payload bytes (may be empty).

        Raises:
            NotConnectedError: If the transport is closed.
            SerialTimeoutError: If no reply arrives within the timeout.
            TransportFailure: On write/read error.
            FramingError: If the reply is malformed.
        """
        if not self._transport.is_open():
            raise NotConnectedError("Transport not open")

        frame = command.encode()

        with self._lock:
            if logger.isEnabledFor(logging.DEBUG):
                logger.debug(f"TX {command.describe()}: {self._hex(frame)}")

            self._protocol_logger.log_tx(frame)

            try:
                self._transport.write(frame)
                packet = self._read_reply(command)
            except CommandError as e:
                self._protocol_logger.log_error(f"{command.describe()}: {e}")
                # Drop partial input so the next exchange starts on a frame boundary
                try:
                    self._transport.reset_input_buffer()
                except CommandError as flush_error:
                    logger.debug(f"Input flush after failed exchange failed: {flush_error}")
                raise

            return packet.data

    def send_blind(self, command: Command) -> bool:
        """
        Send a command whose reply payload the caller does not need.

        Returns:
            True if the device acknowledged the command, False otherwise.
        """
        try:
            self.send(command)
            return True
        except CommandError as e:
            logger.warning(f"{command.describe()} not acknowledged: {e}")
            return False

    def _read_reply(self, command: Command) -> AuxPacket:
        """Read frames until the reply to `command` arrives or time runs out."""
        deadline = time.monotonic() + self._timeout

        while True:
            frame = self._read_frame(command, deadline)
            self._protocol_logger.log_rx(frame)

            if logger.isEnabledFor(logging.DEBUG):
                logger.debug(f"RX: {self._hex(frame)}")

            packet = decode_frame(frame)

            if packet.source == command.source and packet.destination == command.destination:
                # Our own frame echoed back by the hand controller port
                continue

            if (packet.source != command.destination
                    or packet.destination != command.source
                    or packet.opcode != command.opcode):
                logger.debug(
                    f"Ignoring packet 0x{packet.opcode:02X} "
                    f"0x{packet.source:02X}->0x{packet.destination:02X}"
                )
                continue

            return packet

    def _read_frame(self, command: Command, deadline: float) -> bytes:
        while True:
            first = self._read_exact(1, deadline)
            if not first:
                raise SerialTimeoutError(f"No reply to {command.describe()}")
            if first[0] == PREAMBLE:
                break
            logger.debug(f"Unexpected byte: 0x{first[0]:02X}")

        length = self._read_exact(1, deadline)
        if not length:
            raise FramingError("Incomplete frame: missing length byte")

        rest = self._read_exact(length[0] + 1, deadline)
        frame = bytes([PREAMBLE]) + length + rest
        if len(rest) < length[0] + 1:
            raise FramingError(
                f"Incomplete frame: received {len(frame)}/{length[0] + 3} bytes"
            )
        return frame

    def _read_exact(self, size: int, deadline: float) -> bytes:
        buf = b""
        while len(buf) < size:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            chunk = self._transport.read(size - len(buf), remaining)
            if not chunk:
                break
            buf += chunk
        return buf

    @staticmethod
    def _hex(data: bytes) -> str:
        return " ".join(f"{b:02X}" for b in data)
