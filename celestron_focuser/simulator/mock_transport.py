"""
Simulated Celestron focuser on an in-memory AUX link.

Answers the focuser motor controller commands without requiring a physical
device. Motion is computed from elapsed time on an injectable clock so tests
can drive it deterministically.
"""

import logging
import random
import threading
import time
from typing import Callable, Optional

from celestron_focuser.protocol.interface import Transport
from celestron_focuser.protocol.checksum import PREAMBLE
from celestron_focuser.protocol.encoder import (
    AuxPacket,
    Opcode,
    Target,
    decode_frame,
    encode_command,
    pack_uint,
    unpack_uint,
)
from celestron_focuser.config.models import SimulatorConfig
from celestron_focuser.utils.exceptions import FramingError, NotConnectedError


logger = logging.getLogger(__name__)


class SimulatedFocuser(Transport):
    """
    Mock focuser motor controller implementing Transport.

    Frames written are parsed and answered immediately; replies (preceded by
    an echo of the command when `echo_commands` is set) are queued for `read`.
    """

    def __init__(self, config: Optional[SimulatorConfig] = None, clock: Callable[[], float] = time.monotonic):
        """
        Initialize simulator.

        Args:
            config: Simulator configuration.
            clock: Monotonic time source in seconds.
        """
        self.config = config or SimulatorConfig()
        self._clock = clock
        self._open = False
        self._lock = threading.Lock()
        self._rx = bytearray()
        self._tx_pending = bytearray()

        # Virtual hardware state
        self._position = float(self.config.initial_position)
        self._target = self.config.initial_position
        self._last_update = self._clock()
        self.min_limit = self.config.min_limit
        self.max_limit = self.config.max_limit

        self.commands_received = 0
        self.ignore_next = 0

        logger.info("SimulatedFocuser initialized")

    # -- Transport --------------------------------------------------------

    def open(self) -> None:
        with self._lock:
            if self._open:
                logger.warning("Already open")
                return
            self._open = True
            self._rx.clear()
            self._tx_pending.clear()
            logger.info("Simulator connected (firmware version: %s)", self.config.firmware_version)

    def close(self) -> None:
        with self._lock:
            self._open = False
            logger.info("Simulator disconnected")

    def is_open(self) -> bool:
        return self._open

    def write(self, data: bytes) -> None:
        if not self._open:
            raise NotConnectedError("Simulator not connected")

        with self._lock:
            self._tx_pending += data
            self._process_pending()

    def read(self, size: int, timeout: float) -> bytes:
        if not self._open:
            raise NotConnectedError("Simulator not connected")

        with self._lock:
            data = bytes(self._rx[:size])
            del self._rx[:size]
        return data

    def reset_input_buffer(self) -> None:
        with self._lock:
            self._rx.clear()

    # -- device model -----------------------------------------------------

    @property
    def position(self) -> int:
        with self._lock:
            self._advance()
            return int(round(self._position))

    @property
    def moving(self) -> bool:
        with self._lock:
            self._advance()
            return self._is_moving()

    def set_position(self, value: int) -> None:
        with self._lock:
            self._position = float(value)
            self._target = value
            self._last_update = self._clock()

    def _is_moving(self) -> bool:
        return int(round(self._position)) != self._target

    def _advance(self) -> None:
        now = self._clock()
        elapsed = max(0.0, now - self._last_update)
        self._last_update = now

        distance = self._target - self._position
        if distance == 0:
            return
        step = self.config.movement_speed_steps_per_sec * elapsed
        if step >= abs(distance):
            self._position = float(self._target)
        else:
            self._position += step if distance > 0 else -step

    def _process_pending(self) -> None:
        while True:
            start = self._tx_pending.find(bytes([PREAMBLE]))
            if start < 0:
                self._tx_pending.clear()
                return
            del self._tx_pending[:start]
            if len(self._tx_pending) < 2 or len(self._tx_pending) < self._tx_pending[1] + 3:
                return

            frame = bytes(self._tx_pending[:self._tx_pending[1] + 3])
            del self._tx_pending[:len(frame)]

            try:
                packet = decode_frame(frame)
            except FramingError as e:
                logger.warning(f"[SIMULATOR] Dropping bad frame: {e}")
                continue

            self._handle(frame, packet)

    def _handle(self, frame: bytes, packet: AuxPacket) -> None:
        self.commands_received += 1

        if self.config.echo_commands:
            self._rx += frame

        if packet.destination != Target.FOCUSER:
            return

        if self.config.inject_timeout or self.ignore_next > 0:
            if self.ignore_next > 0:
                self.ignore_next -= 1
            logger.warning("[SIMULATOR] Injected timeout for testing")
            return

        if self.config.response_latency_ms > 0:
            time.sleep(self.config.response_latency_ms / 1000.0)

        self._advance()
        data = self._respond(packet)
        if data is None:
            logger.warning("[SIMULATOR] Unknown command 0x%02X", packet.opcode)
            return

        reply = encode_command(Target.FOCUSER, packet.source, packet.opcode, data)
        if random.random() < self.config.inject_checksum_error_rate:
            logger.warning("[SIMULATOR] Injected checksum error for testing")
            reply = reply[:-1] + bytes([(reply[-1] + 1) & 0xFF])
        self._rx += reply

    def _respond(self, packet: AuxPacket) -> Optional[bytes]:
        opcode = packet.opcode

        if opcode == Opcode.GET_VER:
            parts = [int(p) for p in self.config.firmware_version.split(".")]
            data = bytes(parts[:2])
            if len(parts) == 3:
                data += pack_uint(parts[2], 2)
            return data

        if opcode == Opcode.MC_GET_POSITION:
            return pack_uint(int(round(self._position)), 3)

        if opcode == Opcode.FOC_GET_HS_POSITIONS:
            return pack_uint(self.min_limit, 4) + pack_uint(self.max_limit, 4)

        if opcode == Opcode.MC_SLEW_DONE:
            return bytes([0x00 if self._is_moving() else 0xFF])

        if opcode in (Opcode.MC_GOTO_FAST, Opcode.MC_GOTO_SLOW):
            requested = unpack_uint(packet.data[:3])
            # The motor stops at the hard stops whatever the request
            self._target = max(self.min_limit, min(self.max_limit, requested))
            logger.info("Movement started: %d -> %d", int(self._position), self._target)
            return b""

        if opcode in (Opcode.MC_MOVE_POS, Opcode.MC_MOVE_NEG):
            rate = packet.data[0] if packet.data else 0
            if rate == 0:
                self._target = int(round(self._position))
                self._position = float(self._target)
                logger.info("[SIMULATOR] Halted at position %d", self._target)
            else:
                self._target = self.max_limit if opcode == Opcode.MC_MOVE_POS else self.min_limit
            return b""

        if opcode == Opcode.MC_SET_POSITION:
            self._position = float(unpack_uint(packet.data[:3]))
            self._target = int(self._position)
            return b""

        return None
