"""
Focuser position controller (Layer 2 - State Machine).

Owns position, target, limits and motion state, and turns focuser operations
into AUX commands addressed to the focuser motor controller.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from celestron_focuser.protocol.channel import CommandChannel
from celestron_focuser.protocol.encoder import (
    MAX_POSITION,
    Opcode,
    Target,
    pack_position,
    unpack_limits,
    unpack_position,
    unpack_uint,
)
from celestron_focuser.config.models import FocuserConfig
from celestron_focuser.focuser.backlash import BacklashCompensator
from celestron_focuser.utils.exceptions import CommandError, InvalidValueError


logger = logging.getLogger(__name__)

SLEW_DONE = 0xFF


class MotionState(Enum):
    """Motion state, owned by PositionController."""
    IDLE = "idle"
    BUSY = "busy"
    ERROR = "error"


class MoveResult(Enum):
    """Outcome of issuing a move command."""
    BUSY = "busy"
    REJECTED = "rejected"


class FocusDirection(Enum):
    INWARD = "inward"
    OUTWARD = "outward"


@dataclass(frozen=True)
class FocuserLimits:
    """Position range; `known` is False until read from hardware."""
    min: int
    max: int
    known: bool = False

    def contains(self, position: int) -> bool:
        return self.min <= position <= self.max


@dataclass(frozen=True)
class FocuserStatus:
    """Read-only snapshot handed to the host."""
    position: int
    target: Optional[int]
    limits: FocuserLimits
    state: MotionState
    firmware_version: Optional[str]
    backlash_steps: int


class FocuserObserver:
    """Callbacks the host registers to follow the focuser. Default no-ops."""

    def position_changed(self, position: int) -> None:
        pass

    def move_completed(self, position: int) -> None:
        pass


class PositionController:
    """
    Focuser controller managing position, limits and motion state.

    All methods are meant to be called from a single host context (the poll
    timer and the handlers it serializes with); the channel enforces one
    outstanding command at a time.
    """

    def __init__(
        self,
        channel: CommandChannel,
        config: Optional[FocuserConfig] = None,
        backlash: Optional[BacklashCompensator] = None
    ):
        """
        Initialize position controller.

        Args:
            channel: Command channel to the AUX bus.
            config: Focuser configuration. Defaults when omitted.
            backlash: Backlash hook; built from config when omitted.
        """
        self._channel = channel
        self.config = config or FocuserConfig()
        self.backlash = backlash or BacklashCompensator(self.config.backlash_steps)

        self._position = 0
        self._target: Optional[int] = None
        self._limits = FocuserLimits(0, self.config.default_max_position)
        self._state = MotionState.IDLE
        self._firmware_version: Optional[str] = None
        self._observers: List[FocuserObserver] = []

        logger.info("PositionController initialized")

    # -- projection -------------------------------------------------------

    @property
    def position(self) -> int:
        return self._position

    @property
    def target(self) -> Optional[int]:
        return self._target

    @property
    def limits(self) -> FocuserLimits:
        return self._limits

    @property
    def state(self) -> MotionState:
        return self._state

    @property
    def firmware_version(self) -> Optional[str]:
        return self._firmware_version

    @property
    def status(self) -> FocuserStatus:
        return FocuserStatus(
            position=self._position,
            target=self._target,
            limits=self._limits,
            state=self._state,
            firmware_version=self._firmware_version,
            backlash_steps=self.backlash.steps,
        )

    # -- observers --------------------------------------------------------

    def add_observer(self, observer: FocuserObserver) -> None:
        if observer not in self._observers:
            self._observers.append(observer)

    def remove_observer(self, observer: FocuserObserver) -> None:
        if observer in self._observers:
            self._observers.remove(observer)

    def _notify(self, method: str, position: int) -> None:
        for observer in list(self._observers):
            try:
                getattr(observer, method)(position)
            except Exception as e:
                logger.error(f"Observer {type(observer).__name__}.{method} failed: {e}", exc_info=True)

    # -- queries ----------------------------------------------------------

    def _query(self, opcode: Opcode, payload: bytes = b"") -> bytes:
        return self._channel.send(self._channel.command(Target.FOCUSER, opcode, payload))

    def _send_blind(self, opcode: Opcode, payload: bytes = b"") -> bool:
        return self._channel.send_blind(self._channel.command(Target.FOCUSER, opcode, payload))

    def handshake(self) -> bool:
        """
        Check the focuser answers, using the firmware version query.

        Returns:
            True if the focuser is online.
        """
        try:
            reply = self._query(Opcode.GET_VER)
        except CommandError as e:
            logger.error(
                f"Error retrieving data from Celestron SCT focuser ({e}), please ensure the "
                "focuser is powered and the port is correct."
            )
            return False

        if len(reply) >= 4:
            self._firmware_version = f"{reply[0]}.{reply[1]}.{unpack_uint(reply[2:4])}"
        elif len(reply) >= 2:
            self._firmware_version = f"{reply[0]}.{reply[1]}"
        else:
            logger.warning(f"Short firmware version reply: {reply.hex()}")
            self._firmware_version = None

        logger.info(f"Celestron SCT focuser is online (firmware {self._firmware_version})")
        return True

    def read_position(self) -> Optional[int]:
        """
        Read the current position from the focuser.

        Returns:
            Position in ticks, or None if the query failed (stored position unchanged).
        """
        try:
            position = unpack_position(self._query(Opcode.MC_GET_POSITION))
        except CommandError as e:
            logger.debug(f"readPosition failed: {e}")
            return None

        logger.debug(f"readPosition {position}")
        if self._limits.known and not self._limits.contains(position):
            logger.warning(
                f"Focuser reports position {position} outside limits "
                f"[{self._limits.min}, {self._limits.max}]"
            )
        self._position = position
        return position

    def read_limits(self) -> Optional[FocuserLimits]:
        """
        Read the calibrated hard-stop positions from the focuser.

        Hardware values replace the configured defaults.

        Returns:
            New limits, or None if the query failed.
        """
        try:
            lo, hi = unpack_limits(self._query(Opcode.FOC_GET_HS_POSITIONS))
        except CommandError as e:
            logger.warning(f"Could not read limits from focuser: {e}")
            return None

        if lo > hi:
            logger.warning(f"Focuser reported reversed limits lo {lo} hi {hi}, swapping")
            lo, hi = hi, lo

        # Both values must fit the 24-bit position field
        self._limits = FocuserLimits(min(lo, MAX_POSITION), min(hi, MAX_POSITION), known=True)
        logger.info(f"read limits hi {hi} lo {lo}")
        return self._limits

    def read_startup_parameters(self) -> bool:
        """
        Read position and limits after connecting.

        Returns:
            True if both were read.
        """
        position_ok = self.read_position() is not None
        limits_ok = self.read_limits() is not None

        if position_ok and limits_ok:
            logger.info("Celestron SCT focuser parameters updated, focuser ready for use.")
        else:
            logger.warning("Failed to retrieve some focuser parameters. Check logs.")
        return position_ok and limits_ok

    def is_moving(self) -> Optional[bool]:
        """
        Ask the focuser whether a move is still in progress.

        Returns:
            True while moving, False when done, None if the query failed.
        """
        try:
            reply = self._query(Opcode.MC_SLEW_DONE)
        except CommandError as e:
            logger.debug(f"isMoving failed: {e}")
            return None

        if not reply:
            logger.debug("Empty slew-done reply")
            return None
        return reply[0] != SLEW_DONE

    # -- motion -----------------------------------------------------------

    def move_absolute(self, target: int) -> MoveResult:
        """
        Start a move to an absolute position (non-blocking).

        Acceptance does not mean the target will be reached exactly; completion
        comes from polling the focuser.

        Args:
            target: Target position in ticks.

        Returns:
            MoveResult.BUSY if the focuser accepted the command, REJECTED otherwise.

        Raises:
            InvalidValueError: If target does not fit the 24-bit position field.
        """
        if target < 0 or target > MAX_POSITION:
            raise InvalidValueError(f"Position {target} out of range [0, {MAX_POSITION}]")

        first_leg = self.backlash.plan_move(self._position, target)
        payload = pack_position(first_leg)
        logger.debug(f"MoveAbs {first_leg}, {payload.hex(' ')}")

        if not self._send_blind(Opcode.MC_GOTO_FAST, payload):
            logger.error(f"Move to {target} rejected")
            return MoveResult.REJECTED

        self._target = target
        self._state = MotionState.BUSY
        logger.info(f"Movement started: {self._position} -> {target}")
        return MoveResult.BUSY

    def move_relative(self, direction: FocusDirection, ticks: int) -> MoveResult:
        """
        Move inward or outward by a number of ticks from the current position.

        The resulting target is clamped to the focuser limits (floor 0 until
        limits have been read).
        """
        if ticks < 0:
            raise InvalidValueError(f"Relative move must be non-negative, got {ticks}")

        if direction == FocusDirection.INWARD:
            new_position = self._position - ticks
        else:
            new_position = self._position + ticks

        floor = self._limits.min if self._limits.known else 0
        new_position = max(floor, min(self._limits.max, new_position))
        return self.move_absolute(new_position)

    def abort(self) -> bool:
        """
        Stop motion by commanding rate zero.

        State stays BUSY; the next poll sees the focuser stopped and completes
        the move.

        Returns:
            True if the stop command was acknowledged.
        """
        ok = self._send_blind(Opcode.MC_MOVE_POS, bytes([0]))
        if ok:
            self.backlash.reset()
            logger.info("Abort sent")
        else:
            logger.error("Abort not acknowledged")
        return ok

    # -- poller hooks -----------------------------------------------------

    def _complete_motion(self) -> None:
        self._state = MotionState.IDLE
        logger.info("Focuser reached requested position.")
        self._notify("move_completed", self._position)

    def _continue_motion(self, target: int) -> bool:
        payload = pack_position(target)
        return self._send_blind(Opcode.MC_GOTO_FAST, payload)

    def _publish_position(self) -> None:
        self._notify("position_changed", self._position)
