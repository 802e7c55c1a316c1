"""
Motion poller.

One `poll_step()` per host timer tick: refresh the position, and while a move
is in progress ask the focuser whether it has finished. The focuser's own
slew-done flag is the only completion signal; nothing is predicted locally.
"""

import logging
import threading
from typing import Callable, Optional

from celestron_focuser.focuser.controller import MotionState, PositionController
from celestron_focuser.utils.exceptions import FocuserException


logger = logging.getLogger(__name__)


class MotionPoller:
    """Periodic step function advancing the motion state machine."""

    def __init__(self, controller: PositionController, jitter_ticks: Optional[int] = None):
        """
        Args:
            controller: Controller whose state this poller advances.
            jitter_ticks: Position changes up to this size are not reported.
                Taken from the controller config when omitted.
        """
        self._controller = controller
        if jitter_ticks is None:
            jitter_ticks = controller.config.position_jitter_ticks
        self._jitter = jitter_ticks
        self._reported_position = controller.position
        self._ticks = 0

    @property
    def tick_count(self) -> int:
        return self._ticks

    def poll_step(self) -> MotionState:
        """
        Run one poll tick. Never raises.

        Returns:
            Motion state after the tick.
        """
        self._ticks += 1
        try:
            self._step()
        except FocuserException as e:
            # Transient link trouble must not end a physical move
            logger.warning(f"Poll tick failed: {e}")
        except Exception as e:
            logger.error(f"Unexpected error during poll tick: {e}", exc_info=True)
        return self._controller.state

    def _step(self) -> None:
        controller = self._controller

        position = controller.read_position()
        if position is not None and abs(position - self._reported_position) > self._jitter:
            self._reported_position = position
            controller._publish_position()

        if controller.state != MotionState.BUSY:
            return

        moving = controller.is_moving()
        if moving is None:
            logger.debug("Slew-done query failed, still busy")
            return
        if moving:
            return

        follow_up = controller.backlash.follow_up_target()
        if follow_up is not None and controller._continue_motion(follow_up):
            logger.info(f"Backlash leg finished, moving to {follow_up}")
            return

        if position is not None and position != self._reported_position:
            self._reported_position = position
            controller._publish_position()
        controller._complete_motion()

    def run(
        self,
        interval_seconds: float,
        stop_event: threading.Event,
        until: Optional[Callable[[MotionState], bool]] = None
    ) -> MotionState:
        """
        Tick every `interval_seconds` until `stop_event` is set.

        For hosts that dedicate a thread to the focuser; all other calls into
        the controller must then be made from that same thread or be
        serialized with it.

        Args:
            interval_seconds: Delay between ticks.
            stop_event: Ends the loop when set.
            until: Optional predicate on the state after each tick; the loop
                ends as soon as it returns True.

        Returns:
            Motion state after the last tick.
        """
        logger.debug("Poll loop started")
        state = self._controller.state
        while not stop_event.is_set():
            state = self.poll_step()
            if until is not None and until(state):
                break
            stop_event.wait(interval_seconds)
        logger.debug("Poll loop stopped")
        return state
