"""
Backlash compensation hook.

The focuser motor controller only applies its own backlash setting to hand
controller button moves, so compensation for GOTO moves has to be done here.
Planned design: when a move reverses direction relative to the last completed
move, first go to an intermediate target offset by `steps`, then issue the real
target once the poller reports the first leg done (an extra pending state
between BUSY and IDLE). Until then every move passes through unchanged.
"""

import logging
from typing import Optional


logger = logging.getLogger(__name__)


class BacklashCompensator:
    """Pass-through backlash hook holding the configured signed offset."""

    MAX_STEPS = 500

    def __init__(self, steps: int = 0):
        self._steps = 0
        self.steps = steps

    @property
    def steps(self) -> int:
        return self._steps

    @steps.setter
    def steps(self, value: int) -> None:
        if value < -self.MAX_STEPS or value > self.MAX_STEPS:
            raise ValueError(f"Backlash must be -{self.MAX_STEPS} to +{self.MAX_STEPS}, got {value}")
        self._steps = value
        if value:
            logger.info(f"Backlash set to {value} steps (stored only, not applied)")

    def plan_move(self, current: int, target: int) -> int:
        """Return the first target to command for a move from `current` to `target`."""
        return target

    def follow_up_target(self) -> Optional[int]:
        """Target for the second leg once the first leg has finished, if any."""
        return None

    def reset(self) -> None:
        """Forget any pending second leg (after abort)."""
        pass
