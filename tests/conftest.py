"""
Shared fixtures: a scripted byte-stream transport and the simulated focuser.
"""

import threading
import time
from collections import deque
from typing import List, Optional

import pytest

from celestron_focuser.config.models import FocuserConfig, SimulatorConfig
from celestron_focuser.focuser.controller import FocuserObserver, PositionController
from celestron_focuser.focuser.poller import MotionPoller
from celestron_focuser.protocol.channel import CommandChannel
from celestron_focuser.protocol.encoder import Target, encode_command
from celestron_focuser.protocol.interface import Transport
from celestron_focuser.protocol.logger import ProtocolLogger
from celestron_focuser.simulator.mock_transport import SimulatedFocuser


def reply_frame(opcode: int, data: bytes = b"") -> bytes:
    """Reply from the focuser to the application."""
    return encode_command(Target.FOCUSER, Target.APP, opcode, data)


class ScriptedTransport(Transport):
    """
    Transport that answers each write with the next scripted reply.

    A scripted reply of None simulates a device that never answers.
    Tracks how many exchanges are outstanding at once.
    """

    def __init__(self, echo: bool = False, read_delay: float = 0.0):
        self.echo = echo
        self.read_delay = read_delay
        self.replies = deque()
        self.writes: List[bytes] = []
        self._rx = bytearray()
        self._open = True
        self._lock = threading.Lock()
        self.outstanding = 0
        self.max_outstanding = 0
        self._pending_reply_bytes = 0

    def queue(self, *replies: Optional[bytes]) -> None:
        self.replies.extend(replies)

    def open(self) -> None:
        self._open = True

    def close(self) -> None:
        self._open = False

    def is_open(self) -> bool:
        return self._open

    def write(self, data: bytes) -> None:
        with self._lock:
            self.writes.append(bytes(data))
            self.outstanding += 1
            self.max_outstanding = max(self.max_outstanding, self.outstanding)
            reply = self.replies.popleft() if self.replies else None
            if self.echo:
                self._rx += data
            if reply is None:
                # Nobody will read a reply; the exchange ends at the timeout
                self.outstanding -= 1
                self._pending_reply_bytes = 0
            else:
                self._rx += reply
                self._pending_reply_bytes = len(self._rx)

    def read(self, size: int, timeout: float) -> bytes:
        if self.read_delay:
            time.sleep(self.read_delay)
        with self._lock:
            data = bytes(self._rx[:size])
            del self._rx[:size]
            if self._pending_reply_bytes:
                self._pending_reply_bytes -= len(data)
                if self._pending_reply_bytes <= 0:
                    self._pending_reply_bytes = 0
                    self.outstanding -= 1
        return data

    def reset_input_buffer(self) -> None:
        with self._lock:
            self._rx.clear()


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingObserver(FocuserObserver):
    def __init__(self):
        self.positions: List[int] = []
        self.completions: List[int] = []

    def position_changed(self, position: int) -> None:
        self.positions.append(position)

    def move_completed(self, position: int) -> None:
        self.completions.append(position)


@pytest.fixture
def transport():
    return ScriptedTransport()


@pytest.fixture
def channel(transport):
    return CommandChannel(transport, timeout_seconds=0.05, protocol_logger=ProtocolLogger())


@pytest.fixture
def observer():
    return RecordingObserver()


@pytest.fixture
def controller(channel, observer):
    ctrl = PositionController(channel, FocuserConfig())
    ctrl.add_observer(observer)
    return ctrl


@pytest.fixture
def poller(controller):
    return MotionPoller(controller)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def simulator(clock):
    sim = SimulatedFocuser(
        SimulatorConfig(
            initial_position=30000,
            min_limit=100,
            max_limit=50000,
            movement_speed_steps_per_sec=1000,
        ),
        clock=clock,
    )
    sim.open()
    yield sim
    sim.close()


@pytest.fixture
def sim_controller(simulator, observer):
    sim_channel = CommandChannel(simulator, timeout_seconds=0.05, protocol_logger=ProtocolLogger())
    ctrl = PositionController(sim_channel, FocuserConfig())
    ctrl.add_observer(observer)
    return ctrl
