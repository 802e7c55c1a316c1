"""
Tests for PositionController: queries, moves, abort and limits.
"""

import pytest

from conftest import reply_frame
from celestron_focuser.focuser.controller import (
    FocusDirection,
    FocuserLimits,
    MotionState,
    MoveResult,
)
from celestron_focuser.protocol.encoder import MAX_POSITION, Opcode, decode_frame, pack_position, pack_uint
from celestron_focuser.utils.exceptions import InvalidValueError


def limits_reply(lo, hi):
    return reply_frame(Opcode.FOC_GET_HS_POSITIONS, pack_uint(lo, 4) + pack_uint(hi, 4))


def position_reply(ticks):
    return reply_frame(Opcode.MC_GET_POSITION, pack_position(ticks))


def last_command(transport):
    return decode_frame(transport.writes[-1])


class TestHandshake:
    def test_four_byte_firmware_version(self, transport, controller):
        transport.queue(reply_frame(Opcode.GET_VER, bytes([7, 11]) + pack_uint(5130, 2)))

        assert controller.handshake() is True
        assert controller.firmware_version == "7.11.5130"
        assert last_command(transport).opcode == Opcode.GET_VER

    def test_two_byte_firmware_version(self, transport, controller):
        transport.queue(reply_frame(Opcode.GET_VER, bytes([1, 6])))

        assert controller.handshake() is True
        assert controller.firmware_version == "1.6"

    def test_no_answer(self, transport, controller):
        transport.queue(None)

        assert controller.handshake() is False
        assert controller.firmware_version is None


class TestReadPosition:
    def test_updates_stored_position(self, transport, controller):
        transport.queue(position_reply(12345))

        assert controller.read_position() == 12345
        assert controller.position == 12345

    def test_failure_keeps_stored_position(self, transport, controller):
        transport.queue(position_reply(500), None)
        controller.read_position()

        assert controller.read_position() is None
        assert controller.position == 500

    def test_short_reply_is_failure(self, transport, controller):
        transport.queue(reply_frame(Opcode.MC_GET_POSITION, b"\x01"))

        assert controller.read_position() is None
        assert controller.position == 0


class TestReadLimits:
    def test_hardware_limits_override_defaults(self, transport, controller):
        assert controller.limits == FocuserLimits(0, 60000, known=False)
        transport.queue(limits_reply(100, 50000))

        limits = controller.read_limits()

        assert limits == FocuserLimits(100, 50000, known=True)
        assert controller.limits == limits

    def test_reversed_limits_are_repaired(self, transport, controller):
        transport.queue(limits_reply(50000, 100))

        assert controller.read_limits() == FocuserLimits(100, 50000, known=True)

    def test_failure_keeps_defaults(self, transport, controller):
        transport.queue(None)

        assert controller.read_limits() is None
        assert controller.limits.known is False

    def test_startup_parameters(self, transport, controller):
        transport.queue(position_reply(2000), limits_reply(100, 50000))

        assert controller.read_startup_parameters() is True
        assert controller.position == 2000
        assert controller.limits.max == 50000

    def test_startup_parameters_partial_failure(self, transport, controller):
        transport.queue(position_reply(2000), None)

        assert controller.read_startup_parameters() is False
        assert controller.position == 2000


class TestIsMoving:
    def test_done_sentinel(self, transport, controller):
        transport.queue(reply_frame(Opcode.MC_SLEW_DONE, b"\xff"))
        assert controller.is_moving() is False

    def test_other_value_means_moving(self, transport, controller):
        transport.queue(reply_frame(Opcode.MC_SLEW_DONE, b"\x01"))
        assert controller.is_moving() is True

    def test_failure_is_unknown(self, transport, controller):
        transport.queue(None)
        assert controller.is_moving() is None


class TestMoveAbsolute:
    def test_accepted_move_goes_busy(self, transport, controller):
        transport.queue(reply_frame(Opcode.MC_GOTO_FAST))

        assert controller.move_absolute(0x012345) == MoveResult.BUSY
        assert controller.state == MotionState.BUSY
        assert controller.target == 0x012345
        sent = last_command(transport)
        assert sent.opcode == Opcode.MC_GOTO_FAST
        assert sent.data == bytes([0x01, 0x23, 0x45])

    def test_rejected_move_leaves_state(self, transport, controller):
        transport.queue(None)

        assert controller.move_absolute(1000) == MoveResult.REJECTED
        assert controller.state == MotionState.IDLE
        assert controller.target is None

    def test_target_beyond_hardware_limit_is_still_sent(self, transport, controller):
        transport.queue(limits_reply(100, 50000), reply_frame(Opcode.MC_GOTO_FAST))
        controller.read_limits()

        assert controller.move_absolute(60000) == MoveResult.BUSY
        assert last_command(transport).data == pack_position(60000)

    @pytest.mark.parametrize("target", [-1, 0x1000000])
    def test_unencodable_target(self, transport, controller, target):
        with pytest.raises(InvalidValueError):
            controller.move_absolute(target)
        assert transport.writes == []


class TestMoveRelative:
    def setup_position(self, transport, controller, position, limits=None):
        transport.queue(position_reply(position))
        controller.read_position()
        if limits:
            transport.queue(limits_reply(*limits))
            controller.read_limits()

    @pytest.mark.parametrize("direction, ticks, expected", [
        (FocusDirection.INWARD, 500, 9500),
        (FocusDirection.OUTWARD, 500, 10500),
        (FocusDirection.INWARD, 20000, 100),
        (FocusDirection.OUTWARD, 45000, 50000),
    ])
    def test_resolves_and_clamps_to_limits(self, transport, controller, direction, ticks, expected):
        self.setup_position(transport, controller, 10000, limits=(100, 50000))
        transport.queue(reply_frame(Opcode.MC_GOTO_FAST))

        assert controller.move_relative(direction, ticks) == MoveResult.BUSY
        assert last_command(transport).data == pack_position(expected)
        assert controller.target == expected

    def test_floor_is_zero_before_limits_known(self, transport, controller):
        self.setup_position(transport, controller, 300)
        transport.queue(reply_frame(Opcode.MC_GOTO_FAST))

        controller.move_relative(FocusDirection.INWARD, 1000)

        assert last_command(transport).data == pack_position(0)

    def test_default_max_before_limits_known(self, transport, controller):
        self.setup_position(transport, controller, 59000)
        transport.queue(reply_frame(Opcode.MC_GOTO_FAST))

        controller.move_relative(FocusDirection.OUTWARD, 5000)

        assert last_command(transport).data == pack_position(60000)

    def test_negative_ticks(self, controller):
        with pytest.raises(InvalidValueError):
            controller.move_relative(FocusDirection.OUTWARD, -5)


class TestAbort:
    def test_sends_rate_zero(self, transport, controller):
        transport.queue(reply_frame(Opcode.MC_MOVE_POS))

        assert controller.abort() is True
        sent = last_command(transport)
        assert sent.opcode == Opcode.MC_MOVE_POS
        assert sent.data == b"\x00"

    def test_abort_does_not_force_idle(self, transport, controller):
        transport.queue(reply_frame(Opcode.MC_GOTO_FAST), reply_frame(Opcode.MC_MOVE_POS))
        controller.move_absolute(5000)

        assert controller.abort() is True
        assert controller.state == MotionState.BUSY

    def test_abort_failure(self, transport, controller):
        transport.queue(None)
        assert controller.abort() is False


def test_status_snapshot(transport, controller):
    transport.queue(position_reply(4000), reply_frame(Opcode.MC_GOTO_FAST))
    controller.read_position()
    controller.move_absolute(4500)

    status = controller.status

    assert status.position == 4000
    assert status.target == 4500
    assert status.state == MotionState.BUSY
    assert status.backlash_steps == 0
    with pytest.raises(AttributeError):
        status.position = 1


def test_observer_errors_do_not_escape(controller):
    class Broken:
        def position_changed(self, position):
            raise RuntimeError("boom")

    controller.add_observer(Broken())
    controller._publish_position()


def test_limits_beyond_position_field_are_capped(transport, controller):
    transport.queue(limits_reply(0x01000010, 0x02000000))

    limits = controller.read_limits()

    assert limits == FocuserLimits(MAX_POSITION, MAX_POSITION, known=True)
    assert limits.min <= limits.max
