"""
Frame encoding and decoding for the Celestron AUX protocol.

Frame layout:

    0x3B | LEN | SRC | DST | CMD | DATA... | CHK

LEN counts SRC, DST, CMD and DATA. CHK is the two's complement of the sum of
every byte from LEN through the last DATA byte.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Tuple

from .checksum import PREAMBLE, calculate_checksum
from celestron_focuser.utils.exceptions import FramingError, ChecksumMismatchError


MAX_PAYLOAD = 0xFF - 3
MAX_POSITION = 0xFFFFFF


class Target(IntEnum):
    """Device addresses on the AUX bus."""
    ANY = 0x00
    MB = 0x01
    HC = 0x04
    HCP = 0x0D
    AZM = 0x10
    ALT = 0x11
    FOCUSER = 0x12
    APP = 0x20
    GPS = 0xB0
    WIFI = 0xB5
    BAT = 0xB6
    CHG = 0xB7
    LIGHT = 0xBF


class Opcode(IntEnum):
    """Motor controller command identifiers used by the focuser."""
    MC_GET_POSITION = 0x01
    MC_GOTO_FAST = 0x02
    MC_SET_POSITION = 0x04
    MC_SLEW_DONE = 0x13
    MC_GOTO_SLOW = 0x17
    MC_MOVE_POS = 0x24
    MC_MOVE_NEG = 0x25
    FOC_GET_HS_POSITIONS = 0x2C
    GET_VER = 0xFE


def _name(enum_cls, value: int) -> str:
    try:
        return enum_cls(value).name
    except ValueError:
        return f"0x{value:02X}"


@dataclass(frozen=True)
class Command:
    """A single addressed command, immutable once built."""
    source: int
    destination: int
    opcode: int
    payload: bytes = b""

    def encode(self) -> bytes:
        return encode_command(self.source, self.destination, self.opcode, self.payload)

    def describe(self) -> str:
        return (f"{_name(Opcode, self.opcode)} "
                f"{_name(Target, self.source)}->{_name(Target, self.destination)}")


@dataclass(frozen=True)
class AuxPacket:
    """A decoded frame received from the bus."""
    source: int
    destination: int
    opcode: int
    data: bytes


def encode_command(source: int, destination: int, opcode: int, payload: bytes = b"") -> bytes:
    """
    Encode a command as an AUX frame.

    Args:
        source: Sender address (normally Target.APP).
        destination: Addressed sub-device (normally Target.FOCUSER).
        opcode: Command identifier.
        payload: Command data (0-252 bytes).

    Returns:
        Complete frame including preamble and checksum.

    Raises:
        ValueError: If payload is too long or an address/opcode is not a byte.

    Example:
        >>> encode_command(Target.APP, Target.FOCUSER, Opcode.MC_GET_POSITION).hex()
        '3b03201201ca'
    """
    payload = bytes(payload)
    if len(payload) > MAX_PAYLOAD:
        raise ValueError(f"Payload must be at most {MAX_PAYLOAD} bytes, got {len(payload)}")

    for label, value in (("source", source), ("destination", destination), ("opcode", opcode)):
        if not 0 <= int(value) <= 0xFF:
            raise ValueError(f"{label} must be a byte value, got {value}")

    body = bytes([len(payload) + 3, int(source), int(destination), int(opcode)]) + payload
    return bytes([PREAMBLE]) + body + bytes([calculate_checksum(body)])


def decode_frame(frame: bytes) -> AuxPacket:
    """
    Decode a complete AUX frame.

    Args:
        frame: Raw bytes, preamble through checksum.

    Returns:
        Decoded AuxPacket.

    Raises:
        FramingError: On missing preamble, bad length or truncated frame.
        ChecksumMismatchError: If the checksum byte does not match.
    """
    if len(frame) < 6:
        raise FramingError(f"Frame too short: {len(frame)} bytes")

    if frame[0] != PREAMBLE:
        raise FramingError(f"Bad preamble 0x{frame[0]:02X}")

    length = frame[1]
    if length < 3:
        raise FramingError(f"Invalid length field {length}")

    if len(frame) != length + 3:
        raise FramingError(f"Length mismatch: header says {length + 3} bytes, got {len(frame)}")

    expected = calculate_checksum(frame[1:-1])
    if frame[-1] != expected:
        raise ChecksumMismatchError(
            f"Checksum mismatch: expected 0x{expected:02X}, got 0x{frame[-1]:02X}"
        )

    return AuxPacket(
        source=frame[2],
        destination=frame[3],
        opcode=frame[4],
        data=bytes(frame[5:-1]),
    )


def pack_uint(value: int, size: int) -> bytes:
    """Pack an unsigned integer big-endian into `size` bytes."""
    if value < 0 or value >= 1 << (8 * size):
        raise ValueError(f"Value {value} does not fit in {size} bytes")
    return int(value).to_bytes(size, "big")


def unpack_uint(data: bytes) -> int:
    """Assemble a big-endian unsigned integer, high byte first."""
    return int.from_bytes(bytes(data), "big")


def pack_position(ticks: int) -> bytes:
    """Pack a focuser position into its 3-byte wire form."""
    if ticks < 0 or ticks > MAX_POSITION:
        raise ValueError(f"Position must be 0-{MAX_POSITION}, got {ticks}")
    return pack_uint(ticks, 3)


def unpack_position(data: bytes) -> int:
    if len(data) < 3:
        raise FramingError(f"Position reply needs 3 bytes, got {len(data)}")
    return unpack_uint(data[:3])


def unpack_limits(data: bytes) -> Tuple[int, int]:
    """
    Unpack the hard-stop positions reply.

    Returns:
        (low, high) as two 4-byte big-endian integers.
    """
    if len(data) < 8:
        raise FramingError(f"Limits reply needs 8 bytes, got {len(data)}")
    return unpack_uint(data[0:4]), unpack_uint(data[4:8])
