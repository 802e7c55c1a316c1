"""
Protocol package for Celestron AUX serial communication.
"""

from celestron_focuser.protocol.interface import Transport
from celestron_focuser.protocol.serial_transport import SerialTransport
from celestron_focuser.protocol.channel import CommandChannel
from celestron_focuser.protocol.checksum import calculate_checksum, validate_checksum
from celestron_focuser.protocol.encoder import (
    AuxPacket,
    Command,
    Opcode,
    Target,
    decode_frame,
    encode_command,
    pack_position,
    unpack_position,
    unpack_limits,
)

__all__ = [
    "Transport",
    "SerialTransport",
    "CommandChannel",
    "calculate_checksum",
    "validate_checksum",
    "AuxPacket",
    "Command",
    "Opcode",
    "Target",
    "decode_frame",
    "encode_command",
    "pack_position",
    "unpack_position",
    "unpack_limits",
]
