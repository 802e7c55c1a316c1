"""
Checksum calculation and validation for the Celestron AUX protocol.
"""

PREAMBLE = 0x3B


def calculate_checksum(body: bytes) -> int:
    """
    Calculate AUX checksum (two's complement of the byte sum, modulo 256).

    Args:
        body: Frame bytes between preamble and checksum (LEN, SRC, DST, CMD, DATA).

    Returns:
        Checksum byte (0-255).

    Example:
        >>> calculate_checksum(bytes([0x03, 0x20, 0x12, 0x01]))
        202
    """
    return (-sum(body)) & 0xFF


def validate_checksum(frame: bytes) -> bool:
    """
    Validate checksum of a complete frame.

    Args:
        frame: Full frame, preamble through checksum byte.

    Returns:
        True if checksum is valid, False otherwise.

    Raises:
        ValueError: If frame is too short to hold a header and checksum.
    """
    if len(frame) < 6:
        raise ValueError(f"Frame must be at least 6 bytes, got {len(frame)}")

    return frame[-1] == calculate_checksum(frame[1:-1])
