"""
Protocol message logger for debugging serial communication.

Captures TX/RX frames with timestamps for debugging purposes.
"""

import threading
from collections import deque
from datetime import datetime
from typing import List, Optional, Dict, Any
from dataclasses import dataclass, asdict

from celestron_focuser.protocol.encoder import Opcode, Target, decode_frame
from celestron_focuser.utils.exceptions import FramingError


@dataclass
class ProtocolMessage:
    """A single protocol message (TX, RX or ERR)."""
    timestamp: str
    direction: str
    raw_hex: str
    raw_bytes: List[int]
    decoded: Optional[Dict[str, Any]] = None
    error: Optional[str] = None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)


class ProtocolLogger:
    """
    Thread-safe logger for protocol messages.

    Maintains a circular buffer of messages with configurable max size.
    """

    DEFAULT_MAX_MESSAGES = 500

    def __init__(self, max_messages: int = DEFAULT_MAX_MESSAGES):
        """
        Initialize protocol logger.

        Args:
            max_messages: Maximum number of messages to keep in buffer.
        """
        self._messages: deque = deque(maxlen=max_messages)
        self._lock = threading.Lock()
        self._tx_count = 0
        self._rx_count = 0
        self._error_count = 0

    def log_tx(self, data: bytes) -> None:
        """Log a transmitted frame."""
        with self._lock:
            self._tx_count += 1
            decoded, error = self._decode(data)
            self._messages.append(self._message("TX", data, decoded, error))

    def log_rx(self, data: bytes) -> None:
        """Log a received frame."""
        with self._lock:
            self._rx_count += 1
            decoded, error = self._decode(data)
            if error:
                self._error_count += 1
            self._messages.append(self._message("RX", data, decoded, error))

    def log_error(self, error_msg: str, data: bytes = None) -> None:
        """
        Log an error message.

        Args:
            error_msg: Error description.
            data: Optional raw bytes associated with error.
        """
        with self._lock:
            self._error_count += 1
            self._messages.append(self._message("ERR", data or b"", None, error_msg))

    @staticmethod
    def _message(direction: str, data: bytes, decoded, error) -> ProtocolMessage:
        return ProtocolMessage(
            timestamp=datetime.now().isoformat(timespec='milliseconds'),
            direction=direction,
            raw_hex=data.hex().upper(),
            raw_bytes=list(data),
            decoded=decoded,
            error=error,
        )

    def _decode(self, data: bytes):
        if not data:
            return None, "Empty frame (timeout?)"
        try:
            packet = decode_frame(data)
        except FramingError as e:
            return None, str(e)

        return {
            "source": self._label(Target, packet.source),
            "destination": self._label(Target, packet.destination),
            "opcode": self._label(Opcode, packet.opcode),
            "data": packet.data.hex().upper(),
        }, None

    @staticmethod
    def _label(enum_cls, value: int) -> str:
        try:
            return enum_cls(value).name
        except ValueError:
            return f"0x{value:02X}"

    def get_messages(self, limit: int = 100) -> List[dict]:
        """
        Get recent messages.

        Args:
            limit: Maximum number of messages to return.

        Returns:
            List of message dictionaries, oldest first (chronological order).
        """
        with self._lock:
            messages = list(self._messages)
            if len(messages) > limit:
                messages = messages[-limit:]
            return [m.to_dict() for m in messages]

    def get_stats(self) -> dict:
        """Get logging statistics."""
        with self._lock:
            return {
                "total_messages": len(self._messages),
                "tx_count": self._tx_count,
                "rx_count": self._rx_count,
                "error_count": self._error_count,
                "max_messages": self._messages.maxlen,
            }


# Global instance
_logger: Optional[ProtocolLogger] = None


def get_protocol_logger() -> ProtocolLogger:
    """Get or create the global protocol logger."""
    global _logger
    if _logger is None:
        _logger = ProtocolLogger()
    return _logger
