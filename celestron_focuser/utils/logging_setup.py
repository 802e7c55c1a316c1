"""
Logging setup for the focuser host.

Console and rotating file handlers on the root logger. The AUX frame loggers
under `celestron_focuser.protocol` (TX/RX hex dumps, skipped echoes) can run
at their own level so a serial trace does not drown the rest of the log.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler

from celestron_focuser.config.models import LoggingConfig


PROTOCOL_LOGGER = "celestron_focuser.protocol"
LOG_FORMAT = "[%(asctime)s] %(levelname)s [%(name)s]: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(config: LoggingConfig) -> None:
    """
    Configure root and protocol loggers.

    Handlers pass every record through; filtering is done by logger level so
    `protocol_level` may be more verbose than `level`.

    Args:
        config: Logging configuration.
    """
    root = logging.getLogger()
    root.setLevel(config.level)
    root.handlers.clear()

    # None resets to NOTSET so the protocol loggers follow the root level
    protocol = logging.getLogger(PROTOCOL_LOGGER)
    protocol.setLevel(config.protocol_level or logging.NOTSET)

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root.addHandler(console_handler)

    if config.file:
        try:
            file_handler = RotatingFileHandler(
                config.file,
                maxBytes=10 * 1024 * 1024,  # 10 MB
                backupCount=5,
                encoding="utf-8"
            )
            file_handler.setFormatter(formatter)
            root.addHandler(file_handler)
            root.info(f"Logging to file: {config.file}")
        except OSError as e:
            root.error(f"Failed to create log file {config.file}: {e}")

    if config.protocol_level:
        root.info(f"Logging initialized at level: {config.level} (protocol: {config.protocol_level})")
    else:
        root.info(f"Logging initialized at level: {config.level}")
