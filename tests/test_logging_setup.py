"""
Tests for logging setup.
"""

import logging

import pytest

from celestron_focuser.config.models import LoggingConfig
from celestron_focuser.utils.logging_setup import PROTOCOL_LOGGER, setup_logging


@pytest.fixture(autouse=True)
def restore_logging():
    root = logging.getLogger()
    protocol = logging.getLogger(PROTOCOL_LOGGER)
    handlers, level, protocol_level = list(root.handlers), root.level, protocol.level
    yield
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)
    protocol.setLevel(protocol_level)


def test_protocol_loggers_follow_root_by_default():
    setup_logging(LoggingConfig(level="warning", file=None))

    assert logging.getLogger().level == logging.WARNING
    assert logging.getLogger("celestron_focuser.protocol.channel").getEffectiveLevel() == logging.WARNING


def test_protocol_level_traces_frames_only():
    setup_logging(LoggingConfig(level="WARNING", file=None, protocol_level="debug"))

    assert logging.getLogger("celestron_focuser.protocol.channel").isEnabledFor(logging.DEBUG)
    assert not logging.getLogger("celestron_focuser.focuser.poller").isEnabledFor(logging.INFO)


def test_protocol_level_reset_when_unset():
    setup_logging(LoggingConfig(level="INFO", file=None, protocol_level="DEBUG"))
    setup_logging(LoggingConfig(level="INFO", file=None))

    assert logging.getLogger(PROTOCOL_LOGGER).level == logging.NOTSET


def test_file_handler_writes_log(tmp_path):
    path = tmp_path / "focuser.log"

    setup_logging(LoggingConfig(level="INFO", file=str(path), protocol_level="ERROR"))
    logging.getLogger("celestron_focuser.focuser.controller").info("Movement started: 0 -> 10")
    for handler in logging.getLogger().handlers:
        handler.flush()

    text = path.read_text(encoding="utf-8")
    assert "INFO [celestron_focuser.focuser.controller]: Movement started: 0 -> 10" in text
    assert "protocol: ERROR" in text


def test_invalid_protocol_level():
    with pytest.raises(ValueError):
        LoggingConfig(protocol_level="chatty")
