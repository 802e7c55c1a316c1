"""
Main entry point for the Celestron focuser core.

Usage:
    python -m celestron_focuser [--config CONFIG_PATH] [--simulator]
                                [--goto N | --in N | --out N | --abort] [--watch]
"""

import argparse
import sys
import logging
import signal
import threading

from celestron_focuser import __version__
from celestron_focuser.config.loader import load_config, ConfigurationError
from celestron_focuser.config.models import AppConfig
from celestron_focuser.utils.logging_setup import setup_logging
from celestron_focuser.utils.exceptions import DriverError, HandshakeError, InvalidValueError
from celestron_focuser.focuser.controller import (
    FocusDirection,
    FocuserObserver,
    MotionState,
    MoveResult,
    PositionController,
)
from celestron_focuser.focuser.poller import MotionPoller
from celestron_focuser.protocol.channel import CommandChannel
from celestron_focuser.protocol.interface import Transport
from celestron_focuser.protocol.serial_transport import SerialTransport
from celestron_focuser.simulator.mock_transport import SimulatedFocuser


logger = logging.getLogger(__name__)


class LoggingObserver(FocuserObserver):
    """Reports focuser events through the log."""

    def position_changed(self, position: int) -> None:
        logger.info(f"Position: {position}")

    def move_completed(self, position: int) -> None:
        logger.info(f"Move completed at {position}")


def build_transport(config: AppConfig, use_simulator: bool) -> Transport:
    if use_simulator:
        logger.info("Using SIMULATOR mode")
        return SimulatedFocuser(config.simulator)

    logger.info("Using REAL HARDWARE mode")
    return SerialTransport(config.serial)


def start_move(controller: PositionController, args) -> bool:
    """Issue the move requested on the command line. Returns False if rejected."""
    try:
        if args.goto is not None:
            result = controller.move_absolute(args.goto)
        elif args.inward is not None:
            result = controller.move_relative(FocusDirection.INWARD, args.inward)
        elif args.outward is not None:
            result = controller.move_relative(FocusDirection.OUTWARD, args.outward)
        elif args.abort:
            return controller.abort()
        else:
            return True
    except InvalidValueError as e:
        logger.error(str(e))
        return False

    return result == MoveResult.BUSY


def main():
    """Main application entry point."""
    parser = argparse.ArgumentParser(description="Celestron SCT focuser controller")
    parser.add_argument(
        "--config",
        type=str,
        default="config.json",
        help="Path to configuration file (default: config.json)"
    )
    parser.add_argument("--port", type=str, help="Serial port (overrides config)")
    parser.add_argument("--simulator", action="store_true", help="Use the simulated focuser")
    motion = parser.add_mutually_exclusive_group()
    motion.add_argument("--goto", type=int, metavar="N", help="Move to absolute position N")
    motion.add_argument("--in", dest="inward", type=int, metavar="N", help="Move inward N ticks")
    motion.add_argument("--out", dest="outward", type=int, metavar="N", help="Move outward N ticks")
    motion.add_argument("--abort", action="store_true", help="Stop the focuser")
    parser.add_argument("--watch", action="store_true", help="Keep polling until interrupted")
    args = parser.parse_args()

    try:
        config = load_config(args.config)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    if args.port:
        config.serial.port = args.port

    setup_logging(config.logging)

    logger.info("=" * 60)
    logger.info(f"Celestron SCT Focuser v{__version__}")
    logger.info("=" * 60)

    transport = build_transport(config, args.simulator or config.simulator.enabled)
    try:
        transport.open()
    except DriverError as e:
        logger.error(str(e))
        sys.exit(1)

    channel = CommandChannel(transport, timeout_seconds=config.serial.timeout_seconds)
    controller = PositionController(channel, config.focuser)
    controller.add_observer(LoggingObserver())
    poller = MotionPoller(controller)

    stop = threading.Event()

    def signal_handler(signum, frame):
        logger.info(f"Received signal {signum}, shutting down...")
        stop.set()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    exit_code = 0
    try:
        if not controller.handshake():
            raise HandshakeError(f"No answer from focuser on {transport.name}")

        controller.read_startup_parameters()
        status = controller.status
        logger.info(
            f"Position {status.position}, limits [{status.limits.min}, {status.limits.max}]"
        )

        if not start_move(controller, args):
            exit_code = 1
            return

        interval = config.focuser.polling_interval_ms / 1000.0
        until = None if args.watch else (lambda state: state == MotionState.IDLE)
        poller.run(interval, stop, until=until)

    except HandshakeError as e:
        logger.error(str(e))
        exit_code = 1
    finally:
        transport.close()
        logger.info("Shutdown complete")
        if exit_code:
            sys.exit(exit_code)


if __name__ == "__main__":
    main()
