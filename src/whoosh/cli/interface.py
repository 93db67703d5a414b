"""
Command Line Interface Module

This module provides the process entry point: it configures logging,
installs the signal handlers and runs the supervised control loop.

Signals:
    SIGTERM, SIGINT: stop after the current tick, restoring fan modes
    SIGHUP, SIGUSR1: reload the configuration before the next tick

Environment:
    WHOOSH_LOG: log level (DEBUG, INFO, WARNING, ERROR), default INFO
    WHOOSH_CONFIG: configuration path, default /etc/whoosh.toml
"""

import logging
import os
import signal
from typing import Optional

from ..control.manager import ControlManager, Flag
from ..errors import HwmonInconsistencyError

LOG_ENV = "WHOOSH_LOG"
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

logger = logging.getLogger(__name__)

STOP_SIGNALS = (signal.SIGTERM, signal.SIGINT)
RELOAD_SIGNALS = (signal.SIGHUP, signal.SIGUSR1)


def setup_logging() -> None:
    """Configure the root logger from WHOOSH_LOG"""
    level_name = os.environ.get(LOG_ENV, "INFO").strip().upper()
    level = logging.getLevelName(level_name)
    logging.basicConfig(
        level=level if isinstance(level, int) else logging.INFO,
        format=LOG_FORMAT
    )
    if not isinstance(level, int):
        logger.warning(f"Unknown {LOG_ENV} level {level_name!r}, using INFO")


def install_signal_handlers(stop: Flag, reload: Flag) -> None:
    """Route process signals to the stop and reload flags

    The handlers only set a flag; the control loop acts on it between ticks.
    """
    def stop_handler(signum, frame):
        stop.set()

    def reload_handler(signum, frame):
        reload.set()

    for signum in STOP_SIGNALS:
        signal.signal(signum, stop_handler)
    for signum in RELOAD_SIGNALS:
        signal.signal(signum, reload_handler)


def main(config_path: Optional[str] = None) -> int:
    """Main entry point

    Returns:
        Process exit code: 0 on clean shutdown, 1 on unrecoverable failure
    """
    setup_logging()
    logger.info("Starting whoosh")

    stop = Flag()
    reload = Flag()
    try:
        install_signal_handlers(stop, reload)
    except (OSError, ValueError) as e:
        logger.critical(f"Failed to install signal handlers: {e}")
        return 1

    manager = ControlManager(config_path, stop=stop, reload=reload)
    try:
        manager.run_forever()
    except HwmonInconsistencyError as e:
        logger.critical(f"Aborting: {e}")
        return 1
    except Exception as e:
        logger.critical(f"Unexpected error: {e}", exc_info=True)
        return 1

    logger.info("Shutting down...")
    return 0
