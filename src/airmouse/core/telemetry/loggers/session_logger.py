"""
Dedicated session logger for the AirMouse host.

This module provides a singleton logger that routes each component's log
records into its own file for easier analysis and troubleshooting.

Features:
- Singleton pattern (one instance per process)
- Separate log files for protocol, server, discovery, motion and session events
- DEBUG level logging to files
- Console output at INFO (DEBUG when verbose)

Log Files:
- protocol.log: Handshakes and every parsed command line
- server.log: Accept loop, session teardown, listener errors
- discovery.log: Discovery probes and replies
- motion.log: Pointer loop start/stop and actuator failures
- session.log: Coordinator decisions (filter swaps, clicks, disconnects)

Library modules only call logging.getLogger("airmouse.<component>"); handlers
are attached here, once, by the entry point.

Usage:
    from airmouse.core.telemetry.loggers.session_logger import get_session_logger

    session_logger = get_session_logger(log_root=Path("logs"), verbose=True)
    session_logger.protocol.debug("data 1.0,2.0")
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

from airmouse.utils.config import Config

COMPONENT_FILES = {
    "protocol": "protocol.log",
    "server": "server.log",
    "discovery": "discovery.log",
    "motion": "motion.log",
    "session": "session.log",
}


class SessionLogger:
    """Singleton logger for per-component session logs."""

    _instance = None
    _initialized = False

    def __new__(cls, log_root: Optional[Path] = None, verbose: bool = False):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self, log_root: Optional[Path] = None, verbose: bool = False):
        if self._initialized:
            return

        timestamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
        root = Path(log_root) if log_root is not None else Path(Config.LOG_DIR)
        self.log_dir = root / f"session_{timestamp}"
        self.log_dir.mkdir(parents=True, exist_ok=True)

        self.console_level = logging.DEBUG if verbose else logging.INFO

        for name, filename in COMPONENT_FILES.items():
            self._setup_logger(name, filename)

        self._initialized = True

    def _setup_logger(self, name: str, filename: str):
        """Setup individual logger with file handler."""
        logger = logging.getLogger(f"airmouse.{name}")
        logger.setLevel(logging.DEBUG)
        logger.propagate = False

        # Clear existing handlers
        logger.handlers.clear()

        fh = logging.FileHandler(self.log_dir / filename, mode='w')
        fh.setLevel(logging.DEBUG)

        ch = logging.StreamHandler()
        ch.setLevel(self.console_level)

        formatter = logging.Formatter(Config.LOG_FORMAT, datefmt=Config.LOG_DATE_FORMAT)
        fh.setFormatter(formatter)
        ch.setFormatter(formatter)

        logger.addHandler(fh)
        logger.addHandler(ch)

        setattr(self, name, logger)

    def close(self):
        """Close all handlers."""
        for name in COMPONENT_FILES:
            logger = getattr(self, name, None)
            if logger:
                for handler in logger.handlers[:]:
                    handler.close()
                    logger.removeHandler(handler)


# Global instance
_session_logger = None

def get_session_logger(log_root: Optional[Path] = None, verbose: bool = False) -> SessionLogger:
    """Get or create session logger instance."""
    global _session_logger
    if _session_logger is None:
        _session_logger = SessionLogger(log_root=log_root, verbose=verbose)
    return _session_logger
