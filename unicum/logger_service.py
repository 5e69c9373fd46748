"""
Logger Service Module

Configures the Python logging module for the fleet monitor: one log file plus
optional console output, sharing a single formatter.
"""

import logging
from pathlib import Path
from typing import Any, Dict

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)-20s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class LocalFileLogger:
    """
    Local file logging for the monitor process.

    Attributes:
        log_file: Path to the log file
        log_level: Level name applied to the root logger and handlers
        console_output: Whether to also log to stderr
    """

    def __init__(self, config: Dict[str, Any]):
        """
        Initialize local file logger.

        Args:
            config: Configuration dictionary with a "logging" section
        """
        self.config = config.get("logging", {})
        self.log_file = self.config.get("log_file", "logs/unicum_monitor.log")
        self.log_level = str(self.config.get("log_level", "INFO")).upper()
        self.console_output = self.config.get("console_output", True)

        # Ensure log directory exists
        Path(self.log_file).parent.mkdir(parents=True, exist_ok=True)

        self._setup_logging()

    def _setup_logging(self):
        """Configure the root logger."""
        level = getattr(logging, self.log_level, logging.INFO)

        root_logger = logging.getLogger()
        root_logger.setLevel(level)

        # Clear existing handlers
        root_logger.handlers.clear()

        formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

        file_handler = logging.FileHandler(self.log_file, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

        if self.console_output:
            console_handler = logging.StreamHandler()
            console_handler.setLevel(level)
            console_handler.setFormatter(formatter)
            root_logger.addHandler(console_handler)

        # requests/urllib3 are noisy at DEBUG
        logging.getLogger("urllib3").setLevel(max(level, logging.INFO))

        logger.info(f"Logging initialized. File: {self.log_file}, Level: {self.log_level}")


def setup_logging(config: Dict[str, Any]) -> LocalFileLogger:
    """
    Quick setup function for process logging.

    Args:
        config: Configuration dictionary

    Returns:
        LocalFileLogger: Initialized logger
    """
    return LocalFileLogger(config)
