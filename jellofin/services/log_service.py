"""Logging service"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler, SysLogHandler
from pathlib import Path
from typing import List, Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class LogService:
    """Centralized logging service"""

    def __init__(self, destination: str = "stdout", level: int = logging.INFO):
        self.root = logging.getLogger("jellofin")
        self.root.propagate = False
        self.log_file: Optional[Path] = None

        self.server_logger = logging.getLogger("jellofin.server")
        self.scan_logger = logging.getLogger("jellofin.scan")
        self.access_logger = logging.getLogger("jellofin.access")

        self.configure(destination, level)

    def _make_handler(self, destination: str) -> logging.Handler:
        """Build the handler for a logfile setting"""
        if destination in ("", "stdout"):
            return logging.StreamHandler(sys.stdout)
        if destination == "none":
            return logging.NullHandler()
        if destination == "syslog":
            if os.path.exists("/dev/log"):
                return SysLogHandler(address="/dev/log")
            return SysLogHandler()

        # Rotating file handler (10MB max, 3 backups)
        self.log_file = Path(destination)
        self.log_file.parent.mkdir(exist_ok=True, parents=True)
        return RotatingFileHandler(
            self.log_file,
            maxBytes=10 * 1024 * 1024,
            backupCount=3,
        )

    def configure(self, destination: str = "stdout", level: int = logging.INFO):
        """Point all jellofin loggers at a new destination"""
        for handler in list(self.root.handlers):
            self.root.removeHandler(handler)
            handler.close()

        self.log_file = None
        handler = self._make_handler(destination)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
        self.root.addHandler(handler)
        self.root.setLevel(level)

    def get_logger(self, name: str) -> logging.Logger:
        return logging.getLogger(f"jellofin.{name}")

    def error(self, message: str, **kwargs):
        """Log error message"""
        self.server_logger.error(message, extra=kwargs)

    def warning(self, message: str, **kwargs):
        """Log warning message"""
        self.server_logger.warning(message, extra=kwargs)

    def info(self, message: str, **kwargs):
        """Log info message"""
        self.server_logger.info(message, extra=kwargs)

    def debug(self, message: str, **kwargs):
        self.server_logger.debug(message, extra=kwargs)

    def scan(self, message: str, **kwargs):
        """Log library scan progress"""
        self.scan_logger.info(message, extra=kwargs)

    def access(self, message: str, **kwargs):
        """Log HTTP request"""
        self.access_logger.info(message, extra=kwargs)

    def get_logs(self, limit: int = 100) -> List[str]:
        """Read last N lines from the log file, empty when not logging to a file"""
        if self.log_file is None or not self.log_file.exists():
            return []

        try:
            with open(self.log_file, "r") as f:
                lines = [line.rstrip("\n") for line in f.readlines()]
                return lines[-limit:] if len(lines) > limit else lines
        except OSError as e:
            self.error(f"Failed to read log file {self.log_file}: {e}")
            return []


# Global log service instance
log_service = LogService()
