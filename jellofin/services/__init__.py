"""Services layer"""

from .log_service import LogService, log_service

__all__ = [
    "LogService",
    "log_service",
]
