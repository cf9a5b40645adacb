"""
Restamp Utilities Package.

Configuration and logging shared across all modules.
Requires Python 3.11+.
"""

from utils.config import Settings, get_settings
from utils.logger import close_logging, configure_logging, get_logger, logger, LoggerMixin

__all__ = [
    "Settings",
    "get_settings",
    "close_logging",
    "configure_logging",
    "get_logger",
    "logger",
    "LoggerMixin",
]
