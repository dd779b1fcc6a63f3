"""Core configuration and logging."""

from bookmark_hub.core.config import Settings, settings
from bookmark_hub.core.logging import get_logger, setup_logging

__all__ = [
    "Settings",
    "get_logger",
    "settings",
    "setup_logging",
]
