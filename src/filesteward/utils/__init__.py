"""Utility modules for FileSteward."""

from .events import EventEmitter
from .logging import get_console, get_logger, setup_logging
from .paths import atomic_write_text, determine_action, is_same_or_inside, normalize_path

__all__ = [
    "get_logger",
    "setup_logging",
    "get_console",
    "EventEmitter",
    "normalize_path",
    "is_same_or_inside",
    "determine_action",
    "atomic_write_text",
]
