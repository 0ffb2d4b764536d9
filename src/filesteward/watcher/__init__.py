"""Watcher module for directory monitoring and destination resolution."""

from .destination import DEFAULT_DESTINATIONS, DestinationResolver, DestinationResult
from .service import (
    PendingFile,
    ScanResult,
    WatchedDirectory,
    WatcherService,
    requires_polling,
)

__all__ = [
    "DEFAULT_DESTINATIONS",
    "DestinationResolver",
    "DestinationResult",
    "PendingFile",
    "ScanResult",
    "WatchedDirectory",
    "WatcherService",
    "requires_polling",
]
