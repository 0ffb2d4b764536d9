"""Configuration module for FileSteward."""

from .manager import ConfigManager, get_config, get_config_manager
from .models import (
    DEFAULT_IGNORED_PATTERNS,
    AISettings,
    AnalysisSettings,
    AuditSettings,
    FileStewardConfig,
    LoggingSettings,
    ProposalSettings,
    WatchedDirectorySettings,
    WatcherSettings,
)

__all__ = [
    "FileStewardConfig",
    "WatchedDirectorySettings",
    "WatcherSettings",
    "ProposalSettings",
    "AnalysisSettings",
    "AISettings",
    "AuditSettings",
    "LoggingSettings",
    "DEFAULT_IGNORED_PATTERNS",
    "ConfigManager",
    "get_config",
    "get_config_manager",
]
