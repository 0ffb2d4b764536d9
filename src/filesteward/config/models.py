"""Configuration models using Pydantic for validation."""

import re
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..utils.paths import is_same_or_inside, normalize_path

DEFAULT_IGNORED_PATTERNS = [
    r"^\.",  # Dotfiles
    r"\.tmp$",
    r"\.temp$",
    r"\.part$",
    r"\.partial$",
    r"\.crdownload$",  # Chrome partial download
    r"\.download$",  # Safari partial download
    r"\.opdownload$",
    r"\.swp$",
    r"~$",  # Backup files
    r"^Thumbs\.db$",
    r"^desktop\.ini$",
]


class WatchedDirectorySettings(BaseModel):
    """A directory configured for monitoring."""

    path: Path = Field(description="Directory to watch")
    enabled: bool = Field(default=True, description="Whether the directory is actively monitored")
    recursive: bool = Field(default=False, description="Also watch subdirectories")

    @field_validator("path")
    @classmethod
    def normalize(cls, v: Path) -> Path:
        """Store the normalized absolute form of the path."""
        return Path(normalize_path(v))


class WatcherSettings(BaseModel):
    """Settings for change detection and stability tracking."""

    stability_delay_ms: int = Field(
        default=3000, ge=0, description="Quiet period before a file counts as fully written"
    )
    max_stability_wait_ms: int = Field(
        default=60000, ge=0, description="Force analysis of continuously changing files after this"
    )
    polling_interval_seconds: float = Field(
        default=1.0, gt=0, description="Interval for polling observers on bridged filesystems"
    )
    force_polling: bool = Field(
        default=False, description="Use polling for every directory regardless of filesystem"
    )
    ignored_patterns: list[str] = Field(
        default_factory=lambda: list(DEFAULT_IGNORED_PATTERNS),
        description="Regular expressions matched against file names to skip",
    )

    @field_validator("ignored_patterns")
    @classmethod
    def validate_patterns(cls, v: list[str]) -> list[str]:
        """Ensure every ignore pattern compiles."""
        for pattern in v:
            try:
                re.compile(pattern)
            except re.error as e:
                raise ValueError(f"Invalid ignore pattern {pattern!r}: {e}") from e
        return v

    def compiled_ignored_patterns(self) -> list[re.Pattern[str]]:
        return [re.compile(p, re.IGNORECASE) for p in self.ignored_patterns]


class ProposalSettings(BaseModel):
    """Settings for proposal persistence and cooldowns."""

    store_path: Path = Field(
        default=Path.home() / ".filesteward" / "proposals.json",
        description="JSON file holding pending proposals and cooldowns",
    )
    cooldown_hours: float = Field(
        default=24, ge=0, description="Hours before a rejected file may be proposed again"
    )


class AnalysisSettings(BaseModel):
    """Settings for content inspection during analysis."""

    max_content_preview_bytes: int = Field(
        default=4096, ge=0, description="Bytes of text read for content classification"
    )
    max_file_size_for_content: int = Field(
        default=10_000_000, ge=0, description="Skip content inspection for larger files (bytes)"
    )
    enable_llm_classification: bool = Field(
        default=True, description="Ask the classifier when patterns are inconclusive"
    )


class AISettings(BaseModel):
    """Classifier model configuration."""

    model_name: str = Field(
        default="qwen2.5:latest", description="Ollama model name for classification"
    )
    temperature: float = Field(
        default=0.1, ge=0.0, le=2.0, description="LLM temperature for classification"
    )
    ollama_base_url: str = Field(
        default="http://localhost:11434", description="Ollama API base URL"
    )
    max_retries: int = Field(default=3, ge=1, description="Maximum AI API retry attempts")


class AuditSettings(BaseModel):
    """Human-readable activity journal."""

    enabled: bool = Field(default=True, description="Write a daily markdown journal")
    journal_dir: Path = Field(
        default=Path.home() / ".filesteward" / "journal",
        description="Directory holding one markdown file per day",
    )


class LoggingSettings(BaseModel):
    """Logging configuration."""

    level: str = Field(
        default="INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )
    log_dir: Path = Field(default=Path("logs"), description="Directory for log files")
    max_bytes: int = Field(
        default=10 * 1024 * 1024, ge=1024, description="Max log file size before rotation (bytes)"
    )
    backup_count: int = Field(default=5, ge=1, description="Number of rotated log files to keep")
    console_enabled: bool = Field(default=True, description="Enable console logging")
    file_enabled: bool = Field(default=True, description="Enable file logging")

    @field_validator("level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure log level is valid."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v_upper


class FileStewardConfig(BaseModel):
    """Main configuration for FileSteward."""

    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    watched_directories: list[WatchedDirectorySettings] = Field(
        default_factory=lambda: [
            WatchedDirectorySettings(path=Path.home() / "Downloads"),
        ],
        description="Directories to monitor for new files",
    )

    organized_base_path: Path = Field(
        default=Path.home() / "Organized",
        description="Root of the organized tree (must lie outside every watched directory)",
    )

    watcher: WatcherSettings = Field(default_factory=WatcherSettings)
    proposals: ProposalSettings = Field(default_factory=ProposalSettings)
    analysis: AnalysisSettings = Field(default_factory=AnalysisSettings)
    ai_settings: AISettings = Field(default_factory=AISettings)
    audit: AuditSettings = Field(default_factory=AuditSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @field_validator("organized_base_path")
    @classmethod
    def normalize_base_path(cls, v: Path) -> Path:
        return Path(normalize_path(v))

    @field_validator("watched_directories")
    @classmethod
    def validate_unique_directories(
        cls, v: list[WatchedDirectorySettings]
    ) -> list[WatchedDirectorySettings]:
        """Reject the same directory listed twice."""
        seen: set[Path] = set()
        for directory in v:
            if directory.path in seen:
                raise ValueError(f"Directory listed more than once: {directory.path}")
            seen.add(directory.path)
        return v

    @model_validator(mode="after")
    def validate_base_path_outside_watched(self) -> "FileStewardConfig":
        """The organized tree and the watched directories must be disjoint."""
        for directory in self.watched_directories:
            if is_same_or_inside(self.organized_base_path, directory.path):
                raise ValueError(
                    f"organized_base_path {self.organized_base_path} must not be inside "
                    f"watched directory {directory.path}"
                )
            if is_same_or_inside(directory.path, self.organized_base_path):
                raise ValueError(
                    f"watched directory {directory.path} must not be inside "
                    f"organized_base_path {self.organized_base_path}"
                )
        return self

    def enabled_directories(self) -> list[WatchedDirectorySettings]:
        return [d for d in self.watched_directories if d.enabled]
