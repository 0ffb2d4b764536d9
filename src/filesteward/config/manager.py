"""Configuration management - loading, validation, and persistence."""

import os
from pathlib import Path

import yaml
from pydantic import ValidationError

from ..utils.paths import atomic_write_text, normalize_path
from .models import FileStewardConfig, WatchedDirectorySettings

# Overrides the search below when set
CONFIG_ENV_VAR = "FILESTEWARD_CONFIG"


class ConfigManager:
    """
    Loads and saves the YAML configuration.

    The watch list is edited from the CLI while a watcher may be reading
    the same file, so saves replace the file atomically.
    """

    DEFAULT_CONFIG_LOCATIONS = [
        Path.home() / ".config" / "filesteward" / "config.yaml",
        Path.home() / ".filesteward" / "config.yaml",
        Path("filesteward.yaml"),
    ]

    def __init__(self, config_path: Path | None = None):
        """
        Initialize configuration manager.

        Args:
            config_path: Explicit path to config file. If None, the
                ``FILESTEWARD_CONFIG`` variable and then the default
                locations are searched.
        """
        self.config_path = config_path
        self._config: FileStewardConfig | None = None

    @classmethod
    def search_paths(cls) -> list[Path]:
        env_path = os.environ.get(CONFIG_ENV_VAR)
        if env_path:
            return [Path(env_path).expanduser(), *cls.DEFAULT_CONFIG_LOCATIONS]
        return list(cls.DEFAULT_CONFIG_LOCATIONS)

    @classmethod
    def default_save_path(cls) -> Path:
        """Where a new configuration is written when none was loaded."""
        return cls.search_paths()[0]

    def load(self, create_if_missing: bool = False) -> FileStewardConfig:
        """
        Load configuration from file.

        Args:
            create_if_missing: Return default config if no config file found.

        Returns:
            Loaded and validated configuration.

        Raises:
            FileNotFoundError: If no config found and create_if_missing is False.
            ValueError: If the config file is not valid YAML or fails validation.
        """
        config_file = self._find_config_file()

        if config_file is None:
            if create_if_missing:
                self._config = FileStewardConfig()
                return self._config
            raise FileNotFoundError(
                f"No configuration file found. Searched: {[str(p) for p in self.search_paths()]}"
            )

        try:
            with open(config_file, encoding="utf-8") as f:
                config_dict = yaml.safe_load(f) or {}

            self._config = FileStewardConfig(**config_dict)
            self.config_path = config_file
            return self._config

        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in config file {config_file}: {e}") from e
        except ValidationError as e:
            raise ValueError(f"Invalid configuration in {config_file}: {e}") from e

    def save(self, config: FileStewardConfig | None = None, path: Path | None = None):
        """
        Save configuration to file.

        Args:
            config: Configuration to save. Uses current config if None.
            path: Path to save to. Uses current config_path if None.
        """
        config_to_save = config or self._config
        if config_to_save is None:
            raise ValueError("No configuration to save")

        save_path = Path(path or self.config_path or self.default_save_path()).expanduser()

        content = yaml.safe_dump(
            config_to_save.model_dump(mode="json"),
            default_flow_style=False,
            allow_unicode=True,
            sort_keys=False,
        )
        atomic_write_text(save_path, content)

        self.config_path = save_path
        self._config = config_to_save

    def add_watched_directory(self, path: str | Path, recursive: bool = False) -> FileStewardConfig:
        """
        Append a directory to the watch list and save.

        Raises:
            ValueError: If the directory is already listed or the new list
                fails validation
        """
        config = self.config
        target = normalize_path(path)
        if any(str(d.path) == target for d in config.watched_directories):
            raise ValueError(f"Directory is already being watched: {target}")

        try:
            updated = config.model_copy(
                update={
                    "watched_directories": [
                        *config.watched_directories,
                        WatchedDirectorySettings(path=Path(target), recursive=recursive),
                    ]
                }
            )
            # model_copy skips validation; re-run it for the overlap checks
            updated = FileStewardConfig.model_validate(updated.model_dump())
        except ValidationError as e:
            raise ValueError(f"Invalid watch list: {e}") from e

        self.save(updated)
        return updated

    def remove_watched_directory(self, path: str | Path) -> FileStewardConfig:
        """
        Drop a directory from the watch list and save.

        Raises:
            ValueError: If the directory is not listed
        """
        config = self.config
        target = normalize_path(path)
        remaining = [d for d in config.watched_directories if str(d.path) != target]
        if len(remaining) == len(config.watched_directories):
            raise ValueError(f"Directory is not being watched: {target}")

        updated = config.model_copy(update={"watched_directories": remaining})
        self.save(updated)
        return updated

    def _find_config_file(self) -> Path | None:
        """Find the first existing config file, explicit path first."""
        if self.config_path and self.config_path.exists():
            return self.config_path

        for location in self.search_paths():
            if location.exists():
                return location

        return None

    @property
    def config(self) -> FileStewardConfig:
        """Get current configuration."""
        if self._config is None:
            self._config = self.load(create_if_missing=True)
        return self._config


_config_manager: ConfigManager | None = None


def get_config_manager(config_path: Path | None = None) -> ConfigManager:
    """
    Get global config manager instance.

    Args:
        config_path: Optional explicit config path. Replaces the global
            manager when it differs from the current one.

    Returns:
        ConfigManager instance.
    """
    global _config_manager
    if _config_manager is None or (
        config_path is not None and config_path != _config_manager.config_path
    ):
        _config_manager = ConfigManager(config_path)
    return _config_manager


def get_config(reload: bool = False) -> FileStewardConfig:
    """
    Get current configuration.

    Args:
        reload: Force reload from file.

    Returns:
        Current configuration.
    """
    manager = get_config_manager()
    if reload:
        return manager.load()
    return manager.config
