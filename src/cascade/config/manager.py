"""Configuration manager for loading and merging configs."""

import logging
from pathlib import Path
from typing import Any

import toml
from pydantic import ValidationError

from cascade.config.schema import CascadeConfig, get_config_file
from cascade.errors import ConfigError

logger = logging.getLogger(__name__)

PROJECT_CONFIG_NAME = ".cascade.toml"


class ConfigManager:
    """Loads, merges and saves configuration for one project directory.

    Create one per orchestrator; nothing is shared between instances.
    """

    def __init__(self, project_dir: Path | None = None, user_config_file: Path | None = None):
        self.project_dir = Path(project_dir or Path.cwd()).resolve()
        self.user_config_file = user_config_file or get_config_file()
        self._config: CascadeConfig | None = None

    @property
    def config(self) -> CascadeConfig:
        """Get the current configuration, loading if necessary."""
        if self._config is None:
            self._config = self.load_config()
        return self._config

    def load_config(self) -> CascadeConfig:
        """Load configuration from all sources.

        Priority (highest to lowest):
        1. Project-level config (.cascade.toml in the project dir or parents)
        2. User config (~/.config/cascade/config.toml)
        3. Default config
        """
        config_dict: dict[str, Any] = {}

        if self.user_config_file.exists():
            config_dict = self._deep_merge(config_dict, self._read(self.user_config_file))

        project_config_file = self.find_project_config()
        if project_config_file is not None:
            config_dict = self._deep_merge(config_dict, self._read(project_config_file))

        if not config_dict:
            return CascadeConfig.default()

        try:
            return CascadeConfig.model_validate(config_dict)
        except ValidationError as e:
            raise ConfigError(f"Invalid configuration: {e}") from e

    def reload(self) -> CascadeConfig:
        """Force reload configuration from disk."""
        self._config = self.load_config()
        return self._config

    def find_project_config(self) -> Path | None:
        """Find project-level config file by searching up from the project dir."""
        home = Path.home()
        for parent in [self.project_dir, *self.project_dir.parents]:
            config_file = parent / PROJECT_CONFIG_NAME
            if config_file.exists():
                return config_file
            # Stop at home directory
            if parent == home:
                break
        return None

    def resolve_path(self, relative: str) -> Path:
        """Resolve a config path setting against the project directory."""
        path = Path(relative).expanduser()
        return path if path.is_absolute() else self.project_dir / path

    def save_project_config(self, config: CascadeConfig) -> Path:
        """Save configuration to the project's .cascade.toml."""
        config_file = self.project_dir / PROJECT_CONFIG_NAME
        config_dict = config.model_dump(mode="json", exclude_none=True)
        with open(config_file, "w") as f:
            toml.dump(config_dict, f)
        self._config = config
        return config_file

    def get_value(self, key_path: str, default: Any = None) -> Any:
        """Get a configuration value by dot-separated path."""
        current: Any = self.config.model_dump(mode="json")
        for key in key_path.split("."):
            if isinstance(current, dict) and key in current:
                current = current[key]
            else:
                return default
        return current

    def set_value(self, key_path: str, value: Any) -> None:
        """Set a configuration value by dot-separated path and save it to the project.

        Example: set_value("orchestrator.max_agents_per_task", 3)
        """
        config_dict = self.config.model_dump(mode="json")

        keys = key_path.split(".")
        current = config_dict
        for key in keys[:-1]:
            if key not in current:
                current[key] = {}
            current = current[key]
        current[keys[-1]] = value

        try:
            config = CascadeConfig.model_validate(config_dict)
        except ValidationError as e:
            raise ConfigError(f"Invalid value for {key_path}: {e}") from e
        self.save_project_config(config)

    def _read(self, path: Path) -> dict[str, Any]:
        try:
            data = toml.load(path)
        except (OSError, toml.TomlDecodeError) as e:
            raise ConfigError(f"Cannot read config file {path}: {e}") from e
        logger.debug("Loaded config from %s", path)
        return data

    @staticmethod
    def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
        """Deep merge two dictionaries, with override taking precedence."""
        result = base.copy()
        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = ConfigManager._deep_merge(result[key], value)
            else:
                result[key] = value
        return result
