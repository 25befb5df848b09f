"""Settings management for Stagecraft.

Settings are loaded from, in order of precedence (later overrides earlier):

1. Built-in defaults
2. User config: ~/.stagecraft/config.yaml
3. Project config: .stagecraft.yaml (in current directory)
4. Environment variables (``STAGECRAFT_*``)
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml

from .exceptions import ConfigurationError
from .utils.logging import LogConfig

# Section -> key -> schema
CONFIG_SCHEMA: Dict[str, Dict[str, Dict[str, Any]]] = {
    "cloud": {
        "base_url": {"type": str, "default": "https://api.stagecraft.dev"},
        "token": {"type": str, "default": None},
        "timeout": {"type": float, "range": (0.1, 600), "default": 30.0},
    },
    "local_cache": {
        "path": {"type": str, "default": "~/.stagecraft/cache.db"},
    },
    "sync": {
        "debounce_seconds": {"type": float, "range": (0, 60), "default": 1.0},
    },
    "logging": {
        "level": {"type": str, "choices": ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], "default": "INFO"},
        "format": {"type": str, "choices": ["text", "json"], "default": "text"},
        "file": {"type": str, "default": None},
    },
}

ENV_OVERRIDES = {
    "STAGECRAFT_CLOUD_BASE_URL": "cloud.base_url",
    "STAGECRAFT_CLOUD_TOKEN": "cloud.token",
    "STAGECRAFT_LOCAL_CACHE": "local_cache.path",
    "STAGECRAFT_LOG_LEVEL": "logging.level",
}

DEFAULT_CONFIG_TEMPLATE = """\
# Stagecraft Configuration File
# Location: ~/.stagecraft/config.yaml or .stagecraft.yaml (project-local)
#
# Environment variables (STAGECRAFT_*) take precedence over config file values.
# Project-local config (.stagecraft.yaml) overrides user config (~/.stagecraft/config.yaml).

# Project service
cloud:
  base_url: https://api.stagecraft.dev
  # Bearer token, or set STAGECRAFT_CLOUD_TOKEN
  # token: ...
  # Per-request timeout in seconds
  timeout: 30

# On-device project cache (SQLite)
local_cache:
  path: ~/.stagecraft/cache.db

# Local cache sync
sync:
  # Quiet window before a change is written to the local cache
  debounce_seconds: 1.0

logging:
  # Options: DEBUG, INFO, WARNING, ERROR, CRITICAL
  level: INFO
  # Options: text, json
  format: text
  # file: ~/.stagecraft/stagecraft.log
"""


@dataclass
class Settings:
    """Resolved package settings."""

    cloud_base_url: str = "https://api.stagecraft.dev"
    cloud_token: Optional[str] = None
    cloud_timeout: float = 30.0
    local_cache_path: Path = field(default_factory=lambda: Path.home() / ".stagecraft" / "cache.db")
    sync_debounce_seconds: float = 1.0
    log_level: str = "INFO"
    log_format: str = "text"
    log_file: Optional[str] = None

    @classmethod
    def from_dict(cls, config: Mapping[str, Any]) -> "Settings":
        """Build settings from a merged, validated config dictionary."""
        cloud = config.get("cloud", {})
        logging_config = config.get("logging", {})
        log_file = logging_config.get("file")
        return cls(
            cloud_base_url=cloud.get("base_url"),
            cloud_token=cloud.get("token"),
            cloud_timeout=float(cloud.get("timeout")),
            local_cache_path=Path(config.get("local_cache", {}).get("path")).expanduser(),
            sync_debounce_seconds=float(config.get("sync", {}).get("debounce_seconds")),
            log_level=logging_config.get("level").upper(),
            log_format=logging_config.get("format"),
            log_file=str(Path(log_file).expanduser()) if log_file else None,
        )

    def to_log_config(self) -> LogConfig:
        return LogConfig(log_level=self.log_level, log_format=self.log_format, log_file=self.log_file)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cloud": {
                "base_url": self.cloud_base_url,
                "token": "***" if self.cloud_token else None,
                "timeout": self.cloud_timeout,
            },
            "local_cache": {"path": str(self.local_cache_path)},
            "sync": {"debounce_seconds": self.sync_debounce_seconds},
            "logging": {"level": self.log_level, "format": self.log_format, "file": self.log_file},
        }


@dataclass
class SettingsManager:
    """Loads, validates and merges settings from all sources.

    Attributes:
        user_config_path: Path to user-level config file
        project_config_path: Path to project-local config file
        environ: Environment to read overrides from
        loaded_config: The merged configuration dictionary
    """

    user_config_path: Path = field(default_factory=lambda: Path.home() / ".stagecraft" / "config.yaml")
    project_config_path: Path = field(default_factory=lambda: Path.cwd() / ".stagecraft.yaml")
    environ: Mapping[str, str] = field(default_factory=lambda: os.environ)
    loaded_config: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Ensure paths are Path objects."""
        self.user_config_path = Path(self.user_config_path)
        self.project_config_path = Path(self.project_config_path)

    def load(self) -> Settings:
        """Load, merge and validate settings.

        Raises:
            ConfigurationError: If a file cannot be parsed or a value is invalid.
        """
        config = self._get_builtin_defaults()

        for path in (self.user_config_path, self.project_config_path):
            if path.exists():
                config = self._deep_merge(config, self._load_yaml_file(path))

        config = self._deep_merge(config, self._env_overrides())
        self._validate_config(config)

        self.loaded_config = config
        return Settings.from_dict(config)

    @staticmethod
    def _get_builtin_defaults() -> Dict[str, Any]:
        return {
            section: {key: schema["default"] for key, schema in keys.items()}
            for section, keys in CONFIG_SCHEMA.items()
        }

    @staticmethod
    def _load_yaml_file(path: Path) -> Dict[str, Any]:
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"YAML parsing error in {path}: {e}", cause=e)
        except OSError as e:
            raise ConfigurationError(f"Failed to read {path}: {e}", cause=e)
        if not isinstance(data, dict):
            raise ConfigurationError(f"Config file {path} must contain a mapping")
        return data

    def _env_overrides(self) -> Dict[str, Any]:
        overrides: Dict[str, Any] = {}
        for env_name, key_path in ENV_OVERRIDES.items():
            value = self.environ.get(env_name)
            if value is None or value == "":
                continue
            section, key = key_path.split(".")
            overrides.setdefault(section, {})[key] = value
        return overrides

    def _deep_merge(self, base: Dict[str, Any], overlay: Dict[str, Any]) -> Dict[str, Any]:
        """Deep merge two dictionaries, overlay takes precedence."""
        result = base.copy()
        for key, value in overlay.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value
        return result

    @staticmethod
    def _validate_config(config: Dict[str, Any]) -> None:
        for section, keys in CONFIG_SCHEMA.items():
            values = config.get(section)
            if not isinstance(values, dict):
                raise ConfigurationError(f"Section '{section}' must be a mapping", config_key=section)

            for key, schema in keys.items():
                value = values.get(key)
                if value is None:
                    continue
                key_path = f"{section}.{key}"
                expected_type = schema["type"]

                # Numbers may arrive as strings from the environment
                if expected_type is float and isinstance(value, str):
                    try:
                        value = values[key] = float(value)
                    except ValueError:
                        pass
                if expected_type is str and key == "level" and isinstance(value, str):
                    value = values[key] = value.upper()

                if expected_type is float and isinstance(value, int) and not isinstance(value, bool):
                    pass
                elif not isinstance(value, expected_type) or isinstance(value, bool):
                    raise ConfigurationError(
                        f"Expected {expected_type.__name__}, got {type(value).__name__}",
                        config_key=key_path,
                        config_value=value,
                    )

                choices = schema.get("choices")
                if choices and value not in choices:
                    raise ConfigurationError(
                        f"Invalid value. Must be one of: {choices}",
                        config_key=key_path,
                        config_value=value,
                    )

                value_range = schema.get("range")
                if value_range:
                    min_val, max_val = value_range
                    if not (min_val <= value <= max_val):
                        raise ConfigurationError(
                            f"Value must be between {min_val} and {max_val}",
                            config_key=key_path,
                            config_value=value,
                        )

        for section, keys in CONFIG_SCHEMA.items():
            for key, schema in keys.items():
                if config[section].get(key) is None and schema["default"] is not None:
                    raise ConfigurationError("Value is required", config_key=f"{section}.{key}")

    def init_config(self, target: str = "user") -> Path:
        """Write the commented default template.

        Args:
            target: "user" for ~/.stagecraft/config.yaml,
                   "project" for .stagecraft.yaml
        """
        config_path = self.user_config_path if target == "user" else self.project_config_path
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, "w", encoding="utf-8") as f:
            f.write(DEFAULT_CONFIG_TEMPLATE)
        return config_path

    def config_exists(self) -> bool:
        return self.user_config_path.exists() or self.project_config_path.exists()

    def sources(self) -> List[Path]:
        """Config files that exist, lowest precedence first."""
        return [p for p in (self.user_config_path, self.project_config_path) if p.exists()]


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the process-wide settings, loading them on first use."""
    global _settings
    if _settings is None:
        _settings = SettingsManager().load()
    return _settings


def reset_settings() -> None:
    """Forget cached settings; the next :func:`get_settings` reloads."""
    global _settings
    _settings = None
