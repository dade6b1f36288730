"""
Configuration management for the Wexly music companion.

Loads configuration from YAML files with environment variable
interpolation support.
"""

import copy
import os
import re
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from wexly.utils.errors import ConfigurationError


class ConfigManager:
    """
    Manages application configuration loaded from YAML files.

    Features:
    - Environment variable interpolation (${VAR_NAME})
    - Nested key access with dot notation
    - Type validation against a small schema
    """

    def __init__(self, config_dict: Optional[Dict[str, Any]] = None):
        self._config: Dict[str, Any] = config_dict or {}
        self._env_pattern = re.compile(r'\$\{([^}]+)\}')

    @classmethod
    def from_file(cls, file_path: Path) -> "ConfigManager":
        """
        Create ConfigManager from YAML file.

        Raises:
            ConfigurationError: If file cannot be loaded or parsed
        """
        if not file_path.exists():
            raise ConfigurationError(
                f"Configuration file not found: {file_path}",
                config_key=str(file_path)
            )

        try:
            with open(file_path, 'r') as f:
                config_dict = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(
                f"Failed to parse YAML configuration: {e}",
                config_key=str(file_path)
            )

        if not isinstance(config_dict, dict):
            raise ConfigurationError(
                f"Configuration root must be a mapping: {file_path}",
                config_key=str(file_path)
            )

        manager = cls(config_dict)
        manager._interpolate_env_vars()
        return manager

    def _interpolate_env_vars(self) -> None:
        """Replace ${ENV_VAR} patterns in every string value."""
        self._config = self._interpolate(self._config)

    def _interpolate(self, value: Any) -> Any:
        if isinstance(value, dict):
            return {k: self._interpolate(v) for k, v in value.items()}
        if isinstance(value, list):
            return [self._interpolate(item) for item in value]
        if isinstance(value, str):
            return self._interpolate_string(value)
        return value

    def _interpolate_string(self, s: str) -> str:
        """Replace ${ENV_VAR} with environment variable value."""
        def replace(match: re.Match) -> str:
            value = os.environ.get(match.group(1))
            if value is None:
                return match.group(0)  # Keep original if not found
            return value

        return self._env_pattern.sub(replace, s)

    def get(
        self,
        key: str,
        default: Any = None,
        required: bool = False
    ) -> Any:
        """
        Get configuration value using dot notation.

        Example:
            config.get("activity.silence_timeout", default=2.0)
            config.get("llm.model", required=True)

        Raises:
            ConfigurationError: If required key is not found
        """
        value = self._config

        for k in key.split('.'):
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                if required:
                    raise ConfigurationError(
                        f"Required configuration key not found: {key}",
                        config_key=key
                    )
                return default

        return value

    def get_section(self, key: str) -> Dict[str, Any]:
        """Return a configuration section as a dict (empty if absent)."""
        value = self.get(key, default={})
        if not isinstance(value, dict):
            return {}
        return value

    def set(self, key: str, value: Any) -> None:
        """Set a configuration value using dot notation."""
        keys = key.split('.')
        current = self._config

        for k in keys[:-1]:
            if k not in current:
                current[k] = {}
            current = current[k]

        current[keys[-1]] = value

    def merge_defaults(self, defaults: Dict[str, Any]) -> None:
        """Fill keys missing from the loaded file with values from defaults."""
        self._config = _deep_merge(copy.deepcopy(defaults), self._config)

    def to_dict(self) -> Dict[str, Any]:
        """Return configuration as dictionary."""
        return copy.deepcopy(self._config)

    def validate(self, schema: Dict[str, Any]) -> None:
        """
        Validate configuration against a schema.

        Schema format:
            {
                "emotion.dwell_seconds": {"type": (int, float), "required": True},
                "speech.enabled": {"type": bool},
            }

        Raises:
            ConfigurationError: If validation fails
        """
        for key, rules in schema.items():
            value = self.get(key)
            expected_type = rules.get("type")

            if value is None:
                if rules.get("required", False):
                    raise ConfigurationError(
                        f"Required configuration missing: {key}",
                        config_key=key
                    )
                continue

            # bool is an int subclass; reject it for numeric keys
            if expected_type and (
                not isinstance(value, expected_type)
                or (isinstance(value, bool) and expected_type is not bool)
            ):
                names = (
                    "/".join(t.__name__ for t in expected_type)
                    if isinstance(expected_type, tuple)
                    else expected_type.__name__
                )
                raise ConfigurationError(
                    f"Invalid type for {key}: expected {names}, "
                    f"got {type(value).__name__}",
                    config_key=key
                )

            minimum = rules.get("min")
            if minimum is not None and value < minimum:
                raise ConfigurationError(
                    f"Invalid value for {key}: must be >= {minimum}, got {value}",
                    config_key=key
                )


CONFIG_SCHEMA: Dict[str, Dict[str, Any]] = {
    "audio.sample_rate": {"type": int, "required": True, "min": 8000},
    "audio.frame_size": {"type": int, "required": True, "min": 1},
    "audio.buffer_seconds": {"type": (int, float), "min": 0.1},
    "analysis.interval": {"type": (int, float), "required": True, "min": 0.01},
    "analysis.history_size": {"type": int, "min": 1},
    "activity.activation_threshold": {"type": (int, float), "min": 0.0},
    "activity.silence_timeout": {"type": (int, float), "required": True, "min": 0.0},
    "emotion.dwell_seconds": {"type": (int, float), "required": True, "min": 0.0},
    "llm.history_turns": {"type": int, "min": 1},
    "speech.enabled": {"type": bool},
}


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            base[key] = _deep_merge(base[key], value)
        else:
            base[key] = value
    return base


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load configuration from file or return defaults.

    Values missing from the file are taken from get_default_config(), and
    the merged result is validated against CONFIG_SCHEMA.

    Args:
        config_path: Optional path to config file.
                    If None, tries "config/config.yaml"

    Raises:
        ConfigurationError: If an explicit path does not exist, the file
            cannot be parsed, or a value has the wrong type
    """
    if config_path is not None and not Path(config_path).exists():
        raise ConfigurationError(
            f"Configuration file not found: {config_path}",
            config_key=config_path
        )

    if config_path is None:
        default_paths = [
            Path("config/config.yaml"),
            Path("config.yaml"),
            Path(__file__).parent.parent.parent / "config" / "config.yaml",
        ]

        for path in default_paths:
            if path.exists():
                config_path = str(path)
                break

    if config_path is None:
        return get_default_config()

    manager = ConfigManager.from_file(Path(config_path))
    manager.merge_defaults(get_default_config())
    manager.validate(CONFIG_SCHEMA)
    return manager.to_dict()


def get_default_config() -> Dict[str, Any]:
    """Return default configuration values."""
    return {
        "audio": {
            "sample_rate": 44100,
            "frame_size": 2048,
            "buffer_seconds": 2.0,
        },
        "analysis": {
            "interval": 0.1,
            "history_size": 100,
        },
        "activity": {
            "activation_threshold": 0.15,
            "silence_timeout": 2.0,
        },
        "emotion": {
            "dwell_seconds": 3.0,
        },
        "llm": {
            "provider": "openai",
            "model": "gpt-4o-mini",
            "api_key": "${OPENAI_API_KEY}",
            "temperature": 0.7,
            "max_tokens": 500,
            "history_turns": 10,
        },
        "speech": {
            "enabled": True,
            "model_size": "base",
            "language": None,
            "device": None,
        },
        "session": {
            "max_workers": 2,
        },
        "logging": {
            "level": "INFO",
            "format": "json",
        },
    }
