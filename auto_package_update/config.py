"""
Configuration management for Auto Package Update.
"""

# SPDX-License-Identifier: GPL-3.0-or-later

import json
import os
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, List, Any, Optional

from .exceptions import ConfigurationError
from .utils.logger import get_logger
from .constants import (
    CONFIG_DIR_PERMISSIONS, CONFIG_FILE_PERMISSIONS,
    DEFAULT_UPDATE_INTERVAL_DAYS, DEFAULT_HISTORY_RETENTION_DAYS,
    DEFAULT_REQUEST_TIMEOUT, get_default_config_path, get_default_state_path
)
from .models import AppConfig

logger = get_logger(__name__)

MAX_CONFIG_SIZE = 1024 * 1024  # 1MB

BOOL_KEYS = (
    "delete_old_versions", "prompt_before_update", "hide_results",
    "update_history_enabled", "debug_mode", "verbose_logging",
)
LIST_KEYS = (
    "excluded_packages", "packages",
    "before_update_commands", "after_update_commands",
)


def sanitize_config(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Replace invalid values with defaults.

    Args:
        data: Raw configuration dictionary

    Returns:
        Configuration dictionary holding only valid values
    """
    if not isinstance(data, dict):
        raise ValueError("Configuration must be a JSON object")

    defaults = AppConfig().to_dict()
    clean = dict(defaults)

    for key, value in data.items():
        if key not in defaults:
            logger.warning(f"Ignoring unknown config key: {key}")
            continue
        clean[key] = value

    for key in ("update_interval_days", "update_history_retention_days", "request_timeout"):
        value = clean[key]
        if isinstance(value, bool) or not isinstance(value, int) or value < 1:
            logger.warning(f"Invalid {key} {value!r}, using default {defaults[key]}")
            clean[key] = defaults[key]

    for key in BOOL_KEYS:
        if not isinstance(clean[key], bool):
            logger.warning(f"Invalid {key} {clean[key]!r}, using default {defaults[key]}")
            clean[key] = defaults[key]

    for key in LIST_KEYS:
        value = clean[key]
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            logger.warning(f"Invalid {key} configuration, using empty list")
            clean[key] = []

    for key in ("last_update_day_file", "log_file"):
        if clean[key] is not None and not isinstance(clean[key], str):
            logger.warning(f"Invalid {key} {clean[key]!r}, using default")
            clean[key] = None

    if not isinstance(clean["index_url"], str) or not clean["index_url"].startswith(("http://", "https://")):
        logger.warning(f"Invalid index_url {clean['index_url']!r}, using default")
        clean["index_url"] = defaults["index_url"]

    return clean


class Config:
    """Manages configuration for Auto Package Update."""

    def __init__(self, config_file: Optional[str] = None) -> None:
        """
        Initialize configuration.

        Args:
            config_file: Path to configuration file
        """
        self._batch_mode = False  # Prevent saves during batch updates
        self.config_file = str(Path(config_file).expanduser()) if config_file else str(get_default_config_path())
        self._app_config = self._load_config()
        self.config = self._app_config.to_dict()

    def _load_config(self) -> AppConfig:
        """
        Load configuration from file or fall back to defaults.

        Returns:
            AppConfig instance
        """
        try:
            if os.path.exists(self.config_file):
                file_size = os.path.getsize(self.config_file)
                if file_size > MAX_CONFIG_SIZE:
                    raise ValueError(f"Config file too large: {file_size} bytes")

                with open(self.config_file, "r", encoding="utf-8") as f:
                    data = json.load(f)

                sanitized = sanitize_config(data)
                logger.debug(f"Loaded configuration from {self.config_file}")
                return AppConfig.from_dict(sanitized)

        except json.JSONDecodeError as e:
            logger.error(f"Invalid JSON in config file {self.config_file}: {e}")
        except PermissionError as e:
            logger.error(f"Permission denied reading config file {self.config_file}: {e}")
        except OSError as e:
            logger.error(f"Error reading config file {self.config_file}: {e}")
        except ValueError as e:
            logger.error(f"Config file validation error: {e}")

        logger.debug("Using default configuration")
        return AppConfig()

    @property
    def app_config(self) -> AppConfig:
        return self._app_config

    def save_config(self) -> None:
        """
        Save current configuration to file.

        Raises:
            ConfigurationError: If saving fails
        """
        if self._batch_mode:
            return

        try:
            config_dir = Path(self.config_file).parent
            config_dir.mkdir(parents=True, exist_ok=True)

            try:
                os.chmod(config_dir, CONFIG_DIR_PERMISSIONS)
            except OSError as e:
                logger.warning(f"Failed to set permissions on config directory: {e}")

            with open(self.config_file, "w", encoding="utf-8") as f:
                json.dump(self.config, f, indent=2, ensure_ascii=False)

            try:
                os.chmod(self.config_file, CONFIG_FILE_PERMISSIONS)
            except OSError as e:
                logger.warning(f"Failed to set permissions on config file: {e}")

            logger.info(f"Saved configuration to {self.config_file}")

        except PermissionError as e:
            raise ConfigurationError(f"Permission denied saving config: {e}")
        except OSError as e:
            raise ConfigurationError(f"Failed to save config: {e}")

    def get(self, key: str, default: Optional[Any] = None) -> Optional[Any]:
        """
        Get configuration value.

        Args:
            key: Configuration key
            default: Default value if key not found

        Returns:
            Configuration value
        """
        return self.config.get(key, default)

    def set(self, key: str, value: Any) -> None:
        """
        Set configuration value.

        Raises:
            ConfigurationError: If the key is unknown or the value is invalid
        """
        if key not in self.config:
            raise ConfigurationError(f"Unknown config key: {key}")

        candidate = dict(self.config)
        candidate[key] = value
        sanitized = sanitize_config(candidate)
        if sanitized[key] != value:
            raise ConfigurationError(f"Invalid value for {key}: {value!r}")

        self.config = sanitized
        self._app_config = AppConfig.from_dict(self.config)
        self.save_config()

    def update_settings(self, settings: Dict[str, Any]) -> None:
        """
        Update multiple settings at once.

        Args:
            settings: Dictionary of settings to update
        """
        with self.batch_update():
            for key, value in settings.items():
                self.set(key, value)

    @contextmanager
    def batch_update(self):
        """Context manager for batch updates without intermediate saves."""
        self._batch_mode = True
        try:
            yield
        finally:
            self._batch_mode = False
            self.save_config()

    def init_config(self) -> None:
        """Initialize configuration file with defaults."""
        if os.path.exists(self.config_file):
            logger.info(f"Configuration file already exists: {self.config_file}")
            return
        self.save_config()
        logger.info(f"Created configuration file: {self.config_file}")

    def get_all_settings(self) -> Dict[str, Any]:
        """Get all settings as a dictionary."""
        return self.config.copy()

    def get_update_interval(self) -> int:
        """Get the update interval in days."""
        value = self.config.get("update_interval_days", DEFAULT_UPDATE_INTERVAL_DAYS)
        if isinstance(value, int) and not isinstance(value, bool) and value > 0:
            return value
        logger.warning(f"Invalid update interval {value}, using default {DEFAULT_UPDATE_INTERVAL_DAYS}")
        return DEFAULT_UPDATE_INTERVAL_DAYS

    def get_history_retention_days(self) -> int:
        value = self.config.get("update_history_retention_days", DEFAULT_HISTORY_RETENTION_DAYS)
        if isinstance(value, int) and value > 0:
            return value
        return DEFAULT_HISTORY_RETENTION_DAYS

    def get_request_timeout(self) -> int:
        value = self.config.get("request_timeout", DEFAULT_REQUEST_TIMEOUT)
        if isinstance(value, int) and value > 0:
            return value
        return DEFAULT_REQUEST_TIMEOUT

    def get_excluded_packages(self) -> List[str]:
        """Get packages that are never updated."""
        return list(self.config.get("excluded_packages") or [])

    def get_packages(self) -> List[str]:
        """Get the managed package list (empty means all installed)."""
        return list(self.config.get("packages") or [])

    def get_state_path(self) -> Path:
        """Get the path of the last-update-day file."""
        custom = self.config.get("last_update_day_file")
        if custom:
            return Path(custom).expanduser()
        return get_default_state_path()
