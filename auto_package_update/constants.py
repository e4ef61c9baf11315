"""
Application constants for Auto Package Update.
"""

# SPDX-License-Identifier: GPL-3.0-or-later

from pathlib import Path

# Application info
APP_NAME = "Auto Package Update"
APP_SLUG = "auto-package-update"
APP_VERSION = "1.0.0"
APP_USER_AGENT = f"{APP_NAME}/{APP_VERSION}"

# File permissions (octal)
CONFIG_DIR_PERMISSIONS = 0o700  # rwx------
CONFIG_FILE_PERMISSIONS = 0o600  # rw-------

# Default values
DEFAULT_UPDATE_INTERVAL_DAYS = 7
DEFAULT_HISTORY_RETENTION_DAYS = 365
DEFAULT_INDEX_URL = "https://pypi.org/pypi"

# Network
DEFAULT_REQUEST_TIMEOUT = 10
MAX_REFRESH_WORKERS = 5

# pip
PIP_INSTALL_TIMEOUT = 600

# State and report
LAST_UPDATE_DAY_FILENAME = ".last-package-update-day"
REPORT_HEADER = "[PACKAGES UPDATED]:"
NOTHING_TO_UPDATE_MESSAGE = "All packages are up to date."
UPDATE_PROMPT = "Do you want to update packages?"

SECONDS_PER_DAY = 24 * 60 * 60


# Paths
def get_config_dir() -> Path:
    """Get the configuration directory path."""
    return Path.home() / ".config" / APP_SLUG


def get_data_dir() -> Path:
    """Get the data directory path (state file, history, logs)."""
    return Path.home() / ".local" / "share" / APP_SLUG


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    return get_config_dir() / "config.json"


def get_default_state_path() -> Path:
    """Get the default last-update-day file path."""
    return get_data_dir() / LAST_UPDATE_DAY_FILENAME


def get_default_history_path() -> Path:
    """Get the default update history file path."""
    return get_data_dir() / "update_history.json"
