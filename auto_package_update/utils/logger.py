"""
Logging configuration for Auto Package Update.
"""

# SPDX-License-Identifier: GPL-3.0-or-later

from __future__ import annotations

import logging
import os
import sys
import threading
from datetime import datetime
from pathlib import Path
from typing import Optional, Dict, Any


CONSOLE_FORMAT = '%(levelname)s - %(name)s - %(message)s'
FILE_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


class ColoredFormatter(logging.Formatter):
    """Custom formatter with colors for terminal output."""

    COLORS = {
        'DEBUG': '\033[36m',    # Cyan
        'INFO': '\033[32m',     # Green
        'WARNING': '\033[33m',  # Yellow
        'ERROR': '\033[31m',    # Red
        'CRITICAL': '\033[35m',  # Magenta
        'RESET': '\033[0m'      # Reset
    }

    def format(self, record: logging.LogRecord) -> str:
        """Format log record with colors."""
        log_color = self.COLORS.get(record.levelname, self.COLORS['RESET'])
        reset_color = self.COLORS['RESET']

        # Work on a copy so file handlers sharing the record stay uncolored
        record = logging.makeLogRecord(record.__dict__)
        record.levelname = f"{log_color}{record.levelname}{reset_color}"

        return super().format(record)


_global_config: Optional[Dict[str, Any]] = None
_log_file_path: Optional[str] = None
_logger_instances: Dict[str, logging.Logger] = {}
_global_state_lock = threading.RLock()


def _debug_enabled() -> bool:
    if not _global_config:
        return False
    return bool(_global_config.get('verbose_logging') or _global_config.get('debug_mode'))


def _make_file_handler(path: str, level: int) -> logging.Handler:
    file_handler = logging.FileHandler(path)
    file_handler.setLevel(level)
    file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
    return file_handler


def set_global_config(config: Dict[str, Any]) -> None:
    """
    Set global configuration for logging with thread safety.

    Args:
        config: Configuration dictionary
    """
    global _global_config, _log_file_path
    with _global_state_lock:
        _global_config = config

        explicit_log = config.get('log_file')
        if explicit_log:
            Path(explicit_log).parent.mkdir(parents=True, exist_ok=True)
            _log_file_path = str(explicit_log)
        elif config.get('verbose_logging') or config.get('debug_mode'):
            from ..constants import get_data_dir
            log_dir = get_data_dir() / 'logs'
            log_dir.mkdir(parents=True, exist_ok=True)
            try:
                os.chmod(log_dir, 0o700)
            except OSError:
                pass

            timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
            _log_file_path = str(log_dir / f'apu_{timestamp}.log')
        else:
            _log_file_path = None

        _reconfigure_all_loggers()


def get_current_log_file() -> Optional[str]:
    """Get the current log file path if file logging is active."""
    with _global_state_lock:
        return _log_file_path


def _reconfigure_all_loggers() -> None:
    """Reconfigure all existing loggers with new settings."""
    # Caller holds _global_state_lock
    level = logging.DEBUG if _debug_enabled() else logging.INFO

    for logger in _logger_instances.values():
        logger.setLevel(level)
        for handler in list(logger.handlers):
            if isinstance(handler, logging.FileHandler):
                logger.removeHandler(handler)
                handler.close()
            else:
                handler.setLevel(level)

        if _log_file_path:
            try:
                logger.addHandler(_make_file_handler(_log_file_path, level))
            except OSError:
                pass


def get_logger(name: str) -> logging.Logger:
    """
    Get or create a logger instance with thread safety.

    Args:
        name: Logger name

    Returns:
        Logger instance
    """
    with _global_state_lock:
        if name in _logger_instances:
            return _logger_instances[name]

        level = logging.DEBUG if _debug_enabled() else logging.INFO

        logger = logging.getLogger(name)
        logger.setLevel(level)
        logger.handlers.clear()

        # Console handler (use stderr for logs)
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(level)
        console_handler.setFormatter(ColoredFormatter(CONSOLE_FORMAT))
        logger.addHandler(console_handler)

        if _log_file_path:
            try:
                logger.addHandler(_make_file_handler(_log_file_path, level))
            except OSError:
                # Don't log this error to avoid recursion
                pass

        logger.propagate = False

        _logger_instances[name] = logger
        return logger


def set_console_level(level: int) -> None:
    """Raise or lower the console threshold of every known logger."""
    with _global_state_lock:
        for logger in _logger_instances.values():
            for handler in logger.handlers:
                if not isinstance(handler, logging.FileHandler):
                    handler.setLevel(level)
