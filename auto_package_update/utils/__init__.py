"""
Utils package for Auto Package Update.
"""

# SPDX-License-Identifier: GPL-3.0-or-later

from .logger import get_logger, set_global_config
from .update_history import UpdateHistoryManager, UpdateHistoryEntry
from .instance_lock import (
    InstanceLock,
    InstanceLockError,
    InstanceAlreadyRunningError,
)
from .timer_manager import DailyTimer, parse_time_of_day

__all__ = [
    "get_logger",
    "set_global_config",
    "UpdateHistoryManager",
    "UpdateHistoryEntry",
    "InstanceLock",
    "InstanceLockError",
    "InstanceAlreadyRunningError",
    "DailyTimer",
    "parse_time_of_day",
]
