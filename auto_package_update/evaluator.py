"""
Decides whether an update is due.
"""

# SPDX-License-Identifier: GPL-3.0-or-later

from typing import Callable, Optional

from .state import LastUpdateStore, today_day_number
from .utils.logger import get_logger

logger = get_logger(__name__)


class UpdateDueEvaluator:
    """Compares the last update day with the configured interval."""

    def __init__(self, store: LastUpdateStore, interval_days: int,
                 today: Optional[Callable[[], int]] = None) -> None:
        """
        Initialize the evaluator.

        Args:
            store: Last update day store
            interval_days: Days that must elapse between updates
            today: Callable returning the current day number
        """
        if interval_days < 1:
            raise ValueError(f"Update interval must be a positive number of days, got {interval_days}")
        self.store = store
        self.interval_days = interval_days
        self._today = today or today_day_number

    def days_since_last_update(self) -> Optional[int]:
        """Days elapsed since the last update, or None if never updated."""
        last = self.store.read()
        if last is None:
            return None
        return self._today() - last

    def is_update_due(self) -> bool:
        """
        Check whether an update should run now.

        Returns:
            True on first run, otherwise True once the interval has elapsed
        """
        elapsed = self.days_since_last_update()
        if elapsed is None:
            logger.debug("No previous update recorded, update is due")
            return True
        due = elapsed // self.interval_days >= 1
        logger.debug(f"{elapsed} day(s) since last update, interval {self.interval_days}: due={due}")
        return due

    def next_due_day(self) -> Optional[int]:
        """Day number on which the next update becomes due, or None if never updated."""
        last = self.store.read()
        if last is None:
            return None
        return last + self.interval_days
