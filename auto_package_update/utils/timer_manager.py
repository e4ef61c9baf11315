"""
Daily timers for running a callback at a fixed wall-clock time.
"""

# SPDX-License-Identifier: GPL-3.0-or-later

from __future__ import annotations

import re
import threading
from datetime import datetime, time, timedelta
from typing import Callable, Optional, Union

from .logger import get_logger

logger = get_logger(__name__)

_TIME_OF_DAY = re.compile(r'^\s*(\d{1,2}):(\d{2})(?::(\d{2}))?\s*$')


def parse_time_of_day(value: Union[str, time]) -> time:
    """
    Parse ``"HH:MM"`` or ``"HH:MM:SS"`` into a ``datetime.time``.

    Raises:
        ValueError: If the value is not a valid time of day
    """
    if isinstance(value, time):
        return value
    match = _TIME_OF_DAY.match(value or "")
    if not match:
        raise ValueError(f"Invalid time of day {value!r}, expected HH:MM")
    hour, minute = int(match.group(1)), int(match.group(2))
    second = int(match.group(3) or 0)
    return time(hour, minute, second)


def next_occurrence(time_of_day: time, now: datetime) -> datetime:
    """Next datetime strictly after ``now`` whose clock reads ``time_of_day``."""
    candidate = datetime.combine(now.date(), time_of_day)
    if candidate <= now:
        candidate += timedelta(days=1)
    return candidate


class DailyTimer:
    """
    Calls ``callback`` every day at ``time_of_day``.

    Runs on a daemon ``threading.Timer`` that re-arms itself after each call.
    Exceptions from the callback are logged and do not stop the timer.
    """

    def __init__(self, time_of_day: Union[str, time], callback: Callable[[], object],
                 name: str = "daily-update",
                 now: Optional[Callable[[], datetime]] = None) -> None:
        self.time_of_day = parse_time_of_day(time_of_day)
        self.callback = callback
        self.name = name
        self._now = now or datetime.now
        self._timer: Optional[threading.Timer] = None
        self._lock = threading.Lock()
        self._cancelled = False
        self.next_run: Optional[datetime] = None
        self.run_count = 0

    @property
    def active(self) -> bool:
        return self._timer is not None and not self._cancelled

    def start(self) -> 'DailyTimer':
        """Arm the timer for the next occurrence of the time of day."""
        with self._lock:
            self._cancelled = False
            self._schedule()
        return self

    def _schedule(self) -> None:
        # Caller holds self._lock
        now = self._now()
        self.next_run = next_occurrence(self.time_of_day, now)
        delay = max((self.next_run - now).total_seconds(), 0.0)

        timer = threading.Timer(delay, self._fire)
        timer.daemon = True
        timer.name = f"{self.name}-timer"
        self._timer = timer
        timer.start()
        logger.info(f"Next {self.name} run scheduled for {self.next_run:%Y-%m-%d %H:%M:%S}")

    def _fire(self) -> None:
        try:
            self.run_count += 1
            self.callback()
        except Exception:
            logger.exception(f"Scheduled {self.name} run failed")
        finally:
            with self._lock:
                if not self._cancelled:
                    self._schedule()

    def cancel(self) -> None:
        """Stop the timer; a callback already running is allowed to finish."""
        with self._lock:
            self._cancelled = True
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            self.next_run = None
        logger.info(f"Cancelled {self.name} timer")
