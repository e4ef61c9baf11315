"""
Persistence of the last-update day marker.
"""

# SPDX-License-Identifier: GPL-3.0-or-later

import os
from datetime import date
from pathlib import Path
from typing import Optional, Union

from .constants import get_default_state_path
from .utils.logger import get_logger

logger = get_logger(__name__)


def today_day_number() -> int:
    """Return today's day number (proleptic Gregorian ordinal)."""
    return date.today().toordinal()


def day_number_to_date(day_number: int) -> date:
    """Convert a day number back to a calendar date."""
    return date.fromordinal(day_number)


def parse_day_number(text: str) -> Optional[int]:
    """
    Parse the marker file contents.

    Args:
        text: Raw file contents

    Returns:
        The day number, or None if the contents are not a decimal integer
    """
    value = text.strip()
    if not (value.isascii() and value.isdigit()):
        return None
    day = int(value)
    if day < 1:
        return None
    return day


class LastUpdateStore:
    """Reads and writes the day number of the last completed update."""

    def __init__(self, path: Optional[Union[str, Path]] = None) -> None:
        """
        Initialize the store.

        Args:
            path: Marker file path (defaults to the data directory)
        """
        self.path = Path(path) if path else get_default_state_path()

    def read(self) -> Optional[int]:
        """
        Read the last update day.

        Returns:
            Day number, or None if never updated (missing, unreadable or corrupt file)
        """
        try:
            with open(self.path, 'r', encoding='ascii') as f:
                contents = f.read()
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Could not read last update day from {self.path}: {e}")
            return None

        day = parse_day_number(contents)
        if day is None:
            logger.warning(f"Ignoring corrupt last update day in {self.path}: {contents.strip()[:40]!r}")
        return day

    def _is_writable(self) -> bool:
        if self.path.exists():
            return os.access(self.path, os.W_OK)
        parent = self.path.parent
        while not parent.exists() and parent != parent.parent:
            parent = parent.parent
        return os.access(parent, os.W_OK)

    def write(self, day_number: int) -> bool:
        """
        Persist the last update day.

        Args:
            day_number: Day number to record

        Returns:
            True if written, False if the destination is not writable
        """
        if not self._is_writable():
            logger.debug(f"Last update day file {self.path} is not writable, skipping")
            return False

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            temp_path = self.path.with_name(self.path.name + '.tmp')
            with open(temp_path, 'w', encoding='ascii') as f:
                f.write(str(day_number))
            temp_path.replace(self.path)
        except OSError as e:
            logger.debug(f"Failed to write last update day to {self.path}: {e}")
            return False

        logger.debug(f"Recorded last update day {day_number} in {self.path}")
        return True

    def clear(self) -> None:
        """Forget the last update day."""
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass
