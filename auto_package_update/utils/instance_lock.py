"""
Cross-process lock so only one updater works on an environment at a time.
"""

# SPDX-License-Identifier: GPL-3.0-or-later

import fcntl
import json
import os
import time
from pathlib import Path
from typing import Optional, Union, Dict, Any, TextIO

import psutil  # type: ignore[import-untyped]

from ..constants import APP_SLUG, get_data_dir
from ..exceptions import AutoPackageUpdateError
from .logger import get_logger

logger = get_logger(__name__)

MAX_LOCK_AGE_SECONDS = 86400  # locks older than a day are considered abandoned


class InstanceLockError(AutoPackageUpdateError):
    """Raised when instance lock operations fail."""
    pass


class InstanceAlreadyRunningError(InstanceLockError):
    """Raised when another instance is already running."""
    pass


class InstanceLock:
    """
    File-based instance lock.

    Uses fcntl for atomic locking and psutil to detect locks left behind by
    processes that no longer exist.
    """

    def __init__(self, name: str = APP_SLUG, lock_dir: Optional[Union[str, Path]] = None):
        """
        Initialize instance lock.

        Args:
            name: Lock name, used for the lock file name
            lock_dir: Directory for the lock file (defaults to the data dir)
        """
        self.name = name
        directory = Path(lock_dir) if lock_dir else get_data_dir()
        self.lock_file_path = directory / f".{name}.lock"
        self.lock_file: Optional[TextIO] = None
        self.locked = False
        self.pid = os.getpid()

    def acquire(self, check_stale: bool = True) -> bool:
        """
        Acquire the lock without blocking.

        Returns:
            True once the lock is held

        Raises:
            InstanceAlreadyRunningError: If another live process holds the lock
            InstanceLockError: If the lock file cannot be used
        """
        if self.locked:
            return True

        try:
            self.lock_file_path.parent.mkdir(parents=True, exist_ok=True)
            fd = os.open(str(self.lock_file_path), os.O_CREAT | os.O_RDWR, 0o600)
            self.lock_file = os.fdopen(fd, 'r+')
        except OSError as e:
            raise InstanceLockError(f"Failed to open lock file {self.lock_file_path}: {e}")

        try:
            fcntl.flock(self.lock_file.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            existing_pid = self._get_existing_pid()
            self._close_lock_file()
            if check_stale and self._clean_stale_lock():
                return self.acquire(check_stale=False)
            raise InstanceAlreadyRunningError(
                f"Another {self.name} process is already running (PID: {existing_pid or 'unknown'})"
            )

        lock_data = {'pid': self.pid, 'timestamp': time.time(), 'name': self.name}
        self.lock_file.seek(0)
        self.lock_file.truncate()
        json.dump(lock_data, self.lock_file)
        self.lock_file.flush()
        os.fsync(self.lock_file.fileno())

        self.locked = True
        logger.debug(f"Acquired instance lock {self.lock_file_path} (PID {self.pid})")
        return True

    def release(self) -> None:
        """Release the lock and remove the lock file."""
        if not self.locked:
            return

        if self.lock_file is not None:
            try:
                fcntl.flock(self.lock_file.fileno(), fcntl.LOCK_UN)
            except OSError as e:
                logger.debug(f"Could not unlock {self.lock_file_path}: {e}")
        self._close_lock_file()

        try:
            self.lock_file_path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.debug(f"Could not remove lock file: {e}")

        self.locked = False
        logger.debug(f"Released instance lock {self.lock_file_path}")

    def _close_lock_file(self) -> None:
        if self.lock_file is not None:
            try:
                self.lock_file.close()
            except OSError:
                pass
            self.lock_file = None

    def _get_lock_data(self) -> Optional[Dict[str, Any]]:
        try:
            with open(self.lock_file_path, 'r') as f:
                data = json.load(f)
        except (OSError, ValueError):
            return None
        if isinstance(data, dict) and 'pid' in data:
            return data
        return None

    def _get_existing_pid(self) -> Optional[int]:
        data = self._get_lock_data()
        if data and isinstance(data.get('pid'), int):
            return data['pid']
        return None

    def _clean_stale_lock(self) -> bool:
        """
        Remove the lock file if its owner is gone or the lock is abandoned.

        Returns:
            True if a stale lock was removed
        """
        lock_data = self._get_lock_data()
        if not lock_data:
            return False

        existing_pid = lock_data.get('pid')
        age = time.time() - lock_data.get('timestamp', 0)
        stale = age > MAX_LOCK_AGE_SECONDS
        if not stale and isinstance(existing_pid, int):
            stale = not psutil.pid_exists(existing_pid)

        if not stale:
            return False

        logger.warning(f"Found stale lock from PID {existing_pid}, cleaning up")
        try:
            self.lock_file_path.unlink()
        except OSError as e:
            logger.debug(f"Could not remove stale lock: {e}")
            return False
        return True

    def __enter__(self):
        """Context manager entry."""
        self.acquire()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.release()
