"""
Update history management for tracking update cycles.
"""

# SPDX-License-Identifier: GPL-3.0-or-later

import csv
import fcntl
import json
import os
import threading
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from ..constants import get_default_history_path, SECONDS_PER_DAY
from .logger import get_logger

logger = get_logger(__name__)

MAX_HISTORY_ENTRIES = 10000


@dataclass
class UpdateHistoryEntry:
    """Represents one completed update cycle."""
    timestamp: datetime                                # when the cycle finished
    packages: List[str]                                # packages attempted
    succeeded: bool                                    # True if every install succeeded
    failed: List[str] = field(default_factory=list)    # packages that failed
    duration_sec: float = 0.0

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "timestamp": self.timestamp.isoformat(),
            "packages": self.packages,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "duration_sec": self.duration_sec
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'UpdateHistoryEntry':
        """Create from dictionary."""
        return cls(
            timestamp=datetime.fromisoformat(data["timestamp"]),
            packages=data["packages"],
            succeeded=data["succeeded"],
            failed=data.get("failed", []),
            duration_sec=data.get("duration_sec", 0.0)
        )


class UpdateHistoryManager:
    """Manages update history storage and retrieval."""

    def __init__(self, path: Optional[str] = None, retention_days: int = 365):
        """
        Initialize the update history manager.

        Args:
            path: Path to history file (defaults to data dir)
            retention_days: Days to retain history entries
        """
        self.path = Path(path) if path else get_default_history_path()
        self.retention_days = retention_days
        self._lock = threading.Lock()
        self._cached_entries: Optional[List[UpdateHistoryEntry]] = None

        logger.debug(f"Initialized UpdateHistoryManager with path: {self.path}")

    def all(self) -> List[UpdateHistoryEntry]:
        """
        Get all update history entries.

        Returns:
            List of update history entries (newest first)
        """
        with self._lock:
            if self._cached_entries is None:
                self._cached_entries = self._load_entries()
            return sorted(self._cached_entries, key=lambda e: e.timestamp, reverse=True)

    def add(self, entry: UpdateHistoryEntry) -> None:
        """
        Add a new update history entry.

        Args:
            entry: The update history entry to add
        """
        with self._lock:
            entries = self._load_entries()
            entries.append(entry)
            self._cached_entries = self._save_entries(entries)
            logger.info(
                f"Added update history entry: {len(entry.packages)} packages, {len(entry.failed)} failed")

    def add_entry(self, packages: List[str], failed: List[str],
                  duration_seconds: float = 0.0) -> UpdateHistoryEntry:
        """
        Helper to record a cycle from its package lists.

        Args:
            packages: Packages attempted
            failed: Packages that failed to install
            duration_seconds: Duration in seconds

        Returns:
            The stored entry
        """
        entry = UpdateHistoryEntry(
            timestamp=datetime.now(),
            packages=list(packages),
            succeeded=not failed,
            failed=list(failed),
            duration_sec=duration_seconds
        )
        self.add(entry)
        return entry

    def clear(self) -> None:
        """Clear all update history entries."""
        with self._lock:
            self._cached_entries = self._save_entries([])
            logger.info("Cleared update history")

    def export(self, filename: str, format_: str = "json") -> None:
        """
        Export update history to file.

        Args:
            filename: Destination file path
            format_: Export format (json or csv)
        """
        entries = self.all()

        if format_ == "json":
            self._export_json(entries, filename)
        elif format_ == "csv":
            self._export_csv(entries, filename)
        else:
            raise ValueError(f"Unsupported export format: {format_}")

        logger.info(f"Exported {len(entries)} entries to {filename}")

    def _load_entries(self) -> List[UpdateHistoryEntry]:
        """Load entries from disk with file locking."""
        if not self.path.exists():
            return []

        try:
            with open(self.path, 'r') as f:
                fcntl.flock(f.fileno(), fcntl.LOCK_SH)
                try:
                    data = json.load(f)
                    entries = [UpdateHistoryEntry.from_dict(d) for d in data]
                    return self._trim_entries(entries)
                finally:
                    fcntl.flock(f.fileno(), fcntl.LOCK_UN)
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            logger.error(f"Corrupted history file: {e}")
            return []
        except OSError as e:
            logger.error(f"Failed to load update history: {e}")
            return []

    def _save_entries(self, entries: List[UpdateHistoryEntry]) -> List[UpdateHistoryEntry]:
        """Save entries to disk with file locking and return what was kept."""
        entries = self._trim_entries(entries)
        data = [entry.to_dict() for entry in entries]

        self.path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = self.path.with_suffix('.tmp')

        try:
            with open(temp_path, 'w') as f:
                fcntl.flock(f.fileno(), fcntl.LOCK_EX)
                try:
                    json.dump(data, f, indent=2)
                    f.flush()
                    os.fsync(f.fileno())
                finally:
                    fcntl.flock(f.fileno(), fcntl.LOCK_UN)

            # Atomic rename
            temp_path.replace(self.path)
            return entries

        except OSError as e:
            logger.error(f"Failed to save update history: {e}")
            if temp_path.exists():
                temp_path.unlink()
            raise

    def _trim_entries(self, entries: List[UpdateHistoryEntry]) -> List[UpdateHistoryEntry]:
        """Drop entries older than the retention window and cap the total."""
        cutoff = datetime.now().timestamp() - (self.retention_days * SECONDS_PER_DAY)
        entries = [e for e in entries if e.timestamp.timestamp() > cutoff]
        if len(entries) > MAX_HISTORY_ENTRIES:
            entries = sorted(entries, key=lambda e: e.timestamp)[-MAX_HISTORY_ENTRIES:]
        return entries

    def _export_json(self, entries: List[UpdateHistoryEntry], dst_path: str) -> None:
        """Export entries as JSON."""
        data = [entry.to_dict() for entry in entries]
        with open(dst_path, 'w') as f:
            json.dump(data, f, indent=2)

    def _export_csv(self, entries: List[UpdateHistoryEntry], dst_path: str) -> None:
        """Export entries as CSV."""
        with open(dst_path, 'w', newline='') as f:
            writer = csv.writer(f)
            writer.writerow(['timestamp', 'packages', 'succeeded', 'failed', 'duration_sec'])

            for entry in entries:
                writer.writerow([
                    entry.timestamp.isoformat(),
                    ', '.join(entry.packages),
                    'Yes' if entry.succeeded else 'No',
                    ', '.join(entry.failed),
                    f"{entry.duration_sec:.1f}"
                ])
