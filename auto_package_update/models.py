"""
Data models for Auto Package Update.
"""

# SPDX-License-Identifier: GPL-3.0-or-later

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Dict, Any, Tuple
from enum import Enum

from .constants import (
    DEFAULT_UPDATE_INTERVAL_DAYS, DEFAULT_HISTORY_RETENTION_DAYS,
    DEFAULT_INDEX_URL, DEFAULT_REQUEST_TIMEOUT, REPORT_HEADER,
    NOTHING_TO_UPDATE_MESSAGE
)

VersionTuple = Tuple[int, ...]


class UpdateStatus(Enum):
    """Outcome of one orchestrator call."""
    COMPLETED = "completed"
    NOT_DUE = "not_due"
    DECLINED = "declined"
    BUSY = "busy"


@dataclass
class PackageRecord:
    """An installed package with its installed and newest known versions."""
    name: str
    installed_version: Optional[VersionTuple] = None
    newest_version: Optional[VersionTuple] = None

    @staticmethod
    def _format(version: Optional[VersionTuple]) -> str:
        if version is None:
            return "unknown"
        return ".".join(str(part) for part in version)

    @property
    def installed_display(self) -> str:
        return self._format(self.installed_version)

    @property
    def newest_display(self) -> str:
        return self._format(self.newest_version)

    def __str__(self) -> str:
        """String representation."""
        return f"{self.name} {self.installed_display} -> {self.newest_display}"


@dataclass(frozen=True)
class InstallOutcome:
    """Result of one attempted package installation."""
    package: str
    succeeded: bool
    error: Optional[str] = None

    @property
    def message(self) -> str:
        """Human-readable report line."""
        if self.succeeded:
            return f"{self.package} up to date."
        return f"Error installing {self.package}"


@dataclass(frozen=True)
class InstallationReport:
    """Ordered per-package outcomes of one batch, under a fixed header."""
    outcomes: Tuple[InstallOutcome, ...] = ()
    cleanup_errors: Tuple[str, ...] = ()
    header: str = REPORT_HEADER

    @property
    def lines(self) -> List[str]:
        """Outcome lines, header excluded."""
        return [outcome.message for outcome in self.outcomes]

    @property
    def failed_packages(self) -> List[str]:
        return [o.package for o in self.outcomes if not o.succeeded]

    @property
    def succeeded_packages(self) -> List[str]:
        return [o.package for o in self.outcomes if o.succeeded]

    @property
    def has_failures(self) -> bool:
        return any(not o.succeeded for o in self.outcomes)

    def render(self) -> str:
        """Render the header and one line per outcome."""
        body = self.lines or [NOTHING_TO_UPDATE_MESSAGE]
        return "\n".join([self.header] + body)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "header": self.header,
            "results": [
                {
                    "package": o.package,
                    "succeeded": o.succeeded,
                    "message": o.message,
                    "error": o.error
                }
                for o in self.outcomes
            ],
            "cleanup_errors": list(self.cleanup_errors)
        }


@dataclass
class UpdateCycleResult:
    """Result of an update_now / update_maybe call."""
    status: UpdateStatus
    report: Optional[InstallationReport] = None
    update_day: Optional[int] = None
    duration_sec: float = 0.0
    timestamp: datetime = field(default_factory=datetime.now)

    @property
    def ran(self) -> bool:
        """True if a full update cycle was performed."""
        return self.status == UpdateStatus.COMPLETED

    @property
    def has_failures(self) -> bool:
        return self.report is not None and self.report.has_failures

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "status": self.status.value,
            "report": self.report.to_dict() if self.report else None,
            "update_day": self.update_day,
            "duration_sec": self.duration_sec,
            "timestamp": self.timestamp.isoformat()
        }


@dataclass
class AppConfig:
    """Application configuration."""
    update_interval_days: int = DEFAULT_UPDATE_INTERVAL_DAYS
    delete_old_versions: bool = False
    prompt_before_update: bool = False
    hide_results: bool = False
    excluded_packages: List[str] = field(default_factory=list)
    packages: List[str] = field(default_factory=list)
    before_update_commands: List[str] = field(default_factory=list)
    after_update_commands: List[str] = field(default_factory=list)
    last_update_day_file: Optional[str] = None
    index_url: str = DEFAULT_INDEX_URL
    request_timeout: int = DEFAULT_REQUEST_TIMEOUT
    update_history_enabled: bool = True
    update_history_retention_days: int = DEFAULT_HISTORY_RETENTION_DAYS
    debug_mode: bool = False
    verbose_logging: bool = False
    log_file: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "update_interval_days": self.update_interval_days,
            "delete_old_versions": self.delete_old_versions,
            "prompt_before_update": self.prompt_before_update,
            "hide_results": self.hide_results,
            "excluded_packages": list(self.excluded_packages),
            "packages": list(self.packages),
            "before_update_commands": list(self.before_update_commands),
            "after_update_commands": list(self.after_update_commands),
            "last_update_day_file": self.last_update_day_file,
            "index_url": self.index_url,
            "request_timeout": self.request_timeout,
            "update_history_enabled": self.update_history_enabled,
            "update_history_retention_days": self.update_history_retention_days,
            "debug_mode": self.debug_mode,
            "verbose_logging": self.verbose_logging,
            "log_file": self.log_file
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AppConfig':
        """Create from dictionary."""
        return cls(
            update_interval_days=data.get("update_interval_days", DEFAULT_UPDATE_INTERVAL_DAYS),
            delete_old_versions=data.get("delete_old_versions", False),
            prompt_before_update=data.get("prompt_before_update", False),
            hide_results=data.get("hide_results", False),
            excluded_packages=list(data.get("excluded_packages", [])),
            packages=list(data.get("packages", [])),
            before_update_commands=list(data.get("before_update_commands", [])),
            after_update_commands=list(data.get("after_update_commands", [])),
            last_update_day_file=data.get("last_update_day_file"),
            index_url=data.get("index_url", DEFAULT_INDEX_URL),
            request_timeout=data.get("request_timeout", DEFAULT_REQUEST_TIMEOUT),
            update_history_enabled=data.get("update_history_enabled", True),
            update_history_retention_days=data.get(
                "update_history_retention_days", DEFAULT_HISTORY_RETENTION_DAYS),
            debug_mode=data.get("debug_mode", False),
            verbose_logging=data.get("verbose_logging", False),
            log_file=data.get("log_file")
        )
