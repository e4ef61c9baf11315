"""
Update cycle orchestration for Auto Package Update.
"""

# SPDX-License-Identifier: GPL-3.0-or-later

from __future__ import annotations

import shlex
import subprocess
import threading
import time
from datetime import time as time_of_day_type
from typing import Callable, Iterable, List, Optional, Union, TYPE_CHECKING

from .evaluator import UpdateDueEvaluator
from .exceptions import UpdateInProgressError
from .installer import BatchInstaller
from .models import AppConfig, InstallationReport, UpdateCycleResult, UpdateStatus
from .state import LastUpdateStore, today_day_number
from .versions import packages_to_install
from .utils.instance_lock import InstanceAlreadyRunningError, InstanceLock
from .utils.logger import get_logger
from .utils.timer_manager import DailyTimer
from .utils.update_history import UpdateHistoryManager

if TYPE_CHECKING:
    from .registry import PackageRegistry

logger = get_logger(__name__)

Hook = Callable[[], object]


def command_hook(command: str) -> Hook:
    """
    Wrap a shell-style command line as a zero-argument hook.

    The hook raises ``subprocess.CalledProcessError`` if the command fails.
    """
    argv = shlex.split(command)
    if not argv:
        raise ValueError("Hook command is empty")

    def run_command() -> None:
        logger.info(f"Running hook: {command}")
        subprocess.run(argv, check=True)

    run_command.__name__ = f"command_hook({argv[0]})"
    return run_command


class AutoPackageUpdater:
    """
    Runs update cycles against a package registry.

    One instance owns its hook lists, its in-flight guard and its timers.
    """

    def __init__(self, registry: PackageRegistry,
                 config: Optional[AppConfig] = None,
                 store: Optional[LastUpdateStore] = None,
                 before_update_hooks: Optional[Iterable[Hook]] = None,
                 after_update_hooks: Optional[Iterable[Hook]] = None,
                 confirm: Optional[Callable[[], bool]] = None,
                 renderer: Optional[Callable[[InstallationReport], None]] = None,
                 history: Optional[UpdateHistoryManager] = None,
                 instance_lock: Optional[InstanceLock] = None,
                 today: Optional[Callable[[], int]] = None) -> None:
        """
        Initialize the updater.

        Args:
            registry: Package registry to refresh and install from
            config: Application configuration (defaults when omitted)
            store: Last update day store
            before_update_hooks: Callables run before each cycle
            after_update_hooks: Callables run after each cycle
            confirm: Asked before an update when ``prompt_before_update`` is set
            renderer: Receives the finished report unless ``hide_results`` is set
            history: Records each completed cycle when history is enabled
            instance_lock: Optional cross-process lock held during a cycle
            today: Callable returning the current day number
        """
        self.registry = registry
        self.config = config or AppConfig()
        self.store = store or LastUpdateStore(self.config.last_update_day_file)
        self._today = today or today_day_number
        self.evaluator = UpdateDueEvaluator(self.store, self.config.update_interval_days, today=self._today)
        self.installer = BatchInstaller(registry, delete_old_versions=self.config.delete_old_versions)

        self.before_update_hooks: List[Hook] = list(before_update_hooks or [])
        self.after_update_hooks: List[Hook] = list(after_update_hooks or [])
        self.before_update_hooks.extend(command_hook(c) for c in self.config.before_update_commands)
        self.after_update_hooks.extend(command_hook(c) for c in self.config.after_update_commands)

        self.confirm = confirm
        self.renderer = renderer
        self.history = history
        self.instance_lock = instance_lock

        self._in_flight = threading.Lock()
        self.timers: List[DailyTimer] = []

    @property
    def update_in_progress(self) -> bool:
        return self._in_flight.locked()

    def is_update_due(self) -> bool:
        return self.evaluator.is_update_due()

    def update_now(self) -> UpdateCycleResult:
        """
        Run a full update cycle unconditionally.

        Returns:
            UpdateCycleResult; ``busy`` if another cycle is running,
            ``declined`` if the confirmation was refused
        """
        if self.config.prompt_before_update and self.confirm is not None:
            if not self.confirm():
                logger.info("Update declined")
                return UpdateCycleResult(status=UpdateStatus.DECLINED)

        if not self._in_flight.acquire(blocking=False):
            logger.warning("An update is already in progress, skipping")
            return UpdateCycleResult(status=UpdateStatus.BUSY)

        try:
            if self.instance_lock is not None:
                try:
                    self.instance_lock.acquire()
                except InstanceAlreadyRunningError as e:
                    logger.warning(f"Skipping update: {e}")
                    return UpdateCycleResult(status=UpdateStatus.BUSY)
            try:
                return self._run_cycle()
            finally:
                if self.instance_lock is not None:
                    self.instance_lock.release()
        finally:
            self._in_flight.release()

    def _run_cycle(self) -> UpdateCycleResult:
        started = time.monotonic()
        logger.info("Starting package update")

        self._run_hooks(self.before_update_hooks)

        self.registry.refresh()
        packages = packages_to_install(self.registry, excluded=self.config.excluded_packages)
        report = self.installer.install_batch(packages)

        day = self._today()
        self.store.write(day)

        duration = time.monotonic() - started
        if self.history is not None and self.config.update_history_enabled:
            try:
                self.history.add_entry([o.package for o in report.outcomes],
                                       report.failed_packages, duration)
            except OSError as e:
                logger.error(f"Failed to record update history: {e}")

        if not self.config.hide_results and self.renderer is not None:
            self.renderer(report)

        self._run_hooks(self.after_update_hooks)

        logger.info(f"Package update finished in {duration:.1f}s")
        return UpdateCycleResult(
            status=UpdateStatus.COMPLETED,
            report=report,
            update_day=day,
            duration_sec=duration
        )

    @staticmethod
    def _run_hooks(hooks: List[Hook]) -> None:
        for hook in hooks:
            hook()

    def update_maybe(self) -> UpdateCycleResult:
        """Run an update cycle only if one is due."""
        if not self.evaluator.is_update_due():
            logger.info("Packages were updated recently, nothing to do")
            return UpdateCycleResult(status=UpdateStatus.NOT_DUE)
        return self.update_now()

    def require_update_now(self) -> UpdateCycleResult:
        """
        Like update_now, but raise instead of returning a ``busy`` result.

        Raises:
            UpdateInProgressError: If another cycle is running
        """
        result = self.update_now()
        if result.status == UpdateStatus.BUSY:
            raise UpdateInProgressError("An update is already in progress")
        return result

    def update_at_time(self, time_of_day: Union[str, time_of_day_type]) -> DailyTimer:
        """
        Run the gated update every day at ``time_of_day``.

        Args:
            time_of_day: ``"HH:MM"`` or a ``datetime.time``

        Returns:
            The started DailyTimer
        """
        timer = DailyTimer(time_of_day, self.update_maybe, name="package-update")
        self.timers.append(timer)
        return timer.start()

    def cancel_timers(self) -> None:
        """Cancel every timer registered with update_at_time."""
        for timer in self.timers:
            timer.cancel()
        self.timers.clear()
