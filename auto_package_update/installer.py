"""
Best-effort batch installation of stale packages.
"""

# SPDX-License-Identifier: GPL-3.0-or-later

from __future__ import annotations

import shutil
from pathlib import Path
from typing import Iterable, List, Optional, Tuple, TYPE_CHECKING

from .models import InstallationReport, InstallOutcome
from .utils.logger import get_logger

if TYPE_CHECKING:
    from .registry import PackageRegistry

logger = get_logger(__name__)


class BatchInstaller:
    """
    Installs packages one by one without letting a single failure stop the batch.

    When ``delete_old_versions`` is set, the directory of each package's
    current version is remembered before installing and removed once the whole
    batch has been attempted.
    """

    def __init__(self, registry: PackageRegistry, delete_old_versions: bool = False) -> None:
        """
        Initialize the installer.

        Args:
            registry: Package registry used to install packages
            delete_old_versions: Remove previous version directories after the batch
        """
        self.registry = registry
        self.delete_old_versions = delete_old_versions
        self.old_version_dirs: List[Tuple[str, Path]] = []

    def install_batch(self, packages: Iterable[str]) -> InstallationReport:
        """
        Attempt to install every package.

        Args:
            packages: Package ids, processed in iteration order

        Returns:
            InstallationReport with one outcome per package
        """
        outcomes: List[InstallOutcome] = []
        cleanup_errors: List[str] = []
        self.old_version_dirs = []

        try:
            for package in packages:
                outcomes.append(self._safe_install(package))

            if self.delete_old_versions:
                cleanup_errors = self._delete_old_version_dirs()
        finally:
            self.old_version_dirs.clear()

        succeeded = sum(1 for o in outcomes if o.succeeded)
        logger.info(f"Batch finished: {succeeded}/{len(outcomes)} package(s) installed")
        return InstallationReport(outcomes=tuple(outcomes), cleanup_errors=tuple(cleanup_errors))

    def _safe_install(self, package: str) -> InstallOutcome:
        try:
            if self.delete_old_versions:
                old_dir = self.registry.old_version_dir(package)
                if old_dir is not None:
                    self.old_version_dirs.append((package, Path(old_dir)))
            self.registry.install(package)
        except Exception as e:
            logger.warning(f"Error installing {package}: {e}")
            return InstallOutcome(package=package, succeeded=False, error=str(e))

        logger.info(f"{package} up to date")
        return InstallOutcome(package=package, succeeded=True)

    def _current_dir(self, package: str) -> Optional[Path]:
        try:
            current = self.registry.old_version_dir(package)
        except Exception as e:
            logger.debug(f"Could not locate current directory of {package}: {e}")
            return None
        return Path(current) if current is not None else None

    def _delete_old_version_dirs(self) -> List[str]:
        errors: List[str] = []
        for package, directory in self.old_version_dirs:
            if not directory.exists():
                logger.debug(f"Old version directory {directory} already gone")
                continue
            # Nothing was upgraded if the package still lives there
            if self._current_dir(package) == directory:
                logger.debug(f"Keeping {directory}: still the installed version of {package}")
                continue
            try:
                shutil.rmtree(directory)
                logger.info(f"Removed old version directory {directory}")
            except OSError as e:
                message = f"Failed to remove {directory}: {e}"
                logger.warning(message)
                errors.append(message)
        return errors
