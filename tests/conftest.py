"""
Shared pytest fixtures.
"""

import pytest
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set, Tuple

from auto_package_update.models import AppConfig
from auto_package_update.state import LastUpdateStore


class FakeRegistry:
    """In-memory package registry for tests."""

    def __init__(self, installed: Optional[Dict[str, Tuple[int, ...]]] = None,
                 newest: Optional[Dict[str, Tuple[int, ...]]] = None,
                 active: Optional[Iterable[str]] = None,
                 failing: Iterable[str] = (),
                 dirs_root: Optional[Path] = None):
        self.installed = dict(installed or {})
        self.newest = dict(newest or {})
        self._active = list(active) if active is not None else list(self.installed)
        self.failing: Set[str] = set(failing)
        self.dirs_root = dirs_root
        self.refresh_count = 0
        self.install_calls: List[str] = []

    def active_packages(self) -> List[str]:
        return list(self._active)

    def refresh(self) -> None:
        self.refresh_count += 1

    def installed_version(self, package):
        return self.installed.get(package)

    def newest_version(self, package):
        return self.newest.get(package)

    def install(self, package: str) -> None:
        self.install_calls.append(package)
        if package in self.failing:
            raise RuntimeError(f"cannot install {package}")
        if package in self.newest:
            self.installed[package] = self.newest[package]
        if self.dirs_root is not None:
            self.version_dir(package).mkdir(parents=True, exist_ok=True)

    def version_dir(self, package: str) -> Path:
        version = self.installed.get(package, (0,))
        label = ".".join(str(p) for p in version)
        return self.dirs_root / f"{package}-{label}"  # type: ignore[operator]

    def old_version_dir(self, package: str) -> Optional[Path]:
        if self.dirs_root is None or package not in self.installed:
            return None
        return self.version_dir(package)


@pytest.fixture
def fake_registry():
    """Registry with one current and two stale packages."""
    return FakeRegistry(
        installed={"alpha": (1, 0), "beta": (2, 0), "gamma": (3, 1)},
        newest={"alpha": (1, 0, 0), "beta": (2, 1), "gamma": (3, 2)},
    )


@pytest.fixture
def state_path(tmp_path):
    return tmp_path / "state" / ".last-package-update-day"


@pytest.fixture
def store(state_path):
    return LastUpdateStore(state_path)


@pytest.fixture
def app_config(state_path):
    return AppConfig(last_update_day_file=str(state_path))


@pytest.fixture
def isolated_home(tmp_path, monkeypatch):
    """Point HOME at a temporary directory so default paths stay inside it."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    return home
