"""
Package registry backends.

The update core only talks to a :class:`PackageRegistry`. ``PipRegistry``
drives pip for the running Python environment and reads newest versions from
a PyPI-compatible JSON API.
"""

# SPDX-License-Identifier: GPL-3.0-or-later

from __future__ import annotations

import subprocess
import sys
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from importlib import metadata
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Protocol

import requests
from packaging.utils import canonicalize_name
from packaging.version import InvalidVersion, Version
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .constants import (
    APP_USER_AGENT, DEFAULT_INDEX_URL, DEFAULT_REQUEST_TIMEOUT,
    MAX_REFRESH_WORKERS, PIP_INSTALL_TIMEOUT
)
from .exceptions import InstallError, NetworkError, PackageManagerError
from .models import PackageRecord, VersionTuple
from .versions import parse_version
from .utils.logger import get_logger

logger = get_logger(__name__)


class PackageRegistry(Protocol):
    """Capabilities the updater needs from a package manager."""

    def active_packages(self) -> Iterable[str]:
        """Ids of the packages that are managed (may repeat)."""
        ...

    def refresh(self) -> None:
        """Refresh the snapshot of newest known versions."""
        ...

    def installed_version(self, package: str) -> Optional[VersionTuple]:
        ...

    def newest_version(self, package: str) -> Optional[VersionTuple]:
        ...

    def install(self, package: str) -> None:
        """Install the newest known version. Raises on failure."""
        ...

    def old_version_dir(self, package: str) -> Optional[Path]:
        """Directory holding the currently installed version, if any."""
        ...


def describe_package(registry: PackageRegistry, package: str) -> PackageRecord:
    """Build a PackageRecord from whatever the registry knows."""
    return PackageRecord(
        name=package,
        installed_version=registry.installed_version(package),
        newest_version=registry.newest_version(package)
    )


def version_tuple(version: str) -> Optional[VersionTuple]:
    """Release tuple of a PEP 440 version, falling back to loose parsing."""
    try:
        return tuple(Version(version).release)
    except InvalidVersion:
        return parse_version(version)


class PipRegistry:
    """Registry backed by pip and the PyPI JSON API."""

    def __init__(self, packages: Optional[Iterable[str]] = None,
                 index_url: str = DEFAULT_INDEX_URL,
                 timeout: int = DEFAULT_REQUEST_TIMEOUT,
                 python: Optional[str] = None,
                 session: Optional[requests.Session] = None) -> None:
        """
        Initialize the registry.

        Args:
            packages: Managed packages (None or empty means every installed distribution)
            index_url: Base URL of a PyPI-compatible JSON API
            timeout: Request timeout in seconds
            python: Interpreter whose pip is used (defaults to the running one)
            session: Optional requests session
        """
        self.packages = [canonicalize_name(p) for p in (packages or [])]
        self.index_url = index_url.rstrip('/')
        self.timeout = timeout
        self.python = python or sys.executable
        self.session = session or self._create_session()
        self._snapshot: Dict[str, str] = {}
        self._snapshot_lock = threading.Lock()

        logger.debug(f"Initialized PipRegistry for {self.python} using {self.index_url}")

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        session.headers.update({
            'User-Agent': APP_USER_AGENT,
            'Accept': 'application/json',
        })

        retry_strategy = Retry(
            total=2,
            connect=2,
            read=1,
            status=1,
            status_forcelist=[429, 500, 502, 503, 504],
            backoff_factor=0.5,
            allowed_methods=["GET", "HEAD"],
            raise_on_status=False,
        )
        adapter = HTTPAdapter(
            max_retries=retry_strategy,
            pool_connections=MAX_REFRESH_WORKERS,
            pool_maxsize=MAX_REFRESH_WORKERS,
        )
        session.mount("http://", adapter)
        session.mount("https://", adapter)
        return session

    # -- installed state --------------------------------------------------

    def active_packages(self) -> List[str]:
        if self.packages:
            active = []
            for package in self.packages:
                if self.installed_version(package) is None:
                    logger.debug(f"Skipping {package}: not installed")
                    continue
                active.append(package)
            return active
        names = []
        for dist in metadata.distributions():
            name = dist.metadata['Name']
            if name:
                names.append(canonicalize_name(name))
        return names

    def installed_version(self, package: str) -> Optional[VersionTuple]:
        try:
            return version_tuple(metadata.version(package))
        except metadata.PackageNotFoundError:
            return None

    def old_version_dir(self, package: str) -> Optional[Path]:
        """Locate the ``.dist-info`` directory of the installed distribution."""
        try:
            dist = metadata.distribution(package)
        except metadata.PackageNotFoundError:
            return None
        for file in dist.files or []:
            if file.name == 'METADATA' and file.parent.name.endswith('.dist-info'):
                return Path(str(dist.locate_file(file))).parent
        return None

    # -- index snapshot ---------------------------------------------------

    def newest_version(self, package: str) -> Optional[VersionTuple]:
        with self._snapshot_lock:
            raw = self._snapshot.get(canonicalize_name(package))
        if raw is None:
            return None
        return version_tuple(raw)

    def newest_version_string(self, package: str) -> Optional[str]:
        with self._snapshot_lock:
            return self._snapshot.get(canonicalize_name(package))

    def _fetch_latest(self, package: str) -> Optional[str]:
        url = f"{self.index_url}/{package}/json"
        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            raise NetworkError(f"Failed to query {url}: {e}")

        if response.status_code == 404:
            logger.debug(f"{package} is not on the index")
            return None
        if response.status_code != 200:
            raise NetworkError(f"Index returned HTTP {response.status_code} for {package}")

        try:
            return response.json()["info"]["version"]
        except (ValueError, KeyError, TypeError) as e:
            raise NetworkError(f"Malformed index response for {package}: {e}")

    def refresh(self) -> None:
        """
        Fetch the newest version of every active package.

        Raises:
            NetworkError: If the index cannot be queried
        """
        packages = list(dict.fromkeys(self.active_packages()))
        logger.info(f"Refreshing index data for {len(packages)} package(s)")

        snapshot: Dict[str, str] = {}
        if packages:
            max_workers = min(len(packages), MAX_REFRESH_WORKERS)
            with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="Refresh") as executor:
                future_to_package = {
                    executor.submit(self._fetch_latest, package): package
                    for package in packages
                }
                for future in as_completed(future_to_package):
                    package = future_to_package[future]
                    latest = future.result()
                    if latest:
                        snapshot[package] = latest

        with self._snapshot_lock:
            self._snapshot = snapshot
        logger.info(f"Index data refreshed: {len(snapshot)} package(s) known")

    # -- installation -----------------------------------------------------

    def install(self, package: str) -> None:
        """
        Install the newest known version with pip.

        Raises:
            InstallError: If pip exits with a non-zero status
        """
        latest = self.newest_version_string(package)
        requirement = f"{package}=={latest}" if latest else package
        cmd = [self.python, "-m", "pip", "install", "--upgrade",
               "--disable-pip-version-check", "--no-input", requirement]

        logger.info(f"Installing {requirement}")
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                check=False,
                timeout=PIP_INSTALL_TIMEOUT
            )
        except subprocess.TimeoutExpired:
            raise InstallError("pip timed out", package=package, exit_code=-1)
        except OSError as e:
            raise PackageManagerError(f"Failed to run pip: {e}")

        if result.returncode != 0:
            tail = (result.stderr or result.stdout or "").strip().splitlines()[-5:]
            raise InstallError(
                "pip install failed: " + " | ".join(tail),
                package=package,
                exit_code=result.returncode
            )

        logger.debug(f"pip output for {package}: {result.stdout.strip()[-500:]}")
