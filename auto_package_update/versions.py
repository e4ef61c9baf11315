"""
Version comparison and staleness checks.

Versions are tuples of integers. Tuples of different length compare as if
the shorter one were padded with trailing zeros, so ``(1, 2)`` equals
``(1, 2, 0)``.
"""

# SPDX-License-Identifier: GPL-3.0-or-later

from __future__ import annotations

import re
from itertools import zip_longest
from typing import Iterable, List, Optional, TYPE_CHECKING

from .models import VersionTuple
from .utils.logger import get_logger

if TYPE_CHECKING:
    from .registry import PackageRegistry

logger = get_logger(__name__)

_NUMERIC_PREFIX = re.compile(r"^\d+")


def parse_version(version: Optional[str]) -> Optional[VersionTuple]:
    """
    Turn a version string into an integer tuple.

    Leading ``v`` is ignored and parsing stops at the first segment without a
    numeric prefix, so ``"2.1.0rc1"`` gives ``(2, 1, 0)``.

    Returns:
        Tuple of ints, or None if the string has no leading number
    """
    version = (version or "").strip()
    if version[:1] in {"v", "V"}:
        version = version[1:]
    parts: List[int] = []
    for chunk in re.split(r"[.\-_+]", version):
        match = _NUMERIC_PREFIX.match(chunk)
        if not match:
            break
        parts.append(int(match.group(0)))
        if match.end() != len(chunk):
            break
    return tuple(parts) if parts else None


def compare_versions(left: VersionTuple, right: VersionTuple) -> int:
    """Return -1, 0 or 1 as ``left`` is lower, equal or higher than ``right``."""
    for a, b in zip_longest(left, right, fillvalue=0):
        if a != b:
            return -1 if a < b else 1
    return 0


def version_le(left: VersionTuple, right: VersionTuple) -> bool:
    """True if ``left`` <= ``right``."""
    return compare_versions(left, right) <= 0


def is_up_to_date(registry: PackageRegistry, package: str) -> bool:
    """
    Check whether an installed package is at the newest known version.

    A package that is not installed or has no registry entry is never
    up to date.
    """
    installed = registry.installed_version(package)
    newest = registry.newest_version(package)
    if installed is None or newest is None:
        return False
    return version_le(newest, installed)


def packages_to_install(registry: PackageRegistry,
                        excluded: Iterable[str] = ()) -> List[str]:
    """
    Collect the active packages that are not up to date.

    Args:
        registry: Package registry
        excluded: Packages that must never be updated

    Returns:
        De-duplicated package ids in first-seen order
    """
    skip = set(excluded)
    stale: List[str] = []
    seen = set()
    for package in registry.active_packages():
        if package in seen:
            continue
        seen.add(package)
        if package in skip:
            logger.debug(f"Skipping excluded package {package}")
            continue
        if not is_up_to_date(registry, package):
            stale.append(package)

    logger.info(f"{len(stale)} of {len(seen)} package(s) need updating")
    return stale
