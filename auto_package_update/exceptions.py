"""
Custom exceptions for Auto Package Update.
"""

# SPDX-License-Identifier: GPL-3.0-or-later


class AutoPackageUpdateError(Exception):
    """Base exception for all Auto Package Update errors."""

    pass


class ConfigurationError(AutoPackageUpdateError):
    """Raised when configuration is invalid."""

    pass


class PackageManagerError(AutoPackageUpdateError):
    """Raised when package manager operations fail."""

    pass


class NetworkError(PackageManagerError):
    """Raised when package metadata cannot be fetched."""

    pass


class InstallError(PackageManagerError):
    """Raised when a single package fails to install."""

    def __init__(self, message: str, package: str = "", exit_code: int = 0) -> None:
        """Initialize the error."""
        super().__init__(message)
        self.package = package
        self.exit_code = exit_code

    def __str__(self) -> str:
        return f"{self.args[0]} (Package: {self.package}, exit code: {self.exit_code})"


class UpdateInProgressError(AutoPackageUpdateError):
    """Raised when an update cycle is already running."""

    pass
