"""
Tests for data models.
"""

from datetime import datetime

from auto_package_update.models import (
    AppConfig, InstallOutcome, InstallationReport, PackageRecord,
    UpdateCycleResult, UpdateStatus
)


class TestPackageRecord:
    """Test PackageRecord display helpers."""

    def test_display(self):
        record = PackageRecord("requests", (2, 31, 0), (2, 32, 3))
        assert str(record) == "requests 2.31.0 -> 2.32.3"

    def test_unknown_versions(self):
        record = PackageRecord("ghost")
        assert record.installed_display == "unknown"
        assert record.newest_display == "unknown"


class TestInstallationReport:
    """Test report lines and serialization."""

    def test_messages(self):
        assert InstallOutcome("a", True).message == "a up to date."
        assert InstallOutcome("b", False, "x").message == "Error installing b"

    def test_to_dict(self):
        report = InstallationReport(
            outcomes=(InstallOutcome("a", True), InstallOutcome("b", False, "boom")),
            cleanup_errors=("Failed to remove /x: busy",),
        )
        data = report.to_dict()
        assert data["header"] == "[PACKAGES UPDATED]:"
        assert [r["package"] for r in data["results"]] == ["a", "b"]
        assert data["results"][1]["error"] == "boom"
        assert data["cleanup_errors"] == ["Failed to remove /x: busy"]


class TestUpdateCycleResult:
    """Test cycle result helpers."""

    def test_not_run(self):
        result = UpdateCycleResult(status=UpdateStatus.NOT_DUE)
        assert result.ran is False
        assert result.has_failures is False
        assert result.to_dict()["report"] is None

    def test_completed_with_failures(self):
        report = InstallationReport(outcomes=(InstallOutcome("a", False),))
        result = UpdateCycleResult(status=UpdateStatus.COMPLETED, report=report,
                                   update_day=5, timestamp=datetime(2024, 1, 2, 3, 4, 5))
        assert result.ran is True
        assert result.has_failures is True
        data = result.to_dict()
        assert data["status"] == "completed"
        assert data["timestamp"] == "2024-01-02T03:04:05"


class TestAppConfig:
    """Test AppConfig serialization."""

    def test_defaults(self):
        config = AppConfig()
        assert config.update_interval_days == 7
        assert config.delete_old_versions is False
        assert config.prompt_before_update is False
        assert config.hide_results is False

    def test_round_trip(self):
        config = AppConfig(update_interval_days=3, excluded_packages=["pip"])
        assert AppConfig.from_dict(config.to_dict()) == config
