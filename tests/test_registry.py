"""
Tests for the pip-backed package registry.
"""

import subprocess
import pytest
import requests
from importlib import metadata
from pathlib import Path
from unittest.mock import Mock, patch

from auto_package_update.exceptions import InstallError, NetworkError, PackageManagerError
from auto_package_update.registry import PipRegistry, describe_package, version_tuple
from auto_package_update.versions import packages_to_install


def make_response(status_code=200, payload=None):
    response = Mock()
    response.status_code = status_code
    response.json.return_value = payload if payload is not None else {}
    return response


@pytest.fixture(autouse=True)
def installed_everywhere():
    """Every configured package reports as installed unless a test says otherwise."""
    with patch("auto_package_update.registry.metadata.version", return_value="1.0"):
        yield


def make_registry(packages=("requests", "flask"), responses=None):
    session = Mock()
    responses = responses or {}

    def get(url, timeout):
        for name, response in responses.items():
            if f"/{name}/json" in url:
                return response
        return make_response(404)

    session.get.side_effect = get
    return PipRegistry(packages=list(packages), session=session, python="/usr/bin/python3")


class TestVersionTuple:
    """Test version string conversion."""

    @pytest.mark.parametrize("text,expected", [
        ("2.32.3", (2, 32, 3)),
        ("1.0rc1", (1, 0)),
        ("2024.1", (2024, 1)),
        ("1!2.0", (2, 0)),
        ("1.0.post2", (1, 0)),
    ])
    def test_pep440(self, text, expected):
        assert version_tuple(text) == expected

    def test_loose_fallback(self):
        assert version_tuple("1.2-custom_build") == (1, 2)

    def test_unparseable(self):
        assert version_tuple("latest") is None


class TestPipRegistry:
    """Test PipRegistry behavior."""

    def test_configured_packages_are_canonical(self):
        registry = make_registry(packages=["Flask", "zope_interface"])
        assert registry.active_packages() == ["flask", "zope-interface"]

    def test_configured_but_not_installed_is_not_active(self):
        registry = make_registry(packages=["requests", "not-installed-pkg"], responses={
            "requests": make_response(200, {"info": {"version": "2.0"}}),
            "not-installed-pkg": make_response(200, {"info": {"version": "1.0"}}),
        })

        def version(name):
            if name == "not-installed-pkg":
                raise metadata.PackageNotFoundError(name)
            return "2.0"

        with patch("auto_package_update.registry.metadata.version", side_effect=version):
            assert registry.active_packages() == ["requests"]
            registry.refresh()
            assert packages_to_install(registry) == []
        assert registry.session.get.call_count == 1

    def test_all_distributions_when_unconfigured(self):
        dist = Mock()
        dist.metadata = {"Name": "Some_Package"}
        registry = PipRegistry(session=Mock())
        with patch("auto_package_update.registry.metadata.distributions", return_value=[dist]):
            assert registry.active_packages() == ["some-package"]

    def test_installed_version(self):
        registry = make_registry()
        with patch("auto_package_update.registry.metadata.version", return_value="2.31.0"):
            assert registry.installed_version("requests") == (2, 31, 0)

    def test_installed_version_missing(self):
        registry = make_registry()
        with patch("auto_package_update.registry.metadata.version",
                   side_effect=metadata.PackageNotFoundError("x")):
            assert registry.installed_version("requests") is None

    def test_refresh_populates_snapshot(self):
        registry = make_registry(responses={
            "requests": make_response(200, {"info": {"version": "2.32.3"}}),
            "flask": make_response(200, {"info": {"version": "3.0.0"}}),
        })
        registry.refresh()

        assert registry.newest_version("requests") == (2, 32, 3)
        assert registry.newest_version("Flask") == (3, 0, 0)
        assert registry.newest_version_string("flask") == "3.0.0"

    def test_refresh_unknown_package(self):
        registry = make_registry(responses={
            "requests": make_response(200, {"info": {"version": "2.32.3"}}),
        })
        registry.refresh()
        assert registry.newest_version("flask") is None

    def test_refresh_server_error(self):
        registry = make_registry(responses={"requests": make_response(503)})
        with pytest.raises(NetworkError):
            registry.refresh()

    def test_refresh_connection_error(self):
        registry = make_registry()
        registry.session.get.side_effect = requests.ConnectionError("offline")
        with pytest.raises(NetworkError):
            registry.refresh()

    def test_refresh_malformed_payload(self):
        registry = make_registry(responses={"requests": make_response(200, {"unexpected": 1})})
        with pytest.raises(NetworkError):
            registry.refresh()

    def test_newest_version_before_refresh(self):
        assert make_registry().newest_version("requests") is None

    def test_old_version_dir(self, tmp_path):
        dist_info = tmp_path / "requests-2.31.0.dist-info"
        metadata_file = Mock()
        metadata_file.name = "METADATA"
        metadata_file.parent = Path("requests-2.31.0.dist-info")
        dist = Mock()
        dist.files = [metadata_file]
        dist.locate_file.return_value = dist_info / "METADATA"

        with patch("auto_package_update.registry.metadata.distribution", return_value=dist):
            assert make_registry().old_version_dir("requests") == dist_info

    def test_old_version_dir_not_installed(self):
        with patch("auto_package_update.registry.metadata.distribution",
                   side_effect=metadata.PackageNotFoundError("x")):
            assert make_registry().old_version_dir("requests") is None


class TestPipInstall:
    """Test pip invocation."""

    def test_install_pins_newest_version(self):
        registry = make_registry(responses={
            "requests": make_response(200, {"info": {"version": "2.32.3"}}),
        })
        registry.refresh()

        with patch("auto_package_update.registry.subprocess.run") as mock_run:
            mock_run.return_value = Mock(returncode=0, stdout="ok", stderr="")
            registry.install("requests")

        cmd = mock_run.call_args[0][0]
        assert cmd[:5] == ["/usr/bin/python3", "-m", "pip", "install", "--upgrade"]
        assert cmd[-1] == "requests==2.32.3"

    def test_install_without_snapshot(self):
        with patch("auto_package_update.registry.subprocess.run") as mock_run:
            mock_run.return_value = Mock(returncode=0, stdout="", stderr="")
            make_registry().install("flask")
        assert mock_run.call_args[0][0][-1] == "flask"

    def test_install_failure(self):
        with patch("auto_package_update.registry.subprocess.run") as mock_run:
            mock_run.return_value = Mock(returncode=1, stdout="", stderr="ERROR: no matching distribution")
            with pytest.raises(InstallError) as exc_info:
                make_registry().install("flask")

        assert exc_info.value.exit_code == 1
        assert exc_info.value.package == "flask"
        assert "no matching distribution" in str(exc_info.value)

    def test_install_timeout(self):
        with patch("auto_package_update.registry.subprocess.run",
                   side_effect=subprocess.TimeoutExpired(["pip"], 600)):
            with pytest.raises(InstallError):
                make_registry().install("flask")

    def test_pip_not_runnable(self):
        with patch("auto_package_update.registry.subprocess.run", side_effect=FileNotFoundError("python")):
            with pytest.raises(PackageManagerError):
                make_registry().install("flask")


def test_describe_package():
    registry = Mock()
    registry.installed_version.return_value = (1, 0)
    registry.newest_version.return_value = None
    record = describe_package(registry, "thing")
    assert record.installed_display == "1.0"
    assert record.newest_display == "unknown"
