"""
Tests for system dependency checks.
"""

from unittest.mock import patch

import pytest

from nimkit.core.exceptions import MissingSystemDependency
from nimkit.toolchain.dependencies import (
    DependencyManager,
    compiler_package,
    required_dependencies,
)


def which_from(available):
    return lambda name: f"/usr/bin/{name}" if name in available else None


class TestRequiredDependencies:
    """Test dependency lists per distribution."""

    @pytest.mark.parametrize(
        "distro_id,expected",
        [("ubuntu", "build-essential"), ("debian", "build-essential"), ("alpine", "gcc")],
    )
    def test_compiler_package(self, distro_id, expected):
        assert compiler_package(distro_id) == expected

    def test_required(self):
        deps = required_dependencies("ubuntu")
        assert [(d.command, d.package) for d in deps] == [
            ("git", "git"),
            ("gcc", "build-essential"),
        ]

    @patch("distro.id", return_value="Debian")
    def test_detected_distribution(self, mock_id):
        """Test the distribution is detected with distro when not given."""
        assert required_dependencies()[1].package == "build-essential"
        mock_id.assert_called_once()


class TestDependencyManager:
    """Test DependencyManager."""

    def test_nothing_missing(self):
        manager = DependencyManager(which=which_from({"git", "gcc"}), distro_id="fedora")
        confirm_calls = []

        assert manager.ensure(lambda p: confirm_calls.append(p) or True) == []
        assert confirm_calls == []

    def test_package_manager_preference(self):
        """Test brew is preferred over apt-get, apt-get over apk."""
        manager = DependencyManager(which=which_from({"apt-get", "apk", "dnf"}))
        assert manager.package_manager() == "apt-get"

        manager = DependencyManager(which=which_from({"brew", "apt-get"}))
        assert manager.package_manager() == "brew"

    def test_apt_commands(self):
        """Test apt-get updates before installing."""
        manager = DependencyManager(which=which_from({"apt-get"}))

        assert manager.install_commands(["build-essential", "git"]) == [
            ["apt-get", "update", "-q", "-y"],
            ["apt-get", "-qq", "install", "-y", "build-essential", "git"],
        ]

    def test_installs_after_confirmation(self):
        """Test missing packages are installed when the user agrees."""
        ran = []
        manager = DependencyManager(
            which=which_from({"apk", "gcc"}),
            distro_id="alpine",
            runner=lambda args: ran.append(list(args)) or 0,
        )
        prompts = []

        installed = manager.ensure(lambda prompt: prompts.append(prompt) or True)

        assert installed == ["git"]
        assert ran == [["apk", "add", "--update", "git"]]
        assert "git" in prompts[0]

    def test_declined(self):
        """Test declining raises MissingSystemDependency."""
        ran = []
        manager = DependencyManager(
            which=which_from({"apt-get"}),
            distro_id="ubuntu",
            runner=lambda args: ran.append(args) or 0,
        )

        with pytest.raises(MissingSystemDependency) as exc_info:
            manager.ensure(lambda prompt: False)

        assert exc_info.value.missing == ["build-essential", "git"]
        assert ran == []

    def test_no_package_manager(self):
        manager = DependencyManager(which=which_from(set()), distro_id="arch")

        with pytest.raises(MissingSystemDependency, match="package manager"):
            manager.ensure(lambda prompt: True)

    def test_install_failure(self):
        manager = DependencyManager(
            which=which_from({"dnf"}), distro_id="fedora", runner=lambda args: 1
        )

        with pytest.raises(MissingSystemDependency, match="failed"):
            manager.ensure(lambda prompt: True)

    def test_runner_oserror(self):
        def runner(args):
            raise PermissionError("not root")

        manager = DependencyManager(which=which_from({"pacman"}), distro_id="arch", runner=runner)

        with pytest.raises(MissingSystemDependency, match="Could not run pacman"):
            manager.ensure(lambda prompt: True)
