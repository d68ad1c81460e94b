"""
System dependency checks.

NimKit needs git (ref installs, version listing) and a C compiler (platform
probing, source builds). Missing tools can be installed with the system
package manager after the user confirms; the confirmation is an injected
callback so the check runs without a terminal in tests and CI.
"""

import logging
import shutil
import subprocess
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence

import distro

from nimkit.core.exceptions import MissingSystemDependency

logger = logging.getLogger(__name__)

Confirm = Callable[[str], bool]
Which = Callable[[str], Optional[str]]


@dataclass(frozen=True)
class Dependency:
    """A required executable and the package providing it."""

    command: str
    package: str


# Ordered by preference; each entry is the command sequence run with the
# package names appended to the last command.
PACKAGE_MANAGERS: Dict[str, List[List[str]]] = {
    "brew": [["brew", "install"]],
    "apt-get": [["apt-get", "update", "-q", "-y"], ["apt-get", "-qq", "install", "-y"]],
    "apk": [["apk", "add", "--update"]],
    "pacman": [["pacman", "-Syu", "--noconfirm"]],
    "dnf": [["dnf", "install", "-y"]],
}


def compiler_package(distro_id: str) -> str:
    """Package that provides a C compiler on the given distribution."""
    if distro_id in ("ubuntu", "debian"):
        return "build-essential"
    return "gcc"


def required_dependencies(distro_id: Optional[str] = None) -> List[Dependency]:
    """
    List the tools NimKit needs, with package names for this system.

    Args:
        distro_id: Distribution id (default: detected with distro.id())
    """
    if distro_id is None:
        distro_id = distro.id()
    return [
        Dependency("git", "git"),
        Dependency("gcc", compiler_package(distro_id.lower())),
    ]


class DependencyManager:
    """
    Checks for and installs required system tools.

    Args:
        which: Executable lookup (default: shutil.which)
        distro_id: Distribution id override
        runner: Callable running a command list, returning its exit status
    """

    def __init__(
        self,
        which: Optional[Which] = None,
        distro_id: Optional[str] = None,
        runner: Optional[Callable[[Sequence[str]], int]] = None,
    ):
        self.which = which or shutil.which
        self.distro_id = distro_id
        self.runner = runner or (lambda args: subprocess.run(list(args)).returncode)

    def dependencies(self) -> List[Dependency]:
        return required_dependencies(self.distro_id)

    def missing(self) -> List[Dependency]:
        """Dependencies whose command is not on PATH."""
        return [d for d in self.dependencies() if self.which(d.command) is None]

    def package_manager(self) -> Optional[str]:
        for name in PACKAGE_MANAGERS:
            if self.which(name) is not None:
                return name
        return None

    def install_commands(self, packages: Sequence[str]) -> List[List[str]]:
        """
        Commands installing packages with the system package manager.

        Raises:
            MissingSystemDependency: If no supported package manager exists
        """
        manager = self.package_manager()
        if manager is None:
            raise MissingSystemDependency(packages, "Could not find a package manager")
        commands = [list(c) for c in PACKAGE_MANAGERS[manager]]
        commands[-1].extend(packages)
        return commands

    def ensure(self, confirm: Confirm) -> List[str]:
        """
        Make sure every dependency is present.

        Args:
            confirm: Called with a prompt; returns True to install

        Returns:
            Package names that were installed (empty if nothing was missing)

        Raises:
            MissingSystemDependency: If the user declines or installation fails
        """
        missing = self.missing()
        if not missing:
            logger.debug("All system dependencies are installed")
            return []

        packages = sorted({d.package for d in missing})
        prompt = f"Additional packages are required: {' '.join(packages)}. Install them now?"
        if not confirm(prompt):
            raise MissingSystemDependency(
                packages,
                f"NimKit will not function without {' '.join(packages)}",
            )

        for args in self.install_commands(packages):
            logger.info(f"Running: {' '.join(args)}")
            try:
                status = self.runner(args)
            except OSError as e:
                raise MissingSystemDependency(
                    packages, f"Could not run {args[0]}: {e}"
                ) from e
            if status != 0:
                raise MissingSystemDependency(
                    packages, f"Installing {' '.join(packages)} failed"
                )

        logger.info(f"Installed: {' '.join(packages)}")
        return packages


__all__ = [
    "Dependency",
    "DependencyManager",
    "PACKAGE_MANAGERS",
    "compiler_package",
    "required_dependencies",
]
