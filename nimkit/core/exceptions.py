"""
Centralized exception hierarchy for NimKit.

Every failure that can abort an install derives from NimKitError. Only
MissingArtifact is ever absorbed (it triggers the binary-to-source fallback);
everything else unwinds to the orchestrator, which dumps the build log.
"""

import signal
from typing import Iterable


# ============================================================================
# Base Exceptions
# ============================================================================


class NimKitError(Exception):
    """Base exception for all NimKit errors."""

    exit_code = 1


class ConfigError(NimKitError):
    """Invalid configuration value or unreadable configuration file."""

    pass


# ============================================================================
# Resolution Exceptions
# ============================================================================


class InvalidVersionError(NimKitError):
    """Invalid version string or version specifier."""

    pass


class MissingArtifact(NimKitError):
    """No binary artifact exists for the requested version and platform."""

    pass


# ============================================================================
# Stage Failures
# ============================================================================


class NetworkFailure(NimKitError):
    """Fetching, cloning or unpacking an artifact failed."""

    pass


class BuildFailure(NimKitError):
    """A compile stage exited with a non-zero status."""

    pass


class InstallError(NimKitError):
    """Laying out the installation tree failed."""

    pass


class WrapperVerificationFailure(InstallError):
    """The generated nimble wrapper could not refresh the package index."""

    pass


class MissingSystemDependency(NimKitError):
    """Required system tools are absent and were not installed."""

    def __init__(self, missing: Iterable[str], message: str = ""):
        self.missing = list(missing)
        super().__init__(
            message or f"Required packages are missing: {' '.join(self.missing)}"
        )


# ============================================================================
# Cancellation
# ============================================================================


class SignalInterrupt(NimKitError):
    """The install was interrupted by SIGINT or SIGTERM."""

    def __init__(self, signum: int):
        self.signum = int(signum)
        try:
            name = signal.Signals(self.signum).name
        except ValueError:
            name = f"signal {self.signum}"
        super().__init__(f"Interrupted by {name}")

    @property
    def exit_code(self) -> int:
        return 128 + self.signum


__all__ = [
    "NimKitError",
    "ConfigError",
    "InvalidVersionError",
    "MissingArtifact",
    "NetworkFailure",
    "BuildFailure",
    "InstallError",
    "WrapperVerificationFailure",
    "MissingSystemDependency",
    "SignalInterrupt",
]
