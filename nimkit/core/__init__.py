"""
Core functionality for NimKit.

This package contains the foundational modules that the install stages
depend on: platform detection, configuration, the build context, step
reporting and the exception hierarchy.
"""

from .exceptions import (
    NimKitError,
    ConfigError,
    InvalidVersionError,
    MissingArtifact,
    NetworkFailure,
    BuildFailure,
    InstallError,
    WrapperVerificationFailure,
    MissingSystemDependency,
    SignalInterrupt,
)

from .platform import (
    OS,
    Arch,
    Libc,
    Platform,
    classify_platform,
    detect_platform,
    clear_platform_cache,
)

from .config import Settings, load_settings
from .context import BuildContext, CancellationToken
from .reporter import StepReporter

__all__ = [
    # Exceptions
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
    # Platform
    "OS",
    "Arch",
    "Libc",
    "Platform",
    "classify_platform",
    "detect_platform",
    "clear_platform_cache",
    # Configuration and run state
    "Settings",
    "load_settings",
    "BuildContext",
    "CancellationToken",
    "StepReporter",
]
