"""
Nim toolchain acquisition for NimKit.

This module provides functionality for:
- Version listing and ordering
- Choosing an official binary, unofficial binary or source artifact
- Downloading and unpacking artifacts
- Bootstrapping Nim from source
- Installing the final tree and wrapping nimble
"""

from nimkit.toolchain.request import InstallRequest, RequestKind
from nimkit.toolchain.versions import Version, VersionResolver, sort_versions
from nimkit.toolchain.locator import ArtifactKind, ArtifactLocator, ArtifactSource
from nimkit.toolchain.downloader import Downloader
from nimkit.toolchain.builder import Builder, has_prebuilt_binaries
from nimkit.toolchain.installer import Installer, render_wrapper, supports_nim_flag
from nimkit.toolchain.dependencies import DependencyManager
from nimkit.toolchain.orchestrator import InstallOrchestrator

__all__ = [
    "InstallRequest",
    "RequestKind",
    "Version",
    "VersionResolver",
    "sort_versions",
    "ArtifactKind",
    "ArtifactLocator",
    "ArtifactSource",
    "Downloader",
    "Builder",
    "has_prebuilt_binaries",
    "Installer",
    "render_wrapper",
    "supports_nim_flag",
    "DependencyManager",
    "InstallOrchestrator",
]
