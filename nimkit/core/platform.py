"""
Platform detection for NimKit.

This module detects the normalized (os, arch, libc) triple used to pick a
Nim binary artifact, and the gcc-triple style suffix used in unofficial
binary tarball names.

Features:
- Operating system detection (Linux, macOS; anything else is kept raw)
- CPU architecture detection, including 32-bit userlands on 64-bit kernels
  and the ARM architecture level, by probing compiler-defined macros
- C library detection (glibc vs musl) from the resolved libc file name
- macOS codename buckets (catalina, bigsur, ...)

Detection never raises: values that cannot be classified are kept as the
raw string, so unusual hosts simply fail to match any binary and fall back
to a source build.

Usage:
    from nimkit.core.platform import detect_platform

    platform_info = detect_platform()
    print(platform_info)              # linux-x86_64-glibc
    print(platform_info.lib_suffix()) # gnu
"""

import functools
import glob
import logging
import os
import platform
import re
import shutil
import subprocess
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Union

logger = logging.getLogger(__name__)


class OS(str, Enum):
    LINUX = "linux"
    MACOS = "macos"


class Arch(str, Enum):
    X86_64 = "x86_64"
    I686 = "i686"
    ARMV5 = "armv5"
    ARMV6 = "armv6"
    ARMV7 = "armv7"
    AARCH64 = "aarch64"
    ARM64 = "arm64"
    POWERPC64LE = "powerpc64le"


class Libc(str, Enum):
    GLIBC = "glibc"
    MUSL = "musl"
    NONE = "none"


# macOS major version (or 10.x minor) -> codename bucket
MACOS_CODENAMES = {
    "10.15": "catalina",
    "11": "bigsur",
    "12": "monterey",
    "13": "ventura",
    "14": "sonoma",
    "15": "sequoia",
}


def _coerce(enum_cls, value: str) -> Union[Enum, str]:
    """Return the enum member for value, or the raw string if unknown."""
    try:
        return enum_cls(value)
    except ValueError:
        return value


def _text(value: Union[Enum, str]) -> str:
    return value.value if isinstance(value, Enum) else value


@dataclass(frozen=True)
class Platform:
    """
    Normalized host platform.

    Attributes:
        os: OS.LINUX, OS.MACOS or the raw lower-cased kernel name
        arch: Arch member or the raw machine string
        libc: Libc member or the raw probe result
        os_release: macOS product version (e.g. '11.2.3'), empty on Linux
    """

    os: Union[OS, str]
    arch: Union[Arch, str]
    libc: Union[Libc, str]
    os_release: str = ""

    def __post_init__(self):
        object.__setattr__(self, "os", _coerce(OS, _text(self.os)))
        object.__setattr__(self, "arch", _coerce(Arch, _text(self.arch)))
        object.__setattr__(self, "libc", _coerce(Libc, _text(self.libc)))

    @property
    def is_linux(self) -> bool:
        return self.os is OS.LINUX

    @property
    def is_macos(self) -> bool:
        return self.os is OS.MACOS

    def macos_codename(self) -> str:
        """Map os_release to a codename bucket ('unknown' if unmapped)."""
        parts = self.os_release.split(".")
        if parts and parts[0] == "10" and len(parts) > 1:
            key = f"10.{parts[1]}"
        else:
            key = parts[0] if parts else ""
        return MACOS_CODENAMES.get(key, "unknown")

    def lib_suffix(self) -> str:
        """
        Get the gcc triple suffix used in unofficial tarball names.

        Returns:
            'gnu', 'musl', 'gnueabihf', 'musleabi', ... on Linux,
            a codename such as 'catalina' on macOS, '' elsewhere.

        Example:
            >>> Platform("linux", "armv7", "musl").lib_suffix()
            'musleabihf'
        """
        if self.is_linux:
            libc = "musl" if self.libc is Libc.MUSL else "gnu"
            if self.arch is Arch.ARMV5:
                return f"{libc}eabi"
            if self.arch in (Arch.ARMV6, Arch.ARMV7):
                return f"{libc}eabihf"
            return libc
        if self.is_macos:
            return self.macos_codename()
        return ""

    def __str__(self) -> str:
        return f"{_text(self.os)}-{_text(self.arch)}-{_text(self.libc)}"


# ============================================================================
# Classification (pure)
# ============================================================================


def classify_platform(
    kernel: str,
    machine: str,
    compiler_macros: Optional[Dict[str, str]] = None,
    libc_name: Optional[str] = None,
    os_release: str = "",
) -> Platform:
    """
    Classify raw host facts into a Platform.

    This is a pure function of its inputs; detect_platform() gathers the
    inputs from the running host.

    Args:
        kernel: Kernel name as reported by uname (e.g. 'Linux', 'Darwin')
        machine: Machine type as reported by uname -m
        compiler_macros: Predefined C compiler macros (name -> value)
        libc_name: Resolved file name of the C library, if found
        os_release: macOS product version

    Returns:
        Platform instance
    """
    macros = compiler_macros or {}
    os_name = _classify_os(kernel)
    arch = _classify_arch(machine, os_name, macros)

    if os_name == OS.MACOS.value:
        libc = Libc.NONE.value
    elif os_name == OS.LINUX.value:
        libc = _classify_libc(libc_name)
    else:
        libc = libc_name or "unknown"

    return Platform(
        os=os_name,
        arch=arch,
        libc=libc,
        os_release=os_release if os_name == OS.MACOS.value else "",
    )


def _classify_os(kernel: str) -> str:
    if kernel == "Darwin":
        return OS.MACOS.value
    return kernel.lower()


def _classify_arch(machine: str, os_name: str, macros: Dict[str, str]) -> str:
    lowered = machine.lower()

    if lowered in ("x86_64", "x64", "amd64"):
        # A 32-bit userland on a 64-bit kernel still reports x86_64
        if macros.get("__amd64") == "1":
            return Arch.X86_64.value
        return Arch.I686.value
    if "86" in lowered:
        return Arch.I686.value
    if "aarch64" in lowered or "arm64" in lowered or lowered in ("armv8b", "armv8l"):
        return Arch.ARM64.value if os_name == OS.MACOS.value else Arch.AARCH64.value
    if lowered.startswith("arm"):
        arm_arch = macros.get("__ARM_ARCH")
        if arm_arch:
            return f"armv{arm_arch}"
        return machine
    if lowered in ("ppc64le", "powerpc64le", "ppc64el", "powerpc64el"):
        return Arch.POWERPC64LE.value
    return machine


def _classify_libc(libc_name: Optional[str]) -> str:
    if not libc_name:
        return "unknown"
    if "musl" in os.path.basename(libc_name).lower():
        return Libc.MUSL.value
    return Libc.GLIBC.value


# ============================================================================
# Host probing
# ============================================================================


@functools.lru_cache(maxsize=1)
def detect_platform() -> Platform:
    """
    Detect the current platform.

    This function is cached - it only runs detection once per process.

    Returns:
        Platform instance
    """
    uname = platform.uname()
    kernel = uname.system
    os_release = ""
    libc_name = None

    if kernel == "Darwin":
        os_release = platform.mac_ver()[0]
    elif kernel == "Linux":
        libc_name = _find_libc()

    info = classify_platform(
        kernel=kernel,
        machine=uname.machine,
        compiler_macros=_compiler_macros(),
        libc_name=libc_name,
        os_release=os_release,
    )
    logger.debug(f"Detected platform: {info} (libc file: {libc_name})")
    return info


def _compiler_macros() -> Dict[str, str]:
    """Read the C compiler's predefined macros (gcc -dM -E -)."""
    try:
        result = subprocess.run(
            ["gcc", "-dM", "-E", "-"],
            input="",
            capture_output=True,
            text=True,
            timeout=10,
        )
    except (OSError, subprocess.SubprocessError) as e:
        logger.debug(f"Could not query compiler macros: {e}")
        return {}

    return parse_compiler_macros(result.stdout)


def parse_compiler_macros(output: str) -> Dict[str, str]:
    """Parse '#define NAME VALUE' lines into a dict."""
    macros = {}
    for line in output.splitlines():
        match = re.match(r"#define\s+(\S+)(?:\s+(.*))?$", line.strip())
        if match:
            macros[match.group(1)] = (match.group(2) or "").strip()
    return macros


LDCONFIG_FALLBACKS = ("/sbin/ldconfig", "/usr/sbin/ldconfig")

LIBC_PATTERNS = (
    "/lib/libc.so.*",
    "/lib*/*/libc.so.*",
    "/usr/lib*/*/libc.so.*",
    "/lib/libc.musl-*",
    "/lib/ld-musl-*",
)


def _find_libc() -> Optional[str]:
    """
    Locate the C library and return its resolved file name.

    Tries the dynamic linker cache first (ldconfig is often outside a
    normal user's PATH), then well-known and multiarch paths, and finally
    asks ``ldd --version`` which flavour it belongs to. In that last case
    the bare flavour name ('musl' or 'glibc') is returned.
    """
    candidates = []
    on_path = shutil.which("ldconfig")
    if on_path:
        candidates.append(on_path)
    candidates.extend(c for c in LDCONFIG_FALLBACKS if c not in candidates)

    for ldconfig in candidates:
        try:
            result = subprocess.run(
                [ldconfig, "-p"], capture_output=True, text=True, timeout=10
            )
        except (OSError, subprocess.SubprocessError) as e:
            logger.debug(f"{ldconfig} unavailable: {e}")
            continue
        for line in result.stdout.splitlines():
            if "libc.so." in line and "=>" in line:
                path = line.split("=>", 1)[1].strip()
                return os.path.realpath(path)

    for pattern in LIBC_PATTERNS:
        matches = sorted(glob.glob(pattern))
        if matches:
            return os.path.realpath(matches[0])

    return _libc_from_ldd()


def _libc_from_ldd() -> Optional[str]:
    """Ask ldd which C library it belongs to."""
    try:
        result = subprocess.run(
            ["ldd", "--version"], capture_output=True, text=True, timeout=5
        )
    except (OSError, subprocess.SubprocessError) as e:
        logger.debug(f"ldd unavailable: {e}")
        return None

    # musl's ldd prints its banner to stderr
    output = (result.stdout + result.stderr).lower()
    if "musl" in output:
        return Libc.MUSL.value
    if "glibc" in output or "gnu libc" in output:
        return Libc.GLIBC.value
    return None


def clear_platform_cache():
    """
    Clear the platform detection cache.

    This forces the next call to detect_platform() to re-detect.
    """
    detect_platform.cache_clear()


__all__ = [
    "OS",
    "Arch",
    "Libc",
    "Platform",
    "classify_platform",
    "detect_platform",
    "parse_compiler_macros",
    "clear_platform_cache",
]
