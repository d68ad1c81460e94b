"""
Tests for platform detection module.
"""

import subprocess
from unittest.mock import MagicMock, patch

import pytest

from nimkit.core.platform import (
    OS,
    Arch,
    Libc,
    Platform,
    _find_libc,
    classify_platform,
    clear_platform_cache,
    detect_platform,
    parse_compiler_macros,
)

AMD64 = {"__amd64": "1"}


class TestPlatform:
    """Test Platform dataclass."""

    def test_coerces_known_values(self):
        """Test known strings become enum members."""
        info = Platform("linux", "x86_64", "glibc")
        assert info.os is OS.LINUX
        assert info.arch is Arch.X86_64
        assert info.libc is Libc.GLIBC

    def test_keeps_unknown_values(self):
        """Test unknown strings are kept as-is."""
        info = Platform("freebsd", "riscv64", "unknown")
        assert info.os == "freebsd"
        assert info.arch == "riscv64"
        assert str(info) == "freebsd-riscv64-unknown"

    def test_str(self):
        """Test string representation."""
        assert str(Platform("linux", "aarch64", "musl")) == "linux-aarch64-musl"

    def test_frozen(self):
        """Test Platform is immutable."""
        info = Platform("linux", "x86_64", "glibc")
        with pytest.raises(AttributeError):
            info.arch = "i686"


class TestLibSuffix:
    """Test gcc triple suffixes."""

    @pytest.mark.parametrize(
        "arch,libc,expected",
        [
            ("x86_64", "glibc", "gnu"),
            ("i686", "musl", "musl"),
            ("aarch64", "glibc", "gnu"),
            ("armv5", "glibc", "gnueabi"),
            ("armv5", "musl", "musleabi"),
            ("armv6", "glibc", "gnueabihf"),
            ("armv7", "musl", "musleabihf"),
            ("powerpc64le", "glibc", "gnu"),
        ],
    )
    def test_linux_suffixes(self, arch, libc, expected):
        """Test Linux suffixes combine libc and ARM ABI."""
        assert Platform("linux", arch, libc).lib_suffix() == expected

    @pytest.mark.parametrize(
        "release,expected",
        [
            ("10.15.7", "catalina"),
            ("11.2.3", "bigsur"),
            ("12.0", "monterey"),
            ("13.4.1", "ventura"),
            ("14.1", "sonoma"),
            ("15.0", "sequoia"),
            ("10.14.6", "unknown"),
            ("", "unknown"),
        ],
    )
    def test_macos_codenames(self, release, expected):
        """Test macOS suffix is the codename bucket."""
        info = Platform("macos", "arm64", "none", os_release=release)
        assert info.lib_suffix() == expected

    def test_other_os_has_no_suffix(self):
        """Test unsupported OS yields empty suffix."""
        assert Platform("freebsd", "x86_64", "unknown").lib_suffix() == ""


class TestClassifyPlatform:
    """Test pure classification of host facts."""

    def test_linux_x86_64_glibc(self):
        """Test 64-bit glibc Linux."""
        info = classify_platform(
            "Linux", "x86_64", AMD64, libc_name="/usr/lib/x86_64-linux-gnu/libc.so.6"
        )
        assert info == Platform("linux", "x86_64", "glibc")

    def test_32bit_userland_on_64bit_kernel(self):
        """Test x86_64 kernel without __amd64 is i686."""
        info = classify_platform("Linux", "x86_64", {}, libc_name="libc-2.31.so")
        assert info.arch is Arch.I686

    def test_i686(self):
        """Test 32-bit machine names."""
        assert classify_platform("Linux", "i686", {}, "libc.so.6").arch is Arch.I686

    def test_aarch64_linux(self):
        """Test aarch64 stays aarch64 on Linux."""
        info = classify_platform("Linux", "aarch64", {}, "ld-musl-aarch64.so.1")
        assert info.arch is Arch.AARCH64
        assert info.libc is Libc.MUSL

    def test_arm_uses_compiler_arch_level(self):
        """Test ARM level comes from __ARM_ARCH."""
        info = classify_platform("Linux", "armv7l", {"__ARM_ARCH": "7"}, "libc.so.6")
        assert info.arch is Arch.ARMV7
        assert info.lib_suffix() == "gnueabihf"

    def test_arm_without_macro_keeps_machine(self):
        """Test ARM without the compiler macro keeps the raw machine."""
        info = classify_platform("Linux", "armv7l", {}, "libc.so.6")
        assert info.arch == "armv7l"

    def test_musl_detected_from_file_name(self):
        """Test musl detection from resolved libc name."""
        info = classify_platform("Linux", "x86_64", AMD64, "/lib/libc.musl-x86_64.so.1")
        assert info.libc is Libc.MUSL

    def test_missing_libc_is_unknown(self):
        """Test missing libc probe result."""
        info = classify_platform("Linux", "x86_64", AMD64, None)
        assert info.libc == "unknown"

    def test_darwin(self):
        """Test macOS on Apple silicon."""
        info = classify_platform("Darwin", "arm64", {}, os_release="11.2.3")
        assert info.os is OS.MACOS
        assert info.arch is Arch.ARM64
        assert info.libc is Libc.NONE
        assert info.lib_suffix() == "bigsur"

    def test_darwin_intel(self):
        """Test macOS on Intel."""
        info = classify_platform("Darwin", "x86_64", AMD64, os_release="10.15.7")
        assert str(info) == "macos-x86_64-none"

    def test_powerpc64le(self):
        """Test ppc64le normalization."""
        info = classify_platform("Linux", "ppc64le", {}, "libc.so.6")
        assert info.arch is Arch.POWERPC64LE

    def test_other_kernel_is_lowercased(self):
        """Test unknown kernels are kept lower-cased."""
        info = classify_platform("FreeBSD", "amd64", AMD64)
        assert info.os == "freebsd"
        assert info.arch is Arch.X86_64


class TestCompilerMacros:
    """Test compiler macro parsing."""

    def test_parse(self):
        """Test #define lines are parsed."""
        output = "#define __amd64 1\n#define __linux__ 1\n#define __VERSION__ \"12.2.0\"\n#define EMPTY\n"
        macros = parse_compiler_macros(output)
        assert macros["__amd64"] == "1"
        assert macros["__VERSION__"] == '"12.2.0"'
        assert macros["EMPTY"] == ""

    def test_ignores_other_lines(self):
        """Test non-define lines are ignored."""
        assert parse_compiler_macros("garbage\n\n") == {}


class TestDetection:
    """Test host probing."""

    def setup_method(self):
        clear_platform_cache()

    def teardown_method(self):
        clear_platform_cache()

    @patch("nimkit.core.platform._find_libc", return_value="/lib/ld-musl-x86_64.so.1")
    @patch("nimkit.core.platform._compiler_macros", return_value={"__amd64": "1"})
    @patch("platform.uname")
    def test_detect_linux(self, mock_uname, mock_macros, mock_libc):
        """Test detection gathers uname, macros and libc."""
        mock_uname.return_value = MagicMock(system="Linux", machine="x86_64")

        info = detect_platform()

        assert info == Platform("linux", "x86_64", "musl")
        mock_libc.assert_called_once()

    @patch("nimkit.core.platform._compiler_macros", return_value={})
    @patch("platform.mac_ver", return_value=("12.6", ("", "", ""), "arm64"))
    @patch("platform.uname")
    def test_detect_macos(self, mock_uname, mock_mac_ver, mock_macros):
        """Test macOS release is read from mac_ver."""
        mock_uname.return_value = MagicMock(system="Darwin", machine="arm64")

        info = detect_platform()

        assert info.lib_suffix() == "monterey"

    @patch("nimkit.core.platform._find_libc", return_value="libc.so.6")
    @patch("nimkit.core.platform._compiler_macros", return_value={"__amd64": "1"})
    @patch("platform.uname")
    def test_detection_is_cached(self, mock_uname, mock_macros, mock_libc):
        """Test detection runs once per process."""
        mock_uname.return_value = MagicMock(system="Linux", machine="x86_64")

        assert detect_platform() is detect_platform()
        assert mock_uname.call_count == 1

    @patch("subprocess.run")
    def test_find_libc_from_ldconfig(self, mock_run):
        """Test libc is located via the linker cache."""
        mock_run.return_value = subprocess.CompletedProcess(
            args=["ldconfig", "-p"],
            returncode=0,
            stdout=(
                "1234 libs found in cache\n"
                "\tlibc.so.6 (libc6,x86-64) => /nonexistent/lib/libc.so.6\n"
            ),
            stderr="",
        )

        assert _find_libc() == "/nonexistent/lib/libc.so.6"

    @patch("subprocess.run")
    @patch("shutil.which", return_value=None)
    def test_find_libc_ldconfig_outside_path(self, mock_which, mock_run):
        """Test sbin ldconfig is used when ldconfig is not on PATH."""
        listing = subprocess.CompletedProcess(
            args=["/usr/sbin/ldconfig", "-p"],
            returncode=0,
            stdout="\tlibc.so.6 (libc6,x86-64) => /nonexistent/x86_64-linux-gnu/libc.so.6\n",
            stderr="",
        )

        def run(cmd, **kwargs):
            if cmd[0] == "/sbin/ldconfig":
                raise FileNotFoundError(cmd[0])
            return listing

        mock_run.side_effect = run

        assert _find_libc() == "/nonexistent/x86_64-linux-gnu/libc.so.6"
        called = [c.args[0][0] for c in mock_run.call_args_list]
        assert called == ["/sbin/ldconfig", "/usr/sbin/ldconfig"]

    @patch("glob.glob")
    @patch("subprocess.run", side_effect=FileNotFoundError("ldconfig"))
    @patch("shutil.which", return_value=None)
    def test_find_libc_multiarch_glob(self, mock_which, mock_run, mock_glob):
        """Test Debian multiarch locations are searched."""
        mock_glob.side_effect = lambda pattern: (
            ["/nonexistent/lib/x86_64-linux-gnu/libc.so.6"]
            if pattern == "/lib*/*/libc.so.*"
            else []
        )

        assert _find_libc() == "/nonexistent/lib/x86_64-linux-gnu/libc.so.6"

    @patch("glob.glob", return_value=[])
    @patch("subprocess.run")
    @patch("shutil.which", return_value=None)
    def test_find_libc_from_ldd(self, mock_which, mock_run, mock_glob):
        """Test ldd --version decides when no libc file is found."""

        def run(cmd, **kwargs):
            if cmd[0] != "ldd":
                raise FileNotFoundError(cmd[0])
            return subprocess.CompletedProcess(
                args=cmd,
                returncode=1,
                stdout="",
                stderr="musl libc (x86_64)\nVersion 1.2.4\n",
            )

        mock_run.side_effect = run

        assert _find_libc() == "musl"

    @patch("glob.glob", return_value=[])
    @patch("subprocess.run")
    @patch("shutil.which", return_value=None)
    def test_glibc_host_without_ldconfig(self, mock_which, mock_run, mock_glob):
        """Test a glibc host classifies as glibc with ldconfig off PATH."""

        def run(cmd, **kwargs):
            if cmd[0] != "ldd":
                raise FileNotFoundError(cmd[0])
            return subprocess.CompletedProcess(
                args=cmd,
                returncode=0,
                stdout="ldd (Debian GLIBC 2.36-9+deb12u4) 2.36\n",
                stderr="",
            )

        mock_run.side_effect = run

        info = classify_platform(
            kernel="Linux",
            machine="x86_64",
            compiler_macros=AMD64,
            libc_name=_find_libc(),
        )

        assert info == Platform("linux", "x86_64", "glibc")
        assert info.lib_suffix() == "gnu"
