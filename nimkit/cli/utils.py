"""
Shared utilities for CLI commands.

Provides common functionality used across multiple CLI commands to
eliminate duplication and ensure consistent behavior.
"""

import logging
import os
import sys
from typing import Any, Dict, Mapping, Optional

from nimkit.core.config import Settings, load_settings
from nimkit.core.exceptions import InvalidVersionError, NimKitError
from nimkit.toolchain.request import InstallRequest

logger = logging.getLogger(__name__)


# ============================================================================
# Settings and Requests
# ============================================================================


def settings_from_args(args, environ: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Resolve settings for a parsed command line.

    Flags that a subcommand does not define are simply absent from args
    and leave the lower-precedence value in place.

    Args:
        args: Parsed arguments namespace
        environ: Environment mapping (default: os.environ)

    Returns:
        Settings

    Raises:
        ConfigError: If the config file or any value is invalid
    """
    overrides: Dict[str, Any] = {
        "install_path": getattr(args, "install_path", None),
        "download_path": getattr(args, "download_path", None),
        "concurrency": getattr(args, "concurrency", None),
    }
    return load_settings(
        config_file=getattr(args, "config", None),
        environ=environ,
        overrides=overrides,
    )


def request_from_args(args, environ: Optional[Mapping[str, str]] = None) -> InstallRequest:
    """
    Build the install request from the VERSION argument or the environment.

    Raises:
        InvalidVersionError: If neither names a version
    """
    environ = os.environ if environ is None else environ
    if getattr(args, "version", None):
        return InstallRequest.parse(args.version)

    request = InstallRequest.from_env(environ)
    if request is None:
        raise InvalidVersionError(
            "No version given (pass VERSION or set ASDF_INSTALL_VERSION)"
        )
    return request


# ============================================================================
# Interaction
# ============================================================================


def confirm_prompt(assume_yes: bool = False):
    """
    Create a confirmation callback.

    Args:
        assume_yes: Answer every prompt with yes

    Returns:
        Callable taking a prompt and returning True to proceed
    """

    def confirm(prompt: str) -> bool:
        if assume_yes:
            logger.info(f"{prompt} [assuming yes]")
            return True
        if not sys.stdin or not sys.stdin.isatty():
            logger.warning(f"{prompt} [no terminal, assuming no]")
            return False
        try:
            answer = input(f"{prompt} [Y/n] ")
        except EOFError:
            return False
        return answer.strip().lower() in ("", "y", "yes")

    return confirm


def report_error(error: NimKitError, file=None) -> int:
    """
    Print a NimKit error the way the installer does and return its exit code.
    """
    file = file or sys.stderr
    logger.debug("Command failed", exc_info=error)
    print(f"[nimkit] {error}", file=file)
    return error.exit_code


def safe_print(message: str, file=None):
    """
    Print message with safe encoding handling for limited consoles.

    Falls back to ASCII-safe characters if the step icons can't be encoded.

    Args:
        message: Message to print
        file: Output file (default: stdout)
    """
    try:
        print(message, file=file)
    except UnicodeEncodeError:
        safe_message = (
            message.replace("✅", "[OK]")
            .replace("❎", "[SKIP]")
            .replace("❌", "[ERROR]")
        )
        print(safe_message, file=file)


__all__ = [
    "settings_from_args",
    "request_from_args",
    "confirm_prompt",
    "report_error",
    "safe_print",
]
