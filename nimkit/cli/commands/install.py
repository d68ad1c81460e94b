"""
Install command.

Installs one Nim version into the install path:

    nimkit install 1.4.2 --install-path ~/.local/nim/1.4.2
    ASDF_INSTALL_TYPE=ref ASDF_INSTALL_VERSION=abc123 nimkit install
"""

import logging

from nimkit.cli.utils import (
    confirm_prompt,
    report_error,
    request_from_args,
    settings_from_args,
)
from nimkit.core.exceptions import NimKitError
from nimkit.toolchain.dependencies import DependencyManager
from nimkit.toolchain.orchestrator import InstallOrchestrator

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the install command.

    Args:
        args: Parsed arguments (version, install_path, download_path,
            concurrency, yes)

    Returns:
        Exit code
    """
    try:
        settings = settings_from_args(args)
        request = request_from_args(args)
    except NimKitError as e:
        return report_error(e)

    logger.debug(f"Installing {request} into {settings.install_path}")
    orchestrator = InstallOrchestrator(
        settings,
        dependencies=DependencyManager(),
        confirm=confirm_prompt(getattr(args, "yes", False)),
    )
    return orchestrator.install(request)
