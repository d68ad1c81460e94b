"""
Install-deps command.

Checks for git and a C compiler and installs whatever is missing with the
system package manager.
"""

import logging

from nimkit.cli.utils import confirm_prompt, report_error, safe_print
from nimkit.core.exceptions import NimKitError
from nimkit.toolchain.dependencies import DependencyManager

logger = logging.getLogger(__name__)


def run(args) -> int:
    manager = DependencyManager()
    try:
        installed = manager.ensure(confirm_prompt(getattr(args, "yes", False)))
    except NimKitError as e:
        return report_error(e)

    if installed:
        safe_print(f"✅ Installed {' '.join(installed)}")
    else:
        safe_print("✅ All dependencies are installed")
    return 0
