"""
Download command.

Fetches the artifact for a version into the download path without building
or installing it. A later install with the same download path reuses it.
"""

from nimkit.cli.utils import report_error, request_from_args, settings_from_args
from nimkit.core.exceptions import NimKitError
from nimkit.toolchain.orchestrator import InstallOrchestrator


def run(args) -> int:
    try:
        settings = settings_from_args(args)
        request = request_from_args(args)
    except NimKitError as e:
        return report_error(e)

    return InstallOrchestrator(settings).download(request)
