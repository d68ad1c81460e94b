"""Latest command: the newest stable released version."""

from nimkit.cli.utils import report_error, settings_from_args
from nimkit.core.exceptions import NimKitError
from nimkit.toolchain.versions import VersionResolver


def run(args) -> int:
    try:
        settings = settings_from_args(args)
        version = VersionResolver(settings.source_repo).latest()
    except NimKitError as e:
        return report_error(e)

    print(version)
    return 0
