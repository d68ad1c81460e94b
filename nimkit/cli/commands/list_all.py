"""List-all command: every released version, oldest first, on one line."""

from nimkit.cli.utils import report_error, settings_from_args
from nimkit.core.exceptions import NimKitError
from nimkit.toolchain.versions import VersionResolver


def run(args) -> int:
    try:
        settings = settings_from_args(args)
        versions = VersionResolver(settings.source_repo).list_all()
    except NimKitError as e:
        return report_error(e)

    print(" ".join(versions))
    return 0
