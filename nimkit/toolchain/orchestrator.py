"""
Install orchestration.

Runs the stages of one install in order:

    platform -> resolve -> locate -> download -> build (if needed) -> install

inside a single BuildContext. Any fatal error marks the running step as
failed, dumps the build log to stderr and returns a non-zero exit code; the
context then removes every temporary resource, and nothing is left at the
final install path.
"""

import logging
import sys
from pathlib import Path
from typing import Callable, Mapping, Optional, TextIO

import requests

from nimkit.core.config import Settings
from nimkit.core.context import BuildContext
from nimkit.core.exceptions import ConfigError, InstallError, NimKitError
from nimkit.core.filesystem import FilesystemError, is_empty_directory
from nimkit.core.platform import Platform, detect_platform
from nimkit.core.reporter import StepReporter
from nimkit.toolchain.builder import Builder, has_prebuilt_binaries
from nimkit.toolchain.dependencies import DependencyManager
from nimkit.toolchain.downloader import Downloader
from nimkit.toolchain.installer import Installer
from nimkit.toolchain.locator import ArtifactLocator, ArtifactSource
from nimkit.toolchain.request import InstallRequest, RequestKind
from nimkit.toolchain.versions import VersionResolver

logger = logging.getLogger(__name__)


class InstallOrchestrator:
    """
    Drives a complete install.

    Collaborators are created from settings unless injected.

    Args:
        settings: Resolved settings
        platform: Target platform (default: detected)
        resolver: Version resolver for 'latest'
        locator: Artifact locator
        dependencies: System dependency manager; None skips the check
        confirm: Confirmation callback for installing missing dependencies
        stream: Progress output stream (default: stdout)
        error_stream: Where the build log is dumped (default: stderr)
        environ: Environment for the bootstrap seed lookup
        reporter_cls: StepReporter implementation
        handle_signals: Route SIGINT/SIGTERM to the cancellation token
    """

    def __init__(
        self,
        settings: Settings,
        platform: Optional[Platform] = None,
        resolver: Optional[VersionResolver] = None,
        locator: Optional[ArtifactLocator] = None,
        dependencies: Optional[DependencyManager] = None,
        confirm: Optional[Callable[[str], bool]] = None,
        stream: Optional[TextIO] = None,
        error_stream: Optional[TextIO] = None,
        environ: Optional[Mapping[str, str]] = None,
        reporter_cls=StepReporter,
        handle_signals: bool = True,
        session: Optional[requests.Session] = None,
    ):
        self.settings = settings
        self.platform = platform
        self.resolver = resolver or VersionResolver(settings.source_repo)
        self.session = session
        self.locator = locator or ArtifactLocator(
            source_repo=settings.source_repo,
            builds_repo=settings.builds_repo,
            github_token=settings.github_token,
            search_limit=settings.release_search_limit,
            session=session,
        )
        self.dependencies = dependencies
        self.confirm = confirm or (lambda prompt: False)
        self.stream = stream
        self.error_stream = error_stream
        self.environ = environ
        self.reporter_cls = reporter_cls
        self.handle_signals = handle_signals

    @property
    def err(self) -> TextIO:
        return self.error_stream or sys.stderr

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def install(self, request: InstallRequest) -> int:
        """
        Install request into settings.install_path.

        Returns:
            Exit code: 0 on success, 1 on failure, 128+signum on signals
        """
        try:
            install_path = self._require_install_path()
            self._check_dependencies()
        except NimKitError as e:
            self._report_error(e)
            return e.exit_code

        return self._in_context(
            lambda ctx, reporter: self._install(ctx, reporter, request, install_path)
        )

    def download(self, request: InstallRequest) -> int:
        """
        Resolve and fetch request into settings.download_path only.

        Returns:
            Exit code
        """
        if self.settings.download_path is None:
            e = ConfigError("A download path is required (ASDF_DOWNLOAD_PATH)")
            self._report_error(e)
            return e.exit_code

        def run(ctx, reporter):
            request_ = self.resolve(request, reporter)
            source = self.locate(request_, reporter)
            self._downloader(reporter).materialize(source, ctx)

        return self._in_context(run)

    def resolve(self, request: InstallRequest, reporter: StepReporter) -> InstallRequest:
        """Replace 'latest' with the newest released version."""
        if request.kind is not RequestKind.LATEST:
            return request
        with reporter.step("Resolving latest version"):
            version = self.resolver.latest()
        reporter.info(f"Latest version is {version}")
        return request.resolved(version)

    def locate(self, request: InstallRequest, reporter: StepReporter) -> ArtifactSource:
        platform = self.platform or detect_platform()
        with reporter.step(f"Locating Nim {request} for {platform}"):
            source = self.locator.locate(request, platform)
        logger.info(f"Using {source.kind.value} from {source.origin}: {source.location}")
        return source

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _install(self, ctx, reporter, request, install_path: Path):
        request = self.resolve(request, reporter)
        source = self.locate(request, reporter)

        self._downloader(reporter).materialize(source, ctx)

        if not has_prebuilt_binaries(ctx.download_dir):
            Builder(
                reporter,
                installs_dir=self.settings.sibling_installs_dir(),
                environ=self.environ,
            ).build(ctx)

        Installer(reporter).install(ctx, request, install_path)
        reporter.info("")
        reporter.info(f"Installed Nim {request}")

    def _in_context(self, body) -> int:
        with BuildContext.create(
            download_path=self.settings.download_path,
            concurrency=self.settings.concurrency,
        ) as ctx:
            if self.handle_signals:
                ctx.handle_signals()
            reporter = self.reporter_cls(ctx.log_file, stream=self.stream, token=ctx.token)
            try:
                body(ctx, reporter)
            except NimKitError as e:
                return self._fail(reporter, e)
            except (FilesystemError, OSError) as e:
                return self._fail(reporter, NimKitError(str(e)))
        return 0

    def _fail(self, reporter: StepReporter, error: NimKitError) -> int:
        reporter.fail()
        reporter.dump_log(self.err)
        self._report_error(error)
        return error.exit_code

    def _downloader(self, reporter: StepReporter) -> Downloader:
        return Downloader(
            reporter, github_token=self.settings.github_token, session=self.session
        )

    def _require_install_path(self) -> Path:
        install_path = self.settings.install_path
        if install_path is None:
            raise ConfigError(
                "An install path is required (--install-path or ASDF_INSTALL_PATH)"
            )
        if install_path.exists() and not is_empty_directory(install_path):
            raise InstallError(f"{install_path} already exists and is not empty")
        return install_path

    def _check_dependencies(self):
        if self.dependencies is not None:
            self.dependencies.ensure(self.confirm)

    def _report_error(self, error: NimKitError):
        logger.debug("Install failed", exc_info=error)
        print("", file=self.err)
        print(f"[nimkit] {error}", file=self.err)
        print("", file=self.err)


__all__ = ["InstallOrchestrator"]
