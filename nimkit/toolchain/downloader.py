"""
Materializes an ArtifactSource into the download directory.

Tarballs are streamed into the temp directory and unpacked with their
top-level directory stripped; git refs are fetched shallowly (a single
commit, no history). A download directory that already has content is left
alone, which is what makes retained downloads work across runs.
"""

import logging
from pathlib import Path
from typing import Optional

import requests

from nimkit.core.context import BuildContext
from nimkit.core.download import download_file, github_headers, is_github_url
from nimkit.core.exceptions import NetworkFailure
from nimkit.core.filesystem import (
    ArchiveExtractionError,
    FilesystemError,
    clear_directory,
    extract_tarball,
    is_empty_directory,
    safe_rmtree,
)
from nimkit.core.reporter import StepReporter
from nimkit.toolchain.locator import ArtifactKind, ArtifactSource

logger = logging.getLogger(__name__)


class Downloader:
    """
    Fetches and unpacks sources or binaries.

    Args:
        reporter: Step reporter used for progress and command logging
        github_token: Token attached to github.com downloads
        session: Optional requests session
    """

    def __init__(
        self,
        reporter: StepReporter,
        github_token: Optional[str] = None,
        session: Optional[requests.Session] = None,
    ):
        self.reporter = reporter
        self.github_token = github_token
        self.session = session

    def materialize(self, source: ArtifactSource, ctx: BuildContext) -> bool:
        """
        Fetch source into ctx.download_dir unless it already has content.

        Returns:
            True if something was fetched, False if the directory was reused

        Raises:
            NetworkFailure: If fetching or unpacking fails
        """
        download_dir = ctx.download_dir
        download_dir.mkdir(parents=True, exist_ok=True)

        if not is_empty_directory(download_dir):
            logger.info(f"Reusing existing download in {download_dir}")
            self.reporter.write(f"+ reuse {download_dir}")
            return False

        self.reporter.section("Downloading")
        try:
            if source.kind is ArtifactKind.GIT_REF:
                self._clone_ref(source, download_dir)
            else:
                self._fetch_tarball(source, ctx)
        except BaseException:
            # A half-filled directory would be reused as-is next time
            self._discard_partial(download_dir)
            raise
        return True

    def _discard_partial(self, download_dir: Path):
        self.reporter.write(f"+ clear {download_dir}")
        try:
            clear_directory(download_dir)
        except FilesystemError as e:
            logger.warning(f"Could not clear partial download in {download_dir}: {e}")

    def _clone_ref(self, source: ArtifactSource, download_dir: Path):
        with self.reporter.step(f"Fetching {source.location} from {source.origin}"):
            for args in (
                ["git", "init", "-q"],
                ["git", "remote", "add", "origin", source.repository],
                ["git", "fetch", "--depth", "1", "origin", source.location],
                ["git", "reset", "--hard", "FETCH_HEAD"],
            ):
                self.reporter.run(args, cwd=download_dir, error=NetworkFailure)
            try:
                safe_rmtree(download_dir / ".git", require_prefix=download_dir)
            except FilesystemError as e:
                raise NetworkFailure(str(e)) from e

    def _fetch_tarball(self, source: ArtifactSource, ctx: BuildContext):
        headers = {}
        if is_github_url(source.location):
            headers.update(github_headers(self.github_token))

        archive = ctx.temp_dir / source.filename
        message = f"Downloading & unpacking {source.filename} from {source.origin}"
        with self.reporter.step(message):
            self.reporter.write(f"+ GET {source.location}")
            download_file(
                source.location, archive, headers=headers, session=self.session
            )
            self.reporter.write(f"+ extract {archive} -> {ctx.download_dir}")
            try:
                count = extract_tarball(archive, ctx.download_dir, strip_components=1)
            except ArchiveExtractionError as e:
                raise NetworkFailure(str(e)) from e
            finally:
                archive.unlink(missing_ok=True)
            logger.debug(f"Extracted {count} members into {ctx.download_dir}")


__all__ = ["Downloader"]
