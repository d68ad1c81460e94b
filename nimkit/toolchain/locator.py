"""
Artifact location: maps an install request and a platform to one source.

Decision policy, evaluated in order:

1. ref requests are built from a git checkout, no binary search.
2. Linux + glibc + x86_64/i686 use the official nim-lang.org binaries.
3. musl Linux, other Linux architectures and macOS search the unofficial
   nim-builds releases on GitHub for a matching tarball.
4. Anything without a binary falls back to the official source tarball.

Step 3 is always taken for musl and macOS hosts, even where an official
binary might also fit; this precedence is kept as-is.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, Optional

import requests
from requests.exceptions import RequestException

from nimkit.core.config import BUILDS_REPO, RELEASE_SEARCH_LIMIT, SOURCE_REPO
from nimkit.core.download import DEFAULT_TIMEOUT, github_headers
from nimkit.core.exceptions import MissingArtifact
from nimkit.core.platform import Arch, Libc, Platform
from nimkit.toolchain.request import InstallRequest

logger = logging.getLogger(__name__)

TOOL = "nim"
SOURCE_URL = "https://nim-lang.org/download/nim-{version}.tar.xz"
LINUX_X64_URL = "https://nim-lang.org/download/nim-{version}-linux_x64.tar.xz"
LINUX_X32_URL = "https://nim-lang.org/download/nim-{version}-linux_x32.tar.xz"
GITHUB_API = "https://api.github.com"
RELEASES_PER_PAGE = 100

OFFICIAL_ORIGIN = "nim-lang.org"
OFFICIAL_BINARY_URLS = {
    Arch.X86_64: LINUX_X64_URL,
    Arch.I686: LINUX_X32_URL,
}


class ArtifactKind(str, Enum):
    OFFICIAL_BINARY = "official-binary"
    UNOFFICIAL_BINARY = "unofficial-binary"
    SOURCE_TARBALL = "source-tarball"
    GIT_REF = "git-ref"


@dataclass(frozen=True)
class ArtifactSource:
    """
    Where one install attempt gets its files from.

    Attributes:
        kind: Acquisition strategy
        location: Tarball URL, or the git ref for GIT_REF
        origin: Human readable origin label (e.g. 'nim-lang.org')
        repository: Git repository URL for GIT_REF sources
    """

    kind: ArtifactKind
    location: str
    origin: str
    repository: str = ""

    @property
    def is_binary(self) -> bool:
        return self.kind in (ArtifactKind.OFFICIAL_BINARY, ArtifactKind.UNOFFICIAL_BINARY)

    @property
    def filename(self) -> str:
        return self.location.rstrip("/").rsplit("/", 1)[-1]


def unofficial_tarball_name(version: str, platform: Platform) -> str:
    """
    Name of the nim-builds tarball for version on platform.

    Example:
        >>> unofficial_tarball_name("1.4.2", Platform("linux", "aarch64", "musl"))
        'nim-1.4.2--aarch64-linux-musl.tar.xz'
    """
    os_name = platform.os.value if isinstance(platform.os, Enum) else platform.os
    arch = platform.arch.value if isinstance(platform.arch, Enum) else platform.arch
    return f"{TOOL}-{version}--{arch}-{os_name}-{platform.lib_suffix()}.tar.xz"


class ArtifactLocator:
    """
    Chooses exactly one ArtifactSource per install attempt.

    Args:
        source_repo: Git repository used for ref installs
        builds_repo: GitHub 'owner/name' of the unofficial builds mirror
        github_token: Optional token attached to GitHub API requests
        search_limit: Maximum number of most recent releases to inspect
        session: Optional requests session
    """

    def __init__(
        self,
        source_repo: str = SOURCE_REPO,
        builds_repo: str = BUILDS_REPO,
        github_token: Optional[str] = None,
        search_limit: int = RELEASE_SEARCH_LIMIT,
        session: Optional[requests.Session] = None,
    ):
        self.source_repo = source_repo
        self.builds_repo = builds_repo
        self.github_token = github_token
        self.search_limit = search_limit
        self.session = session or requests.Session()

    def locate(self, request: InstallRequest, platform: Platform) -> ArtifactSource:
        """
        Pick the download source for request on platform.

        Args:
            request: Install request; 'latest' must already be resolved
            platform: Target platform

        Returns:
            ArtifactSource
        """
        if request.is_ref:
            return ArtifactSource(
                kind=ArtifactKind.GIT_REF,
                location=request.version,
                origin=self.source_repo,
                repository=self.source_repo,
            )

        version = request.version
        try:
            if platform.is_linux and platform.libc is Libc.GLIBC and (
                platform.arch in OFFICIAL_BINARY_URLS
            ):
                return self.official_binary(version, platform)
            if platform.is_linux or platform.is_macos:
                return self.unofficial_binary(version, platform)
        except MissingArtifact as e:
            logger.info(f"{e}; building from source")

        return self.source_tarball(version)

    # ------------------------------------------------------------------
    # Strategies
    # ------------------------------------------------------------------

    def official_binary(self, version: str, platform: Platform) -> ArtifactSource:
        template = OFFICIAL_BINARY_URLS.get(platform.arch)
        if template is None:
            raise MissingArtifact(f"No official binary for {platform}")
        return ArtifactSource(
            kind=ArtifactKind.OFFICIAL_BINARY,
            location=template.format(version=version),
            origin=OFFICIAL_ORIGIN,
        )

    def source_tarball(self, version: str) -> ArtifactSource:
        return ArtifactSource(
            kind=ArtifactKind.SOURCE_TARBALL,
            location=SOURCE_URL.format(version=version),
            origin=OFFICIAL_ORIGIN,
        )

    def unofficial_binary(self, version: str, platform: Platform) -> ArtifactSource:
        """
        Search the nim-builds releases for a matching tarball.

        Raises:
            MissingArtifact: If no release carries a matching tarball, or the
                search itself failed
        """
        tarball = unofficial_tarball_name(version, platform)
        release_prefix = f"{TOOL}-{version}--"
        logger.debug(f"Searching {self.builds_repo} for {tarball}")

        try:
            for release in self._releases():
                if not str(release.get("tag_name", "")).startswith(release_prefix):
                    continue
                for asset in release.get("assets") or []:
                    if asset.get("name") == tarball:
                        return ArtifactSource(
                            kind=ArtifactKind.UNOFFICIAL_BINARY,
                            location=asset["browser_download_url"],
                            origin=f"github.com/{self.builds_repo}",
                        )
        except (RequestException, ValueError, KeyError) as e:
            logger.warning(f"Searching {self.builds_repo} failed: {e}")
            raise MissingArtifact(f"Could not search {self.builds_repo}") from e

        raise MissingArtifact(f"No {tarball} in {self.builds_repo}")

    def _releases(self) -> Iterator[dict]:
        """Yield up to search_limit most recent releases, newest first."""
        url = f"{GITHUB_API}/repos/{self.builds_repo}/releases"
        headers = {"Accept": "application/vnd.github+json"}
        headers.update(github_headers(self.github_token))

        per_page = max(1, min(RELEASES_PER_PAGE, self.search_limit))
        seen = 0
        page = 1
        while seen < self.search_limit:
            response = self.session.get(
                url,
                headers=headers,
                params={"per_page": per_page, "page": page},
                timeout=DEFAULT_TIMEOUT,
            )
            response.raise_for_status()
            releases = response.json()
            if not releases:
                return
            for release in releases[: self.search_limit - seen]:
                yield release
            seen += len(releases)
            if len(releases) < per_page:
                return
            page += 1


__all__ = [
    "ArtifactKind",
    "ArtifactSource",
    "ArtifactLocator",
    "unofficial_tarball_name",
    "SOURCE_URL",
    "LINUX_X64_URL",
    "LINUX_X32_URL",
]
