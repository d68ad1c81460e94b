"""
Nim release version parsing, ordering and listing.

Versions are parsed into numeric components plus a typed suffix so that
ordering never depends on text rewriting:

    0.20.0-rc1 < 0.20.0 < 0.20.0p1 < 0.20.0p2 < 0.20.1

'+' and '-' separators are treated like '.', a trailing 'p<N>' is a
patch-letter release that sorts after its base version, and any other
suffix is a pre-release that sorts before it.
"""

import functools
import logging
import re
import subprocess
from enum import IntEnum
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

from nimkit.core.config import SOURCE_REPO
from nimkit.core.exceptions import InvalidVersionError, MissingArtifact, NetworkFailure

logger = logging.getLogger(__name__)

_VERSION_RE = re.compile(r"^(\d+(?:\.\d+)*)(.*)$")
_PATCH_RE = re.compile(r"^p(\d+)$")


class Phase(IntEnum):
    PRERELEASE = 0
    RELEASE = 1
    PATCH = 2


@functools.total_ordering
class Version:
    """
    Parsed release version with a strict total order.

    Example:
        >>> Version.parse("1.4.2") < Version.parse("1.4.2p1") < Version.parse("1.4.3")
        True
    """

    def __init__(
        self,
        original: str,
        numbers: Tuple[int, ...],
        phase: Phase = Phase.RELEASE,
        tag: Tuple = (),
    ):
        self.original = original
        self.numbers = numbers
        self.phase = phase
        self.tag = tag

    @classmethod
    def parse(cls, text: str) -> "Version":
        """
        Parse a version string.

        Raises:
            InvalidVersionError: If text does not start with a numeric version
        """
        original = text.strip()
        cleaned = original[1:] if original[:1] in ("v", "V") else original
        normalized = re.sub(r"[+-]", ".", cleaned)

        match = _VERSION_RE.match(normalized)
        if not match:
            raise InvalidVersionError(f"Invalid version: {text!r}")

        numbers = tuple(int(p) for p in match.group(1).split("."))
        suffix = match.group(2).strip(".")

        if not suffix:
            return cls(original, numbers)

        patch = _PATCH_RE.match(suffix)
        if patch:
            return cls(original, numbers, Phase.PATCH, (int(patch.group(1)),))

        identifiers = re.findall(r"\d+|[A-Za-z]+", suffix)
        if not identifiers:
            raise InvalidVersionError(f"Invalid version suffix in {text!r}")
        tag = tuple(
            (0, int(i), "") if i.isdigit() else (1, 0, i.lower()) for i in identifiers
        )
        return cls(original, numbers, Phase.PRERELEASE, tag)

    @property
    def is_prerelease(self) -> bool:
        return self.phase == Phase.PRERELEASE

    def _key(self):
        numbers = list(self.numbers)
        while len(numbers) > 1 and numbers[-1] == 0:
            numbers.pop()
        bare = self.original.lstrip("vV")
        return (tuple(numbers), int(self.phase), self.tag, bare)

    def __eq__(self, other) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self._key() == other._key()

    def __lt__(self, other: "Version") -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self._key() < other._key()

    def __hash__(self) -> int:
        return hash(self._key())

    def __str__(self) -> str:
        return self.original

    def __repr__(self) -> str:
        return f"Version({self.original!r})"


def parse_version(text: str) -> Optional[Version]:
    """Parse text, returning None instead of raising."""
    try:
        return Version.parse(text)
    except InvalidVersionError:
        return None


def sort_versions(versions: Iterable[str]) -> List[str]:
    """
    Sort version strings ascending; strings that are not versions are dropped.

    Example:
        >>> sort_versions(["1.4.0", "0.20.2", "1.2.8"])
        ['0.20.2', '1.2.8', '1.4.0']
    """
    parsed = []
    for text in versions:
        version = parse_version(text)
        if version is None:
            logger.debug(f"Skipping non-version tag: {text}")
            continue
        parsed.append(version)
    return [v.original for v in sorted(parsed)]


def parse_ls_remote(output: str) -> List[str]:
    """Extract tag names (without refs/tags/ and leading 'v') from ls-remote output."""
    tags = []
    for line in output.splitlines():
        _, _, ref = line.partition("refs/tags/")
        ref = ref.strip()
        if not ref:
            continue
        tags.append(ref[1:] if ref.startswith("v") else ref)
    return tags


Runner = Callable[[Sequence[str]], str]


def _git_output(args: Sequence[str]) -> str:
    try:
        result = subprocess.run(
            list(args), capture_output=True, text=True, timeout=120
        )
    except (OSError, subprocess.SubprocessError) as e:
        raise NetworkFailure(f"Could not run {args[0]}: {e}") from e
    if result.returncode != 0:
        raise NetworkFailure(
            f"{' '.join(args)} failed with exit code {result.returncode}: "
            f"{result.stderr.strip()}"
        )
    return result.stdout


class VersionResolver:
    """
    Lists published Nim versions from the upstream repository tags.

    Args:
        source_repo: Git URL of the Nim repository
        runner: Callable running a command and returning its stdout;
            raises NetworkFailure on failure
    """

    def __init__(self, source_repo: str = SOURCE_REPO, runner: Optional[Runner] = None):
        self.source_repo = source_repo
        self.runner = runner or _git_output

    def list_all(self) -> List[str]:
        """
        List all released versions in ascending order.

        Raises:
            NetworkFailure: If the tags cannot be listed
        """
        output = self.runner(["git", "ls-remote", "--tags", "--refs", self.source_repo])
        return sort_versions(parse_ls_remote(output))

    def latest(self) -> str:
        """
        Return the newest stable version (newest pre-release if none is stable).

        Raises:
            NetworkFailure: If the tags cannot be listed
            MissingArtifact: If the repository has no version tags
        """
        versions = [Version.parse(v) for v in self.list_all()]
        if not versions:
            raise MissingArtifact(f"No version tags found in {self.source_repo}")

        stable = [v for v in versions if not v.is_prerelease]
        latest = max(stable or versions)
        logger.debug(f"Resolved latest version: {latest}")
        return latest.original


__all__ = [
    "Phase",
    "Version",
    "VersionResolver",
    "parse_version",
    "parse_ls_remote",
    "sort_versions",
]
