"""
Install request parsing.

A version specifier is one of:
- 'latest'        newest stable release tag
- '<version>'     an exact release, e.g. '1.4.2' (a leading 'v' is dropped)
- 'ref:<ref>'     a git commit, branch or tag built from source
"""

from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Optional

from nimkit.core.exceptions import InvalidVersionError

REF_PREFIX = "ref:"
LATEST = "latest"


class RequestKind(str, Enum):
    LATEST = "latest"
    VERSION = "version"
    REF = "ref"


@dataclass(frozen=True)
class InstallRequest:
    """Immutable description of what the user asked to install."""

    version_spec: str

    def __post_init__(self):
        spec = self.version_spec.strip()
        if not spec or spec == REF_PREFIX:
            raise InvalidVersionError("Version specifier cannot be empty")
        if not spec.startswith(REF_PREFIX) and spec != LATEST and spec[:1] in ("v", "V"):
            spec = spec[1:]
        object.__setattr__(self, "version_spec", spec)

    @classmethod
    def parse(cls, text: str) -> "InstallRequest":
        return cls(text)

    @classmethod
    def from_env(cls, environ: Mapping[str, str]) -> Optional["InstallRequest"]:
        """
        Build a request from ASDF_INSTALL_TYPE / ASDF_INSTALL_VERSION.

        Returns:
            InstallRequest, or None if ASDF_INSTALL_VERSION is unset
        """
        version = environ.get("ASDF_INSTALL_VERSION", "").strip()
        if not version:
            return None
        if environ.get("ASDF_INSTALL_TYPE") == "ref" and not version.startswith(
            REF_PREFIX
        ):
            version = REF_PREFIX + version
        return cls(version)

    @property
    def kind(self) -> RequestKind:
        if self.version_spec.startswith(REF_PREFIX):
            return RequestKind.REF
        if self.version_spec == LATEST:
            return RequestKind.LATEST
        return RequestKind.VERSION

    @property
    def is_ref(self) -> bool:
        return self.kind is RequestKind.REF

    @property
    def version(self) -> str:
        """The version string or ref, without the 'ref:' prefix."""
        if self.is_ref:
            return self.version_spec[len(REF_PREFIX):]
        return self.version_spec

    def resolved(self, version: str) -> "InstallRequest":
        """Return an exact-version request replacing 'latest'."""
        return InstallRequest(version)

    def __str__(self) -> str:
        return self.version_spec


__all__ = ["InstallRequest", "RequestKind", "REF_PREFIX", "LATEST"]
