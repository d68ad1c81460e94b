"""YAML and environment configuration for NimKit.

Settings are resolved with the precedence:
command-line flags > environment variables > YAML config file > defaults.

Environment variables follow the asdf plugin conventions so NimKit can back
an asdf-style plugin directly:

    ASDF_INSTALL_PATH      final install path
    ASDF_DOWNLOAD_PATH     retained download directory
    ASDF_CONCURRENCY       parallel build hint (0 = autodetect)
    ASDF_DATA_DIR          version manager data dir (installs/nim lives here)
    GITHUB_API_TOKEN       token for GitHub API requests (or GITHUB_TOKEN)
    NIMKIT_INSTALLS_DIR    override for locating other installed versions

Example nimkit.yaml:

    install_path: ~/.local/nim/1.4.2
    concurrency: 4
    installs_dir: ~/.local/nim
"""

import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from nimkit.core.exceptions import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "nimkit.yaml"

SOURCE_REPO = "https://github.com/nim-lang/Nim.git"
BUILDS_REPO = "elijahr/nim-builds"
RELEASE_SEARCH_LIMIT = 500

ENV_KEYS = {
    "install_path": "ASDF_INSTALL_PATH",
    "download_path": "ASDF_DOWNLOAD_PATH",
    "concurrency": "ASDF_CONCURRENCY",
    "installs_dir": "NIMKIT_INSTALLS_DIR",
}


@dataclass
class Settings:
    """Resolved settings for one invocation."""

    install_path: Optional[Path] = None
    download_path: Optional[Path] = None
    concurrency: int = 0
    github_token: Optional[str] = None
    installs_dir: Optional[Path] = None
    source_repo: str = SOURCE_REPO
    builds_repo: str = BUILDS_REPO
    release_search_limit: int = RELEASE_SEARCH_LIMIT

    def __post_init__(self):
        for name in ("install_path", "download_path", "installs_dir"):
            value = getattr(self, name)
            if value is not None:
                setattr(self, name, _parse_path(name, value))
        self.concurrency = _parse_int("concurrency", self.concurrency)
        self.release_search_limit = _parse_int(
            "release_search_limit", self.release_search_limit
        )

    def sibling_installs_dir(self) -> Optional[Path]:
        """Directory holding other installed Nim versions, if known."""
        if self.installs_dir is not None:
            return self.installs_dir
        if self.install_path is not None:
            return self.install_path.parent
        return None


def _parse_path(name: str, value: Any) -> Path:
    if isinstance(value, Path):
        return value
    if not isinstance(value, str) or not value:
        raise ConfigError(f"{name} must be a path, got {value!r}")
    return Path(value).expanduser()


def _parse_int(name: str, value: Any) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{name} must be an integer, got {value!r}")
    if number < 0:
        raise ConfigError(f"{name} must not be negative, got {number}")
    return number


def load_yaml_config(config_file: Path, required: bool = False) -> Dict[str, Any]:
    """
    Load and parse a YAML configuration file.

    Args:
        config_file: Path to YAML configuration file
        required: If True, raise error if file doesn't exist

    Returns:
        Configuration dictionary (empty dict if file doesn't exist and not required)

    Raises:
        ConfigError: If the file is required but missing, or not valid YAML
    """
    config_file = Path(config_file)
    if not config_file.exists():
        if required:
            raise ConfigError(f"Configuration file not found: {config_file}")
        logger.debug(f"Config file not found (optional): {config_file}")
        return {}

    logger.debug(f"Loading configuration from {config_file}")

    try:
        with open(config_file, "r", encoding="utf-8") as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {config_file}: {e}") from e

    config = config or {}
    if not isinstance(config, dict):
        raise ConfigError(f"{config_file} must contain a mapping")

    known = {f.name for f in fields(Settings)}
    unknown = sorted(set(config) - known)
    if unknown:
        logger.warning(f"Ignoring unknown config keys: {', '.join(unknown)}")
    return {k: v for k, v in config.items() if k in known}


def settings_from_env(environ: Mapping[str, str]) -> Dict[str, Any]:
    """Extract settings values from environment variables."""
    values: Dict[str, Any] = {}
    for name, key in ENV_KEYS.items():
        if environ.get(key):
            values[name] = environ[key]

    token = environ.get("GITHUB_API_TOKEN") or environ.get("GITHUB_TOKEN")
    if token:
        values["github_token"] = token

    if "installs_dir" not in values and environ.get("ASDF_DATA_DIR"):
        values["installs_dir"] = str(
            Path(environ["ASDF_DATA_DIR"]) / "installs" / "nim"
        )
    return values


def load_settings(
    config_file: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> Settings:
    """
    Resolve settings from config file, environment and explicit overrides.

    Args:
        config_file: YAML file; if None, ./nimkit.yaml is used when present
        environ: Environment mapping (default: os.environ)
        overrides: Values from the command line; None values are ignored

    Returns:
        Settings

    Raises:
        ConfigError: If any value is invalid
    """
    environ = os.environ if environ is None else environ

    if config_file is not None:
        values = load_yaml_config(config_file, required=True)
    else:
        values = load_yaml_config(Path.cwd() / DEFAULT_CONFIG_FILE)

    values.update(settings_from_env(environ))
    values.update({k: v for k, v in (overrides or {}).items() if v is not None})

    return Settings(**values)


__all__ = [
    "Settings",
    "SOURCE_REPO",
    "BUILDS_REPO",
    "load_yaml_config",
    "settings_from_env",
    "load_settings",
]
