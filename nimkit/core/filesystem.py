"""
File system utilities for NimKit.

This module provides the file operations used by the download, build and
install stages:
- Archive extraction with the top-level directory stripped
- Safe deletion and directory-content moves
- Executable lookup with excluded directories
- Moving a finished tree into its permanent location without ever exposing
  a partial tree at the destination
"""

import errno
import os
import shutil
import stat
import sys
import tarfile
import tempfile
from pathlib import Path
from typing import Callable, Iterable, Optional, Union


# ============================================================================
# Errors
# ============================================================================


class FilesystemError(Exception):
    """Base exception for filesystem operations."""

    pass


class ArchiveExtractionError(FilesystemError):
    """Failed to extract an archive."""

    pass


class InsecureArchiveError(ArchiveExtractionError):
    """Archive contains insecure paths (directory traversal attempt)."""

    pass


# ============================================================================
# Path Utilities
# ============================================================================


def is_relative_to(path: Path, parent: Path) -> bool:
    """Check if path is inside parent."""
    try:
        path.relative_to(parent)
        return True
    except ValueError:
        return False


def find_executable(
    name: str,
    search_paths: Optional[Iterable[Path]] = None,
    exclude: Optional[Callable[[Path], bool]] = None,
) -> Optional[Path]:
    """
    Find an executable in the system PATH or provided search paths.

    Args:
        name: Executable name (e.g., 'nim', 'git')
        search_paths: Optional directories to search (default: PATH)
        exclude: Optional predicate; directories for which it returns True
            are skipped

    Returns:
        Path to executable if found, None otherwise

    Example:
        >>> find_executable('git')
        PosixPath('/usr/bin/git')
    """
    if search_paths is None:
        path_env = os.environ.get("PATH", "")
        search_paths = [Path(p) for p in path_env.split(os.pathsep) if p]

    for directory in search_paths:
        directory = Path(directory)
        if exclude and exclude(directory):
            continue
        exe_path = directory / name
        if exe_path.is_file() and os.access(exe_path, os.X_OK):
            return exe_path

    return None


def find_executable_file(root: Path, pattern: str) -> Optional[Path]:
    """
    Find the first executable file under root matching a glob pattern.

    The pattern is relative to root (e.g. "*/bin/nim"); it is not searched
    recursively, so a broad root such as a home directory stays cheap.
    """
    root = Path(root)
    if not root.is_dir():
        return None

    for candidate in sorted(root.glob(pattern)):
        if candidate.is_file() and os.access(candidate, os.X_OK):
            return candidate
    return None


def is_empty_directory(path: Union[str, Path]) -> bool:
    """
    Check if a directory is empty.

    Returns:
        True if directory exists and is empty
    """
    path = Path(path)

    if not path.is_dir():
        return False

    return not any(path.iterdir())


def make_executable(path: Union[str, Path]) -> None:
    """Add execute permission for everyone who can read the file."""
    path = Path(path)
    mode = path.stat().st_mode
    path.chmod(mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)


# ============================================================================
# Archive Extraction
# ============================================================================


def _strip_member_name(name: str, strip_components: int) -> Optional[str]:
    parts = [p for p in name.split("/") if p not in ("", ".")]
    if len(parts) <= strip_components:
        return None
    return "/".join(parts[strip_components:])


def _validate_archive_path(path: str, destination: Path) -> None:
    """
    Validate that an archive member path is safe to extract.

    Raises:
        InsecureArchiveError: If path attempts directory traversal
    """
    member_path = (destination / path).resolve()

    if not is_relative_to(member_path, destination.resolve()):
        raise InsecureArchiveError(
            f"Archive member '{path}' attempts directory traversal. "
            "This is a security risk and extraction has been blocked."
        )


def extract_tarball(
    archive_path: Union[str, Path],
    destination: Union[str, Path],
    strip_components: int = 1,
) -> int:
    """
    Extract a tar archive (any compression tarfile detects).

    Mirrors `tar -x --strip-components=N`: the first N path components of
    each member are dropped and members that become empty are skipped.

    Args:
        archive_path: Path to the archive file
        destination: Directory to extract to
        strip_components: Leading path components to drop

    Returns:
        Number of members extracted

    Raises:
        ArchiveExtractionError: If the archive cannot be read
        InsecureArchiveError: If a member escapes the destination
    """
    archive_path = Path(archive_path)
    destination = Path(destination)

    if not archive_path.exists():
        raise ArchiveExtractionError(f"Archive not found: {archive_path}")

    destination.mkdir(parents=True, exist_ok=True)
    extracted = 0

    try:
        with tarfile.open(archive_path, "r:*") as tar:
            for member in tar:
                name = _strip_member_name(member.name, strip_components)
                if name is None:
                    continue
                _validate_archive_path(name, destination)
                if member.islnk():
                    linkname = _strip_member_name(member.linkname, strip_components)
                    if linkname is None:
                        continue
                    member.linkname = linkname
                member.name = name

                # Extract with filter for security (Python 3.12+)
                if sys.version_info >= (3, 12):
                    tar.extract(member, destination, filter="tar")
                else:
                    tar.extract(member, destination)
                extracted += 1
    except InsecureArchiveError:
        raise
    except (tarfile.TarError, OSError, EOFError) as e:
        raise ArchiveExtractionError(f"Failed to extract {archive_path}: {e}") from e

    return extracted


# ============================================================================
# Safe File Operations
# ============================================================================


def safe_rmtree(
    path: Union[str, Path], require_prefix: Optional[Union[str, Path]] = None
) -> None:
    """
    Safely remove a directory tree with safeguards.

    Args:
        path: Directory to remove
        require_prefix: If specified, path must be under this directory

    Raises:
        ValueError: If path is not under require_prefix
        FilesystemError: If deletion fails
    """
    path = Path(path).resolve()

    if require_prefix is not None:
        require_prefix = Path(require_prefix).resolve()
        if not is_relative_to(path, require_prefix):
            raise ValueError(
                f"Refusing to delete '{path}': not under required prefix '{require_prefix}'"
            )

    if not path.exists():
        return

    if not path.is_dir():
        raise FilesystemError(f"Path is not a directory: {path}")

    try:
        shutil.rmtree(path)
    except OSError as e:
        raise FilesystemError(f"Failed to remove directory '{path}': {e}") from e


def clear_directory(path: Union[str, Path]) -> None:
    """
    Remove every entry inside a directory, keeping the directory itself.

    Raises:
        FilesystemError: If an entry cannot be removed
    """
    path = Path(path)
    if not path.is_dir():
        return

    for entry in path.iterdir():
        try:
            if entry.is_dir() and not entry.is_symlink():
                shutil.rmtree(entry)
            else:
                entry.unlink()
        except OSError as e:
            raise FilesystemError(f"Failed to remove '{entry}': {e}") from e


def move_contents(source: Path, destination: Path) -> None:
    """
    Move every entry of source into destination, merging directories.

    Existing files in destination are replaced.
    """
    source = Path(source)
    destination = Path(destination)
    destination.mkdir(parents=True, exist_ok=True)

    for item in source.iterdir():
        target = destination / item.name
        if item.is_dir() and not item.is_symlink() and target.is_dir():
            move_contents(item, target)
            item.rmdir()
            continue
        if target.is_dir() and not target.is_symlink():
            shutil.rmtree(target)
        elif target.exists() or target.is_symlink():
            target.unlink()
        shutil.move(str(item), str(target))


def copy_contents(source: Path, destination: Path) -> None:
    """Copy every entry of source into destination (like `cp -R src/* dst`)."""
    source = Path(source)
    destination = Path(destination)
    destination.mkdir(parents=True, exist_ok=True)

    for item in source.iterdir():
        target = destination / item.name
        if item.is_dir() and not item.is_symlink():
            shutil.copytree(item, target, symlinks=True, dirs_exist_ok=True)
        else:
            if target.exists() or target.is_symlink():
                target.unlink()
            shutil.copy2(item, target, follow_symlinks=False)


def move_into_place(source: Path, destination: Path) -> None:
    """
    Move a finished directory tree to its permanent location.

    The destination either does not exist or is an empty directory (which
    is replaced). A rename is attempted first; across filesystems the tree
    is copied into a hidden staging sibling of destination and then renamed,
    so a partially copied tree is never visible at destination.

    Raises:
        FilesystemError: If destination is non-empty or the move fails
    """
    source = Path(source)
    destination = Path(destination)

    if destination.exists():
        if not is_empty_directory(destination):
            raise FilesystemError(f"Destination is not empty: {destination}")
        destination.rmdir()

    destination.parent.mkdir(parents=True, exist_ok=True)

    try:
        os.rename(source, destination)
        return
    except OSError as e:
        if e.errno != errno.EXDEV:
            raise FilesystemError(
                f"Failed to move {source} to {destination}: {e}"
            ) from e

    staging = Path(
        tempfile.mkdtemp(prefix=f".{destination.name}.", dir=destination.parent)
    )
    try:
        shutil.copytree(source, staging, symlinks=True, dirs_exist_ok=True)
        os.rename(staging, destination)
    except OSError as e:
        shutil.rmtree(staging, ignore_errors=True)
        raise FilesystemError(f"Failed to move {source} to {destination}: {e}") from e

    shutil.rmtree(source, ignore_errors=True)


__all__ = [
    "FilesystemError",
    "ArchiveExtractionError",
    "InsecureArchiveError",
    "is_relative_to",
    "find_executable",
    "find_executable_file",
    "clear_directory",
    "is_empty_directory",
    "make_executable",
    "extract_tarball",
    "safe_rmtree",
    "move_contents",
    "copy_contents",
    "move_into_place",
]
