"""Filesystem helpers for idgsync."""

from __future__ import annotations

import os
import shutil
from dataclasses import dataclass
from hashlib import blake2b
from pathlib import Path


@dataclass(frozen=True, slots=True)
class StatResult:
    """Subset of a stat call that the classifier cares about."""

    exists: bool
    size: int = 0
    is_dir: bool = False
    unreadable: bool = False


def stat_local(path: str | os.PathLike[str]) -> StatResult:
    """Stat ``path``; any failure means the path does not exist.

    ``unreadable`` is set when the stat was refused for lack of permission.
    """

    try:
        stat_result = os.stat(path)
    except PermissionError:
        return StatResult(exists=False, unreadable=True)
    except (OSError, ValueError):
        return StatResult(exists=False)

    is_dir = os.path.isdir(path)
    return StatResult(exists=True, size=0 if is_dir else stat_result.st_size, is_dir=is_dir)


def ensure_parent(path: Path) -> None:
    """Ensure the parent directory exists."""

    path.parent.mkdir(parents=True, exist_ok=True)


def install_file(source: Path, destination: Path) -> None:
    """Move a downloaded ``source`` file into place at ``destination``."""

    ensure_parent(destination)
    if destination.is_dir() and not destination.is_symlink():
        shutil.rmtree(destination)
    shutil.move(os.fspath(source), os.fspath(destination))


def make_directory(path: Path) -> None:
    """Create ``path`` and any missing parents."""

    if path.is_symlink() or (path.exists() and not path.is_dir()):
        path.unlink()
    path.mkdir(parents=True, exist_ok=True)


def file_digest(path: Path) -> str:
    """Return a BLAKE2 hash of the contents of ``path``."""

    hasher = blake2b(digest_size=32)
    with path.open("rb") as handle:
        for chunk in iter(lambda: handle.read(1024 * 1024), b""):
            hasher.update(chunk)
    return hasher.hexdigest()


def iter_files(root: str | os.PathLike[str]) -> list[str]:
    """Return every regular file below ``root`` as a sorted list of paths.

    Symlinks are neither followed nor reported.
    """

    files: list[str] = []
    for dirpath, _dirnames, filenames in os.walk(root, followlinks=False):
        for name in filenames:
            candidate = os.path.join(dirpath, name)
            if os.path.isfile(candidate) and not os.path.islink(candidate):
                files.append(candidate)
    return sorted(files)


def remove_path(path: Path) -> None:
    """Delete ``path`` whether it is a file, directory, or symlink."""

    if not path.exists() and not path.is_symlink():
        return
    if path.is_symlink() or path.is_file():
        path.unlink()
        return
    shutil.rmtree(path)
