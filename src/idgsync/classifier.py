"""Map archive entries onto the local mirror and classify them."""

from __future__ import annotations

import logging
import os
from enum import Enum
from fnmatch import fnmatchcase
from pathlib import Path

from .config import Conventions
from .filesystem import StatResult, stat_local
from .models import ArchiveEntry, EntryKind, LocalEntry

logger = logging.getLogger(__name__)


class PathStyle(str, Enum):
    """Separator convention used to build local paths."""

    POSIX = "posix"
    WINDOWS = "windows"

    @property
    def separator(self) -> str:
        return "\\" if self is PathStyle.WINDOWS else "/"

    @classmethod
    def native(cls) -> "PathStyle":
        return cls.WINDOWS if os.sep == "\\" else cls.POSIX


def normalize_root(mirror_root: str | os.PathLike[str], style: PathStyle | None = None) -> str:
    """Return ``mirror_root`` as a string without trailing separators."""

    style = style or PathStyle.native()
    root = os.fspath(mirror_root)
    stripped = root.rstrip("/\\")
    # keep a bare filesystem root such as "/" intact
    return stripped if stripped else root[:1] or style.separator


def local_path(archive_path: str, mirror_root: str | os.PathLike[str], style: PathStyle | None = None) -> str:
    """Join the mirror root and a forward-slash archive path."""

    style = style or PathStyle.native()
    root = normalize_root(mirror_root, style).rstrip("/\\")
    relative = archive_path.lstrip("/")
    if style is PathStyle.WINDOWS:
        relative = relative.replace("/", "\\")
    return f"{root}{style.separator}{relative}"


def is_under(archive_path: str, directory: str) -> bool:
    """Return ``True`` if ``archive_path`` is ``directory`` or lies beneath it."""

    directory = directory.rstrip("/")
    return archive_path == directory or archive_path.startswith(directory + "/")


def is_wad_dir(archive_path: str, conventions: Conventions) -> bool:
    parts = [part for part in archive_path.split("/") if part]
    return bool(parts) and parts[0] in conventions.wad_directories


def is_metafile(name: str, conventions: Conventions) -> bool:
    return any(fnmatchcase(name, pattern) for pattern in conventions.metafiles)


def _matches_kind(stat: StatResult, kind: EntryKind) -> bool:
    # a file where a directory belongs, or the reverse, counts as missing
    return stat.exists and stat.is_dir == (kind is EntryKind.DIRECTORY)


def classify(
    entry: ArchiveEntry,
    mirror_root: str | Path,
    conventions: Conventions | None = None,
    style: PathStyle | None = None,
) -> LocalEntry:
    """Stat the local counterpart of ``entry`` and derive its category flags."""

    conventions = conventions or Conventions()
    archive_path = entry.path
    absolute = local_path(archive_path, mirror_root, style)

    stat = stat_local(absolute)
    if stat.unreadable:
        logger.warning("Can't stat %s: permission denied", absolute)
    exists = _matches_kind(stat, entry.kind)

    return LocalEntry(
        archive_path=archive_path,
        absolute_path=absolute,
        kind=entry.kind,
        exists=exists,
        size=stat.size if exists else 0,
        archive_size=entry.size,
        is_dotfile=entry.name.startswith("."),
        is_newstuff=is_under(archive_path, conventions.newstuff_dir),
        is_wad_dir=is_wad_dir(archive_path, conventions),
        is_metafile=is_metafile(entry.name, conventions),
        unreadable=stat.unreadable,
    )


def restat(local: LocalEntry) -> LocalEntry:
    """Return ``local`` refreshed from a new stat of its absolute path."""

    stat = stat_local(local.absolute_path)
    exists = _matches_kind(stat, local.kind)
    return local.with_stat(exists=exists, size=stat.size if exists else 0, unreadable=stat.unreadable)
