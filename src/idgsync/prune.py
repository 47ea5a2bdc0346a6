"""Removal of local files that the archive listing no longer knows about.

Pruning must only run after the whole listing has been reconciled:
anything absent from the authoritative set at that point is treated as an
orphan.
"""

from __future__ import annotations

import logging
import os
from enum import Enum
from pathlib import Path
from typing import AbstractSet, Iterable

from .classifier import PathStyle, local_path, normalize_root
from .config import Conventions
from .filesystem import iter_files
from .models import PruneResult

logger = logging.getLogger(__name__)


class PruneScope(str, Enum):
    """Which part of the mirror is checked for orphans."""

    NEWSTUFF = "newstuff"
    ALL = "all"


def scope_root(
    mirror_root: str | os.PathLike[str],
    scope: PruneScope,
    conventions: Conventions | None = None,
    style: PathStyle | None = None,
) -> str:
    conventions = conventions or Conventions()
    if scope is PruneScope.ALL:
        return normalize_root(mirror_root, style)
    return local_path(conventions.newstuff_dir, mirror_root, style)


def find_orphans(
    mirror_root: str | os.PathLike[str],
    authoritative: AbstractSet[str],
    scope: PruneScope = PruneScope.NEWSTUFF,
    *,
    conventions: Conventions | None = None,
    keep: Iterable[str | os.PathLike[str]] = (),
    style: PathStyle | None = None,
) -> list[str]:
    """Return sorted regular files under ``scope`` missing from ``authoritative``."""

    root = scope_root(mirror_root, scope, conventions, style)
    kept = {os.fspath(path) for path in keep}
    return [path for path in iter_files(root) if path not in authoritative and path not in kept]


def prune(
    mirror_root: str | os.PathLike[str],
    authoritative: AbstractSet[str],
    scope: PruneScope = PruneScope.NEWSTUFF,
    *,
    dry_run: bool = False,
    conventions: Conventions | None = None,
    keep: Iterable[str | os.PathLike[str]] = (),
    style: PathStyle | None = None,
) -> PruneResult:
    """Delete (or on a dry run, only list) orphaned files in ``scope``.

    Failures to delete are logged and collected; they never stop the scan.
    """

    candidates = find_orphans(
        mirror_root,
        authoritative,
        scope,
        conventions=conventions,
        keep=keep,
        style=style,
    )
    logger.debug("%d prune candidates in %s scope", len(candidates), scope.value)

    deleted: list[str] = []
    failed: list[tuple[str, str]] = []
    for path in candidates:
        if dry_run:
            logger.info("would delete %s", path)
            continue
        try:
            Path(path).unlink()
        except OSError as exc:
            logger.error("Can't unlink %s: %s", path, exc)
            failed.append((path, exc.strerror or str(exc)))
            continue
        logger.info("deleted %s", path)
        deleted.append(path)

    return PruneResult(
        candidates=tuple(candidates),
        deleted=tuple(deleted),
        failed=tuple(failed),
        dry_run=dry_run,
    )
