"""Shared models and enums for idgsync."""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum


class EntryKind(str, Enum):
    """Kinds of archive entries that take part in a sync."""

    FILE = "file"
    DIRECTORY = "directory"


class EventKind(str, Enum):
    """Tag attached to every line event produced by the listing parser."""

    FILE = "file"
    DIRECTORY = "directory"
    DIRECTORY_HEADER = "directory_header"
    TOTAL = "total"
    SYMLINK = "symlink"
    MALFORMED = "malformed"


@dataclass(frozen=True, slots=True)
class ArchiveEntry:
    """One file or directory line of the remote listing."""

    parent_path: str
    perms: str
    hardlinks: str
    owner: str
    group: str
    size: int
    mod_time: str
    name: str
    kind: EntryKind
    in_incoming: bool = False
    total_blocks: int = 0

    @property
    def path(self) -> str:
        """Absolute archive path, always with forward slashes."""

        return f"{self.parent_path}/{self.name}"

    @property
    def is_file(self) -> bool:
        return self.kind is EntryKind.FILE


@dataclass(frozen=True, slots=True)
class ListingEvent:
    """A classified listing line.

    ``directory`` and ``in_incoming`` capture the directory context that was
    in force when the line was parsed; for header events they hold the newly
    entered directory.
    """

    kind: EventKind
    line_number: int
    raw: str
    directory: str = ""
    in_incoming: bool = False
    entry: ArchiveEntry | None = None
    blocks: int | None = None


@dataclass(frozen=True, slots=True)
class LocalEntry:
    """Local filesystem counterpart of an ``ArchiveEntry``."""

    archive_path: str
    absolute_path: str
    kind: EntryKind
    exists: bool
    size: int
    archive_size: int
    is_dotfile: bool
    is_newstuff: bool
    is_wad_dir: bool
    is_metafile: bool
    unreadable: bool = False

    @property
    def needs_sync(self) -> bool:
        if not self.exists:
            return True
        if self.kind is EntryKind.DIRECTORY:
            return False
        return self.size != self.archive_size

    def with_stat(self, *, exists: bool, size: int, unreadable: bool = False) -> "LocalEntry":
        """Return a copy carrying a fresh stat result."""

        return replace(self, exists=exists, size=size, unreadable=unreadable)


class SyncAction(str, Enum):
    """Action chosen for an entry by the sync policy."""

    FETCH = "fetch"
    SKIP = "skip"
    DRY_RUN = "dry_run"


@dataclass(frozen=True, slots=True)
class Decision:
    """Policy verdict; ``rule`` names the rule that caused a skip."""

    action: SyncAction
    rule: str | None = None


@dataclass(frozen=True, slots=True)
class EntryOutcome:
    """What happened to a single entry during a reconciliation pass."""

    entry: ArchiveEntry
    local: LocalEntry
    action: SyncAction
    succeeded: bool | None = None
    rule: str | None = None
    size_mismatch: bool = False

    @property
    def synced(self) -> bool:
        """True for entries fetched this run, or that would be on a dry run."""

        if self.action is SyncAction.DRY_RUN:
            return True
        return self.action is SyncAction.FETCH and bool(self.succeeded)

    @property
    def failed(self) -> bool:
        return self.action is SyncAction.FETCH and self.succeeded is False


@dataclass(frozen=True, slots=True)
class ReconciliationResult:
    """Everything a reconciliation pass accumulated, in listing order."""

    outcomes: tuple[EntryOutcome, ...]
    authoritative: frozenset[str]
    newstuff: frozenset[str]
    total_archive_size: int
    malformed_lines: int
    truncated: bool = False

    @property
    def synced(self) -> tuple[EntryOutcome, ...]:
        return tuple(outcome for outcome in self.outcomes if outcome.synced)

    @property
    def failed(self) -> tuple[EntryOutcome, ...]:
        return tuple(outcome for outcome in self.outcomes if outcome.failed)

    @property
    def archive_file_count(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.entry.is_file)


@dataclass(frozen=True, slots=True)
class PruneResult:
    """Result of scanning the mirror for files missing from the archive."""

    candidates: tuple[str, ...]
    deleted: tuple[str, ...]
    failed: tuple[tuple[str, str], ...]
    dry_run: bool = False

    @property
    def deleted_count(self) -> int:
        return len(self.deleted)


@dataclass(frozen=True, slots=True)
class RunStats:
    """Immutable end-of-run statistics."""

    dry_run: bool
    elapsed_seconds: float
    synced_files: int
    synced_directories: int
    synced_bytes: int
    failed_files: int
    size_mismatches: int
    total_archive_files: int
    total_archive_size: int
    newstuff_file_count: int
    deleted_file_count: int
    delete_failures: int
    malformed_lines: int
    truncated: bool = False
