"""Sync eligibility policy.

Each rule names a reason to skip an entry. Rules are evaluated in table
order and the first one that matches wins; an entry no rule skips is
fetched. ``incoming`` must stay first: upstream mirrors refuse downloads from
``/incoming`` whatever the other switches say.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from .models import ArchiveEntry, Decision, EntryKind, LocalEntry, SyncAction


@dataclass(frozen=True, slots=True)
class SyncFlags:
    sync_all: bool = False
    dotfiles: bool = False
    incoming: bool = False
    dry_run: bool = False


Predicate = Callable[[LocalEntry, ArchiveEntry, SyncFlags], bool]

_ALL_KINDS = frozenset(EntryKind)
_FILES = frozenset({EntryKind.FILE})


@dataclass(frozen=True, slots=True)
class Rule:
    """A named skip condition and the entry kinds it applies to."""

    name: str
    skip_when: Predicate
    kinds: frozenset[EntryKind] = _ALL_KINDS
    description: str = ""

    def matches(self, local: LocalEntry, entry: ArchiveEntry, flags: SyncFlags) -> bool:
        return entry.kind in self.kinds and self.skip_when(local, entry, flags)


def skip_incoming(local: LocalEntry, entry: ArchiveEntry, flags: SyncFlags) -> bool:
    return entry.in_incoming and not flags.incoming


def skip_in_sync(local: LocalEntry, entry: ArchiveEntry, flags: SyncFlags) -> bool:
    return not local.needs_sync


def skip_dotfile(local: LocalEntry, entry: ArchiveEntry, flags: SyncFlags) -> bool:
    return local.is_dotfile and not flags.dotfiles


def skip_non_content(local: LocalEntry, entry: ArchiveEntry, flags: SyncFlags) -> bool:
    wanted = local.is_wad_dir or local.is_metafile or local.is_newstuff
    return not wanted and not flags.sync_all


RULES: tuple[Rule, ...] = (
    Rule("incoming", skip_incoming, description="entry is in /incoming and --incoming was not used"),
    Rule("in-sync", skip_in_sync, description="local copy is present and the right size"),
    Rule("dotfile", skip_dotfile, kinds=_FILES, description="dotfile and --dotfiles was not used"),
    Rule(
        "content-gate",
        skip_non_content,
        kinds=_FILES,
        description="not a WAD, metafile or /newstuff file and --sync-all was not used",
    ),
)


def decide(
    local: LocalEntry,
    entry: ArchiveEntry,
    flags: SyncFlags,
    rules: tuple[Rule, ...] = RULES,
) -> Decision:
    """Return the action for ``entry``; never touches the filesystem."""

    for rule in rules:
        if rule.matches(local, entry, flags):
            return Decision(SyncAction.SKIP, rule.name)
    if flags.dry_run:
        return Decision(SyncAction.DRY_RUN)
    return Decision(SyncAction.FETCH)
