from __future__ import annotations

from dataclasses import replace

import pytest

from idgsync.models import ArchiveEntry, EntryKind, LocalEntry, SyncAction
from idgsync.policy import RULES, SyncFlags, decide


def _pair(
    *,
    kind: EntryKind = EntryKind.FILE,
    exists: bool = False,
    size: int = 0,
    archive_size: int = 10,
    in_incoming: bool = False,
    is_dotfile: bool = False,
    is_newstuff: bool = False,
    is_wad_dir: bool = True,
    is_metafile: bool = False,
) -> tuple[LocalEntry, ArchiveEntry]:
    entry = ArchiveEntry(
        parent_path="/levels",
        perms="-rw-r--r--",
        hardlinks="1",
        owner="ftp",
        group="ftp",
        size=archive_size,
        mod_time="Jan 1 2020",
        name=".x" if is_dotfile else "x.zip",
        kind=kind,
        in_incoming=in_incoming,
    )
    local = LocalEntry(
        archive_path=entry.path,
        absolute_path=f"/mirror{entry.path}",
        kind=kind,
        exists=exists,
        size=size,
        archive_size=archive_size,
        is_dotfile=is_dotfile,
        is_newstuff=is_newstuff,
        is_wad_dir=is_wad_dir,
        is_metafile=is_metafile,
    )
    return local, entry


def test_rule_table_order() -> None:
    assert [rule.name for rule in RULES] == ["incoming", "in-sync", "dotfile", "content-gate"]


@pytest.mark.parametrize(
    ("overrides", "flags", "expected", "rule"),
    [
        ({}, SyncFlags(), SyncAction.FETCH, None),
        ({"exists": True, "size": 10}, SyncFlags(), SyncAction.SKIP, "in-sync"),
        ({"exists": True, "size": 3}, SyncFlags(), SyncAction.FETCH, None),
        ({"is_dotfile": True}, SyncFlags(), SyncAction.SKIP, "dotfile"),
        ({"is_dotfile": True}, SyncFlags(dotfiles=True), SyncAction.FETCH, None),
        ({"is_wad_dir": False}, SyncFlags(), SyncAction.SKIP, "content-gate"),
        ({"is_wad_dir": False}, SyncFlags(sync_all=True), SyncAction.FETCH, None),
        ({"is_wad_dir": False, "is_metafile": True}, SyncFlags(), SyncAction.FETCH, None),
        ({"is_wad_dir": False, "is_newstuff": True}, SyncFlags(), SyncAction.FETCH, None),
        ({"in_incoming": True}, SyncFlags(), SyncAction.SKIP, "incoming"),
        ({"in_incoming": True}, SyncFlags(incoming=True), SyncAction.FETCH, None),
    ],
)
def test_file_decisions(overrides: dict, flags: SyncFlags, expected: SyncAction, rule: str | None) -> None:
    local, entry = _pair(**overrides)

    decision = decide(local, entry, flags)

    assert decision.action is expected
    assert decision.rule == rule


def test_incoming_wins_over_every_other_switch() -> None:
    local, entry = _pair(in_incoming=True, is_dotfile=True, is_wad_dir=False)
    flags = SyncFlags(sync_all=True, dotfiles=True, dry_run=True)

    decision = decide(local, entry, flags)

    assert decision.action is SyncAction.SKIP
    assert decision.rule == "incoming"


def test_directories_bypass_dotfile_and_content_gate() -> None:
    local, entry = _pair(kind=EntryKind.DIRECTORY, is_dotfile=True, is_wad_dir=False)

    assert decide(local, entry, SyncFlags()).action is SyncAction.FETCH

    present = replace(local, exists=True, size=0)
    assert decide(present, entry, SyncFlags()).rule == "in-sync"


def test_dry_run_replaces_fetch() -> None:
    local, entry = _pair()

    assert decide(local, entry, SyncFlags(dry_run=True)).action is SyncAction.DRY_RUN

    in_sync, entry = _pair(exists=True, size=10)
    assert decide(in_sync, entry, SyncFlags(dry_run=True)).action is SyncAction.SKIP


def test_custom_rule_table() -> None:
    local, entry = _pair()

    assert decide(local, entry, SyncFlags(), rules=()).action is SyncAction.FETCH
    assert decide(local, entry, SyncFlags(), rules=RULES[:1]).action is SyncAction.FETCH
