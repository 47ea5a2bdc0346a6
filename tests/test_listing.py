from __future__ import annotations

import gzip
from pathlib import Path

import pytest
from conftest import FakeFetcher, write_listing

from idgsync.listing import (
    ListingError,
    ParseContext,
    load_listing,
    parse_line,
    parse_listing,
    refresh_listing,
    split_fields,
)
from idgsync.models import EntryKind, EventKind


def test_parse_listing_emits_typed_events(sample_listing: str) -> None:
    events = list(parse_listing(sample_listing))

    kinds = [event.kind for event in events]
    assert kinds.count(EventKind.DIRECTORY_HEADER) == 6
    assert kinds.count(EventKind.TOTAL) == 6
    assert kinds.count(EventKind.SYMLINK) == 1
    assert kinds.count(EventKind.MALFORMED) == 0
    assert kinds.count(EventKind.DIRECTORY) == 5
    assert kinds.count(EventKind.FILE) == 6

    entry_lines = [
        line
        for line in sample_listing.splitlines()
        if line.strip() and line.startswith(("-", "d"))
    ]
    assert len([event for event in events if event.entry is not None]) == len(entry_lines)


def test_name_with_spaces_is_rejoined() -> None:
    line = "-rw-r--r-- 1 ftp ftp 1024 Jan 1 2020 my file.wad"

    event, _ = parse_line(line, ParseContext())

    assert event is not None and event.entry is not None
    entry = event.entry
    assert entry.name == "my file.wad"
    assert entry.size == 1024
    assert entry.owner == "ftp"
    assert entry.group == "ftp"
    assert entry.hardlinks == "1"
    assert entry.mod_time == "Jan 1 2020"
    assert entry.kind is EntryKind.FILE


def test_name_whitespace_runs_collapse_to_single_spaces() -> None:
    assert split_fields("-rw-r--r--  1 ftp ftp 10 Jan  1  2020 a   b  c.txt")[8] == "a b c.txt"


def test_blank_lines_are_ignored() -> None:
    event, context = parse_line("   ", ParseContext("/levels"))

    assert event is None
    assert context == ParseContext("/levels")
    assert list(parse_listing("\n\n\n")) == []


def test_entries_before_any_header_belong_to_root() -> None:
    text = "\n".join(
        [
            "-rw-r--r-- 1 ftp ftp 3 Jan 1 2020 first.zip",
            "./levels:",
            "-rw-r--r-- 1 ftp ftp 3 Jan 1 2020 second.zip",
        ]
    )

    entries = [event.entry for event in parse_listing(text) if event.entry is not None]

    assert [entry.path for entry in entries] == ["/first.zip", "/levels/second.zip"]


def test_header_context_and_incoming_flag() -> None:
    text = "\n".join(
        [
            "./incoming:",
            "-rw-r--r-- 1 ftp ftp 3 Jan 1 2020 a.zip",
            "./incoming/deep:",
            "drwxr-xr-x 2 ftp ftp 4096 Jan 1 2020 sub",
            ".:",
            "-rw-r--r-- 1 ftp ftp 3 Jan 1 2020 b.zip",
        ]
    )

    events = list(parse_listing(text))
    entries = [event.entry for event in events if event.entry is not None]

    assert [(entry.path, entry.in_incoming) for entry in entries] == [
        ("/incoming/a.zip", True),
        ("/incoming/deep/sub", True),
        ("/b.zip", False),
    ]
    headers = [event for event in events if event.kind is EventKind.DIRECTORY_HEADER]
    assert [(header.directory, header.in_incoming) for header in headers] == [
        ("/incoming", True),
        ("/incoming/deep", True),
        ("", False),
    ]


def test_parse_line_only_headers_change_context() -> None:
    context = ParseContext("/levels")

    _, after_file = parse_line("-rw-r--r-- 1 ftp ftp 3 Jan 1 2020 a.zip", context)
    _, after_total = parse_line("total 12", context)
    _, after_header = parse_line("./themes:", context)

    assert after_file is context
    assert after_total is context
    assert after_header == ParseContext("/themes", False)


def test_total_and_symlink_lines_are_informational() -> None:
    events = list(
        parse_listing("total 42\nlrwxrwxrwx 1 ftp ftp 8 Jan 1 2020 latest -> newstuff\n")
    )

    assert [event.kind for event in events] == [EventKind.TOTAL, EventKind.SYMLINK]
    assert events[0].blocks == 42
    assert all(event.entry is None for event in events)


@pytest.mark.parametrize(
    "line",
    [
        "this is not a listing line",
        "-rw-r--r-- 1 ftp ftp notanumber Jan 1 2020 bad.zip",
        "-rw-r--r-- 1 ftp",
        "drwxr-xr-x 2 ftp ftp 4096 Jan 1",
    ],
)
def test_malformed_lines_do_not_stop_parsing(line: str) -> None:
    text = f"{line}\n-rw-r--r-- 1 ftp ftp 3 Jan 1 2020 good.zip\n"

    events = list(parse_listing(text))

    assert events[0].kind is EventKind.MALFORMED
    assert events[0].line_number == 1
    assert events[0].raw == line
    assert events[1].kind is EventKind.FILE
    assert events[1].entry is not None and events[1].entry.name == "good.zip"


def test_load_listing_decompresses(tmp_path: Path, sample_listing: str) -> None:
    listing = write_listing(tmp_path / "ls-laR.gz", sample_listing)

    assert load_listing(listing) == sample_listing


def test_load_listing_errors(tmp_path: Path) -> None:
    with pytest.raises(ListingError):
        load_listing(tmp_path / "missing.gz")

    corrupt = tmp_path / "corrupt.gz"
    corrupt.write_bytes(b"definitely not gzip")
    with pytest.raises(ListingError):
        load_listing(corrupt)


def test_refresh_listing_replaces_changed_copy(tmp_path: Path) -> None:
    listing = write_listing(tmp_path / "mirror" / "ls-laR.gz", "old listing\n")
    fresh = gzip.compress(b"new listing\n")
    fetcher = FakeFetcher({"ls-laR.gz": fresh}, tmp_path / "downloads")

    refresh = refresh_listing(listing, fetcher, "https://mirror.example/")

    assert refresh.replaced is True
    assert listing.read_bytes() == fresh
    assert fetcher.calls == [("ls-laR.gz", "https://mirror.example/")]
    assert list((tmp_path / "downloads").iterdir()) == []


def test_refresh_listing_keeps_identical_copy(tmp_path: Path) -> None:
    listing = write_listing(tmp_path / "mirror" / "ls-laR.gz", "same listing\n")
    fetcher = FakeFetcher({"ls-laR.gz": listing.read_bytes()}, tmp_path / "downloads")

    refresh = refresh_listing(listing, fetcher, None)

    assert refresh.replaced is False
    assert refresh.local_digest == refresh.remote_digest
    assert list((tmp_path / "downloads").iterdir()) == []


def test_refresh_listing_download_failure_is_fatal(tmp_path: Path) -> None:
    fetcher = FakeFetcher({}, tmp_path / "downloads")

    with pytest.raises(ListingError):
        refresh_listing(tmp_path / "ls-laR.gz", fetcher, None)
