"""Parsing and retrieval of the archive's ``ls-laR`` directory listing.

The listing is the output of ``ls -laR`` run at the archive root: a series of
directory blocks, each introduced by a header line (``./levels/doom2:``),
followed by a ``total N`` line and one ``ls -l`` line per directory member.
The parser walks that text line by line and emits one ``ListingEvent`` per
non-blank line. Directory context is carried in an immutable
``ParseContext`` that is threaded from one line to the next, so two parses
never share state.
"""

from __future__ import annotations

import gzip
import logging
import re
import zlib
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Protocol

from .filesystem import file_digest, install_file, remove_path
from .models import ArchiveEntry, EntryKind, EventKind, ListingEvent

logger = logging.getLogger(__name__)

# field positions in an ``ls -l`` line
PERMS = 0
HARDLINKS = 1
OWNER = 2
GROUP = 3
SIZE = 4
MONTH = 5
DATE = 6
YEAR_TIME = 7
NAME = 8
TOTAL_FIELDS = 9

_HEADER_RE = re.compile(r"^\.[/\w\-.]*:$")
_TOTAL_RE = re.compile(r"^total (\d+)$")

INCOMING_DIR = "/incoming"


class ListingError(RuntimeError):
    """Raised when the listing file is missing, unreadable or cannot be retrieved."""


@dataclass(frozen=True, slots=True)
class ParseContext:
    """Directory context in force while parsing a listing."""

    current_directory: str = ""
    in_incoming: bool = False

    def enter(self, header: str, *, incoming_dir: str = INCOMING_DIR) -> "ParseContext":
        """Return the context for the directory named by ``header``."""

        directory = header.removesuffix(":").removeprefix(".")
        return ParseContext(current_directory=directory, in_incoming=directory.startswith(incoming_dir))


def split_fields(line: str) -> list[str]:
    """Split ``line`` on whitespace runs, rejoining a name that contains spaces."""

    fields = line.split()
    if len(fields) > TOTAL_FIELDS:
        logger.debug("got %d fields, joining name from field %d", len(fields), NAME)
        fields = fields[:NAME] + [" ".join(fields[NAME:])]
    return fields


def parse_line(
    line: str,
    context: ParseContext,
    *,
    line_number: int = 0,
    incoming_dir: str = INCOMING_DIR,
) -> tuple[ListingEvent | None, ParseContext]:
    """Classify one listing line.

    Returns the event (``None`` for blank lines) and the context to use for
    the next line. Only directory headers change the context.
    """

    if not line.strip():
        return None, context

    fields = split_fields(line)
    perms = fields[PERMS]

    def event(kind: EventKind, **extra) -> ListingEvent:
        return ListingEvent(
            kind=kind,
            line_number=line_number,
            raw=line,
            directory=context.current_directory,
            in_incoming=context.in_incoming,
            **extra,
        )

    if perms.startswith("-") or perms.startswith("d"):
        kind = EntryKind.FILE if perms.startswith("-") else EntryKind.DIRECTORY
        entry = _build_entry(fields, kind, context)
        if entry is None:
            return event(EventKind.MALFORMED), context
        event_kind = EventKind.FILE if kind is EntryKind.FILE else EventKind.DIRECTORY
        return event(event_kind, entry=entry), context

    if _HEADER_RE.match(perms) and len(fields) == 1:
        next_context = context.enter(perms, incoming_dir=incoming_dir)
        header = ListingEvent(
            kind=EventKind.DIRECTORY_HEADER,
            line_number=line_number,
            raw=line,
            directory=next_context.current_directory,
            in_incoming=next_context.in_incoming,
        )
        return header, next_context

    total = _TOTAL_RE.match(line.strip())
    if total:
        return event(EventKind.TOTAL, blocks=int(total.group(1))), context

    if perms.startswith("l"):
        return event(EventKind.SYMLINK), context

    return event(EventKind.MALFORMED), context


def _build_entry(fields: list[str], kind: EntryKind, context: ParseContext) -> ArchiveEntry | None:
    if len(fields) < TOTAL_FIELDS:
        return None
    try:
        size = int(fields[SIZE])
    except ValueError:
        return None
    if size < 0 or "/" in fields[NAME]:
        return None

    return ArchiveEntry(
        parent_path=context.current_directory,
        perms=fields[PERMS],
        hardlinks=fields[HARDLINKS],
        owner=fields[OWNER],
        group=fields[GROUP],
        size=size,
        mod_time=" ".join((fields[MONTH], fields[DATE], fields[YEAR_TIME])),
        name=fields[NAME],
        kind=kind,
        in_incoming=context.in_incoming,
    )


def parse_listing(
    text: str,
    context: ParseContext | None = None,
    *,
    incoming_dir: str = INCOMING_DIR,
) -> Iterator[ListingEvent]:
    """Lazily yield events for every non-blank line in ``text``."""

    context = context or ParseContext()
    for line_number, line in enumerate(text.splitlines(), start=1):
        event, context = parse_line(line, context, line_number=line_number, incoming_dir=incoming_dir)
        if event is not None:
            yield event


def load_listing(path: Path) -> str:
    """Return the decompressed text of the gzipped listing at ``path``."""

    try:
        with gzip.open(path, "rb") as handle:
            data = handle.read()
    except FileNotFoundError as exc:
        raise ListingError(f"Listing file '{path}' does not exist") from exc
    except (OSError, EOFError, zlib.error) as exc:
        raise ListingError(f"Could not decompress listing file '{path}': {exc}") from exc

    text = data.decode("utf-8", errors="replace")
    logger.info("%s uncompressed size: %d", path.name, len(text))
    return text


class ListingFetcher(Protocol):
    def fetch(self, remote_path: str, base_url: str | None = None) -> Path | None: ...


@dataclass(frozen=True, slots=True)
class ListingRefresh:
    """Outcome of comparing a freshly downloaded listing with the local copy."""

    path: Path
    local_size: int
    local_digest: str | None
    remote_size: int
    remote_digest: str
    replaced: bool


def refresh_listing(listing_path: Path, fetcher: ListingFetcher, base_url: str | None) -> ListingRefresh:
    """Download the listing and replace the local copy when its digest differs."""

    logger.debug("fetching '%s' listing", listing_path.name)
    downloaded = fetcher.fetch(listing_path.name, base_url)
    if downloaded is None:
        raise ListingError(f"Error downloading {listing_path.name}")

    if listing_path.exists():
        local_size = listing_path.stat().st_size
        local_digest: str | None = file_digest(listing_path)
    else:
        local_size = 0
        local_digest = None

    remote_size = downloaded.stat().st_size
    remote_digest = file_digest(downloaded)
    replaced = local_digest != remote_digest

    if replaced:
        logger.info("listing checksum mismatch, replacing %s", listing_path)
        install_file(downloaded, listing_path)
    else:
        logger.debug("listing matches local copy, discarding %s", downloaded)
        remove_path(downloaded)

    return ListingRefresh(
        path=listing_path,
        local_size=local_size,
        local_digest=local_digest,
        remote_size=remote_size,
        remote_digest=remote_digest,
        replaced=replaced,
    )
