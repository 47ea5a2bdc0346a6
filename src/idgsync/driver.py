"""Single pass over the archive listing: classify, decide, fetch, record."""

from __future__ import annotations

import logging
from contextlib import suppress
from pathlib import Path
from typing import Iterable, Protocol

from .classifier import PathStyle, classify, restat
from .config import Conventions
from .fetcher import Fetcher
from .filesystem import install_file, make_directory, remove_path
from .models import (
    ArchiveEntry,
    EntryKind,
    EntryOutcome,
    EventKind,
    ListingEvent,
    LocalEntry,
    ReconciliationResult,
    SyncAction,
)
from .policy import SyncFlags, decide

logger = logging.getLogger(__name__)


class RecordSink(Protocol):
    """Receives report callbacks while the listing is processed."""

    def write_record(self, entry: ArchiveEntry, local: LocalEntry) -> None: ...

    def write_header(self, event: ListingEvent) -> None: ...

    def write_total(self, event: ListingEvent) -> None: ...

    def write_symlink(self, event: ListingEvent) -> None: ...


class ReconciliationDriver:
    """Walks listing events in order and brings the mirror up to date.

    The pass ends when the events run out, when ``limit`` entries have been
    processed, or after ``request_stop()``; each of these leaves a
    consistent result behind.
    """

    def __init__(
        self,
        mirror_root: Path | str,
        flags: SyncFlags,
        *,
        fetcher: Fetcher | None = None,
        reporter: RecordSink | None = None,
        conventions: Conventions | None = None,
        style: PathStyle | None = None,
        base_url: str | None = None,
        limit: int | None = None,
    ) -> None:
        if fetcher is None and not flags.dry_run:
            raise ValueError("A fetcher is required unless running in dry-run mode")
        self.mirror_root = mirror_root
        self.flags = flags
        self.fetcher = fetcher
        self.reporter = reporter
        self.conventions = conventions or Conventions()
        self.style = style
        self.base_url = base_url
        self.limit = limit
        self._stop_requested = False

    def request_stop(self) -> None:
        """Ask the pass to end before the next entry."""

        self._stop_requested = True

    def run(self, events: Iterable[ListingEvent]) -> ReconciliationResult:
        self._stop_requested = False
        outcomes: list[EntryOutcome] = []
        authoritative: set[str] = set()
        newstuff: set[str] = set()
        total_size = 0
        malformed = 0
        truncated = False

        for event in events:
            if self._stop_requested or (self.limit is not None and len(outcomes) >= self.limit):
                if event.entry is None:
                    # only another entry means the listing was cut short
                    continue
                logger.info("stopping after %d entries", len(outcomes))
                truncated = True
                break

            if event.entry is not None:
                outcome = self._process(event.entry)
                outcomes.append(outcome)
                authoritative.add(outcome.local.absolute_path)
                if outcome.entry.is_file:
                    total_size += outcome.entry.size
                    if outcome.local.is_newstuff:
                        newstuff.add(outcome.local.absolute_path)
            elif event.kind is EventKind.DIRECTORY_HEADER:
                logger.debug("setting current directory to: %s", event.directory or "<root>")
                self._report("write_header", event)
            elif event.kind is EventKind.TOTAL:
                self._report("write_total", event)
            elif event.kind is EventKind.SYMLINK:
                logger.info("found a symlink in %s", event.directory or "/")
                self._report("write_symlink", event)
            else:
                malformed += 1
                logger.warning("Unknown line found in input data (line %d); >%s<", event.line_number, event.raw)

        return ReconciliationResult(
            outcomes=tuple(outcomes),
            authoritative=frozenset(authoritative),
            newstuff=frozenset(newstuff),
            total_archive_size=total_size,
            malformed_lines=malformed,
            truncated=truncated,
        )

    # ------------------------------------------------------------------
    # Internal helpers

    def _report(self, method: str, event: ListingEvent) -> None:
        if self.reporter is not None:
            getattr(self.reporter, method)(event)

    def _process(self, entry: ArchiveEntry) -> EntryOutcome:
        local = classify(entry, self.mirror_root, self.conventions, self.style)
        if self.reporter is not None:
            self.reporter.write_record(entry, local)

        decision = decide(local, entry, self.flags)
        if decision.action is SyncAction.SKIP:
            logger.debug("skipping %s (%s)", entry.path, decision.rule)
            return EntryOutcome(entry, local, decision.action, rule=decision.rule)
        if decision.action is SyncAction.DRY_RUN:
            logger.debug("needs sync, dry-run set: %s", entry.path)
            return EntryOutcome(entry, local, decision.action)

        if entry.kind is EntryKind.DIRECTORY:
            return self._sync_directory(entry, local)
        return self._sync_file(entry, local)

    def _sync_directory(self, entry: ArchiveEntry, local: LocalEntry) -> EntryOutcome:
        try:
            make_directory(Path(local.absolute_path))
        except OSError as exc:
            logger.error("Can't create directory %s: %s", local.absolute_path, exc)
            return EntryOutcome(entry, local, SyncAction.FETCH, succeeded=False)
        return EntryOutcome(entry, restat(local), SyncAction.FETCH, succeeded=True)

    def _sync_file(self, entry: ArchiveEntry, local: LocalEntry) -> EntryOutcome:
        if self.fetcher is None:
            raise ValueError("A fetcher is required to sync files")
        try:
            downloaded = self.fetcher.fetch(entry.path, self.base_url)
        except OSError as exc:
            logger.error("Can't fetch %s: %s", entry.path, exc)
            downloaded = None
        if downloaded is None:
            logger.warning("Failed to sync %s", entry.path)
            return EntryOutcome(entry, local, SyncAction.FETCH, succeeded=False)

        try:
            install_file(downloaded, Path(local.absolute_path))
        except OSError as exc:
            logger.error("Can't move %s to %s: %s", downloaded, local.absolute_path, exc)
            with suppress(OSError):
                remove_path(downloaded)
            return EntryOutcome(entry, local, SyncAction.FETCH, succeeded=False)

        refreshed = restat(local)
        mismatch = refreshed.size != entry.size and not refreshed.is_metafile
        if mismatch:
            logger.warning(
                "Downloaded size: %d doesn't match archive file size: %d (%s)",
                refreshed.size,
                entry.size,
                entry.path,
            )
        return EntryOutcome(entry, refreshed, SyncAction.FETCH, succeeded=True, size_mismatch=mismatch)
