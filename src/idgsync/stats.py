"""Run statistics."""

from __future__ import annotations

import time

from .models import EntryKind, PruneResult, ReconciliationResult, RunStats


class StatsAggregator:
    """Times a run and folds its results into a ``RunStats`` snapshot."""

    def __init__(self, *, dry_run: bool = False) -> None:
        self.dry_run = dry_run
        self._started: float | None = None
        self._stopped: float | None = None

    def start_timer(self) -> None:
        self._started = time.monotonic()
        self._stopped = None

    def stop_timer(self) -> None:
        self._stopped = time.monotonic()

    @property
    def elapsed(self) -> float:
        if self._started is None:
            return 0.0
        end = self._stopped if self._stopped is not None else time.monotonic()
        return end - self._started

    def snapshot(self, result: ReconciliationResult, pruned: PruneResult | None = None) -> RunStats:
        synced = result.synced
        synced_files = [outcome for outcome in synced if outcome.entry.kind is EntryKind.FILE]
        return RunStats(
            dry_run=self.dry_run,
            elapsed_seconds=self.elapsed,
            synced_files=len(synced_files),
            synced_directories=len(synced) - len(synced_files),
            synced_bytes=sum(outcome.entry.size for outcome in synced_files),
            failed_files=len(result.failed),
            size_mismatches=sum(1 for outcome in result.outcomes if outcome.size_mismatch),
            total_archive_files=result.archive_file_count,
            total_archive_size=result.total_archive_size,
            newstuff_file_count=len(result.newstuff),
            deleted_file_count=pruned.deleted_count if pruned else 0,
            delete_failures=len(pruned.failed) if pruned else 0,
            malformed_lines=result.malformed_lines,
            truncated=result.truncated,
        )
