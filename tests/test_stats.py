from __future__ import annotations

from pathlib import Path

import pytest
from conftest import FakeFetcher

from idgsync.driver import ReconciliationDriver
from idgsync.listing import parse_listing
from idgsync.models import PruneResult
from idgsync.policy import SyncFlags
from idgsync.stats import StatsAggregator


def test_snapshot_after_sync(mirror: Path, fetcher: FakeFetcher, sample_listing: str) -> None:
    fetcher.fail.add("/newstuff/new.zip")
    fetcher.payloads["/levels/doom2/map01.zip"] = b"short"
    result = ReconciliationDriver(mirror, SyncFlags(), fetcher=fetcher).run(parse_listing(sample_listing))
    pruned = PruneResult(candidates=("a", "b", "c"), deleted=("a", "b"), failed=(("c", "Permission denied"),))

    stats = StatsAggregator().snapshot(result, pruned)

    assert stats.dry_run is False
    assert stats.synced_files == 2
    assert stats.synced_directories == 5
    assert stats.synced_bytes == 11 + 9
    assert stats.failed_files == 1
    assert stats.size_mismatches == 1
    assert stats.total_archive_files == 6
    assert stats.total_archive_size == 58
    assert stats.newstuff_file_count == 1
    assert stats.deleted_file_count == 2
    assert stats.delete_failures == 1
    assert stats.malformed_lines == 0
    assert stats.truncated is False


def test_dry_run_snapshot_counts_would_be_syncs(mirror: Path, sample_listing: str) -> None:
    result = ReconciliationDriver(mirror, SyncFlags(dry_run=True)).run(parse_listing(sample_listing))

    stats = StatsAggregator(dry_run=True).snapshot(result)

    assert stats.dry_run is True
    assert stats.synced_files == 3
    assert stats.synced_bytes == 11 + 9 + 5
    assert stats.deleted_file_count == 0
    assert stats.delete_failures == 0


def test_timer(monkeypatch: pytest.MonkeyPatch) -> None:
    ticks = iter([100.0, 102.5])
    monkeypatch.setattr("idgsync.stats.time.monotonic", lambda: next(ticks))
    aggregator = StatsAggregator()

    assert aggregator.elapsed == 0.0
    aggregator.start_timer()
    aggregator.stop_timer()

    assert aggregator.elapsed == pytest.approx(2.5)
