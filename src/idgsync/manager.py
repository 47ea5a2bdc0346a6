"""High level orchestration for a mirror sync run."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from .classifier import PathStyle
from .config import Config, ReportType
from .driver import ReconciliationDriver
from .fetcher import Fetcher, HttpFetcher
from .listing import ListingRefresh, load_listing, parse_listing, refresh_listing
from .models import PruneResult, ReconciliationResult, RunStats
from .policy import SyncFlags
from .prune import PruneScope, find_orphans, prune
from .report import Reporter
from .stats import StatsAggregator

logger = logging.getLogger(__name__)


class SyncError(RuntimeError):
    """Raised when a sync run cannot proceed at all."""


@dataclass(frozen=True, slots=True)
class SyncReport:
    """Everything produced by one ``MirrorManager.sync`` call."""

    result: ReconciliationResult
    pruned: PruneResult
    stats: RunStats
    refresh: ListingRefresh | None = None


class MirrorManager:
    """Coordinates listing refresh, reconciliation, pruning and statistics."""

    def __init__(
        self,
        config: Config,
        *,
        fetcher: Fetcher | None = None,
        reporter: Reporter | None = None,
        style: PathStyle | None = None,
    ) -> None:
        if config.mirror.path is None:
            raise SyncError("Must specify the mirror path with --path")
        self.config = config
        self.mirror_root: Path = config.mirror.path
        self.listing_path = config.mirror.listing_path
        self.reporter = reporter or Reporter(
            report_format=config.report.format,
            report_types=self._report_types(config),
            show_dotfiles=config.sync.dotfiles,
        )
        self.style = style
        self._fetcher = fetcher

    @staticmethod
    def _report_types(config: Config) -> tuple[ReportType, ...]:
        types = tuple(config.report.types)
        if config.report.headers and ReportType.HEADERS not in types:
            types += (ReportType.HEADERS,)
        return types

    @property
    def fetcher(self) -> Fetcher:
        if self._fetcher is None:
            mirror = self.config.mirror
            fetcher = HttpFetcher(
                base_url=mirror.url,
                exclude=mirror.exclude,
                tempdir=mirror.tempdir,
                mirrors=mirror.mirrors,
            )
            if not mirror.url and not fetcher.mirror_list():
                fetcher.close()
                raise SyncError("Every mirror is excluded; use --url or fewer --exclude options")
            self._fetcher = fetcher
        return self._fetcher

    def close(self) -> None:
        close = getattr(self._fetcher, "close", None)
        if close is not None:
            close()

    def check_listing(self, *, create_mirror: bool = False) -> None:
        """Fail unless a listing exists or creating a new mirror was authorised."""

        if os.access(self.listing_path, os.R_OK):
            return
        if not create_mirror:
            raise SyncError(
                f"Can't read/find the '{self.listing_path.name}' file (checked: {self.listing_path}). "
                "If you are creating a new mirror, use --create-mirror; otherwise check that --path "
                "points at the local copy of the archive."
            )
        logger.info("creating new mirror at %s", self.mirror_root)
        self.mirror_root.mkdir(parents=True, exist_ok=True)

    def update_listing(self) -> ListingRefresh:
        """Download the archive listing and replace the local copy if it changed."""

        self.mirror_root.mkdir(parents=True, exist_ok=True)
        fetcher = self.fetcher
        master = getattr(fetcher, "master_mirror", None)
        refresh = refresh_listing(self.listing_path, fetcher, self.config.mirror.url or master)
        self.reporter.write_listing_refresh(refresh)
        return refresh

    def sync(
        self,
        *,
        dry_run: bool = False,
        create_mirror: bool = False,
        skip_listing: bool = False,
        limit: int | None = None,
    ) -> SyncReport:
        settings = self.config.sync
        stats = StatsAggregator(dry_run=dry_run)
        stats.start_timer()

        self.check_listing(create_mirror=create_mirror)
        refresh = None
        if not dry_run and not skip_listing:
            refresh = self.update_listing()

        text = load_listing(self.listing_path)
        flags = SyncFlags(
            sync_all=settings.sync_all,
            dotfiles=settings.dotfiles,
            incoming=settings.incoming,
            dry_run=dry_run,
        )
        driver = ReconciliationDriver(
            self.mirror_root,
            flags,
            fetcher=None if dry_run else self.fetcher,
            reporter=self.reporter,
            conventions=self.config.conventions,
            style=self.style,
            base_url=self.config.mirror.url,
            limit=limit,
        )
        result = driver.run(parse_listing(text, incoming_dir=self.config.conventions.incoming_dir))

        pruned = self.prune(result, dry_run=dry_run)

        stats.stop_timer()
        snapshot = stats.snapshot(result, pruned)
        self.reporter.write_stats(snapshot)
        return SyncReport(result=result, pruned=pruned, stats=snapshot, refresh=refresh)

    def prune(self, result: ReconciliationResult, *, dry_run: bool = False) -> PruneResult:
        """Remove orphans; only meaningful once the whole listing was reconciled."""

        conventions = self.config.conventions
        keep = (str(self.listing_path),)
        if self.reporter.wants(ReportType.ARCHIVE):
            self.reporter.write_orphans(
                find_orphans(
                    self.mirror_root,
                    result.authoritative,
                    PruneScope.ALL,
                    conventions=conventions,
                    keep=keep,
                    style=self.style,
                )
            )

        scope = PruneScope.ALL if self.config.sync.prune_all else PruneScope.NEWSTUFF
        pruned = prune(
            self.mirror_root,
            result.authoritative,
            scope,
            dry_run=dry_run,
            conventions=conventions,
            keep=keep,
            style=self.style,
        )
        location = "non-archive" if scope is PruneScope.ALL else conventions.newstuff_dir
        self.reporter.write_prune(pruned, location)
        return pruned
