"""Core package for the idgsync project."""

from .classifier import PathStyle, classify
from .cli import app, run
from .config import Config, ConfigError, Conventions, load_config
from .driver import ReconciliationDriver
from .fetcher import HttpFetcher
from .listing import ListingError, ParseContext, load_listing, parse_line, parse_listing
from .manager import MirrorManager, SyncError, SyncReport
from .models import (
    ArchiveEntry,
    EntryKind,
    EntryOutcome,
    EventKind,
    ListingEvent,
    LocalEntry,
    PruneResult,
    ReconciliationResult,
    RunStats,
    SyncAction,
)
from .policy import SyncFlags, decide
from .prune import PruneScope, prune
from .report import Reporter
from .stats import StatsAggregator

__all__ = [
    "Config",
    "ConfigError",
    "Conventions",
    "load_config",
    "ArchiveEntry",
    "EntryKind",
    "EntryOutcome",
    "EventKind",
    "ListingEvent",
    "LocalEntry",
    "PruneResult",
    "ReconciliationResult",
    "RunStats",
    "SyncAction",
    "ListingError",
    "ParseContext",
    "load_listing",
    "parse_line",
    "parse_listing",
    "PathStyle",
    "classify",
    "SyncFlags",
    "decide",
    "ReconciliationDriver",
    "PruneScope",
    "prune",
    "StatsAggregator",
    "HttpFetcher",
    "Reporter",
    "MirrorManager",
    "SyncError",
    "SyncReport",
    "app",
    "run",
]
