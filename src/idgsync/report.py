"""Console reporting of per-entry records and run statistics."""

from __future__ import annotations

from typing import Iterable

from rich.console import Console
from rich.table import Table

from .config import DEFAULT_REPORT_TYPES, ReportFormat, ReportType
from .listing import ListingRefresh
from .models import ArchiveEntry, EntryKind, ListingEvent, LocalEntry, PruneResult, RunStats


def status_flag(local: LocalEntry) -> str:
    """Two-character status used by the ``simple`` format."""

    if not local.exists:
        return "!!"
    if local.kind is EntryKind.DIRECTORY:
        return "DD"
    if local.size != local.archive_size:
        return "FS"
    return "FF"


def _local_state(local: LocalEntry) -> str:
    if not local.exists:
        return "missing"
    if local.kind is EntryKind.FILE and local.size != local.archive_size:
        return f"size mismatch (local {local.size})"
    return "present"


def _human_size(value: int) -> str:
    size = float(value)
    for unit in ("B", "KiB", "MiB"):
        if size < 1024:
            return f"{int(size)} B" if unit == "B" else f"{size:.2f} {unit}"
        size /= 1024
    return f"{size:.2f} GiB"


class Reporter:
    """Writes records for archive entries in one of three formats."""

    def __init__(
        self,
        *,
        report_format: ReportFormat = ReportFormat.MORE,
        report_types: Iterable[ReportType] = DEFAULT_REPORT_TYPES,
        show_dotfiles: bool = False,
        console: Console | None = None,
    ) -> None:
        self.report_format = report_format
        self.report_types = frozenset(report_types)
        self.show_dotfiles = show_dotfiles
        self.console = console or Console(soft_wrap=True)

    def wants(self, report_type: ReportType) -> bool:
        return report_type in self.report_types

    def should_report(self, local: LocalEntry) -> bool:
        if local.is_dotfile and not self.show_dotfiles:
            return False
        if not local.exists:
            return self.wants(ReportType.LOCAL)
        if local.kind is EntryKind.FILE and local.size != local.archive_size:
            return self.wants(ReportType.SIZE)
        return self.wants(ReportType.SAME)

    def format_record(self, entry: ArchiveEntry, local: LocalEntry) -> list[str]:
        if self.report_format is ReportFormat.SIMPLE:
            return [f"{status_flag(local)} {entry.path}"]
        if self.report_format is ReportFormat.MORE:
            kind = "D" if entry.kind is EntryKind.DIRECTORY else "F"
            return [
                f"{kind} {entry.path}  {entry.mod_time}  {entry.size}",
                f"  {entry.perms} {entry.hardlinks} {entry.owner} {entry.group}; local: {_local_state(local)}",
            ]
        return [
            f"- name: {entry.name}",
            f"  type: {entry.kind.value}",
            f"  archive path: {entry.path}",
            f"  local path: {local.absolute_path}",
            f"  perms: {entry.perms}",
            f"  hardlinks: {entry.hardlinks}",
            f"  owner: {entry.owner}",
            f"  group: {entry.group}",
            f"  size: {entry.size}",
            f"  mod time: {entry.mod_time}",
            f"  local: {_local_state(local)}",
        ]

    def write_record(self, entry: ArchiveEntry, local: LocalEntry) -> None:
        if not self.should_report(local):
            return
        for line in self.format_record(entry, local):
            self.console.print(line, markup=False, highlight=False)

    def write_header(self, event: ListingEvent) -> None:
        if self.wants(ReportType.HEADERS):
            self.console.print(f"=== Entering directory: .{event.directory}: ===", markup=False, highlight=False)

    def write_total(self, event: ListingEvent) -> None:
        if self.wants(ReportType.HEADERS):
            self.console.print(f"- total blocks taken by this directory: {event.blocks}", highlight=False)

    def write_symlink(self, event: ListingEvent) -> None:
        if self.wants(ReportType.HEADERS):
            self.console.print(f"- found a symlink in: {event.directory or '/'}", markup=False, highlight=False)

    def write_orphans(self, paths: Iterable[str]) -> None:
        if not self.wants(ReportType.ARCHIVE):
            return
        for path in paths:
            self.console.print(f"-- {path} (not in archive)", markup=False, highlight=False)

    def write_prune(self, result: PruneResult, location: str) -> None:
        deleted = set(result.deleted)
        for path in result.candidates:
            if result.dry_run:
                self.console.print(f"* Would delete {location} file: {path}", markup=False, highlight=False)
            elif path in deleted:
                self.console.print(f"* Deleted {location} file: {path}", markup=False, highlight=False)
        for path, reason in result.failed:
            self.console.print(f"* Can't delete {path}: {reason}", style="red", markup=False, highlight=False)

    def write_listing_refresh(self, refresh: ListingRefresh) -> None:
        self.console.print(
            f"- Local file size:   {refresh.local_size};  checksum: {refresh.local_digest or 'none'}",
            highlight=False,
        )
        self.console.print(
            f"- Archive file size: {refresh.remote_size};  checksum: {refresh.remote_digest}",
            highlight=False,
        )
        if refresh.replaced:
            self.console.print(f"- {refresh.path.name} checksum mismatch, replaced {refresh.path}", markup=False)
        else:
            self.console.print(f"- {refresh.path} and archive copy match!", markup=False)

    def write_stats(self, stats: RunStats) -> None:
        title = "Dry-run statistics" if stats.dry_run else "Run statistics"
        table = Table(title=title, show_header=True, header_style="bold magenta")
        table.add_column("Statistic")
        table.add_column("Value", justify="right")

        synced_label = "Files that would be synced" if stats.dry_run else "Files synced"
        rows = [
            ("Elapsed time", f"{stats.elapsed_seconds:.1f}s"),
            ("Archive files", str(stats.total_archive_files)),
            ("Archive size", _human_size(stats.total_archive_size)),
            ("/newstuff files", str(stats.newstuff_file_count)),
            (synced_label, str(stats.synced_files)),
            ("Directories created", str(stats.synced_directories)),
            ("Bytes synced", _human_size(stats.synced_bytes)),
            ("Failed downloads", str(stats.failed_files)),
            ("Size mismatches", str(stats.size_mismatches)),
            ("Files deleted", str(stats.deleted_file_count)),
            ("Delete failures", str(stats.delete_failures)),
            ("Unparsed lines", str(stats.malformed_lines)),
        ]
        for label, value in rows:
            table.add_row(label, value)

        self.console.print(table)
        if stats.truncated:
            self.console.print("[yellow]Listing was not fully processed; run stopped early.[/yellow]")
