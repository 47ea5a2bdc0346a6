"""Command-line interface for idgsync."""

from __future__ import annotations

import io
from pathlib import Path

import tomli_w
import typer
from rich.console import Console
from rich.markup import escape

from .config import (
    DEFAULT_CONFIG_FILENAME,
    DEFAULT_METAFILES,
    DEFAULT_REPORT_TYPES,
    DEFAULT_WAD_DIRECTORIES,
    Config,
    ConfigError,
    ReportFormat,
    ReportType,
    load_config,
)
from .fetcher import HttpFetcher
from .listing import ListingError
from .log import setup_logging
from .manager import MirrorManager, SyncError

app = typer.Typer(help="Synchronize a local copy of the idGames archive")
console = Console()

DEBUG_FILES = 50


def _handle_error(exc: Exception) -> None:
    if isinstance(exc, PermissionError):
        console.print("[red]Permission denied.[/red] Check that the mirror path and temp directory are writable.")
        raise typer.Exit(code=1)
    if isinstance(exc, ConfigError):
        message = str(exc)
        console.print(f"[red]{escape(message)}[/red]")
        if "does not exist" in message:
            console.print("[yellow]Use 'idgsync init --config <path>' to create a configuration file.[/yellow]")
        raise typer.Exit(code=1)
    if isinstance(exc, (SyncError, ListingError)):
        console.print(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(code=1)
    raise exc


def _load(config: Path | None, **mirror: object) -> Config:
    return load_config(config).with_overrides(mirror=mirror)


def _report_types(types: list[ReportType] | None, size_local: bool, size_same: bool) -> tuple[ReportType, ...] | None:
    if types:
        return tuple(types)
    if size_same:
        return (ReportType.SIZE, ReportType.SAME)
    if size_local:
        return DEFAULT_REPORT_TYPES
    return None


@app.command()
def sync(
    path: Path | None = typer.Option(None, "--path", "-p", help="Path to the local copy of the idGames archive"),
    config: Path | None = typer.Option(None, "--config", "-c", help=f"Path to {DEFAULT_CONFIG_FILENAME}"),
    url: str | None = typer.Option(None, "--url", "-u", help="Use a specific mirror URL instead of a random one"),
    exclude: list[str] = typer.Option(None, "--exclude", "-e", help="Mirror URL(s) never to use"),
    report_format: ReportFormat | None = typer.Option(None, "--format", "-f", help="Output format"),
    report_type: list[ReportType] = typer.Option(None, "--type", "-t", help="Report type(s) to show"),
    size_local: bool = typer.Option(False, "--size-local", help="Show size mismatches and missing local files"),
    size_same: bool = typer.Option(False, "--size-same", help="Show size mismatches and same-size files"),
    dry_run: bool = typer.Option(False, "--dry-run", "-n", help="Don't sync, explain what would be done"),
    sync_all: bool = typer.Option(False, "--sync-all", help="Synchronize everything, not just WADs"),
    dotfiles: bool = typer.Option(False, "--dotfiles", help="Sync and show hidden files"),
    incoming: bool = typer.Option(False, "--incoming", help="Sync files in /incoming (usually fails)"),
    prune_all: bool = typer.Option(False, "--prune-all", help="Prune the whole mirror, not just /newstuff"),
    create_mirror: bool = typer.Option(False, "--create-mirror", help="Authorize creating a new mirror"),
    skip_listing: bool = typer.Option(False, "--skip-listing", help="Don't refresh the archive listing first"),
    headers: bool = typer.Option(False, "--headers", help="Show directory headers and blocks used"),
    tempdir: Path | None = typer.Option(None, "--tempdir", help="Temporary directory for downloads"),
    debug_files: int | None = typer.Option(None, "--debug-files", help="Stop after this many entries"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log INFO messages"),
    debug: bool = typer.Option(False, "--debug", "-d", help="Log DEBUG messages; stops early unless --debug-files"),
    colorize: bool | None = typer.Option(
        None, "--colorize/--no-colorize", help="Colourise log output (default: only on a terminal)"
    ),
) -> None:
    """Create or update the local mirror from the archive listing."""

    try:
        setup_logging(verbose=verbose, debug=debug, colorize=colorize)
        cfg = load_config(config).with_overrides(
            mirror={"path": path, "url": url, "exclude": tuple(exclude) if exclude else None, "tempdir": tempdir},
            sync={
                "sync_all": sync_all or None,
                "dotfiles": dotfiles or None,
                "incoming": incoming or None,
                "prune_all": prune_all or None,
            },
            report={
                "format": report_format,
                "types": _report_types(report_type, size_local, size_same),
                "headers": headers or None,
            },
        )
        if cfg.mirror.path is None:
            raise ConfigError("Must specify the mirror path with --path")

        limit = debug_files if debug_files is not None else (DEBUG_FILES if debug else None)
        manager = MirrorManager(cfg)
        try:
            manager.sync(
                dry_run=dry_run,
                create_mirror=create_mirror,
                skip_listing=skip_listing,
                limit=limit,
            )
        finally:
            manager.close()
    except Exception as exc:  # noqa: BLE001
        _handle_error(exc)


@app.command("update-listing")
def update_listing(
    path: Path | None = typer.Option(None, "--path", "-p", help="Path to the local copy of the idGames archive"),
    config: Path | None = typer.Option(None, "--config", "-c", help=f"Path to {DEFAULT_CONFIG_FILENAME}"),
    url: str | None = typer.Option(None, "--url", "-u", help="Fetch the listing from this mirror"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log INFO messages"),
) -> None:
    """Refresh the local archive listing, then exit."""

    try:
        setup_logging(verbose=verbose)
        cfg = _load(config, path=path, url=url)
        manager = MirrorManager(cfg)
        try:
            refresh = manager.update_listing()
        finally:
            manager.close()
        console.print(f"- {refresh.path.name} synchronized")
    except Exception as exc:  # noqa: BLE001
        _handle_error(exc)


@app.command()
def mirrors(
    config: Path | None = typer.Option(None, "--config", "-c", help=f"Path to {DEFAULT_CONFIG_FILENAME}"),
    exclude: list[str] = typer.Option(None, "--exclude", "-e", help="Mirror URL(s) to leave out"),
) -> None:
    """Show the mirror URLs that downloads are spread across."""

    try:
        cfg = _load(config, exclude=tuple(exclude) if exclude else None)
        with HttpFetcher(exclude=cfg.mirror.exclude, mirrors=cfg.mirror.mirrors) as fetcher:
            console.print("Current mirror URLs:")
            for mirror in fetcher.mirror_list():
                console.print(f"- {mirror}", markup=False, highlight=False)
    except Exception as exc:  # noqa: BLE001
        _handle_error(exc)


def _render_init_config(*, mirror_path: str) -> str:
    data = {
        "mirror": {"path": mirror_path, "exclude": []},
        "sync": {"sync_all": False, "dotfiles": False, "incoming": False, "prune_all": False},
        "report": {
            "format": ReportFormat.MORE.value,
            "types": [report_type.value for report_type in DEFAULT_REPORT_TYPES],
            "headers": False,
        },
        "conventions": {
            "newstuff_dir": "/newstuff",
            "incoming_dir": "/incoming",
            "wad_directories": list(DEFAULT_WAD_DIRECTORIES),
            "metafiles": list(DEFAULT_METAFILES),
        },
    }

    buffer = io.StringIO()
    buffer.write("# idgsync configuration\n\n")
    buffer.write(tomli_w.dumps(data))
    return buffer.getvalue()


@app.command()
def init(
    config: Path = typer.Option(
        Path(DEFAULT_CONFIG_FILENAME),
        "--config",
        "-c",
        help="Path to write the configuration file",
        dir_okay=False,
        writable=True,
    ),
    mirror_path: str = typer.Option("./idgames", "--path", "-p", help="Mirror path to put in the template"),
    force: bool = typer.Option(False, "--force", help="Overwrite existing config if present"),
) -> None:
    """Create a starter idgsync configuration file."""

    if config.exists() and not force:
        console.print(f"[red]Configuration '{config}' already exists. Use --force to overwrite.[/red]")
        raise typer.Exit(code=1)

    config.parent.mkdir(parents=True, exist_ok=True)
    config.write_text(_render_init_config(mirror_path=mirror_path))
    console.print(f"[green]Created '{config}'.[/green]")


def run() -> None:
    """Entry point used for console_script bindings."""

    app()

