"""TOML configuration loading for idgsync."""

from __future__ import annotations

import os
import tempfile
import tomllib
from enum import Enum
from pathlib import Path
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationError

DEFAULT_CONFIG_FILENAME = "idgsync.toml"
DEFAULT_LISTING_NAME = "ls-laR.gz"

MASTER_MIRROR = "https://www.gamers.org/pub/idgames/"

DEFAULT_MIRRORS: tuple[str, ...] = (
    "https://www.gamers.org/pub/idgames/",
    "https://youfailit.net/pub/idgames/",
    "https://www.quaddicted.com/files/idgames/",
    "https://ftpmirror1.infania.net/pub/idgames/",
    "https://mirrors.syringanetworks.net/idgames/",
    "http://ftp.mancubus.net/pub/idgames/",
)

DEFAULT_WAD_DIRECTORIES: tuple[str, ...] = (
    "combos",
    "deathmatch",
    "docs",
    "graphics",
    "historic",
    "levels",
    "lmps",
    "megawads",
    "misc",
    "music",
    "prefabs",
    "roguestuff",
    "skins",
    "sounds",
    "spritefx",
    "themes",
    "utils",
)

DEFAULT_METAFILES: tuple[str, ...] = (
    "ls-laR.gz",
    "ls-lR.gz",
    "README*",
    "readme*",
    "index.*",
    "*.msg",
    ".message",
    ".listing",
)


class ConfigError(RuntimeError):
    """Raised when a configuration file cannot be parsed or validated."""


class ReportFormat(str, Enum):
    FULL = "full"
    MORE = "more"
    SIMPLE = "simple"


class ReportType(str, Enum):
    HEADERS = "headers"
    LOCAL = "local"
    ARCHIVE = "archive"
    SIZE = "size"
    SAME = "same"


DEFAULT_REPORT_TYPES: tuple[ReportType, ...] = (ReportType.SIZE, ReportType.LOCAL)


def _expand_path(raw: str | os.PathLike[str] | Path, *, base_dir: Path) -> Path:
    """Return an absolute ``Path`` by expanding env vars and user segments."""

    text = str(raw)
    expanded = Path(os.path.expandvars(text)).expanduser()
    if expanded.is_absolute():
        return expanded.resolve(strict=False)
    return (base_dir / expanded).resolve(strict=False)


def default_tempdir() -> Path:
    """Pick a download staging directory from TEMP, TMP or TMPDIR."""

    for name in ("TEMP", "TMP", "TMPDIR"):
        value = os.environ.get(name)
        if value:
            return Path(value)
    return Path(tempfile.gettempdir())


class MirrorSettings(BaseModel):
    """Where the local mirror lives and where files are fetched from."""

    model_config = ConfigDict(frozen=True)

    path: Path | None = None
    url: str | None = None
    exclude: tuple[str, ...] = ()
    tempdir: Path = Field(default_factory=default_tempdir)
    listing: str = DEFAULT_LISTING_NAME
    mirrors: tuple[str, ...] = DEFAULT_MIRRORS

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any], *, base_dir: Path) -> "MirrorSettings":
        values: dict[str, Any] = {}
        if raw.get("path") is not None:
            values["path"] = _expand_path(raw["path"], base_dir=base_dir)
        if raw.get("tempdir") is not None:
            values["tempdir"] = _expand_path(raw["tempdir"], base_dir=base_dir)
        for key in ("url", "listing"):
            if raw.get(key) is not None:
                values[key] = str(raw[key])
        for key in ("exclude", "mirrors"):
            if raw.get(key) is not None:
                values[key] = tuple(str(item) for item in raw[key])
        return cls(**values)

    @property
    def listing_path(self) -> Path:
        if self.path is None:
            raise ConfigError("Must specify the mirror path with --path or [mirror].path")
        return self.path / self.listing


class SyncSettings(BaseModel):
    """Switches that widen what gets synchronized or pruned."""

    model_config = ConfigDict(frozen=True)

    sync_all: bool = False
    dotfiles: bool = False
    incoming: bool = False
    prune_all: bool = False


class ReportSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    format: ReportFormat = ReportFormat.MORE
    types: tuple[ReportType, ...] = DEFAULT_REPORT_TYPES
    headers: bool = False


class Conventions(BaseModel):
    """Archive layout conventions used to classify entries."""

    model_config = ConfigDict(frozen=True)

    newstuff_dir: str = "/newstuff"
    incoming_dir: str = "/incoming"
    wad_directories: tuple[str, ...] = DEFAULT_WAD_DIRECTORIES
    metafiles: tuple[str, ...] = DEFAULT_METAFILES


class Config(BaseModel):
    """Fully parsed configuration."""

    model_config = ConfigDict(frozen=True)

    config_path: Path | None = None
    mirror: MirrorSettings = Field(default_factory=MirrorSettings)
    sync: SyncSettings = Field(default_factory=SyncSettings)
    report: ReportSettings = Field(default_factory=ReportSettings)
    conventions: Conventions = Field(default_factory=Conventions)

    def with_overrides(
        self,
        *,
        mirror: Mapping[str, Any] | None = None,
        sync: Mapping[str, Any] | None = None,
        report: Mapping[str, Any] | None = None,
    ) -> "Config":
        """Return a copy with the non-``None`` values of each section replaced."""

        update: dict[str, BaseModel] = {}
        for name, section in (("mirror", mirror), ("sync", sync), ("report", report)):
            values = {key: value for key, value in (section or {}).items() if value is not None}
            if values:
                current: BaseModel = getattr(self, name)
                try:
                    update[name] = type(current).model_validate({**current.model_dump(), **values})
                except ValidationError as exc:
                    raise ConfigError(f"Invalid [{name}] setting: {exc}") from exc
        return self.model_copy(update=update)


def load_config(path: Path | None = None) -> Config:
    """Load and validate a configuration file.

    Args:
        path: Optional path to the TOML file or its directory. Without it,
            ``idgsync.toml`` in the current directory is used when present,
            and built-in defaults otherwise.
    """

    config_path = _resolve_config_path(path)
    if config_path is None:
        return Config()

    base_dir = config_path.parent
    try:
        with config_path.open("rb") as handle:
            data = tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Could not parse '{config_path}': {exc}") from exc

    try:
        return Config(
            config_path=config_path,
            mirror=MirrorSettings.from_raw(data.get("mirror", {}), base_dir=base_dir),
            sync=SyncSettings(**data.get("sync", {})),
            report=ReportSettings(**data.get("report", {})),
            conventions=Conventions(**data.get("conventions", {})),
        )
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration in '{config_path}': {exc}") from exc


def _resolve_config_path(path: Path | None) -> Path | None:
    if path is None:
        candidate = Path.cwd() / DEFAULT_CONFIG_FILENAME
        return candidate.resolve(strict=False) if candidate.is_file() else None

    path = Path(path)
    if not path.exists():
        raise ConfigError(f"Configuration file '{path}' does not exist")
    if path.is_dir():
        candidate = path / DEFAULT_CONFIG_FILENAME
        if not candidate.exists():
            raise ConfigError(f"Expected to find '{DEFAULT_CONFIG_FILENAME}' inside '{path}', but none was located")
        path = candidate

    return path.resolve(strict=False)
