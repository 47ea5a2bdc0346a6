from __future__ import annotations

import gzip
import logging
from pathlib import Path
from typing import Iterator

import pytest

SAMPLE_LISTING = """\
.:
total 16
drwxr-xr-x   4 ftp      ftp          4096 Jan  1  2020 levels
drwxr-xr-x   2 ftp      ftp          4096 Jan  1  2020 newstuff
drwxr-xr-x   2 ftp      ftp          4096 Jan  1  2020 incoming
drwxr-xr-x   2 ftp      ftp          4096 Jan  1  2020 source
-rw-r--r--   1 ftp      ftp            20 Jan  1  2020 .message
lrwxrwxrwx   1 ftp      ftp             8 Jan  1  2020 latest -> newstuff

./levels:
total 4
drwxr-xr-x   2 ftp      ftp          4096 Mar 15 12:30 doom2

./levels/doom2:
total 8
-rw-r--r--   1 ftp      ftp            11 Mar 15 12:30 map01.zip
-rw-r--r--   1 ftp      ftp             9 Mar 15 12:30 my file.txt

./newstuff:
total 4
-rw-r--r--   1 ftp      ftp             5 Apr  2 09:00 new.zip

./incoming:
total 4
-rw-r--r--   1 ftp      ftp             7 Apr  3 10:00 upload.zip

./source:
total 4
-rw-r--r--   1 ftp      ftp             6 Apr  4 11:00 src.zip
"""

SAMPLE_PAYLOADS: dict[str, bytes] = {
    "/.message": b"welcome to idgames!\n",
    "/levels/doom2/map01.zip": b"map01-bytes",
    "/levels/doom2/my file.txt": b"some text",
    "/newstuff/new.zip": b"hello",
    "/incoming/upload.zip": b"upload!",
    "/source/src.zip": b"source",
}


class FakeFetcher:
    """In-memory stand-in for ``HttpFetcher``."""

    master_mirror = "https://mirror.example/idgames/"

    def __init__(self, payloads: dict[str, bytes], tempdir: Path) -> None:
        self.payloads = dict(payloads)
        self.tempdir = tempdir
        self.calls: list[tuple[str, str | None]] = []
        self.fail: set[str] = set()
        self.closed = False

    def fetch(self, remote_path: str, base_url: str | None = None) -> Path | None:
        self.calls.append((remote_path, base_url))
        payload = self.payloads.get(remote_path)
        if payload is None or remote_path in self.fail:
            return None
        self.tempdir.mkdir(parents=True, exist_ok=True)
        target = self.tempdir / f"fetch-{len(self.calls)}"
        target.write_bytes(payload)
        return target

    def mirror_list(self) -> list[str]:
        return [self.master_mirror]

    def close(self) -> None:
        self.closed = True


def write_listing(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    with gzip.open(path, "wb") as handle:
        handle.write(text.encode())
    return path


@pytest.fixture(autouse=True)
def reset_logging() -> Iterator[None]:
    yield
    logger = logging.getLogger("idgsync")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def fake_home(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("USERPROFILE", str(home))
    return home


@pytest.fixture
def mirror(tmp_path: Path) -> Path:
    root = tmp_path / "mirror"
    root.mkdir()
    return root


@pytest.fixture
def sample_listing() -> str:
    return SAMPLE_LISTING


@pytest.fixture
def fetcher(tmp_path: Path) -> FakeFetcher:
    return FakeFetcher(SAMPLE_PAYLOADS, tmp_path / "downloads")
