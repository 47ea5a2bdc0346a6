"""HTTP retrieval of archive files from idGames mirrors."""

from __future__ import annotations

import logging
import os
import random
import tempfile
from pathlib import Path
from typing import Protocol, Sequence

import httpx

from .config import DEFAULT_MIRRORS, MASTER_MIRROR

logger = logging.getLogger(__name__)

HTTP_TIMEOUT = httpx.Timeout(30.0, connect=10.0)
CHUNK_SIZE = 64 * 1024


class Fetcher(Protocol):
    """Anything that can download an archive path to a local temp file."""

    def fetch(self, remote_path: str, base_url: str | None = None) -> Path | None: ...


def join_url(base_url: str, remote_path: str) -> str:
    return f"{base_url.rstrip('/')}/{remote_path.lstrip('/')}"


class HttpFetcher:
    """Downloads files from a fixed mirror or a random non-excluded one.

    Every download is streamed into a temp file under ``tempdir``; the caller
    owns that file afterwards. Failures are logged and reported as ``None``.
    """

    def __init__(
        self,
        *,
        base_url: str | None = None,
        exclude: Sequence[str] = (),
        tempdir: Path | None = None,
        mirrors: Sequence[str] = DEFAULT_MIRRORS,
        master_mirror: str = MASTER_MIRROR,
        client: httpx.Client | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.base_url = base_url
        self.exclude = tuple(exclude)
        self.tempdir = tempdir
        self.master_mirror = master_mirror
        self._mirrors = tuple(mirrors)
        self._client = client or httpx.Client(timeout=HTTP_TIMEOUT, follow_redirects=True)
        self._owns_client = client is None
        self._rng = rng or random.Random()

    def __enter__(self) -> "HttpFetcher":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def mirror_list(self) -> list[str]:
        """Return the mirrors that are not excluded."""

        excluded = {url.rstrip("/") for url in self.exclude}
        return [mirror for mirror in self._mirrors if mirror.rstrip("/") not in excluded]

    def pick_mirror(self) -> str:
        if self.base_url:
            return self.base_url
        candidates = self.mirror_list()
        if not candidates:
            raise RuntimeError("All mirrors are excluded; nothing to download from")
        return self._rng.choice(candidates)

    def _temp_file(self, remote_path: str) -> tuple[int, Path]:
        if self.tempdir is not None:
            self.tempdir.mkdir(parents=True, exist_ok=True)
        name = Path(remote_path).name
        fd, temp_name = tempfile.mkstemp(prefix="idgsync-", suffix=f"-{name}" if name else "", dir=self.tempdir)
        return fd, Path(temp_name)

    def fetch(self, remote_path: str, base_url: str | None = None) -> Path | None:
        url = join_url(base_url or self.pick_mirror(), remote_path)
        try:
            fd, temp_path = self._temp_file(remote_path)
        except OSError as exc:
            logger.warning("Can't create a temp file for %s in %s: %s", url, self.tempdir, exc)
            return None
        logger.debug("fetching %s into %s", url, temp_path)

        status = None
        try:
            with os.fdopen(fd, "wb") as handle:
                with self._client.stream("GET", url) as response:
                    status = response.status_code
                    if status == httpx.codes.OK:
                        for chunk in response.iter_bytes(CHUNK_SIZE):
                            handle.write(chunk)
        except (httpx.HTTPError, OSError) as exc:
            logger.warning("Error fetching %s: %s", url, exc)
            temp_path.unlink(missing_ok=True)
            return None

        if status != httpx.codes.OK:
            logger.warning("HTTP %s fetching %s", status, url)
            temp_path.unlink(missing_ok=True)
            return None

        logger.info("fetched %s (%d bytes)", url, temp_path.stat().st_size)
        return temp_path
