"""Conditional download of an artifact through the on-disk cache.

One call to :meth:`Downloader.download_file` runs this sequence:

1. look up the cache entry for the URL and the etag last recorded for it;
2. send ``GET`` with ``If-None-Match`` when an etag is known;
3. on ``304`` reuse the cached file, on ``200`` stream the body into the
   cache (verifying the checksum), on anything else fail.

Nothing is retried here; a caller that wants retries wraps the whole call.
"""

from __future__ import annotations

import io
import logging
from pathlib import Path
from typing import Iterator, Optional

import httpx

from ..errors import DataflowShellError, DownloadFailure
from .cache import Cache
from .checksums import DigestAlgorithm

__all__ = ["Downloader", "IF_NONE_MATCH_HEADER", "ETAG_HEADER"]

LOGGER = logging.getLogger("DataflowShell.download.downloader")

IF_NONE_MATCH_HEADER = "If-None-Match"
ETAG_HEADER = "ETag"

_BODY_CHUNK_SIZE = 1 << 16


class _ResponseBody(io.RawIOBase):
    """Readable, closable view over a streaming :class:`httpx.Response` body."""

    def __init__(self, response: httpx.Response, chunk_size: int = _BODY_CHUNK_SIZE) -> None:
        super().__init__()
        self._response = response
        self._chunks: Iterator[bytes] = response.iter_bytes(chunk_size)
        self._pending = b""

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        while not self._pending:
            try:
                self._pending = next(self._chunks)
            except StopIteration:
                return 0
        count = min(len(buffer), len(self._pending))
        buffer[:count] = self._pending[:count]
        self._pending = self._pending[count:]
        return count

    def close(self) -> None:
        if not self.closed:
            self._response.close()
        super().close()


class Downloader:
    """Fetch artifacts into a :class:`Cache` using etag-based conditional requests."""

    def __init__(
        self,
        cache: Cache,
        client: httpx.Client,
        *,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.cache = cache
        self.client = client
        self.logger = logger or LOGGER

    def download_file(self, url: str, checksum: str, digest: DigestAlgorithm) -> Optional[Path]:
        """Return a local path holding the current content of ``url``.

        Args:
            url: Artifact download URL.
            checksum: Expected lowercase hex digest of the artifact.
            digest: Fresh digest object matching ``checksum`` (for example
                ``hashlib.sha256()``).

        Returns:
            The cached file path. ``None`` is returned when the server answers
            ``304`` but the cached file has gone missing from disk.

        Raises:
            OSError: If the cache index cannot be read.
            DownloadFailure: On an invalid URL, a transport error, or an
                unexpected status. ``cached_path`` holds the prior cached copy.
            ChecksumMismatchError, EtagIndexUpdateError, OSError: If storing the
                body fails. The exception gains a ``cached_path`` attribute.
        """

        entry = self.cache.entry(url)
        cached_path, cached_etag = entry.retrieve()

        headers = {}
        if cached_etag:
            headers[IF_NONE_MATCH_HEADER] = cached_etag
            if cached_path is None:
                self.logger.warning(
                    "File at '%s' has previously been cached but cannot be found on local disk. "
                    "Downloading again.",
                    url,
                    extra={"url": url, "etag": cached_etag},
                )

        try:
            request = self.client.build_request("GET", url, headers=headers)
        except httpx.InvalidURL as exc:
            raise DownloadFailure(
                f"Request for download URL {url!r} failed: {exc}", url=url, cached_path=cached_path
            ) from exc

        try:
            response = self.client.send(request, stream=True)
        except httpx.HTTPError as exc:
            raise DownloadFailure(
                f"Download from URL {url!r} failed: {exc}", url=url, cached_path=cached_path
            ) from exc

        try:
            if response.status_code == httpx.codes.NOT_MODIFIED:
                self.logger.debug("cached copy is current", extra={"url": url, "etag": cached_etag})
                return cached_path

            if response.status_code == httpx.codes.OK:
                self.logger.info("Downloading %s", url, extra={"url": url})
                new_etag = response.headers.get(ETAG_HEADER, "")
                try:
                    entry.store(_ResponseBody(response), new_etag, checksum, digest)
                except httpx.HTTPError as exc:
                    raise DownloadFailure(
                        f"Download from URL {url!r} failed: {exc}",
                        url=url,
                        status_code=response.status_code,
                        cached_path=cached_path,
                    ) from exc
                except (OSError, DataflowShellError) as exc:
                    exc.cached_path = cached_path  # type: ignore[attr-defined]
                    raise
                return entry.download_file

            raise DownloadFailure(
                f"Unexpected response '{response.status_code}' downloading from '{url}'",
                url=url,
                status_code=response.status_code,
                cached_path=cached_path,
            )
        finally:
            response.close()
