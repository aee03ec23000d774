# === NAVMAP v1 ===
# {
#   "module": "DataflowShell.download.cache",
#   "purpose": "Map download URLs to cached files and verify stored content against advertised checksums",
#   "sections": [
#     {"id": "cache", "name": "Cache", "anchor": "class-cache", "kind": "class"},
#     {"id": "cacheentry", "name": "CacheEntry", "anchor": "class-cacheentry", "kind": "class"},
#     {"id": "helpers", "name": "Path helpers", "anchor": "HELP", "kind": "helpers"}
#   ]
# }
# === /NAVMAP ===

"""On-disk cache of downloaded artifacts keyed by their download URL.

Responsibilities
----------------
- Resolve and create the cache root beneath the cf home directory.
- Hand out :class:`CacheEntry` objects that know where a URL's file lives and
  which etag was last recorded for it.
- Store new content, verify it against the advertised checksum, and only then
  record the server's etag.

Design Notes
------------
- The cached file name is the final ``/``-separated segment of the URL. Two
  URLs that end in the same segment share one file; this is a known
  limitation, not something the cache disambiguates. A URL ending in ``/``
  names the cache directory itself and is never reported as cached.
- Files are trusted on read: verification happens once, when they are written.
- Content is copied to a temporary file and moved into place only after the
  copy completes, so an interrupted download never replaces a good jar with a
  truncated one. A checksum mismatch, however, leaves the new file in place
  (the etag index is not touched); cleanup is the caller's decision.
"""

from __future__ import annotations

import contextlib
import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import BinaryIO, Optional, Tuple, Union

from ..errors import ChecksumMismatchError, EtagIndexCorruptError, EtagIndexUpdateError
from ..settings import (
    CACHE_DIRECTORY_MODE,
    CACHE_FILE_MODE,
    CACHE_INDEX_FILENAME,
    EnvironmentOverrides,
    resolve_cache_root,
)
from .checksums import ChecksumCalculator, DigestAlgorithm, FileChecksumCalculator
from .etag_index import EtagIndex, EtagStore

__all__ = ["Cache", "CacheEntry", "download_file_for_url"]

LOGGER = logging.getLogger("DataflowShell.download.cache")

_COPY_CHUNK_SIZE = 1 << 20


def download_file_for_url(url: str, destination_directory: Union[str, Path]) -> Path:
    """Return the cache path for ``url``: its last ``/`` segment under ``destination_directory``."""

    file_name = url.rsplit("/", 1)[-1]
    return Path(destination_directory) / file_name


class Cache:
    """Factory for :class:`CacheEntry` objects sharing one etag index.

    Use :meth:`create` to resolve the cache root from the environment; the
    constructor is for callers that already hold a directory and index.
    """

    def __init__(
        self,
        downloads_directory: Union[str, Path],
        etag_store: EtagStore,
        *,
        checksum_calculator: Optional[ChecksumCalculator] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.downloads_directory = Path(downloads_directory)
        self.etag_store = etag_store
        self.checksum_calculator = checksum_calculator or FileChecksumCalculator()
        self.logger = logger or LOGGER

    @classmethod
    def create(
        cls,
        logger: Optional[logging.Logger] = None,
        *,
        overrides: Optional[EnvironmentOverrides] = None,
    ) -> "Cache":
        """Create the cache root (and its etag index) if needed and return a cache over it.

        Raises:
            ConfigurationError: If neither ``CF_HOME`` nor ``HOME`` is set.
            OSError: If the directory tree or the index file cannot be created,
                for example because a path component is a regular file.
        """

        downloads_directory = resolve_cache_root(overrides)
        os.makedirs(downloads_directory, mode=CACHE_DIRECTORY_MODE, exist_ok=True)
        etag_index = EtagIndex.open(downloads_directory / CACHE_INDEX_FILENAME)
        return cls(downloads_directory, etag_index, logger=logger)

    def entry(self, url: str) -> "CacheEntry":
        return CacheEntry(
            download_url=url,
            download_file=download_file_for_url(url, self.downloads_directory),
            etag_store=self.etag_store,
            checksum_calculator=self.checksum_calculator,
            logger=self.logger,
        )


class CacheEntry:
    """A single cached file plus the etag recorded for its URL."""

    def __init__(
        self,
        *,
        download_url: str,
        download_file: Path,
        etag_store: EtagStore,
        checksum_calculator: ChecksumCalculator,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.download_url = download_url
        self.download_file = download_file
        self.etag_store = etag_store
        self.checksum_calculator = checksum_calculator
        self.logger = logger or LOGGER

    def retrieve(self) -> Tuple[Optional[Path], str]:
        """Return ``(path, etag)`` for this entry.

        ``path`` is ``None`` unless a regular file is on disk; ``etag`` is ``""``
        when none was recorded. Failure to read the index propagates.
        """

        path = self.download_file if self.download_file.is_file() else None
        etag = self.etag_store.get_etag_for_url(self.download_url)
        return path, etag

    def store(
        self,
        contents: BinaryIO,
        etag: str,
        checksum: str,
        digest: DigestAlgorithm,
    ) -> None:
        """Write ``contents`` to the cache, verify it, then record ``etag``.

        ``contents`` is closed before this method returns, whatever happens.

        Raises:
            OSError: If the content cannot be read or written. The etag index
                is left untouched.
            ChecksumMismatchError: If the stored file does not hash to
                ``checksum``. The file stays on disk; the index is untouched.
            EtagIndexUpdateError: If the file was stored and verified but the
                etag could not be recorded.
        """

        try:
            _write_atomically(contents, self.download_file)
        except OSError as exc:
            self.logger.error(
                "Error downloading %s: %s",
                self.download_file,
                exc,
                extra={"url": self.download_url, "download_file": str(self.download_file)},
            )
            raise

        try:
            calculated = self.checksum_calculator.calculate_checksum(self.download_file, digest)
        except OSError as exc:
            self.logger.error(
                "Error calculating checksum of %s: %s",
                self.download_file,
                exc,
                extra={"download_file": str(self.download_file)},
            )
            raise

        if calculated != checksum:
            raise ChecksumMismatchError(self.download_file, expected=checksum, actual=calculated)

        if etag:
            try:
                self.etag_store.set_etag_for_url(self.download_url, etag)
            except (OSError, EtagIndexCorruptError) as exc:
                raise EtagIndexUpdateError(self.download_file, self.download_url) from exc

        self.logger.debug(
            "stored cache entry",
            extra={
                "url": self.download_url,
                "download_file": str(self.download_file),
                "etag": etag,
            },
        )


def _write_atomically(contents: BinaryIO, destination: Path) -> None:
    with contextlib.closing(contents):
        fd, tmp_path = tempfile.mkstemp(
            dir=destination.parent, prefix=f".{destination.name}-", suffix=".part"
        )
        try:
            with os.fdopen(fd, "wb") as handle:
                shutil.copyfileobj(contents, handle, _COPY_CHUNK_SIZE)
            os.chmod(tmp_path, CACHE_FILE_MODE)
            os.replace(tmp_path, destination)
        except BaseException:
            with contextlib.suppress(FileNotFoundError):
                os.unlink(tmp_path)
            raise
