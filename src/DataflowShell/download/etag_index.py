"""Persistent URL to etag mapping backed by a single JSON document.

The index is tiny (one entry per shell jar ever downloaded) so every lookup
re-reads the whole file and every update rewrites it. That keeps the on-disk
document authoritative even if another tool edits it between calls.

Format::

    {"https://host/path/shell-1.2.3.jar": "\\"5f2a-abc\\"", ...}

Keys and values are arbitrary strings; JSON escaping means URLs containing
separators, quotes, or newlines round-trip without ambiguity.

No inter-process locking is performed: a single invocation per cache root is
assumed. Rewrites go through a temporary file and :func:`os.replace`, so a
reader never observes a half-written document, but two concurrent writers can
still lose an update.
"""

from __future__ import annotations

import errno
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Dict, Protocol, Union

from ..errors import EtagIndexCorruptError
from ..settings import CACHE_INDEX_FILE_MODE

__all__ = ["EtagStore", "EtagIndex"]

LOGGER = logging.getLogger("DataflowShell.download.etag_index")


class EtagStore(Protocol):
    """Lookup and update of the validation token recorded for a URL."""

    def get_etag_for_url(self, url: str) -> str: ...

    def set_etag_for_url(self, url: str, etag: str) -> None: ...


class EtagIndex:
    """File-backed :class:`EtagStore`.

    Args:
        index_file: Location of the JSON document. It is created holding an
            empty mapping when missing and reused as-is when present.

    Raises:
        IsADirectoryError: If ``index_file`` names a directory.
        OSError: If the file cannot be created.
    """

    def __init__(self, index_file: Union[str, Path]) -> None:
        self.index_file = Path(index_file)
        if self.index_file.is_dir():
            raise IsADirectoryError(errno.EISDIR, os.strerror(errno.EISDIR), str(self.index_file))
        if not self.index_file.exists():
            fd = os.open(self.index_file, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, CACHE_INDEX_FILE_MODE)
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump({}, handle)
            LOGGER.debug("created etag index", extra={"index_file": str(self.index_file)})

    @classmethod
    def open(cls, index_file: Union[str, Path]) -> "EtagIndex":
        return cls(index_file)

    def get_etag_for_url(self, url: str) -> str:
        """Return the etag recorded for ``url``, or ``""`` when there is none."""

        return self._load().get(url, "")

    def set_etag_for_url(self, url: str, etag: str) -> None:
        """Insert or overwrite the etag recorded for ``url``."""

        entries = self._load()
        entries[url] = etag
        self._write(entries)

    def _load(self) -> Dict[str, str]:
        try:
            with self.index_file.open("r", encoding="utf-8") as handle:
                raw = handle.read()
        except UnicodeDecodeError as exc:
            raise EtagIndexCorruptError(self.index_file, f"not UTF-8 text: {exc}") from exc
        if not raw.strip():
            return {}
        try:
            document = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise EtagIndexCorruptError(self.index_file, str(exc)) from exc
        if not isinstance(document, dict):
            raise EtagIndexCorruptError(self.index_file, "top-level value is not an object")
        for key, value in document.items():
            if not isinstance(value, str):
                raise EtagIndexCorruptError(self.index_file, f"etag for {key!r} is not a string")
        return document

    def _write(self, entries: Dict[str, str]) -> None:
        directory = self.index_file.parent
        fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".cachedata-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(entries, handle, indent=2, sort_keys=True)
                handle.write("\n")
            os.chmod(tmp_path, CACHE_INDEX_FILE_MODE)
            os.replace(tmp_path, self.index_file)
        except BaseException:
            try:
                os.unlink(tmp_path)
            except FileNotFoundError:
                pass
            raise
