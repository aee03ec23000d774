"""Checksum selection, normalisation, and streaming verification helpers.

Servers advertise the shell artifact digest as SHA-256 and/or SHA-1. This
module picks the preferred one, normalises it, and exposes a calculator that
hashes files from disk in fixed-size chunks so large jars are never read into
memory at once. The digest itself is a pluggable strategy: anything exposing
``update`` and ``hexdigest`` (every :mod:`hashlib` object does) can be used.
"""

from __future__ import annotations

import hashlib
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol, Union, runtime_checkable

from ..errors import ConfigurationError

__all__ = [
    "DigestAlgorithm",
    "ChecksumCalculator",
    "ExpectedChecksum",
    "FileChecksumCalculator",
    "select_expected_checksum",
]

_CHECKSUM_STREAM_CHUNK_SIZE = 8192
_SUPPORTED_ALGORITHMS = {"md5", "sha1", "sha256", "sha512"}
_HEX_DIGEST = re.compile(r"[0-9a-f]{32,128}")


@runtime_checkable
class DigestAlgorithm(Protocol):
    """Incremental digest: feed bytes with ``update``, finish with ``hexdigest``."""

    def update(self, data: bytes, /) -> None: ...

    def hexdigest(self) -> str: ...


class ChecksumCalculator(Protocol):
    """Computes the hex digest of a file on disk."""

    def calculate_checksum(self, file_path: Union[str, Path], digest: DigestAlgorithm) -> str: ...


@dataclass(slots=True, frozen=True)
class ExpectedChecksum:
    """Expected checksum advertised by a server for a downloadable artifact."""

    algorithm: str
    value: str

    def new_digest(self) -> DigestAlgorithm:
        """Return a fresh digest object for ``algorithm``."""

        return hashlib.new(self.algorithm)

    def to_mapping(self) -> dict:
        return {"algorithm": self.algorithm, "value": self.value}


def _normalize_checksum(algorithm: str, value: str) -> ExpectedChecksum:
    candidate = algorithm.strip().lower()
    if candidate not in _SUPPORTED_ALGORITHMS:
        raise ConfigurationError(f"unsupported checksum algorithm '{candidate}'")
    checksum = value.strip().lower()
    if not _HEX_DIGEST.fullmatch(checksum):
        raise ConfigurationError(f"{candidate} checksum '{value}' is not a hexadecimal digest")
    return ExpectedChecksum(algorithm=candidate, value=checksum)


def select_expected_checksum(
    sha256: Optional[str],
    sha1: Optional[str],
) -> ExpectedChecksum:
    """Prefer a SHA-256 checksum, falling back to SHA-1.

    Raises:
        ConfigurationError: If neither checksum is provided or the chosen one
            is not a hexadecimal digest.
    """

    if sha256 and sha256.strip():
        return _normalize_checksum("sha256", sha256)
    if sha1 and sha1.strip():
        return _normalize_checksum("sha1", sha1)
    raise ConfigurationError("no SHA-256 or SHA-1 checksum was advertised for the artifact")


class FileChecksumCalculator:
    """Stream a file through a digest and render the result as lowercase hex."""

    def __init__(self, chunk_size: int = _CHECKSUM_STREAM_CHUNK_SIZE) -> None:
        self.chunk_size = chunk_size

    def calculate_checksum(self, file_path: Union[str, Path], digest: DigestAlgorithm) -> str:
        """Return the hex digest of ``file_path``.

        Open and read failures propagate as :class:`OSError`; exceptions raised
        by ``digest`` propagate unchanged.
        """

        with open(file_path, "rb") as handle:
            for chunk in iter(lambda: handle.read(self.chunk_size), b""):
                digest.update(chunk)
        return digest.hexdigest().lower()
