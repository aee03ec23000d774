"""Exception hierarchy shared by the cache, download, and shell-launch layers.

The tool spans configuration lookup, HTTP retrieval, on-disk caching, and
subprocess launching. Failures are grouped here so callers can react to broad
categories (a server refused us vs. a cached artifact failed verification)
while still reaching the specialised subclasses when finer handling matters.

Plain filesystem failures are not wrapped: the cache layer lets
:class:`OSError` propagate unchanged.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Sequence

__all__ = [
    "DataflowShellError",
    "ConfigurationError",
    "ChecksumMismatchError",
    "EtagIndexCorruptError",
    "EtagIndexUpdateError",
    "DownloadFailure",
    "ServerError",
    "ServiceResolutionError",
    "CfCommandError",
    "ShellLaunchError",
]


class DataflowShellError(RuntimeError):
    """Base exception for shell resolution, download, and launch failures."""


class ConfigurationError(DataflowShellError):
    """Raised when configuration inputs or build metadata are invalid."""


class ChecksumMismatchError(DataflowShellError):
    """Raised when a stored artifact does not hash to the advertised checksum.

    The mismatching file is left on disk; callers decide whether to remove it.
    """

    def __init__(self, path: Path, *, expected: str, actual: str) -> None:
        super().__init__(
            f"Downloaded file '{path}' checksum '{actual}' does not match supplied value '{expected}'"
        )
        self.path = path
        self.expected = expected
        self.actual = actual


class EtagIndexCorruptError(DataflowShellError):
    """Raised when the etag index file cannot be decoded as a URL to etag mapping."""

    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"Etag index '{path}' is corrupt: {reason}")
        self.path = path


class EtagIndexUpdateError(DataflowShellError):
    """Raised when an artifact was stored but its etag could not be recorded.

    The file on disk is valid; only the validation metadata is stale or absent.
    """

    def __init__(self, path: Path, url: str) -> None:
        super().__init__(f"Stored '{path}' but failed to record its etag for {url}")
        self.path = path
        self.url = url


class DownloadFailure(DataflowShellError):
    """Raised when an HTTP download attempt fails.

    ``cached_path`` carries the last known cached copy (possibly ``None``) so
    callers can decide whether to fall back to it.
    """

    def __init__(
        self,
        message: str,
        *,
        url: str,
        status_code: Optional[int] = None,
        cached_path: Optional[Path] = None,
    ) -> None:
        super().__init__(message)
        self.url = url
        self.status_code = status_code
        self.cached_path = cached_path


class ServerError(DataflowShellError):
    """Raised when a Data Flow or Skipper server answers unusably."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ServiceResolutionError(DataflowShellError):
    """Raised when a service instance cannot be mapped to a server URL."""


class CfCommandError(DataflowShellError):
    """Raised when an invocation of the ``cf`` CLI fails."""

    def __init__(self, command: Sequence[str], returncode: int, stderr: str = "") -> None:
        rendered = " ".join(command)
        detail = stderr.strip()
        message = f"'{rendered}' exited with status {returncode}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.command = tuple(command)
        self.returncode = returncode
        self.stderr = stderr


class ShellLaunchError(DataflowShellError):
    """Raised when the downloaded shell cannot be started or exits abnormally."""

    def __init__(self, message: str, *, returncode: Optional[int] = None) -> None:
        super().__init__(message)
        self.returncode = returncode


# === NAVMAP v1 ===
# {
#   "module": "DataflowShell.errors",
#   "purpose": "Define the exception hierarchy used across cache, download, and shell launch",
#   "sections": [
#     {"id": "base", "name": "Base Exceptions", "anchor": "BAS", "kind": "api"},
#     {"id": "cache", "name": "Cache & Index Errors", "anchor": "CAC", "kind": "api"},
#     {"id": "download", "name": "Download & Server Errors", "anchor": "DWN", "kind": "api"},
#     {"id": "launch", "name": "cf CLI & Launch Errors", "anchor": "LCH", "kind": "api"}
#   ]
# }
# === /NAVMAP ===
