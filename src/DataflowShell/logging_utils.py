"""Structured logging helpers shared across the launcher components.

Console output stays terse (``LEVEL: message``) because the shell launched
afterwards owns the terminal. Full records, including the structured ``extra``
fields attached by the cache and downloader, go to rotating JSON-lines files
beneath the configured log directory. Access tokens travel through several
layers, so every JSON payload is masked before it is written.
"""

from __future__ import annotations

import gzip
import json
import logging
import sys
from datetime import datetime, timedelta, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Dict, List, Optional

from .settings import LoggingConfiguration

__all__ = ["JSONFormatter", "LOGGER_NAME", "mask_sensitive_data", "setup_logging"]

LOGGER_NAME = "DataflowShell"

_SENSITIVE_KEYS = {"authorization", "access_token", "token", "secret", "password"}
_RESERVED_ATTRS = set(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


def mask_sensitive_data(payload: Dict[str, object]) -> Dict[str, object]:
    """Remove secrets from structured payloads prior to logging.

    Examples:
        >>> mask_sensitive_data({"token": "secret", "status": "ok"})
        {'token': '***masked***', 'status': 'ok'}
    """

    masked: Dict[str, object] = {}
    for key, value in payload.items():
        if key.lower() in _SENSITIVE_KEYS:
            masked[key] = "***masked***"
        elif isinstance(value, str) and value.lower().startswith("bearer "):
            masked[key] = "***masked***"
        else:
            masked[key] = value
    return masked


class JSONFormatter(logging.Formatter):
    """Formatter emitting masked JSON log entries."""

    def format(self, record: logging.LogRecord) -> str:
        """Render ``record`` as a JSON string including its ``extra`` fields."""

        now = datetime.now(timezone.utc)
        payload: Dict[str, object] = {
            "timestamp": now.isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in vars(record).items():
            if key in _RESERVED_ATTRS or key.startswith("_"):
                continue
            payload[key] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(mask_sensitive_data(payload), default=str)


def _compress_old_log(path: Path) -> None:
    """Compress ``path`` into a ``.gz`` file and remove the original."""

    compressed_path = path.with_suffix(path.suffix + ".gz")
    with path.open("rb") as source, gzip.open(compressed_path, "wb") as target:
        target.write(source.read())
    path.unlink(missing_ok=True)


def _cleanup_logs(log_dir: Path, retention_days: int) -> List[str]:
    """Compress or purge log files in ``log_dir`` based on retention policy."""

    actions: List[str] = []
    now = datetime.now(timezone.utc)
    retention_delta = timedelta(days=retention_days)
    for file in log_dir.glob("*.jsonl"):
        mtime = datetime.fromtimestamp(file.stat().st_mtime, tz=timezone.utc)
        if now - mtime > retention_delta:
            target = file.with_suffix(file.suffix + ".gz")
            _compress_old_log(file)
            actions.append(f"Compressed {file.name} -> {target.name}")
    for file in log_dir.glob("*.jsonl.gz"):
        mtime = datetime.fromtimestamp(file.stat().st_mtime, tz=timezone.utc)
        if now - mtime > retention_delta:
            file.unlink(missing_ok=True)
            actions.append(f"Deleted expired archive {file.name}")
    return actions


def setup_logging(
    config: Optional[LoggingConfiguration] = None,
    *,
    log_dir: Optional[Path] = None,
    console_stream=None,
    propagate: bool = False,
) -> logging.Logger:
    """Configure the ``DataflowShell`` logger with console and JSON file handlers.

    Handlers installed by a previous call are replaced, so repeated calls (for
    example from tests) do not duplicate output. When ``log_dir`` is ``None``
    only the console handler is installed.
    """

    cfg = config or LoggingConfiguration()

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, cfg.level.upper(), logging.INFO))

    for handler in list(logger.handlers):
        if getattr(handler, "_dataflow_shell_managed", False):
            logger.removeHandler(handler)
            if isinstance(handler, logging.StreamHandler) and not isinstance(
                handler, logging.FileHandler
            ):
                continue
            handler.close()

    console_handler = logging.StreamHandler(console_stream or sys.stderr)
    console_handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    console_handler._dataflow_shell_managed = True  # type: ignore[attr-defined]
    logger.addHandler(console_handler)

    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        _cleanup_logs(log_dir, cfg.retention_days)
        today = datetime.now(timezone.utc).strftime("%Y%m%d")
        file_handler = RotatingFileHandler(
            log_dir / f"dataflow-shell-{today}.jsonl",
            maxBytes=int(cfg.max_log_size_mb * 1024 * 1024),
            backupCount=5,
        )
        file_handler.setFormatter(JSONFormatter())
        file_handler._dataflow_shell_managed = True  # type: ignore[attr-defined]
        logger.addHandler(file_handler)

    logger.propagate = propagate
    return logger
