"""Shared pytest fixtures: an isolated cf home and a clean ``DataflowShell`` logger."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from DataflowShell.logging_utils import LOGGER_NAME

_ENVIRONMENT = (
    "CF_HOME",
    "DATAFLOW_SHELL_LOG_LEVEL",
    "DATAFLOW_SHELL_LOG_DIR",
    "DATAFLOW_SHELL_TIMEOUT_SEC",
)


@pytest.fixture(autouse=True)
def cf_home(tmp_path_factory, monkeypatch) -> Path:
    """Point ``CF_HOME`` at a per-test directory and clear tool overrides."""

    for name in _ENVIRONMENT:
        monkeypatch.delenv(name, raising=False)
    home = tmp_path_factory.mktemp("cf-home")
    monkeypatch.setenv("CF_HOME", str(home))
    return home


@pytest.fixture(autouse=True)
def _reset_logger():
    yield
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        if getattr(handler, "_dataflow_shell_managed", False):
            logger.removeHandler(handler)
            handler.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
