"""Thin wrapper over the ``cf`` command line for the data the launcher needs.

The cf CLI owns login state, so tokens and service metadata are obtained by
running ``cf`` itself rather than by talking to the Cloud Controller directly.
"""

from __future__ import annotations

import json
import logging
import subprocess
from typing import Callable, Optional, Sequence

from .errors import CfCommandError, ServiceResolutionError
from .settings import CF_DATA_DIRECTORY, EnvironmentOverrides, resolve_home

__all__ = ["CfConnection", "CommandRunner"]

LOGGER = logging.getLogger("DataflowShell.cf")

CommandRunner = Callable[[Sequence[str]], "subprocess.CompletedProcess[str]"]


def _run_command(command: Sequence[str]) -> "subprocess.CompletedProcess[str]":
    return subprocess.run(list(command), capture_output=True, text=True, check=False)


class CfConnection:
    """Runs ``cf`` subcommands; ``runner`` may be replaced in tests."""

    def __init__(
        self,
        executable: str = "cf",
        *,
        runner: Optional[CommandRunner] = None,
        overrides: Optional[EnvironmentOverrides] = None,
    ) -> None:
        self.executable = executable
        self.runner = runner or _run_command
        self.overrides = overrides

    def _invoke(self, *args: str) -> str:
        command = [self.executable, *args]
        LOGGER.debug("running cf command", extra={"command": command[:2]})
        try:
            completed = self.runner(command)
        except FileNotFoundError as exc:
            raise CfCommandError(command, 127, str(exc)) from exc
        if completed.returncode != 0:
            raise CfCommandError(command, completed.returncode, completed.stderr or completed.stdout or "")
        return completed.stdout

    def access_token(self) -> str:
        """Return the current OAuth token (``bearer ...``) from ``cf oauth-token``."""

        token = self._invoke("oauth-token").strip()
        if not token:
            raise CfCommandError([self.executable, "oauth-token"], 0, "no access token was printed")
        return token

    def service_dashboard_url(self, service_instance_name: str) -> str:
        """Return the dashboard URL of ``service_instance_name`` in the targeted space."""

        try:
            guid = self._invoke("service", service_instance_name, "--guid").strip()
        except CfCommandError as exc:
            raise ServiceResolutionError(f"Service instance not found: {exc}") from exc
        if not guid:
            raise ServiceResolutionError(f"Service instance not found: {service_instance_name}")

        payload = self._invoke("curl", f"/v3/service_instances/{guid}")
        try:
            document = json.loads(payload)
        except json.JSONDecodeError as exc:
            raise ServiceResolutionError(
                f"Invalid service instance JSON for {service_instance_name}: {exc}"
            ) from exc

        dashboard_url = None
        if isinstance(document, dict):
            dashboard_url = document.get("dashboard_url")
            if dashboard_url is None and isinstance(document.get("entity"), dict):
                dashboard_url = document["entity"].get("dashboard_url")
        if not isinstance(dashboard_url, str) or not dashboard_url:
            raise ServiceResolutionError(
                f"Service instance {service_instance_name} has no dashboard URL"
            )
        return dashboard_url

    def is_ssl_disabled(self) -> bool:
        """Return whether the cf CLI was targeted with ``--skip-ssl-validation``."""

        config_file = resolve_home(self.overrides) / CF_DATA_DIRECTORY / "config.json"
        try:
            with config_file.open("r", encoding="utf-8") as handle:
                document = json.load(handle)
        except FileNotFoundError:
            return False
        except json.JSONDecodeError as exc:
            LOGGER.warning("ignoring unreadable cf config %s: %s", config_file, exc)
            return False
        return bool(document.get("SSLDisabled", False)) if isinstance(document, dict) else False
