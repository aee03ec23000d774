"""Build and run the ``java -jar`` command lines for the downloaded shells."""

from __future__ import annotations

import logging
import os
import subprocess
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence, Union

from .errors import ShellLaunchError

__all__ = [
    "PASSTHROUGH_ENVIRONMENT",
    "dataflow_shell_command",
    "run_shell",
    "shell_environment",
    "skipper_shell_command",
]

LOGGER = logging.getLogger("DataflowShell.shell")

CREDENTIALS_PROVIDER_COMMAND = "cf oauth-token"
PASSTHROUGH_ENVIRONMENT = ("PATH", "HOME", "CF_HOME")


def dataflow_shell_command(
    jar: Union[str, Path],
    dataflow_server_url: str,
    skip_ssl_validation: bool = False,
) -> List[str]:
    command = [
        "java",
        "-jar",
        str(jar),
        f"--dataflow.uri={dataflow_server_url}",
        f"--dataflow.credentials-provider-command={CREDENTIALS_PROVIDER_COMMAND}",
    ]
    if skip_ssl_validation:
        command.append("--dataflow.skip-ssl-validation=true")
    return command


def skipper_shell_command(
    jar: Union[str, Path],
    skipper_server_url: str,
    skip_ssl_validation: bool = False,
) -> List[str]:
    command = [
        "java",
        "-jar",
        str(jar),
        f"--spring.cloud.skipper.client.serverUri={skipper_server_url}",
        "--spring.cloud.skipper.client.credentials-provider-command="
        f"{CREDENTIALS_PROVIDER_COMMAND}",
    ]
    if skip_ssl_validation:
        command.append("--spring.cloud.skipper.client.skip-ssl-validation=true")
    return command


def shell_environment(source: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
    """Return the subset of ``source`` (default ``os.environ``) passed to the shell."""

    env = os.environ if source is None else source
    return {key: env[key] for key in PASSTHROUGH_ENVIRONMENT if key in env}


def run_shell(command: Sequence[str], *, env: Optional[Mapping[str, str]] = None) -> None:
    """Run ``command`` attached to this process's standard streams.

    Only ``PATH``, ``HOME`` and ``CF_HOME`` are passed through. The call
    blocks until the shell exits.

    Raises:
        ShellLaunchError: If the command cannot be started or exits non-zero.
    """

    LOGGER.debug("launching shell", extra={"command": list(command)})
    try:
        completed = subprocess.run(list(command), env=shell_environment(env), check=False)
    except OSError as exc:
        raise ShellLaunchError(f"Failed to start '{command[0]}': {exc}") from exc
    if completed.returncode != 0:
        raise ShellLaunchError(
            f"Shell exited with status {completed.returncode}",
            returncode=completed.returncode,
        )
