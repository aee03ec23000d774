# === NAVMAP v1 ===
# {
#   "module": "DataflowShell.cli",
#   "purpose": "Typer CLI that resolves, downloads, and launches Data Flow and Skipper shells",
#   "sections": [
#     {"id": "clicontext", "name": "CliContext", "anchor": "class-clicontext", "kind": "class"},
#     {"id": "launch-shell", "name": "launch_shell", "anchor": "function-launch-shell", "kind": "function"},
#     {"id": "main", "name": "main", "anchor": "function-main", "kind": "function"},
#     {"id": "commands", "name": "Commands", "anchor": "CMD", "kind": "api"}
#   ]
# }
# === /NAVMAP ===

"""Command-line entry point.

Example:
    $ dataflow-shell-cli dataflow-shell my-dataflow-server
    $ dataflow-shell-cli -vv skipper-shell my-skipper-server

Each shell command resolves the service instance to a server URL, asks the
server which shell jar it needs, fetches that jar through the download cache,
and hands the terminal over to ``java -jar``.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, List, Optional, Sequence

import httpx
import typer
from rich.console import Console
from rich.markup import escape

from . import __version__
from .cf import CfConnection
from .download import Cache, Downloader
from .errors import ConfigurationError, DataflowShellError
from .logging_utils import LOGGER_NAME, setup_logging
from .net import AuthenticatedClient, build_http_client
from .servers import DATAFLOW_SERVER, SKIPPER_SERVER, service_instance_url, shell_download_info
from .settings import ResolvedConfig
from .shell import dataflow_shell_command, run_shell, skipper_shell_command
from .version import parse_plugin_version

LOGGER = logging.getLogger(f"{LOGGER_NAME}.cli")

CommandBuilder = Callable[[Path, str, bool], List[str]]

_console = Console(stderr=True)

_VERBOSITY_LEVELS = {0: "WARNING", 1: "INFO"}


class CliContext:
    """Per-invocation state shared by commands."""

    def __init__(self, verbosity: int = 0) -> None:
        self.verbosity = verbosity
        self.console = _console
        self.config = ResolvedConfig.from_environment()
        if verbosity:
            self.config.logging.level = _VERBOSITY_LEVELS.get(verbosity, "DEBUG")
        setup_logging(self.config.logging, log_dir=self.config.log_dir)

    def diagnose(self, message: str, command: Optional[str] = None) -> None:
        """Print ``message`` to stderr and exit with status 1."""

        hint = f" See 'dataflow-shell-cli {command} --help'." if command else ""
        self.console.print(f"[red]{escape(message)}[/red]{escape(hint)}", highlight=False)
        raise typer.Exit(1)


def launch_shell(
    service_instance_name: str,
    *,
    server_name: str,
    command_builder: CommandBuilder,
    config: ResolvedConfig,
    cf: CfConnection,
    transport: Optional[httpx.BaseTransport] = None,
    run: Callable[[Sequence[str]], None] = run_shell,
) -> None:
    """Resolve, download, and run the shell for ``service_instance_name``."""

    skip_ssl_validation = config.http.skip_ssl_validation or cf.is_ssl_disabled()
    http_config = config.http.model_copy(update={"skip_ssl_validation": skip_ssl_validation})

    access_token = cf.access_token()
    dashboard_url = cf.service_dashboard_url(service_instance_name)

    with build_http_client(http_config, transport=transport) as client:
        auth_client = AuthenticatedClient(client)
        server_url = service_instance_url(dashboard_url, access_token, auth_client)
        artifact = shell_download_info(server_url, auth_client, access_token, server_name)

        cache = Cache.create(logging.getLogger(f"{LOGGER_NAME}.download"))
        downloader = Downloader(cache, client)
        checksum = artifact.checksum
        jar = downloader.download_file(artifact.url, checksum.value, checksum.new_digest())
        if jar is None:
            # 304 for a jar that is no longer on disk; retry without the etag.
            LOGGER.warning("cached shell missing for %s; fetching it again", artifact.url)
            cache.etag_store.set_etag_for_url(artifact.url, "")
            jar = downloader.download_file(artifact.url, checksum.value, checksum.new_digest())
        if jar is None:
            raise DataflowShellError(f"No local copy of {artifact.url} could be obtained")

    run(command_builder(jar, server_url, skip_ssl_validation))


app = typer.Typer(
    name="dataflow-shell-cli",
    help="Open Spring Cloud Data Flow and Skipper shells against cf service instances",
    no_args_is_help=True,
)

_context: Optional[CliContext] = None


def get_context() -> CliContext:
    if _context is None:
        raise RuntimeError("CLI context not initialized")
    return _context


@app.callback()
def main(
    verbosity: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Increase verbosity (-v for INFO, -vv for DEBUG)",
    ),
) -> None:
    """Open Spring Cloud Data Flow and Skipper shells against cf service instances."""

    global _context
    try:
        _context = CliContext(verbosity=verbosity)
    except (ConfigurationError, OSError) as exc:
        _console.print(f"[red]{escape(str(exc))}[/red]", highlight=False)
        raise typer.Exit(1)


def _run_shell_command(
    command: str,
    service_instance_name: str,
    server_name: str,
    command_builder: CommandBuilder,
) -> None:
    ctx = get_context()
    try:
        launch_shell(
            service_instance_name,
            server_name=server_name,
            command_builder=command_builder,
            config=ctx.config,
            cf=CfConnection(),
        )
    except (DataflowShellError, OSError) as exc:
        LOGGER.debug("%s failed", command, exc_info=True)
        ctx.diagnose(str(exc), command)


@app.command("dataflow-shell")
def dataflow_shell(
    service_instance_name: str = typer.Argument(..., help="Data Flow server service instance name"),
) -> None:
    """Open a Data Flow shell to a Spring Cloud Data Flow for PCF server."""

    _run_shell_command("dataflow-shell", service_instance_name, DATAFLOW_SERVER, dataflow_shell_command)


@app.command("dfsh", hidden=True)
def dataflow_shell_alias(
    service_instance_name: str = typer.Argument(..., help="Data Flow server service instance name"),
) -> None:
    _run_shell_command("dataflow-shell", service_instance_name, DATAFLOW_SERVER, dataflow_shell_command)


@app.command("skipper-shell")
def skipper_shell(
    service_instance_name: str = typer.Argument(..., help="Skipper server service instance name"),
) -> None:
    """Open a Skipper shell to a Spring Cloud Skipper for PCF server."""

    _run_shell_command("skipper-shell", service_instance_name, SKIPPER_SERVER, skipper_shell_command)


@app.command("sksh", hidden=True)
def skipper_shell_alias(
    service_instance_name: str = typer.Argument(..., help="Skipper server service instance name"),
) -> None:
    _run_shell_command("skipper-shell", service_instance_name, SKIPPER_SERVER, skipper_shell_command)


@app.command("version")
def version_cmd() -> None:
    """Show the tool version."""

    try:
        parsed = parse_plugin_version(__version__)
    except ConfigurationError as exc:
        _console.print(f"[red]{escape(str(exc))}[/red]", highlight=False)
        raise typer.Exit(64)
    typer.echo(f"Plugin version: {parsed.major}.{parsed.minor}.{parsed.build}")


if __name__ == "__main__":
    app()
