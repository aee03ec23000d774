"""Queries against Data Flow and Skipper servers and their service broker.

Two lookups happen before any download:

- :func:`service_instance_url` turns a service instance's dashboard URL into
  the server URL by asking the broker, which answers with a ``302`` redirect.
- :func:`shell_download_info` reads the server's ``/about`` document to find
  the matching shell jar and its checksum.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from urllib.parse import urlsplit, urlunsplit

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .download.checksums import ExpectedChecksum, select_expected_checksum
from .errors import ConfigurationError, ServerError, ServiceResolutionError
from .net import AuthenticatedClient

__all__ = [
    "AboutResponse",
    "DATAFLOW_SERVER",
    "SKIPPER_SERVER",
    "ShellArtifact",
    "service_instance_url",
    "shell_download_info",
]

LOGGER = logging.getLogger("DataflowShell.servers")

DATAFLOW_SERVER = "Dataflow"
SKIPPER_SERVER = "Skipper"


class ShellInfo(BaseModel):
    url: str = ""
    checksum_sha1: str = Field(default="", alias="checksumSha1")
    checksum_sha256: str = Field(default="", alias="checksumSha256")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class VersionInfo(BaseModel):
    shell: ShellInfo = Field(default_factory=ShellInfo)

    model_config = ConfigDict(extra="ignore")


class AboutResponse(BaseModel):
    """Subset of a server's ``/about`` document describing its shell artifact."""

    version_info: VersionInfo = Field(default_factory=VersionInfo, alias="versionInfo")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


@dataclass(slots=True, frozen=True)
class ShellArtifact:
    """Download location and expected checksum of a shell jar."""

    url: str
    checksum: ExpectedChecksum


def shell_download_info(
    server_url: str,
    auth_client: AuthenticatedClient,
    access_token: str,
    server_name: str = DATAFLOW_SERVER,
) -> ShellArtifact:
    """Ask ``server_url`` which shell jar matches it.

    SHA-256 is used when the server advertises it, SHA-1 otherwise.

    Raises:
        ServerError: On transport failure, a non-200 status, a body that is not
            a valid ``/about`` document, or a missing download URL or checksum.
    """

    about_url = server_url.rstrip("/") + "/about"
    try:
        response = auth_client.get(about_url, access_token)
    except httpx.HTTPError as exc:
        raise ServerError(f"{server_name} server error: {exc}") from exc

    if response.status_code != httpx.codes.OK:
        raise ServerError(
            f"{server_name} server failed: {response.status_code}",
            status_code=response.status_code,
        )

    body = response.text
    try:
        about = AboutResponse.model_validate(json.loads(body))
    except (json.JSONDecodeError, ValidationError) as exc:
        raise ServerError(
            f"Invalid {server_name} server response JSON: {exc}, response body: '{body}'"
        ) from exc

    shell = about.version_info.shell
    if not shell.url:
        raise ServerError(f"{server_name} server did not advertise a shell download URL")
    try:
        checksum = select_expected_checksum(shell.checksum_sha256, shell.checksum_sha1)
    except ConfigurationError as exc:
        raise ServerError(f"{server_name} server advertised an unusable shell checksum: {exc}") from exc

    LOGGER.debug(
        "resolved shell artifact",
        extra={"server": server_name, "url": shell.url, "checksum": checksum.to_mapping()},
    )
    return ShellArtifact(url=shell.url, checksum=checksum)


def service_instance_url(
    dashboard_url: str,
    access_token: str,
    auth_client: AuthenticatedClient,
) -> str:
    """Resolve a service instance's server URL from its dashboard URL.

    The broker endpoint is the dashboard URL with its last path segment
    removed; it must answer ``302`` with exactly one ``Location`` header.

    Raises:
        ServiceResolutionError: If the URL has no path segments, the broker
            cannot be reached, or its answer is not a single redirect.
    """

    parsed = urlsplit(dashboard_url)
    segments = parsed.path.split("/")
    if segments == [""]:
        raise ServiceResolutionError(f"path of {dashboard_url} has no segments")
    broker_url = urlunsplit(parsed._replace(path="/".join(segments[:-1])))

    try:
        response = auth_client.get(broker_url, access_token)
    except httpx.HTTPError as exc:
        raise ServiceResolutionError(f"service broker failed: {exc}") from exc

    if response.status_code != httpx.codes.FOUND:
        raise ServiceResolutionError(
            f"service broker did not return expected response (302): {response.status_code}"
        )

    locations = response.headers.get_list("Location")
    if not locations:
        raise ServiceResolutionError("service broker did not return a location header")
    if len(locations) != 1:
        raise ServiceResolutionError(
            f"service broker returned a location header of the wrong length ({len(locations)})"
        )
    return locations[0]
