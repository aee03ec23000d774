# === NAVMAP v1 ===
# {
#   "module": "DataflowShell.net",
#   "purpose": "Build the shared HTTPX client and the authenticated GET helper",
#   "sections": [
#     {"id": "helpers", "name": "Client construction helpers", "anchor": "HELP", "kind": "helpers"},
#     {"id": "api", "name": "Public API", "anchor": "API", "kind": "api"}
#   ]
# }
# === /NAVMAP ===

"""HTTPX client construction shared by server queries and artifact downloads.

Redirects are never followed automatically: resolving a service instance URL
relies on seeing the broker's ``302`` and its ``Location`` header. Responses
are never turned into exceptions by status either, because ``302`` and ``304``
are expected answers here.
"""

from __future__ import annotations

import logging
import ssl
from typing import Optional, Union

import certifi
import httpx

from .settings import HttpConfiguration

__all__ = ["AuthenticatedClient", "build_http_client"]

LOGGER = logging.getLogger("DataflowShell.net")

# --- Client construction helpers ----------------------------------------------


def _build_ssl_context(config: HttpConfiguration) -> Union[ssl.SSLContext, bool]:
    if config.skip_ssl_validation:
        return False
    context = ssl.create_default_context()
    context.load_verify_locations(certifi.where())
    return context


def _timeout_for(config: HttpConfiguration) -> httpx.Timeout:
    return httpx.Timeout(
        connect=config.connect_timeout_sec,
        read=config.timeout_sec,
        write=config.timeout_sec,
        pool=config.connect_timeout_sec,
    )


def _response_hook(response: httpx.Response) -> None:
    LOGGER.debug(
        "http-response",
        extra={
            "method": response.request.method,
            "url": str(response.request.url),
            "status": response.status_code,
        },
    )


# --- Public API ----------------------------------------------------------------


def build_http_client(
    config: Optional[HttpConfiguration] = None,
    *,
    transport: Optional[httpx.BaseTransport] = None,
) -> httpx.Client:
    """Return an :class:`httpx.Client` configured from ``config``.

    ``transport`` replaces the network transport; tests pass an
    :class:`httpx.MockTransport` here.
    """

    cfg = config or HttpConfiguration()
    kwargs = {}
    if transport is not None:
        kwargs["transport"] = transport
    return httpx.Client(
        timeout=_timeout_for(cfg),
        verify=_build_ssl_context(cfg),
        trust_env=True,
        follow_redirects=False,
        headers={"User-Agent": cfg.user_agent},
        event_hooks={"response": [_response_hook]},
        **kwargs,
    )


class AuthenticatedClient:
    """GET requests carrying a cf OAuth token in the ``Authorization`` header."""

    def __init__(self, client: httpx.Client) -> None:
        self.client = client

    def get(self, url: str, access_token: str) -> httpx.Response:
        """Issue ``GET url`` with ``access_token`` and return the fully read response.

        Transport failures propagate as :class:`httpx.HTTPError`; non-2xx
        statuses are returned, not raised.
        """

        request = self.client.build_request("GET", url, headers={"Authorization": access_token})
        response = self.client.send(request)
        try:
            response.read()
        finally:
            response.close()
        return response
