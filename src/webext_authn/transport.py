"""Outgoing-request capabilities.

:class:`~webext_authn.client_authentication.ClientAuthentication` holds
exactly one :class:`AuthenticatedTransport` at a time and swaps it as a
whole on login and logout:

* :class:`UnauthenticatedTransport` – plain pass-through (initial state and
  after logout);
* :class:`BearerTransport` – ``Authorization: Bearer <token>``;
* :class:`DpopTransport` – ``Authorization: DPoP <token>`` plus a fresh
  ``DPoP`` proof per request, retried once when the server demands a nonce.

Every transport accepts an optional shared :class:`httpx.AsyncClient`;
without one, a short-lived client is opened per request.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol, runtime_checkable

import httpx

from webext_authn.core.clock import Clock, default_clock
from webext_authn.dpop import DpopKey, create_dpop_header

_LOG = logging.getLogger("webext-authn.transport")

DEFAULT_TIMEOUT = 20.0


async def request(
    method: str,
    url: str,
    *,
    client: httpx.AsyncClient | None = None,
    timeout: float = DEFAULT_TIMEOUT,
    **kwargs: Any,
) -> httpx.Response:
    """Send one request through *client*, or through a temporary client."""
    if client is not None:
        return await client.request(method, url, **kwargs)
    async with httpx.AsyncClient(timeout=timeout) as temp_client:
        return await temp_client.request(method, url, **kwargs)


@runtime_checkable
class AuthenticatedTransport(Protocol):
    """Capability to send requests on behalf of the current session."""

    async def fetch(self, url: str, *, method: str = "GET", **kwargs: Any) -> httpx.Response: ...


class UnauthenticatedTransport:
    """Pass-through transport that adds no credentials."""

    def __init__(
        self, client: httpx.AsyncClient | None = None, *, timeout: float = DEFAULT_TIMEOUT
    ) -> None:
        self._client = client
        self._timeout = timeout

    async def fetch(self, url: str, *, method: str = "GET", **kwargs: Any) -> httpx.Response:
        return await request(method, url, client=self._client, timeout=self._timeout, **kwargs)


class BearerTransport(UnauthenticatedTransport):
    def __init__(
        self,
        access_token: str,
        client: httpx.AsyncClient | None = None,
        *,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        super().__init__(client, timeout=timeout)
        self._access_token = access_token

    async def fetch(self, url: str, *, method: str = "GET", **kwargs: Any) -> httpx.Response:
        headers = httpx.Headers(kwargs.pop("headers", None))
        headers["Authorization"] = f"Bearer {self._access_token}"
        return await super().fetch(url, method=method, headers=headers, **kwargs)


class DpopTransport(UnauthenticatedTransport):
    def __init__(
        self,
        access_token: str,
        dpop_key: DpopKey,
        client: httpx.AsyncClient | None = None,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        clock: Clock = default_clock,
    ) -> None:
        super().__init__(client, timeout=timeout)
        self._access_token = access_token
        self._dpop_key = dpop_key
        self._clock = clock

    def _headers(self, url: str, method: str, base: Any, nonce: str | None) -> httpx.Headers:
        headers = httpx.Headers(base)
        headers["Authorization"] = f"DPoP {self._access_token}"
        headers["DPoP"] = create_dpop_header(
            url,
            method,
            self._dpop_key,
            access_token=self._access_token,
            nonce=nonce,
            clock=self._clock,
        )
        return headers

    async def fetch(self, url: str, *, method: str = "GET", **kwargs: Any) -> httpx.Response:
        base_headers = kwargs.pop("headers", None)
        response = await super().fetch(
            url, method=method, headers=self._headers(url, method, base_headers, None), **kwargs
        )
        nonce = response.headers.get("DPoP-Nonce")
        if response.status_code == 401 and nonce:
            _LOG.debug("Resource server requested a DPoP nonce; retrying %s %s", method, url)
            response = await super().fetch(
                url, method=method, headers=self._headers(url, method, base_headers, nonce), **kwargs
            )
        return response
