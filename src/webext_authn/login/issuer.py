"""OpenID Provider discovery.

Fetches ``<issuer>/.well-known/openid-configuration`` and caches the raw
document in the *insecure* storage partition under
``issuerConfig:<issuer>``.  Only the cache is ever consulted on a second
call for the same issuer.
"""

from __future__ import annotations

import json
import logging

import httpx

from webext_authn.core.errors import DiscoveryError
from webext_authn.core.models import IssuerConfig
from webext_authn.core.storage import StorageUtility
from webext_authn.transport import DEFAULT_TIMEOUT, request

_LOG = logging.getLogger("webext-authn.login.issuer")

WELL_KNOWN_OPENID_CONFIG = ".well-known/openid-configuration"


def _cache_key(issuer: str) -> str:
    return f"issuerConfig:{issuer}"


def discovery_url(issuer: str) -> str:
    return f"{issuer.rstrip('/')}/{WELL_KNOWN_OPENID_CONFIG}"


class IssuerConfigFetcher:
    def __init__(
        self,
        storage: StorageUtility,
        client: httpx.AsyncClient | None = None,
        *,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.storage = storage
        self._client = client
        self._timeout = timeout

    async def fetch_config(self, issuer: str) -> IssuerConfig:
        """Return the provider metadata for *issuer*.

        Raises :class:`DiscoveryError` when the document cannot be fetched
        or lacks a mandatory endpoint.
        """
        cached = await self.storage.get(_cache_key(issuer))
        if cached:
            try:
                return IssuerConfig.from_metadata(json.loads(cached))
            except (json.JSONDecodeError, KeyError, TypeError):
                _LOG.warning("Ignoring unreadable cached configuration for %s", issuer)

        url = discovery_url(issuer)
        try:
            resp = await request("GET", url, client=self._client, timeout=self._timeout)
        except httpx.HTTPError as exc:
            raise DiscoveryError(f"Could not fetch the configuration of [{issuer}]: {exc}") from exc

        if resp.status_code != 200:
            raise DiscoveryError(
                f"Fetching the configuration of [{issuer}] returned {resp.status_code}"
            )
        try:
            metadata = resp.json()
            config = IssuerConfig.from_metadata(metadata)
        except (ValueError, KeyError, TypeError) as exc:
            raise DiscoveryError(
                f"[{url}] is not a valid OpenID configuration document"
            ) from exc

        await self.storage.set(_cache_key(issuer), json.dumps(metadata))
        _LOG.debug("Fetched OpenID configuration for %s", issuer)
        return config
