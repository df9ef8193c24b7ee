"""Unit tests for OpenID Provider discovery."""

from __future__ import annotations

import httpx
import pytest

from authn_fakes import ISSUER, METADATA, MockIdp
from webext_authn.core.errors import DiscoveryError
from webext_authn.core.storage import StorageUtility
from webext_authn.login.issuer import IssuerConfigFetcher, discovery_url


def test_discovery_url_handles_trailing_slash() -> None:
    assert discovery_url("https://idp.example/") == (
        "https://idp.example/.well-known/openid-configuration"
    )


@pytest.mark.anyio
async def test_fetch_and_cache(storage: StorageUtility, idp: MockIdp, http_client) -> None:
    fetcher = IssuerConfigFetcher(storage, http_client)

    config = await fetcher.fetch_config(ISSUER)
    again = await fetcher.fetch_config(ISSUER)

    assert config == again
    assert config.token_endpoint == METADATA["token_endpoint"]
    assert config.grant_types_supported == ("authorization_code", "refresh_token")
    assert len(idp.requests) == 1


@pytest.mark.anyio
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(404),
        httpx.Response(200, text="not json"),
        httpx.Response(200, json={"issuer": ISSUER}),
    ],
)
async def test_bad_documents_raise_discovery_error(storage: StorageUtility, response) -> None:
    client = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: response))
    with pytest.raises(DiscoveryError):
        await IssuerConfigFetcher(storage, client).fetch_config(ISSUER)


@pytest.mark.anyio
async def test_network_failure_raises_discovery_error(storage: StorageUtility) -> None:
    def _boom(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    client = httpx.AsyncClient(transport=httpx.MockTransport(_boom))
    with pytest.raises(DiscoveryError) as excinfo:
        await IssuerConfigFetcher(storage, client).fetch_config(ISSUER)
    assert isinstance(excinfo.value.__cause__, httpx.ConnectError)
