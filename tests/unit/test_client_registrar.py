"""Unit tests for OAuth client resolution and dynamic registration."""

from __future__ import annotations

import json

import httpx
import pytest

from authn_fakes import REDIRECT_URL, MockIdp, issuer_config
from webext_authn.core.errors import InvalidRequestError, RegistrationError
from webext_authn.core.storage import StorageUtility
from webext_authn.login.client_registrar import ClientRegistrar, determine_client_type


@pytest.mark.parametrize(
    ("client_id", "expected"),
    [
        (None, "dynamic"),
        ("my-static-client", "static"),
        ("https://app.example/client.jsonld", "solid-oidc"),
    ],
)
def test_determine_client_type(client_id, expected) -> None:
    assert determine_client_type(client_id) == expected


@pytest.mark.anyio
async def test_static_client_is_stored(storage: StorageUtility) -> None:
    client = await ClientRegistrar(storage).get_client(
        session_id="s1",
        issuer_config=issuer_config(),
        redirect_url=REDIRECT_URL,
        client_id="cid",
        client_secret="shh",
        client_name="My App",
    )

    assert (client.client_id, client.client_type) == ("cid", "static")
    assert await storage.get_for_user("s1", "clientId") == "cid"
    assert await storage.get_for_user("s1", "clientName") == "My App"
    assert await storage.get_for_user("s1", "clientSecret") is None
    assert await storage.get_for_user("s1", "clientSecret", secure=True) == "shh"


@pytest.mark.anyio
async def test_dynamic_registration(storage: StorageUtility, idp: MockIdp, http_client) -> None:
    client = await ClientRegistrar(storage, http_client).get_client(
        session_id="s1",
        issuer_config=issuer_config(),
        redirect_url=REDIRECT_URL,
        client_name="My App",
    )

    assert client.client_id == "dyn-client"
    assert client.client_type == "dynamic"
    sent = json.loads(idp.last("/register").content)
    assert sent["redirect_uris"] == [REDIRECT_URL]
    assert sent["client_name"] == "My App"
    assert await storage.get_for_user("s1", "clientSecret", secure=True) == "dyn-secret"


@pytest.mark.anyio
async def test_stored_client_is_reused(storage: StorageUtility, idp: MockIdp, http_client) -> None:
    registrar = ClientRegistrar(storage, http_client)
    first = await registrar.get_client(
        session_id="s1", issuer_config=issuer_config(), redirect_url=REDIRECT_URL
    )
    second = await registrar.get_client(
        session_id="s1", issuer_config=issuer_config(), redirect_url=REDIRECT_URL
    )

    assert first == second
    assert len([r for r in idp.requests if r.url.path == "/register"]) == 1


@pytest.mark.anyio
async def test_missing_registration_endpoint(storage: StorageUtility) -> None:
    with pytest.raises(InvalidRequestError, match="does not have a registration endpoint"):
        await ClientRegistrar(storage).get_client(
            session_id="s1",
            issuer_config=issuer_config(registration_endpoint=None),
            redirect_url=REDIRECT_URL,
        )


@pytest.mark.anyio
async def test_refused_registration(storage: StorageUtility) -> None:
    client = httpx.AsyncClient(
        transport=httpx.MockTransport(lambda request: httpx.Response(400, text="nope"))
    )
    with pytest.raises(RegistrationError, match="400"):
        await ClientRegistrar(storage, client).get_client(
            session_id="s1", issuer_config=issuer_config(), redirect_url=REDIRECT_URL
        )
    assert await storage.get_for_user("s1", "clientId") is None
