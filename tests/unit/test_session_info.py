"""Unit tests for SessionInfoManager and redirect-URL validation."""

from __future__ import annotations

import pytest

from webext_authn.core.storage import StorageUtility
from webext_authn.session_info import (
    SessionInfoManager,
    get_unauthenticated_session,
    is_valid_redirect_url,
)
from webext_authn.transport import UnauthenticatedTransport


def test_unauthenticated_session_is_fresh() -> None:
    first = get_unauthenticated_session()
    second = get_unauthenticated_session()
    assert first.is_logged_in is False
    assert first.session_id and first.session_id != second.session_id
    assert isinstance(first.transport, UnauthenticatedTransport)


@pytest.mark.parametrize(
    ("url", "valid"),
    [
        ("https://app.example/callback", True),
        ("https://app.example/callback?foo=bar", True),
        ("https://app.example/callback#frag", False),
        ("https://app.example/callback?code=1", False),
        ("https://app.example/callback?state=1", False),
        ("/relative/path", False),
        ("", False),
        (None, False),
    ],
)
def test_is_valid_redirect_url(url, valid) -> None:
    assert is_valid_redirect_url(url) is valid


@pytest.mark.anyio
async def test_get_returns_none_for_unknown_session(storage: StorageUtility) -> None:
    assert await SessionInfoManager(storage).get("nobody") is None


@pytest.mark.anyio
async def test_get_reads_both_partitions(storage: StorageUtility) -> None:
    await storage.set_for_user("s1", {"webId": "https://w", "isLoggedIn": "true"}, secure=True)
    await storage.set_for_user(
        "s1",
        {
            "clientId": "cid",
            "issuer": "https://idp.example",
            "redirectUrl": "https://app.example/cb",
            "dpop": "false",
        },
    )

    info = await SessionInfoManager(storage).get("s1")

    assert info is not None
    assert info.is_logged_in is True
    assert info.web_id == "https://w"
    assert info.client_app_id == "cid"
    assert info.issuer == "https://idp.example"
    assert info.token_type == "Bearer"
    assert info.keep_alive is True


@pytest.mark.anyio
async def test_clear_removes_everything(storage: StorageUtility) -> None:
    await storage.set_for_user("s1", {"refreshToken": "r"}, secure=True)
    await storage.set_for_user("s1", {"clientId": "cid"})

    await SessionInfoManager(storage).clear("s1")

    assert await storage.get_for_user("s1", "refreshToken", secure=True) is None
    assert await storage.get_for_user("s1", "clientId") is None
