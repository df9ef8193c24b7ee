"""Integration test: full Session login → fetch → logout through the default wiring.

The identity provider is an ``httpx.MockTransport``; the insecure partition
is a real DiskStorage in ``tmp_path``.
"""

import asyncio
import json
import socket
from urllib.parse import parse_qs, urlsplit

import httpx
import pytest
from jose import jwt

from webext_authn import LoginOptions, LoopbackIdentity, Session, SessionEvent
from webext_authn.config import AuthnConfig
from webext_authn.core.storage import DiskStorage, InMemoryStorage
from webext_authn.dependencies import get_client_authentication_with_dependencies

ISSUER = "https://idp.example"
WEB_ID = "https://pod.example/profile/card#me"


def _idp_handler(seen: list):
    metadata = {
        "issuer": ISSUER,
        "authorization_endpoint": f"{ISSUER}/authorize",
        "token_endpoint": f"{ISSUER}/token",
        "registration_endpoint": f"{ISSUER}/register",
        "grant_types_supported": ["authorization_code", "refresh_token"],
    }

    def _handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if request.url.path == "/.well-known/openid-configuration":
            return httpx.Response(200, json=metadata)
        if request.url.path == "/register":
            return httpx.Response(201, json={"client_id": "dyn-client", "client_secret": "s3cret"})
        if request.url.path == "/token":
            id_token = jwt.encode({"sub": "u", "webid": WEB_ID}, "k", algorithm="HS256")
            return httpx.Response(
                200,
                json={
                    "access_token": "access-token",
                    "id_token": id_token,
                    "refresh_token": "refresh-token",
                    "token_type": "DPoP",
                    "expires_in": 3600,
                },
            )
        return httpx.Response(200, json={"ok": True})

    return _handler


class _InstantIdentity:
    """Host identity that approves the login without a browser."""

    def get_redirect_url(self) -> str:
        return "https://ext.example/callback"

    async def launch_web_auth_flow(self, url: str, *, interactive: bool = True) -> str:
        state = parse_qs(urlsplit(url).query)["state"][0]
        return f"{self.get_redirect_url()}?code=the-code&state={state}"


@pytest.mark.integration
@pytest.mark.ci_safe
@pytest.mark.anyio
async def test_session_round_trip(tmp_path):
    seen: list[httpx.Request] = []
    client = httpx.AsyncClient(transport=httpx.MockTransport(_idp_handler(seen)))
    insecure = DiskStorage(tmp_path)
    session = Session(
        client_authentication=get_client_authentication_with_dependencies(
            secure_storage=InMemoryStorage(),
            insecure_storage=insecure,
            identity=_InstantIdentity(),
            config=AuthnConfig(storage_dir=tmp_path),
            http_client=client,
        )
    )
    logins: list = []
    session.events.on(SessionEvent.LOGIN, logins.append)

    # ------------------------------------------------------------------ #
    # 1. Login                                                           #
    # ------------------------------------------------------------------ #
    await session.login(LoginOptions(oidc_issuer=ISSUER, client_name="Round Trip"))

    assert session.info.is_logged_in is True
    assert session.info.web_id == WEB_ID
    assert session.info.client_app_id == "dyn-client"
    assert len(logins) == 1

    # Secrets stay out of the on-disk partition
    on_disk = (tmp_path / "storage.json").read_text()
    for secret in ("access-token", "refresh-token", "s3cret", "the-code"):
        assert secret not in on_disk
    user_record = json.loads(json.loads(on_disk)[f"webextAuthnUser:{session.info.session_id}"])
    assert "codeVerifier" not in user_record

    # ------------------------------------------------------------------ #
    # 2. Authenticated fetch                                             #
    # ------------------------------------------------------------------ #
    await session.fetch("https://pod.example/private")
    assert seen[-1].headers["authorization"] == "DPoP access-token"
    assert seen[-1].headers["dpop"]

    # ------------------------------------------------------------------ #
    # 3. Logout                                                          #
    # ------------------------------------------------------------------ #
    await session.logout()
    await session.fetch("https://pod.example/private")
    assert "authorization" not in seen[-1].headers
    assert session.info.is_logged_in is False
    session.close()


def _free_port() -> int:
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


@pytest.mark.integration
@pytest.mark.anyio
async def test_loopback_identity_receives_real_callback():
    """Binds a real loopback port; the "browser" follows the redirect itself."""
    port = _free_port()
    pending: list[asyncio.Task] = []

    async def _follow(url: str) -> None:
        state = parse_qs(urlsplit(url).query)["state"][0]
        async with httpx.AsyncClient() as browser:
            for _ in range(50):
                try:
                    await browser.get(
                        f"http://127.0.0.1:{port}/callback",
                        params={"code": "c", "state": state},
                    )
                    return
                except httpx.ConnectError:
                    await asyncio.sleep(0.05)

    def _open_browser(url: str) -> bool:
        pending.append(asyncio.get_running_loop().create_task(_follow(url)))
        return True

    identity = LoopbackIdentity(port=port, timeout=10, open_browser=_open_browser)
    result = await identity.launch_web_auth_flow(f"{ISSUER}/authorize?state=xyz")
    await asyncio.gather(*pending)

    assert result == f"http://127.0.0.1:{port}/callback?code=c&state=xyz"
