"""Read/clear persisted session information.

Secure partition (per session): ``webId``, ``isLoggedIn``, ``refreshToken``,
``clientSecret``.
Insecure partition (per session): ``clientId``, ``clientName``,
``clientType``, ``issuer``, ``redirectUrl``, ``dpop``, ``keepAlive`` and,
while a login is pending, ``codeVerifier``.
"""

from __future__ import annotations

import logging
import uuid
from urllib.parse import parse_qs, urlsplit

from webext_authn.core.models import LoginResult, StoredSessionInfo
from webext_authn.core.storage import StorageUtility
from webext_authn.transport import UnauthenticatedTransport

_LOG = logging.getLogger("webext-authn.session_info")

_RESERVED_QUERY_PARAMS = ("code", "state")


def get_unauthenticated_session() -> LoginResult:
    """Return a fresh logged-out result, unrelated to any live session."""
    return LoginResult(
        session_id=str(uuid.uuid4()),
        is_logged_in=False,
        transport=UnauthenticatedTransport(),
    )


def is_valid_redirect_url(redirect_url: str | None) -> bool:
    """True for absolute URLs without a fragment or ``code``/``state`` params."""
    if not redirect_url:
        return False
    parts = urlsplit(redirect_url)
    if not parts.scheme or not parts.netloc:
        return False
    if parts.fragment or redirect_url.endswith("#"):
        return False
    query = parse_qs(parts.query, keep_blank_values=True)
    return not any(param in query for param in _RESERVED_QUERY_PARAMS)


class SessionInfoManager:
    def __init__(self, storage: StorageUtility) -> None:
        self.storage = storage

    async def get(self, session_id: str) -> StoredSessionInfo | None:
        """Return what is stored for *session_id*, or None when nothing is."""
        web_id = await self.storage.get_for_user(session_id, "webId", secure=True)
        is_logged_in = await self.storage.get_for_user(session_id, "isLoggedIn", secure=True)
        client_id = await self.storage.get_for_user(session_id, "clientId")
        issuer = await self.storage.get_for_user(session_id, "issuer")
        redirect_url = await self.storage.get_for_user(session_id, "redirectUrl")
        dpop = await self.storage.get_for_user(session_id, "dpop")
        keep_alive = await self.storage.get_for_user(session_id, "keepAlive")

        if all(v is None for v in (web_id, is_logged_in, client_id, issuer, redirect_url)):
            return None
        return StoredSessionInfo(
            session_id=session_id,
            is_logged_in=is_logged_in == "true",
            web_id=web_id,
            client_app_id=client_id,
            issuer=issuer,
            redirect_url=redirect_url,
            token_type="Bearer" if dpop == "false" else "DPoP",
            keep_alive=keep_alive != "false",
        )

    async def clear(self, session_id: str) -> None:
        """Forget everything stored for *session_id* in both partitions."""
        await self.storage.delete_all_user_data(session_id, secure=False)
        await self.storage.delete_all_user_data(session_id, secure=True)
        _LOG.debug("Cleared stored data for session=%s****", session_id[:6])
