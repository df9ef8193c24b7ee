"""Turn the authorization callback URL into an authenticated session.

Storage layout consumed here (all insecure unless noted):

* ``webextAuthnUser:<state>``      → ``{"sessionId": ...}`` (state mapping)
* ``webextAuthnUser:<sessionId>``  → FlowRecord fields, client id/name/type
* secure ``webextAuthnUser:<sessionId>`` → ``clientSecret``

On success ``webId``, ``isLoggedIn`` and (with keep-alive) the refresh token
are written to the secure partition.  ``redirectUrl`` becomes the callback URL
without its ``code``; the single-use ``codeVerifier`` and state mapping are
deleted.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable
from urllib.parse import parse_qs, parse_qsl, urlencode, urlsplit, urlunsplit

import httpx

from webext_authn.core.clock import Clock, default_clock, now_ms
from webext_authn.core.errors import MissingStorageValueError, RedirectHandlingError
from webext_authn.core.events import SessionEvents
from webext_authn.core.log_utils import get_auth_logger
from webext_authn.core.models import ClientInfo, FlowRecord, LoginResult
from webext_authn.core.storage import StorageUtility
from webext_authn.dpop import generate_dpop_key
from webext_authn.login.issuer import IssuerConfigFetcher
from webext_authn.login.token_endpoint import exchange_authorization_code
from webext_authn.session_info import SessionInfoManager
from webext_authn.transport import DEFAULT_TIMEOUT, BearerTransport, DpopTransport

_FLOW_FIELDS = ("codeVerifier", "redirectUrl", "issuer", "dpop")


@runtime_checkable
class IncomingRedirectHandler(Protocol):
    def can_handle(self, redirect_url: str) -> bool: ...

    async def handle(
        self,
        redirect_url: str,
        events: SessionEvents | None = None,
        config: Any = None,
    ) -> LoginResult: ...


def _query(redirect_url: str) -> dict[str, list[str]]:
    parts = urlsplit(redirect_url)
    if not parts.scheme or not parts.netloc:
        raise RedirectHandlingError(
            f"[{redirect_url}] is not a valid URL, and cannot be used as a redirect URL"
        )
    return parse_qs(parts.query)


def _without_code(redirect_url: str) -> str:
    parts = urlsplit(redirect_url)
    query = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k != "code"]
    return urlunsplit(parts._replace(query=urlencode(query)))


class AuthCodeRedirectHandler:
    """Handles callbacks carrying an authorization ``code`` and ``state``."""

    def __init__(
        self,
        storage: StorageUtility,
        session_info_manager: SessionInfoManager,
        issuer_config_fetcher: IssuerConfigFetcher,
        client: httpx.AsyncClient | None = None,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        clock: Clock = default_clock,
    ) -> None:
        self.storage = storage
        self.session_info_manager = session_info_manager
        self.issuer_config_fetcher = issuer_config_fetcher
        self._client = client
        self._timeout = timeout
        self._clock = clock

    def can_handle(self, redirect_url: str) -> bool:
        query = _query(redirect_url)
        return "code" in query and "state" in query

    async def handle(
        self,
        redirect_url: str,
        events: SessionEvents | None = None,
        config: Any = None,
    ) -> LoginResult:
        query = _query(redirect_url)
        if "error" in query:
            description = query.get("error_description", [""])[0]
            raise RedirectHandlingError(
                f"The identity provider returned an error: {query['error'][0]}"
                + (f" ({description})" if description else "")
            )
        if "code" not in query or "state" not in query:
            raise RedirectHandlingError(
                f"AuthCodeRedirectHandler cannot handle [{redirect_url}]: "
                "it is missing one of [code, state]."
            )
        code = query["code"][0]
        state = query["state"][0]

        session_id = await self.storage.get_for_user(state, "sessionId")
        if session_id is None:
            raise RedirectHandlingError(
                "No stored session matches the state returned by the identity provider."
            )
        log = get_auth_logger(
            base_logger_name="webext-authn.login.redirect_handler",
            session_id=session_id,
            state=state,
        )

        values: dict[str, str | None] = {}
        try:
            for key in _FLOW_FIELDS:
                values[key] = await self.storage.get_for_user(
                    session_id, key, error_if_null=True
                )
        except MissingStorageValueError as exc:
            raise RedirectHandlingError(str(exc), session_id=session_id) from exc
        values["keepAlive"] = await self.storage.get_for_user(session_id, "keepAlive")
        flow = FlowRecord.from_storage(values)

        stored = await self.session_info_manager.get(session_id)
        if stored is None or not stored.client_app_id:
            raise RedirectHandlingError(
                f"Could not retrieve session: [{session_id}].", session_id=session_id
            )

        issuer_config = await self.issuer_config_fetcher.fetch_config(flow.issuer)
        client = ClientInfo(
            client_id=stored.client_app_id,
            client_secret=await self.storage.get_for_user(
                session_id, "clientSecret", secure=True
            ),
        )
        dpop_key = generate_dpop_key() if flow.dpop else None

        tokens = await exchange_authorization_code(
            issuer_config=issuer_config,
            client=client,
            code=code,
            code_verifier=flow.code_verifier,
            redirect_url=flow.redirect_url,
            dpop_key=dpop_key,
            http_client=self._client,
            timeout=self._timeout,
            clock=self._clock,
            session_id=session_id,
        )

        secure_values = {"webId": tokens.web_id, "isLoggedIn": "true"}
        if flow.keep_alive and tokens.refresh_token:
            secure_values["refreshToken"] = tokens.refresh_token
        await self.storage.set_for_user(session_id, secure_values, secure=True)
        await self.storage.set_for_user(session_id, {"redirectUrl": _without_code(redirect_url)})
        await self.storage.delete_for_user(session_id, "codeVerifier")
        await self.storage.delete_all_user_data(state)

        if dpop_key is not None:
            transport = DpopTransport(
                tokens.access_token,
                dpop_key,
                self._client,
                timeout=self._timeout,
                clock=self._clock,
            )
        else:
            transport = BearerTransport(tokens.access_token, self._client, timeout=self._timeout)

        expiration_date = (
            now_ms(self._clock) + tokens.expires_in * 1000
            if tokens.expires_in is not None
            else None
        )
        log.info("Login completed (dpop=%s, expires_in=%s)", flow.dpop, tokens.expires_in)
        return LoginResult(
            session_id=session_id,
            transport=transport,
            is_logged_in=True,
            web_id=tokens.web_id,
            client_app_id=client.client_id,
            expiration_date=expiration_date,
        )
