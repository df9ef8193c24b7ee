"""Glue between :class:`~webext_authn.session.Session` and the login handlers.

ClientAuthentication owns the current :class:`AuthenticatedTransport`.  It
starts as a pass-through transport, is replaced by the transport returned
from a successful login, and is reset by :meth:`ClientAuthentication.logout`.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import Any

import httpx

from webext_authn.core.clock import Clock, default_clock, now_ms
from webext_authn.core.errors import UnexpectedLoginError
from webext_authn.core.events import SessionEvents, SessionExpiredSignal
from webext_authn.core.log_utils import get_auth_logger
from webext_authn.core.models import (
    LoginOptions,
    LoginResult,
    LogoutOptions,
    SessionInfo,
    StoredSessionInfo,
)
from webext_authn.login.login_handler import OidcLoginHandler
from webext_authn.login.redirect_handler import IncomingRedirectHandler
from webext_authn.logout import LogoutHandler
from webext_authn.session_info import SessionInfoManager
from webext_authn.transport import AuthenticatedTransport, UnauthenticatedTransport

_LOG = logging.getLogger("webext-authn.client_authentication")


class ClientAuthentication:
    def __init__(
        self,
        login_handler: OidcLoginHandler,
        redirect_handler: IncomingRedirectHandler,
        logout_handler: LogoutHandler,
        session_info_manager: SessionInfoManager,
        *,
        client: httpx.AsyncClient | None = None,
        clock: Clock = default_clock,
    ) -> None:
        self.login_handler = login_handler
        self.redirect_handler = redirect_handler
        self.logout_handler = logout_handler
        self.session_info_manager = session_info_manager
        self._client = client
        self._clock = clock
        self._transport: AuthenticatedTransport = UnauthenticatedTransport(client)
        self._pending: set[str] = set()
        self._expiry_timer: asyncio.TimerHandle | None = None

    @property
    def transport(self) -> AuthenticatedTransport:
        return self._transport

    # ------------------------------------------------------------------ #
    # Login / logout                                                     #
    # ------------------------------------------------------------------ #
    async def login(self, options: LoginOptions, events: SessionEvents) -> SessionInfo:
        """Run a login for ``options.session_id`` and install its transport.

        Unless ``prompt`` is ``"none"``, everything stored for the session is
        cleared first so that the login starts from a clean slate.
        """
        session_id = options.session_id
        if session_id is None:
            raise ValueError("LoginOptions.session_id must be set")
        log = get_auth_logger(
            base_logger_name="webext-authn.client_authentication",
            session_id=session_id,
            issuer=options.oidc_issuer,
        )

        if options.prompt != "none":
            await self.session_info_manager.clear(session_id)

        if session_id in self._pending:
            log.warning("Another login is already in progress for this session; the latest wins")
        self._pending.add(session_id)
        try:
            result = await self.login_handler.handle(_with_client_name(options))
        finally:
            self._pending.discard(session_id)

        if result is None:
            raise UnexpectedLoginError(
                "Login completed without session information", session_id=session_id
            )
        self._install(result, events)
        return result.session_info()

    def _install(self, result: LoginResult, events: SessionEvents) -> None:
        self._transport = result.transport
        self._cancel_expiry_timer()
        if result.is_logged_in and result.expiration_date is not None:
            self.schedule_expiry(result.expiration_date, events)

    def schedule_expiry(self, expiration_date: int, events: SessionEvents) -> None:
        """Arm the SESSION_EXPIRED timer for *expiration_date* (epoch ms).

        A previously armed timer is cancelled, so only the latest expiration
        date ever fires.
        """
        self._cancel_expiry_timer()
        delay = max(0.0, (expiration_date - now_ms(self._clock)) / 1000)
        loop = asyncio.get_running_loop()
        self._expiry_timer = loop.call_later(delay, events.emit, SessionExpiredSignal())
        _LOG.debug("Session expires in %.0fs", delay)

    def _cancel_expiry_timer(self) -> None:
        if self._expiry_timer is not None:
            self._expiry_timer.cancel()
            self._expiry_timer = None

    async def logout(self, session_id: str, options: LogoutOptions | None = None) -> None:
        await self.logout_handler.handle(session_id, options)
        self._cancel_expiry_timer()
        self._transport = UnauthenticatedTransport(self._client)

    # ------------------------------------------------------------------ #
    # Requests & stored session lookup                                   #
    # ------------------------------------------------------------------ #
    async def fetch(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self._transport.fetch(url, **kwargs)

    async def get_session_info(self, session_id: str) -> SessionInfo | None:
        stored = await self.session_info_manager.get(session_id)
        if stored is None:
            return None
        return SessionInfo(
            session_id=stored.session_id,
            is_logged_in=stored.is_logged_in,
            web_id=stored.web_id,
            client_app_id=stored.client_app_id,
        )

    async def validate_current_session(self, session_id: str) -> StoredSessionInfo | None:
        """Return stored info for *session_id* when it names a client and issuer.

        The ID token is not persisted, so this does not prove the session is
        still valid at the identity provider.
        """
        stored = await self.session_info_manager.get(session_id)
        if stored is None or stored.client_app_id is None or stored.issuer is None:
            return None
        return stored


def _with_client_name(options: LoginOptions) -> LoginOptions:
    # Without an explicit name, the client id doubles as the display name.
    if options.client_name or not options.client_id:
        return options
    return replace(options, client_name=options.client_id)
