"""User-facing session object.

A :class:`Session` owns its :class:`SessionEvents` bus and the current
:class:`SessionInfo` snapshot.  ``info`` is only ever replaced as a whole,
so a reference obtained earlier never changes under the caller.

Signals
-------
LOGIN            after a login that produced a logged-in session
LOGOUT           after every :meth:`Session.logout` call
ERROR            ``("login", exc)`` when a login fails
SESSION_EXPIRED  triggers a silent logout (no LOGOUT signal)
SESSION_EXTENDED ``expires_in`` seconds; moves ``expiration_date``
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import replace
from typing import Any, Callable

import httpx

from webext_authn.client_authentication import ClientAuthentication
from webext_authn.core.clock import Clock, default_clock, now_ms
from webext_authn.core.events import (
    ErrorSignal,
    LoginSignal,
    LogoutSignal,
    SessionEvent,
    SessionEvents,
    SessionExtendedSignal,
    Signal,
)
from webext_authn.core.models import LoginOptions, LogoutOptions, SessionInfo
from webext_authn.core.storage import Storage
from webext_authn.dependencies import get_client_authentication_with_dependencies

_LOG = logging.getLogger("webext-authn.session")


class Session:
    def __init__(
        self,
        *,
        session_info: SessionInfo | None = None,
        client_authentication: ClientAuthentication | None = None,
        secure_storage: Storage | None = None,
        insecure_storage: Storage | None = None,
        session_id: str | None = None,
        clock: Clock = default_clock,
    ) -> None:
        self.events = SessionEvents()
        self._clock = clock
        if client_authentication is not None:
            self.client_authentication = client_authentication
        else:
            self.client_authentication = get_client_authentication_with_dependencies(
                secure_storage=secure_storage,
                insecure_storage=insecure_storage,
                clock=clock,
            )

        if session_info is not None:
            self._info = SessionInfo(
                session_id=session_info.session_id,
                is_logged_in=False,
                web_id=session_info.web_id,
                client_app_id=session_info.client_app_id,
            )
        else:
            self._info = SessionInfo(session_id=session_id or str(uuid.uuid4()))

        self._unsubscribe_extended: Callable[[], None] | None = None
        self.events.on(SessionEvent.SESSION_EXPIRED, self._silent_logout)
        self.events.on(SessionEvent.ERROR, self._silent_logout)

    @property
    def info(self) -> SessionInfo:
        return self._info

    # ------------------------------------------------------------------ #
    # Login / logout                                                     #
    # ------------------------------------------------------------------ #
    async def login(self, options: LoginOptions | None = None) -> None:
        """Log in; raises whatever the login failed with after emitting ERROR."""
        options = options or LoginOptions()
        options = replace(
            options,
            session_id=options.session_id or self._info.session_id,
            token_type=options.token_type or "DPoP",
        )
        try:
            info = await self.client_authentication.login(options, self.events)
        except Exception as exc:
            self._info = replace(self._info, is_logged_in=False)
            self.events.emit(ErrorSignal("login", exc))
            raise

        self._info = info
        if info.is_logged_in:
            if self._unsubscribe_extended is None:
                self._unsubscribe_extended = self.events.on(
                    SessionEvent.SESSION_EXTENDED, self._on_extended
                )
            self.events.emit(LoginSignal())

    async def logout(self) -> None:
        await self._internal_logout(emit_signal=True, options=LogoutOptions("app"))

    async def _internal_logout(
        self, *, emit_signal: bool, options: LogoutOptions | None = None
    ) -> None:
        await self.client_authentication.logout(self._info.session_id, options)
        self._info = replace(self._info, is_logged_in=False)
        if emit_signal:
            self.events.emit(LogoutSignal())

    async def _silent_logout(self, signal: Signal) -> None:
        _LOG.debug("Logging out session=%s**** after %s", self._info.session_id[:6], signal.kind.value)
        await self._internal_logout(emit_signal=False)

    def _on_extended(self, signal: SessionExtendedSignal) -> None:
        expiration_date = now_ms(self._clock) + signal.expires_in * 1000
        self._info = replace(self._info, expiration_date=expiration_date)
        if self._info.is_logged_in:
            self.client_authentication.schedule_expiry(expiration_date, self.events)

    # ------------------------------------------------------------------ #
    # Requests                                                           #
    # ------------------------------------------------------------------ #
    async def fetch(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.client_authentication.fetch(url, **kwargs)

    def close(self) -> None:
        """Drop every listener, including the internal ones."""
        self.events.close()
        self._unsubscribe_extended = None
