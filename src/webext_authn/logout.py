"""Application-level logout."""

from __future__ import annotations

import logging

from webext_authn.core.errors import InvalidRequestError
from webext_authn.core.models import LogoutOptions
from webext_authn.session_info import SessionInfoManager

_LOG = logging.getLogger("webext-authn.logout")


class LogoutHandler:
    """Forget the local session; the identity provider session is left alone."""

    def __init__(self, session_info_manager: SessionInfoManager) -> None:
        self.session_info_manager = session_info_manager

    async def handle(self, session_id: str, options: LogoutOptions | None = None) -> None:
        if options is not None and options.logout_type == "idp":
            raise InvalidRequestError(
                "Identity provider logout is not supported", session_id=session_id
            )
        await self.session_info_manager.clear(session_id)
        _LOG.info("Logged out session=%s****", session_id[:6])
