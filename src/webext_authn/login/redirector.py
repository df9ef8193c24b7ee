"""Drive the host's interactive flow and hand its result to a callback."""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from webext_authn.core.errors import HostFlowError
from webext_authn.core.models import LoginResult
from webext_authn.host import HostIdentity
from webext_authn.login.redirect_handler import IncomingRedirectHandler
from webext_authn.session_info import get_unauthenticated_session

_LOG = logging.getLogger("webext-authn.login.redirector")

RedirectCallback = Callable[[LoginResult, Optional[BaseException]], None]


class Redirector:
    """Single-shot bridge between the host identity API and a redirect handler.

    :meth:`redirect` never raises: every outcome, including failures, is
    delivered through ``after_redirect``.
    """

    def __init__(
        self,
        redirect_handler: IncomingRedirectHandler,
        after_redirect: RedirectCallback,
        *,
        identity: HostIdentity,
    ) -> None:
        self.redirect_handler = redirect_handler
        self.after_redirect = after_redirect
        self.identity = identity

    async def redirect(self, target_url: str, options: Any = None) -> None:
        try:
            try:
                callback_url = await self.identity.launch_web_auth_flow(
                    target_url, interactive=True
                )
            except HostFlowError:
                raise
            except Exception as exc:
                raise HostFlowError(f"The host authentication flow failed: {exc}") from exc
            result = await self.redirect_handler.handle(callback_url, None, None)
        except Exception as exc:
            _LOG.debug("Redirect failed: %s", exc)
            self.after_redirect(get_unauthenticated_session(), exc)
            return
        self.after_redirect(result, None)
