"""Authorization Code flow with PKCE over the host identity API.

The flow runs in two phases so that hosts without a blocking identity
call (or tests) can drive it step by step:

1. :meth:`WebAuthFlowHandler.begin` builds the authorization URL and
   persists everything the code exchange needs;
2. :meth:`WebAuthFlowHandler.complete` exchanges the callback URL.

:meth:`WebAuthFlowHandler.handle` runs both phases around the host's
interactive flow.  Both storage writes complete before the host is asked
to open the authorization URL.

Starting a second flow for the same session before the first one finished
overwrites its code verifier: the most recent ``begin`` wins.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from webext_authn.core.errors import InvalidRequestError
from webext_authn.core.log_utils import get_auth_logger, mask_sensitive
from webext_authn.core.models import FlowRecord, LoginResult, OidcOptions
from webext_authn.core.pkce import CODE_CHALLENGE_METHOD, PkcePair, generate_state
from webext_authn.core.storage import StorageUtility
from webext_authn.host import HostIdentity
from webext_authn.login.redirect_handler import IncomingRedirectHandler
from webext_authn.login.redirector import Redirector

DEFAULT_PROMPT = "consent"


@dataclass(frozen=True, slots=True)
class PendingFlow:
    """Output of :meth:`WebAuthFlowHandler.begin`."""

    session_id: str
    state: str
    code_verifier: str = field(repr=False)
    authorization_url: str


def build_authorization_url(
    options: OidcOptions,
    *,
    redirect_url: str,
    state: str,
    code_challenge: str,
) -> str:
    """Return the authorization endpoint URL, keeping any query it already has."""
    params = {
        "client_id": options.client.client_id,
        "redirect_uri": redirect_url,
        "response_type": "code",
        "scope": " ".join(options.scopes),
        "state": state,
        "code_challenge": code_challenge,
        "code_challenge_method": CODE_CHALLENGE_METHOD,
        "prompt": options.prompt or DEFAULT_PROMPT,
    }
    parts = urlsplit(options.issuer_configuration.authorization_endpoint)
    query = parse_qsl(parts.query, keep_blank_values=True) + list(params.items())
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(query), ""))


class WebAuthFlowHandler:
    def __init__(
        self,
        redirect_handler: IncomingRedirectHandler,
        storage: StorageUtility,
        identity: HostIdentity,
    ) -> None:
        self.redirect_handler = redirect_handler
        self.storage = storage
        self.identity = identity

    def _redirect_url(self) -> str | None:
        return self.identity.get_redirect_url() or None

    def can_handle(self, options: OidcOptions) -> bool:
        grants = options.issuer_configuration.grant_types_supported
        return (
            grants is not None
            and "authorization_code" in grants
            and self._redirect_url() is not None
        )

    async def begin(self, options: OidcOptions) -> PendingFlow:
        """Prepare the authorization request and persist the flow record.

        Raises :class:`InvalidRequestError` before any storage write when the
        issuer does not support the authorization code grant or no
        redirect URL is available.
        """
        if not self.can_handle(options):
            raise InvalidRequestError(
                "The authorization code grant requires a redirectUrl.",
                session_id=options.session_id,
            )
        redirect_url = self.identity.get_redirect_url()

        pkce = PkcePair.new()
        state = generate_state()
        url = build_authorization_url(
            options,
            redirect_url=redirect_url,
            state=state,
            code_challenge=pkce.challenge,
        )

        log = get_auth_logger(
            base_logger_name="webext-authn.login.web_auth_flow",
            session_id=options.session_id,
            state=state,
            issuer=options.issuer,
        )
        if await self.storage.get_for_user(options.session_id, "codeVerifier"):
            log.warning("A login was already pending for this session; replacing it")

        record = FlowRecord(
            code_verifier=pkce.verifier,
            redirect_url=redirect_url,
            issuer=options.issuer,
            dpop=options.dpop,
            keep_alive=options.keep_alive,
        )
        await self.storage.set_for_user(state, {"sessionId": options.session_id})
        await self.storage.set_for_user(options.session_id, record.to_storage())
        log.debug("Authorization request prepared (state=%s)", mask_sensitive(state, 6))
        return PendingFlow(
            session_id=options.session_id,
            state=state,
            code_verifier=pkce.verifier,
            authorization_url=url,
        )

    async def complete(self, callback_url: str) -> LoginResult:
        return await self.redirect_handler.handle(callback_url, None, None)

    async def handle(self, options: OidcOptions) -> LoginResult:
        pending = await self.begin(options)
        outcome: asyncio.Future[LoginResult] = asyncio.get_running_loop().create_future()

        def _after_redirect(result: LoginResult, error: BaseException | None) -> None:
            if outcome.done():
                return
            if error is not None:
                outcome.set_exception(error)
            else:
                outcome.set_result(result)

        redirector = Redirector(self.redirect_handler, _after_redirect, identity=self.identity)
        await redirector.redirect(pending.authorization_url)
        return await outcome
