"""Assemble :class:`OidcOptions` from :class:`LoginOptions` and start the flow."""

from __future__ import annotations

from typing import Iterable

from webext_authn.core.errors import InvalidRequestError
from webext_authn.core.log_utils import get_auth_logger
from webext_authn.core.models import LoginOptions, LoginResult, OidcOptions
from webext_authn.host import HostIdentity
from webext_authn.login.client_registrar import ClientRegistrar
from webext_authn.login.issuer import IssuerConfigFetcher
from webext_authn.login.web_auth_flow import WebAuthFlowHandler
from webext_authn.session_info import is_valid_redirect_url

DEFAULT_SCOPES: tuple[str, ...] = ("openid", "offline_access", "webid")


def merge_scopes(extra: Iterable[str] = ()) -> tuple[str, ...]:
    """Defaults first, then *extra*, without duplicates."""
    merged: list[str] = []
    for scope in (*DEFAULT_SCOPES, *extra):
        if scope and scope not in merged:
            merged.append(scope)
    return tuple(merged)


class OidcLoginHandler:
    def __init__(
        self,
        oidc_handler: WebAuthFlowHandler,
        issuer_config_fetcher: IssuerConfigFetcher,
        client_registrar: ClientRegistrar,
        identity: HostIdentity,
    ) -> None:
        self.oidc_handler = oidc_handler
        self.issuer_config_fetcher = issuer_config_fetcher
        self.client_registrar = client_registrar
        self.identity = identity

    def can_handle(self, options: LoginOptions) -> bool:
        return bool(options.oidc_issuer)

    async def handle(self, options: LoginOptions) -> LoginResult | None:
        if not options.oidc_issuer:
            raise InvalidRequestError("OidcLoginHandler requires an OIDC issuer")
        if not options.session_id:
            raise InvalidRequestError("OidcLoginHandler requires a session id")

        # The host callback URL is the only one the browser can reach.
        redirect_url = self.identity.get_redirect_url()
        if not is_valid_redirect_url(redirect_url):
            raise InvalidRequestError(
                f"[{redirect_url}] is not a valid URL, and cannot be used as a redirect URL",
                session_id=options.session_id,
            )
        log = get_auth_logger(
            base_logger_name="webext-authn.login.login_handler",
            session_id=options.session_id,
            issuer=options.oidc_issuer,
        )
        if options.redirect_url and options.redirect_url != redirect_url:
            log.debug("Ignoring caller redirect URL in favour of the host callback URL")

        issuer_config = await self.issuer_config_fetcher.fetch_config(options.oidc_issuer)
        client = await self.client_registrar.get_client(
            session_id=options.session_id,
            issuer_config=issuer_config,
            redirect_url=redirect_url,
            client_id=options.client_id,
            client_secret=options.client_secret,
            client_name=options.client_name,
        )
        oidc_options = OidcOptions(
            session_id=options.session_id,
            issuer=issuer_config.issuer,
            issuer_configuration=issuer_config,
            client=client,
            redirect_url=redirect_url,
            dpop=options.token_type.lower() == "dpop",
            keep_alive=options.keep_alive,
            prompt=options.prompt,
            scopes=merge_scopes(options.scopes),
        )
        log.info("Starting %s login", "DPoP" if oidc_options.dpop else "Bearer")
        return await self.oidc_handler.handle(oidc_options)
