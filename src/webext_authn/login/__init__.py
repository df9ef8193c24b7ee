"""Login flow: discovery, client resolution, PKCE request and code exchange."""

from __future__ import annotations

from .client_registrar import ClientRegistrar  # noqa: F401
from .issuer import IssuerConfigFetcher  # noqa: F401
from .login_handler import DEFAULT_SCOPES, OidcLoginHandler  # noqa: F401
from .redirect_handler import AuthCodeRedirectHandler, IncomingRedirectHandler  # noqa: F401
from .redirector import Redirector  # noqa: F401
from .token_endpoint import TokenEndpointResponse, exchange_authorization_code  # noqa: F401
from .web_auth_flow import PendingFlow, WebAuthFlowHandler  # noqa: F401

__all__ = [
    "AuthCodeRedirectHandler",
    "ClientRegistrar",
    "DEFAULT_SCOPES",
    "IncomingRedirectHandler",
    "IssuerConfigFetcher",
    "OidcLoginHandler",
    "PendingFlow",
    "Redirector",
    "TokenEndpointResponse",
    "WebAuthFlowHandler",
    "exchange_authorization_code",
]
