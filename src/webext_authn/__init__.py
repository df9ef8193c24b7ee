"""OAuth2 / OpenID Connect login for privileged hosts.

Typical use::

    from webext_authn import LoginOptions, Session

    session = Session()
    await session.login(LoginOptions(oidc_issuer="https://idp.example"))
    response = await session.fetch("https://pod.example/private")
"""

from __future__ import annotations

import logging

from webext_authn.client_authentication import ClientAuthentication
from webext_authn.config import AuthnConfig
from webext_authn.core import (
    AuthnError,
    HostFlowError,
    InvalidRequestError,
    LoginOptions,
    LogoutOptions,
    RedirectHandlingError,
    SessionEvent,
    SessionInfo,
    TokenEndpointError,
    UnexpectedLoginError,
)
from webext_authn.dependencies import get_client_authentication_with_dependencies
from webext_authn.host import HostIdentity, LoopbackIdentity
from webext_authn.session import Session

__version__ = "0.1.0"

logging.getLogger("webext-authn").addHandler(logging.NullHandler())

__all__ = [
    "AuthnConfig",
    "AuthnError",
    "ClientAuthentication",
    "HostFlowError",
    "HostIdentity",
    "InvalidRequestError",
    "LoginOptions",
    "LogoutOptions",
    "LoopbackIdentity",
    "RedirectHandlingError",
    "Session",
    "SessionEvent",
    "SessionInfo",
    "TokenEndpointError",
    "UnexpectedLoginError",
    "get_client_authentication_with_dependencies",
]
