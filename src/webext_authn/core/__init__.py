"""Login core building blocks.

This namespace hosts the **host-agnostic** pieces shared by the login
handlers, :class:`~webext_authn.client_authentication.ClientAuthentication`
and :class:`~webext_authn.session.Session`.

Sub-modules
-----------
clock
    Test-friendly time abstraction.
pkce
    Proof-Key for Code Exchange and ``state`` helpers.
models
    Immutable dataclasses for session, login and issuer metadata.
events
    Per-session publish/subscribe bus with typed signals.
storage
    Secure / insecure key-value partitions.
errors
    Exception types used by the login core.
log_utils
    Structured logging helpers (thin wrapper around :pymod:`logging`).

All public objects are re-exported here for convenience.
"""

from __future__ import annotations

from .clock import Clock, default_clock, now_ms  # noqa: F401
from .pkce import PkcePair, code_challenge_s256, generate_code_verifier, generate_state  # noqa: F401
from .models import (  # noqa: F401
    ClientInfo,
    FlowRecord,
    IssuerConfig,
    LoginOptions,
    LoginResult,
    LogoutOptions,
    OidcOptions,
    SessionInfo,
    StoredSessionInfo,
)
from .events import (  # noqa: F401
    ErrorSignal,
    LoginSignal,
    LogoutSignal,
    SessionEvent,
    SessionEvents,
    SessionExpiredSignal,
    SessionExtendedSignal,
)
from .storage import DiskStorage, InMemoryStorage, Storage, StorageUtility  # noqa: F401
from .errors import (  # noqa: F401
    AuthnError,
    DiscoveryError,
    HostFlowError,
    InvalidRequestError,
    MissingStorageValueError,
    RedirectHandlingError,
    RegistrationError,
    TokenEndpointError,
    UnexpectedLoginError,
)
from .log_utils import get_auth_logger, mask_sensitive  # noqa: F401

__all__ = [
    # clock
    "Clock",
    "default_clock",
    "now_ms",
    # pkce
    "generate_code_verifier",
    "code_challenge_s256",
    "generate_state",
    "PkcePair",
    # models
    "ClientInfo",
    "FlowRecord",
    "IssuerConfig",
    "LoginOptions",
    "LoginResult",
    "LogoutOptions",
    "OidcOptions",
    "SessionInfo",
    "StoredSessionInfo",
    # events
    "ErrorSignal",
    "LoginSignal",
    "LogoutSignal",
    "SessionEvent",
    "SessionEvents",
    "SessionExpiredSignal",
    "SessionExtendedSignal",
    # storage
    "DiskStorage",
    "InMemoryStorage",
    "Storage",
    "StorageUtility",
    # errors
    "AuthnError",
    "DiscoveryError",
    "HostFlowError",
    "InvalidRequestError",
    "MissingStorageValueError",
    "RedirectHandlingError",
    "RegistrationError",
    "TokenEndpointError",
    "UnexpectedLoginError",
    # logging helpers
    "get_auth_logger",
    "mask_sensitive",
]
