"""Typed, immutable records used by the login core."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Literal, Mapping

if TYPE_CHECKING:  # pragma: no cover
    from webext_authn.transport import AuthenticatedTransport

TokenType = Literal["DPoP", "Bearer"]
ClientType = Literal["static", "dynamic", "solid-oidc"]
LogoutType = Literal["app", "idp"]


def _flag(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() == "true"


@dataclass(frozen=True, slots=True)
class SessionInfo:
    """Public view of a session.

    ``expiration_date`` is expressed in epoch milliseconds.
    """

    session_id: str
    is_logged_in: bool = False
    web_id: str | None = None
    client_app_id: str | None = None
    expiration_date: int | None = None


@dataclass(frozen=True, slots=True)
class StoredSessionInfo:
    """Session information as persisted by the storage collaborator."""

    session_id: str
    is_logged_in: bool = False
    web_id: str | None = None
    client_app_id: str | None = None
    issuer: str | None = None
    redirect_url: str | None = None
    token_type: TokenType = "DPoP"
    keep_alive: bool = True


@dataclass(frozen=True, slots=True)
class LoginOptions:
    """Per-attempt login parameters; never persisted as such."""

    oidc_issuer: str | None = None
    session_id: str | None = None
    # Ignored by the web-auth flow: the host's callback URL is authoritative.
    redirect_url: str | None = None
    token_type: TokenType = "DPoP"
    client_id: str | None = None
    client_name: str | None = None
    client_secret: str | None = None
    prompt: str | None = None
    scopes: tuple[str, ...] = ()
    keep_alive: bool = True


@dataclass(frozen=True, slots=True)
class LogoutOptions:
    logout_type: LogoutType = "app"


@dataclass(frozen=True, slots=True)
class IssuerConfig:
    """Subset of the OpenID Provider metadata used by the login flow."""

    issuer: str
    authorization_endpoint: str
    token_endpoint: str
    jwks_uri: str | None = None
    registration_endpoint: str | None = None
    end_session_endpoint: str | None = None
    grant_types_supported: tuple[str, ...] | None = None
    scopes_supported: tuple[str, ...] | None = None

    @classmethod
    def from_metadata(cls, metadata: Mapping[str, Any]) -> "IssuerConfig":
        """Build from a ``.well-known/openid-configuration`` document.

        Raises ``KeyError`` when a mandatory endpoint is missing.
        """
        grants = metadata.get("grant_types_supported")
        scopes = metadata.get("scopes_supported")
        return cls(
            issuer=metadata["issuer"],
            authorization_endpoint=metadata["authorization_endpoint"],
            token_endpoint=metadata["token_endpoint"],
            jwks_uri=metadata.get("jwks_uri"),
            registration_endpoint=metadata.get("registration_endpoint"),
            end_session_endpoint=metadata.get("end_session_endpoint"),
            grant_types_supported=tuple(grants) if grants is not None else None,
            scopes_supported=tuple(scopes) if scopes is not None else None,
        )


@dataclass(frozen=True, slots=True)
class ClientInfo:
    client_id: str
    client_secret: str | None = None
    client_name: str | None = None
    client_type: ClientType = "static"


@dataclass(frozen=True, slots=True)
class OidcOptions:
    """Everything the authorization-request builder needs for one attempt."""

    session_id: str
    issuer: str
    issuer_configuration: IssuerConfig
    client: ClientInfo
    redirect_url: str | None = None
    dpop: bool = True
    keep_alive: bool = True
    prompt: str | None = None
    scopes: tuple[str, ...] = ("openid", "offline_access", "webid")


@dataclass(frozen=True, slots=True)
class FlowRecord:
    """Per-session record persisted between the authorization request and
    the code exchange.  Stored as strings, like every storage value."""

    code_verifier: str
    redirect_url: str
    issuer: str
    dpop: bool
    keep_alive: bool = True

    def to_storage(self) -> dict[str, str]:
        return {
            "codeVerifier": self.code_verifier,
            "redirectUrl": self.redirect_url,
            "issuer": self.issuer,
            "dpop": str(self.dpop).lower(),
            "keepAlive": str(self.keep_alive).lower(),
        }

    @classmethod
    def from_storage(cls, values: Mapping[str, str | None]) -> "FlowRecord":
        return cls(
            code_verifier=values["codeVerifier"] or "",
            redirect_url=values["redirectUrl"] or "",
            issuer=values["issuer"] or "",
            dpop=_flag(values.get("dpop")),
            keep_alive=_flag(values.get("keepAlive"), default=True),
        )


@dataclass(frozen=True, slots=True)
class LoginResult:
    """Outcome of a completed redirect: session fields plus the transport
    that authenticates subsequent requests."""

    session_id: str
    transport: "AuthenticatedTransport" = field(repr=False)
    is_logged_in: bool = False
    web_id: str | None = None
    client_app_id: str | None = None
    expiration_date: int | None = None

    def session_info(self) -> SessionInfo:
        return SessionInfo(
            session_id=self.session_id,
            is_logged_in=self.is_logged_in,
            web_id=self.web_id,
            client_app_id=self.client_app_id,
            expiration_date=self.expiration_date,
        )
