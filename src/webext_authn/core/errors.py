"""Exception types raised by the login core.

Only lightweight, **data-carrying** exceptions live here so that callers
(UI code, CLI wrappers) can turn them into user-facing messages.  Every
exception exposes :meth:`AuthnError.to_payload`, which never includes
tokens, verifiers or client secrets.
"""

from __future__ import annotations


class AuthnError(RuntimeError):
    """Base class of every error raised by ``webext_authn``."""

    code: str = "authn_error"

    def __init__(self, message: str | None = None, *, session_id: str | None = None) -> None:
        super().__init__(message or "Authentication failed.")
        self.session_id: str | None = session_id

    def to_payload(self) -> dict[str, str]:
        """Return a JSON-serialisable payload **without secrets**."""
        payload = {"error": self.code, "message": str(self)}
        if self.session_id:
            payload["session_id"] = self.session_id
        return payload


class InvalidRequestError(AuthnError):
    """The login request cannot be started (raised before any side effect)."""

    code = "invalid_request"


class HostFlowError(AuthnError):
    """The host's interactive authentication capability failed or was cancelled."""

    code = "host_flow_failure"


class RedirectHandlingError(AuthnError):
    """The callback URL could not be turned into an authenticated session."""

    code = "redirect_handling_failure"


class TokenEndpointError(RedirectHandlingError):
    """The token endpoint answered the code exchange with an error status."""

    code = "token_endpoint_failure"

    def __init__(
        self,
        *,
        status_code: int,
        body: str = "",
        session_id: str | None = None,
    ) -> None:
        super().__init__(
            f"Token endpoint returned {status_code}: {body[:200]}",
            session_id=session_id,
        )
        self.status_code: int = status_code

    def to_payload(self) -> dict[str, str]:
        payload = super().to_payload()
        payload["status_code"] = str(self.status_code)
        return payload


class UnexpectedLoginError(AuthnError):
    """A login completed without producing session information."""

    code = "unexpected_login_failure"


class DiscoveryError(AuthnError):
    """The issuer's OpenID configuration could not be fetched or parsed."""

    code = "discovery_failure"


class RegistrationError(AuthnError):
    """Dynamic client registration was refused by the identity provider."""

    code = "registration_failure"


class MissingStorageValueError(AuthnError):
    """A value requested with ``error_if_null=True`` is not stored."""

    code = "missing_storage_value"
