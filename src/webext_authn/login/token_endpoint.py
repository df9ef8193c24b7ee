"""Authorization-code grant against the issuer's token endpoint."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import httpx
from jose import jwt
from jose.exceptions import JWTError

from webext_authn.core.clock import Clock, default_clock
from webext_authn.core.errors import RedirectHandlingError, TokenEndpointError
from webext_authn.core.models import ClientInfo, IssuerConfig
from webext_authn.dpop import DpopKey, create_dpop_header
from webext_authn.transport import DEFAULT_TIMEOUT, request

_LOG = logging.getLogger("webext-authn.login.token_endpoint")


@dataclass(frozen=True, slots=True)
class TokenEndpointResponse:
    access_token: str = field(repr=False)
    id_token: str = field(repr=False)
    web_id: str
    refresh_token: str | None = field(default=None, repr=False)
    expires_in: int | None = None
    dpop_key: DpopKey | None = field(default=None, repr=False)


def web_id_from_id_token(id_token: str) -> str:
    """Return the ``webid`` claim of *id_token*, falling back to ``sub``.

    The token is not signature-checked: it was received directly from the
    token endpoint over TLS.
    """
    try:
        claims = jwt.get_unverified_claims(id_token)
    except JWTError as exc:
        raise RedirectHandlingError(f"The ID token is not a valid JWT: {exc}") from exc
    web_id = claims.get("webid") or claims.get("sub")
    if not web_id:
        raise RedirectHandlingError("The ID token has neither a webid nor a sub claim")
    return web_id


async def exchange_authorization_code(
    *,
    issuer_config: IssuerConfig,
    client: ClientInfo,
    code: str,
    code_verifier: str,
    redirect_url: str,
    dpop_key: DpopKey | None = None,
    http_client: httpx.AsyncClient | None = None,
    timeout: float = DEFAULT_TIMEOUT,
    clock: Clock = default_clock,
    session_id: str | None = None,
) -> TokenEndpointResponse:
    """POST the authorization code and return the parsed token response."""
    payload: dict[str, str] = {
        "grant_type": "authorization_code",
        "code": code,
        "code_verifier": code_verifier,
        "redirect_uri": redirect_url,
        "client_id": client.client_id,
    }
    headers = {"Accept": "application/json"}
    if dpop_key is not None:
        headers["DPoP"] = create_dpop_header(
            issuer_config.token_endpoint, "POST", dpop_key, clock=clock
        )
    auth = (
        httpx.BasicAuth(client.client_id, client.client_secret)
        if client.client_secret
        else None
    )

    try:
        resp = await request(
            "POST",
            issuer_config.token_endpoint,
            client=http_client,
            timeout=timeout,
            data=payload,
            headers=headers,
            auth=auth,
        )
    except httpx.HTTPError as exc:
        raise RedirectHandlingError(
            f"Token request failed: {exc}", session_id=session_id
        ) from exc

    if not resp.is_success:
        raise TokenEndpointError(
            status_code=resp.status_code, body=resp.text, session_id=session_id
        )

    try:
        data = resp.json()
    except ValueError as exc:
        raise RedirectHandlingError(
            "Token endpoint returned a non-JSON body", session_id=session_id
        ) from exc

    access_token = data.get("access_token")
    if not access_token:
        raise RedirectHandlingError("Token response missing access_token", session_id=session_id)
    id_token = data.get("id_token")
    if not id_token:
        raise RedirectHandlingError("Token response missing id_token", session_id=session_id)

    token_type = str(data.get("token_type", "")).lower()
    if dpop_key is not None and token_type != "dpop":
        raise RedirectHandlingError(
            f"Expected a DPoP-bound access token, got token_type [{data.get('token_type')}]",
            session_id=session_id,
        )

    expires_in = data.get("expires_in")
    response = TokenEndpointResponse(
        access_token=access_token,
        id_token=id_token,
        web_id=web_id_from_id_token(id_token),
        refresh_token=data.get("refresh_token"),
        expires_in=int(expires_in) if expires_in is not None else None,
        dpop_key=dpop_key,
    )
    _LOG.debug(
        "Exchanged authorization code (token_type=%s, expires_in=%s)",
        token_type or "unknown",
        response.expires_in,
    )
    return response
