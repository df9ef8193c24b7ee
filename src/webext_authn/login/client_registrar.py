"""Resolve the OAuth client used for a login.

Resolution order:

1. a client already stored for the session (``clientId`` in the insecure
   partition, ``clientSecret`` in the secure one);
2. a ``client_id`` given by the caller: a URL means a Solid-OIDC client
   identifier document, anything else a statically registered client;
3. dynamic client registration (RFC 7591) at the issuer's
   ``registration_endpoint``.
"""

from __future__ import annotations

from urllib.parse import urlsplit

import httpx

from webext_authn.core.errors import InvalidRequestError, RegistrationError
from webext_authn.core.log_utils import get_auth_logger
from webext_authn.core.models import ClientInfo, ClientType, IssuerConfig
from webext_authn.core.storage import StorageUtility
from webext_authn.transport import DEFAULT_TIMEOUT, request


def _is_url(value: str) -> bool:
    parts = urlsplit(value)
    return parts.scheme in ("http", "https") and bool(parts.netloc)


def determine_client_type(client_id: str | None) -> ClientType:
    if not client_id:
        return "dynamic"
    return "solid-oidc" if _is_url(client_id) else "static"


class ClientRegistrar:
    def __init__(
        self,
        storage: StorageUtility,
        client: httpx.AsyncClient | None = None,
        *,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.storage = storage
        self._client = client
        self._timeout = timeout

    async def get_client(
        self,
        *,
        session_id: str,
        issuer_config: IssuerConfig,
        redirect_url: str,
        client_id: str | None = None,
        client_secret: str | None = None,
        client_name: str | None = None,
    ) -> ClientInfo:
        log = get_auth_logger(
            base_logger_name="webext-authn.login.client_registrar",
            session_id=session_id,
            issuer=issuer_config.issuer,
        )

        stored_id = await self.storage.get_for_user(session_id, "clientId")
        if stored_id:
            stored_type = await self.storage.get_for_user(session_id, "clientType")
            log.debug("Reusing stored client")
            return ClientInfo(
                client_id=stored_id,
                client_secret=await self.storage.get_for_user(
                    session_id, "clientSecret", secure=True
                ),
                client_name=await self.storage.get_for_user(session_id, "clientName"),
                client_type=stored_type or determine_client_type(stored_id),  # type: ignore[arg-type]
            )

        if client_id:
            info = ClientInfo(
                client_id=client_id,
                client_secret=client_secret,
                client_name=client_name,
                client_type=determine_client_type(client_id),
            )
        else:
            info = await self._register(issuer_config, redirect_url, client_name)
            log.info("Registered a dynamic client")

        await self._save(session_id, info)
        return info

    async def _register(
        self, issuer_config: IssuerConfig, redirect_url: str, client_name: str | None
    ) -> ClientInfo:
        endpoint = issuer_config.registration_endpoint
        if not endpoint:
            raise InvalidRequestError(
                "Dynamic client registration cannot be performed, because issuer "
                f"[{issuer_config.issuer}] does not have a registration endpoint."
            )

        metadata: dict[str, object] = {
            "redirect_uris": [redirect_url],
            "grant_types": ["authorization_code", "refresh_token"],
            "response_types": ["code"],
            "token_endpoint_auth_method": "client_secret_basic",
            "application_type": "native",
        }
        if client_name:
            metadata["client_name"] = client_name

        try:
            resp = await request(
                "POST",
                endpoint,
                client=self._client,
                timeout=self._timeout,
                json=metadata,
            )
        except httpx.HTTPError as exc:
            raise RegistrationError(f"Client registration request failed: {exc}") from exc

        if resp.status_code not in (200, 201):
            raise RegistrationError(
                f"Client registration failed with {resp.status_code}: {resp.text[:200]}"
            )
        try:
            body = resp.json()
            registered_id = body["client_id"]
        except (ValueError, KeyError, TypeError) as exc:
            raise RegistrationError("Client registration response has no client_id") from exc

        return ClientInfo(
            client_id=registered_id,
            client_secret=body.get("client_secret"),
            client_name=body.get("client_name", client_name),
            client_type="dynamic",
        )

    async def _save(self, session_id: str, info: ClientInfo) -> None:
        public: dict[str, str] = {"clientId": info.client_id, "clientType": info.client_type}
        if info.client_name:
            public["clientName"] = info.client_name
        await self.storage.set_for_user(session_id, public)
        if info.client_secret:
            await self.storage.set_for_user(
                session_id, {"clientSecret": info.client_secret}, secure=True
            )
