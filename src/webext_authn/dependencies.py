"""Default object graph for :class:`ClientAuthentication`.

Defaults when nothing is injected:

* secure storage   → :class:`InMemoryStorage` (tokens never touch disk);
* insecure storage → :class:`DiskStorage` under ``AuthnConfig.storage_dir``;
* host identity    → :class:`LoopbackIdentity` built from the config.
"""

from __future__ import annotations

import httpx

from webext_authn.client_authentication import ClientAuthentication
from webext_authn.config import AuthnConfig
from webext_authn.core.clock import Clock, default_clock
from webext_authn.core.storage import DiskStorage, InMemoryStorage, Storage, StorageUtility
from webext_authn.host import HostIdentity, LoopbackIdentity
from webext_authn.login.client_registrar import ClientRegistrar
from webext_authn.login.issuer import IssuerConfigFetcher
from webext_authn.login.login_handler import OidcLoginHandler
from webext_authn.login.redirect_handler import AuthCodeRedirectHandler
from webext_authn.login.web_auth_flow import WebAuthFlowHandler
from webext_authn.logout import LogoutHandler
from webext_authn.session_info import SessionInfoManager


def get_client_authentication_with_dependencies(
    *,
    secure_storage: Storage | None = None,
    insecure_storage: Storage | None = None,
    identity: HostIdentity | None = None,
    config: AuthnConfig | None = None,
    http_client: httpx.AsyncClient | None = None,
    clock: Clock = default_clock,
) -> ClientAuthentication:
    config = config or AuthnConfig.from_env()
    storage = StorageUtility(
        secure_storage or InMemoryStorage(),
        insecure_storage or DiskStorage(config.storage_dir),
    )
    identity = identity or LoopbackIdentity.from_config(config)
    timeout = config.http_timeout

    session_info_manager = SessionInfoManager(storage)
    issuer_config_fetcher = IssuerConfigFetcher(storage, http_client, timeout=timeout)
    redirect_handler = AuthCodeRedirectHandler(
        storage,
        session_info_manager,
        issuer_config_fetcher,
        http_client,
        timeout=timeout,
        clock=clock,
    )
    login_handler = OidcLoginHandler(
        WebAuthFlowHandler(redirect_handler, storage, identity),
        issuer_config_fetcher,
        ClientRegistrar(storage, http_client, timeout=timeout),
        identity,
    )
    return ClientAuthentication(
        login_handler,
        redirect_handler,
        LogoutHandler(session_info_manager),
        session_info_manager,
        client=http_client,
        clock=clock,
    )
