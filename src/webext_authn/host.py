"""Host interactive-authentication capability.

The login core never talks to a browser directly.  It is handed a
:class:`HostIdentity`, which mirrors the WebExtension ``identity`` API:

* :meth:`HostIdentity.get_redirect_url` – the callback URL registered with
  the identity provider for this host instance;
* :meth:`HostIdentity.launch_web_auth_flow` – show the provider's login UI
  at a URL and resolve with the terminal redirect URL.

:class:`LoopbackIdentity` implements the capability for desktop Python
hosts: it serves a one-shot Starlette callback app on the loopback
interface with ``uvicorn``, opens the system browser and resolves with the
full callback URL once the provider redirects back.

SECURITY NOTE
-------------
The callback URL carries the authorization code; it is handed to the
caller untouched and never logged.
"""

from __future__ import annotations

import asyncio
import logging
import socket
import webbrowser
from typing import Callable, Protocol, runtime_checkable

import uvicorn
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import HTMLResponse, Response
from starlette.routing import Route

from webext_authn.config import AuthnConfig
from webext_authn.core.errors import HostFlowError

_LOG = logging.getLogger("webext-authn.host")


@runtime_checkable
class HostIdentity(Protocol):
    async def launch_web_auth_flow(self, url: str, *, interactive: bool = True) -> str: ...

    def get_redirect_url(self) -> str: ...


def _html_page(title: str, body: str, status: int = 200) -> HTMLResponse:
    """Return a tiny success / error HTML page."""
    content = (
        "<!doctype html><html lang='en'>"
        "<head><meta charset='utf-8'><title>"
        f"{title}</title></head><body><h1>{title}</h1><p>{body}</p></body></html>"
    )
    return HTMLResponse(content, status_code=status)


class LoopbackIdentity:
    """:class:`HostIdentity` backed by a local callback server."""

    def __init__(
        self,
        *,
        host: str = "127.0.0.1",
        port: int = 8765,
        path: str = "/callback",
        timeout: float = 300.0,
        open_browser: Callable[[str], bool] | None = webbrowser.open,
    ) -> None:
        self.host = host
        self.port = port
        self.path = path
        self.timeout = timeout
        self._open_browser = open_browser

    @classmethod
    def from_config(cls, config: AuthnConfig) -> "LoopbackIdentity":
        return cls(
            host=config.callback_host,
            port=config.callback_port,
            path=config.callback_path,
            timeout=config.flow_timeout,
            open_browser=webbrowser.open if config.open_browser else None,
        )

    def get_redirect_url(self) -> str:
        return f"http://{self.host}:{self.port}{self.path}"

    def build_app(self, outcome: "asyncio.Future[str]") -> Starlette:
        """Return the one-shot callback app resolving *outcome*."""

        async def _callback(request: Request) -> Response:  # noqa: D401
            if outcome.done():
                return _html_page("Login already completed", "You may close this window.", 409)
            outcome.set_result(str(request.url))
            if request.query_params.get("error"):
                return _html_page(
                    "Authorization error",
                    "The identity provider reported an error. You may close this window.",
                    400,
                )
            return _html_page("Login complete", "You may close this window.")

        return Starlette(routes=[Route(self.path, _callback, methods=["GET"])])

    async def launch_web_auth_flow(self, url: str, *, interactive: bool = True) -> str:
        if not interactive:
            raise HostFlowError("The loopback host only supports interactive flows.")

        # uvicorn exits the process when it cannot bind, so bind here first.
        sock = self._bind_socket()
        outcome: asyncio.Future[str] = asyncio.get_running_loop().create_future()
        server = uvicorn.Server(
            uvicorn.Config(
                self.build_app(outcome),
                host=self.host,
                port=self.port,
                log_level="warning",
                lifespan="off",
            )
        )
        serve_task = asyncio.create_task(server.serve(sockets=[sock]))
        try:
            if self._open_browser is None or not self._open_browser(url):
                # Headless hosts: the user opens the URL by hand.
                _LOG.warning("Open the following URL in a browser to log in: %s", url)
            done, _ = await asyncio.wait(
                {outcome, serve_task},
                timeout=self.timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
            if outcome in done:
                return outcome.result()
            if serve_task in done:
                cause = None if serve_task.cancelled() else serve_task.exception()
                raise HostFlowError(
                    f"Callback server on {self.get_redirect_url()} stopped before login completed"
                ) from cause
            raise HostFlowError(
                f"No callback received on {self.get_redirect_url()} within {self.timeout}s"
            )
        finally:
            server.should_exit = True
            if not serve_task.done():
                await serve_task
            if not outcome.done():
                outcome.cancel()
            sock.close()

    def _bind_socket(self) -> socket.socket:
        family = socket.AF_INET6 if ":" in self.host else socket.AF_INET
        sock = socket.socket(family, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            sock.bind((self.host, self.port))
        except OSError as exc:
            sock.close()
            raise HostFlowError(
                f"Cannot listen for the callback on {self.get_redirect_url()}: {exc}"
            ) from exc
        return sock
