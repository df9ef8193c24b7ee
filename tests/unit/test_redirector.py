"""Unit tests for the Redirector callback contract."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from authn_fakes import FakeIdentity
from webext_authn.core.errors import HostFlowError, RedirectHandlingError
from webext_authn.core.models import LoginResult
from webext_authn.login.redirector import Redirector
from webext_authn.transport import UnauthenticatedTransport

TARGET = "https://idp.example/authorize?state=abc"


def _result() -> LoginResult:
    return LoginResult(session_id="s1", transport=MagicMock(), is_logged_in=True)


@pytest.mark.anyio
async def test_success_forwards_terminal_url() -> None:
    identity = FakeIdentity(callback_url="https://ext.example/callback?code=c&state=abc")
    handler = MagicMock(handle=AsyncMock(return_value=_result()))
    after = MagicMock()

    await Redirector(handler, after, identity=identity).redirect(TARGET)

    assert identity.launched == [TARGET]
    handler.handle.assert_awaited_once_with(
        "https://ext.example/callback?code=c&state=abc", None, None
    )
    after.assert_called_once_with(handler.handle.return_value, None)


@pytest.mark.anyio
async def test_host_failure_is_wrapped_and_delivered() -> None:
    identity = FakeIdentity(error=RuntimeError("user closed the window"))
    handler = MagicMock(handle=AsyncMock())
    after = MagicMock()

    await Redirector(handler, after, identity=identity).redirect(TARGET)

    handler.handle.assert_not_awaited()
    fallback, error = after.call_args.args
    assert isinstance(error, HostFlowError)
    assert isinstance(error.__cause__, RuntimeError)
    assert fallback.is_logged_in is False
    assert isinstance(fallback.transport, UnauthenticatedTransport)


@pytest.mark.anyio
async def test_handler_failure_is_delivered_unchanged() -> None:
    failure = RedirectHandlingError("bad state")
    handler = MagicMock(handle=AsyncMock(side_effect=failure))
    after = MagicMock()

    await Redirector(handler, after, identity=FakeIdentity(callback_url="https://x/?a=b")).redirect(
        TARGET
    )

    fallback, error = after.call_args.args
    assert error is failure
    assert fallback.is_logged_in is False
