"""Unit tests for environment-driven settings."""

from __future__ import annotations

from pathlib import Path

import pytest

from webext_authn.config import AuthnConfig

_VARS = (
    "STORAGE_DIR",
    "CALLBACK_HOST",
    "CALLBACK_PORT",
    "CALLBACK_PATH",
    "FLOW_TIMEOUT",
    "HTTP_TIMEOUT",
    "OPEN_BROWSER",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in _VARS:
        monkeypatch.delenv(f"WEBEXT_AUTHN_{name}", raising=False)


def test_defaults(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("HOME", str(tmp_path))
    config = AuthnConfig.from_env()
    assert config.storage_dir == tmp_path / ".webext-authn"
    assert (config.callback_host, config.callback_port, config.callback_path) == (
        "127.0.0.1",
        8765,
        "/callback",
    )
    assert config.flow_timeout == 300.0
    assert config.http_timeout == 20.0
    assert config.open_browser is True


def test_overrides(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("WEBEXT_AUTHN_STORAGE_DIR", str(tmp_path / "store"))
    monkeypatch.setenv("WEBEXT_AUTHN_CALLBACK_PORT", "9000")
    monkeypatch.setenv("WEBEXT_AUTHN_CALLBACK_PATH", "oauth/cb")
    monkeypatch.setenv("WEBEXT_AUTHN_FLOW_TIMEOUT", "12.5")
    monkeypatch.setenv("WEBEXT_AUTHN_OPEN_BROWSER", "no")

    config = AuthnConfig.from_env()

    assert config.storage_dir == tmp_path / "store"
    assert config.callback_port == 9000
    assert config.callback_path == "/oauth/cb"
    assert config.flow_timeout == 12.5
    assert config.open_browser is False


def test_malformed_number_names_the_variable(monkeypatch) -> None:
    monkeypatch.setenv("WEBEXT_AUTHN_CALLBACK_PORT", "eighty")
    with pytest.raises(ValueError, match="WEBEXT_AUTHN_CALLBACK_PORT"):
        AuthnConfig.from_env()
