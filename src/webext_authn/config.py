"""Environment-driven settings for the default dependency wiring."""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Final, Tuple

logger = logging.getLogger("webext-authn.config")

_TRUTHY: Final[Tuple[str, ...]] = ("true", "1", "yes", "y", "on")
_PREFIX: Final[str] = "WEBEXT_AUTHN_"


def _truthy(value: str | None) -> bool:
    return (value or "").strip().lower() in _TRUTHY


def _env(key: str) -> str | None:
    value = os.getenv(_PREFIX + key)
    return value.strip() if value and value.strip() else None


def _env_number(key: str, default: float, cast=float):
    raw = _env(key)
    if raw is None:
        return default
    try:
        return cast(raw)
    except ValueError:
        raise ValueError(f"{_PREFIX}{key} must be a number, got {raw!r}") from None


@dataclass(frozen=True, slots=True)
class AuthnConfig:
    """Settings consumed by :func:`webext_authn.dependencies.get_client_authentication_with_dependencies`."""

    storage_dir: Path
    callback_host: str = "127.0.0.1"
    callback_port: int = 8765
    callback_path: str = "/callback"
    flow_timeout: float = 300.0
    http_timeout: float = 20.0
    open_browser: bool = True

    @classmethod
    def from_env(cls) -> "AuthnConfig":
        """
        Read ``WEBEXT_AUTHN_*`` variables, falling back to the defaults.

        ``WEBEXT_AUTHN_OPEN_BROWSER`` is only considered disabled when it is
        set to a non-truthy value.
        """
        storage_dir = Path(_env("STORAGE_DIR") or Path.home() / ".webext-authn").expanduser()
        path = _env("CALLBACK_PATH") or "/callback"
        if not path.startswith("/"):
            path = "/" + path
        open_browser_raw = _env("OPEN_BROWSER")
        config = cls(
            storage_dir=storage_dir,
            callback_host=_env("CALLBACK_HOST") or "127.0.0.1",
            callback_port=_env_number("CALLBACK_PORT", 8765, int),
            callback_path=path,
            flow_timeout=_env_number("FLOW_TIMEOUT", 300.0),
            http_timeout=_env_number("HTTP_TIMEOUT", 20.0),
            open_browser=True if open_browser_raw is None else _truthy(open_browser_raw),
        )
        logger.debug(
            "Loaded config storage_dir=%s callback=%s:%s%s",
            config.storage_dir,
            config.callback_host,
            config.callback_port,
            config.callback_path,
        )
        return config
