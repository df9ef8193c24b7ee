"""Structured logging helpers for the login core.

This module restricts **which** contextual attributes are attached to log
records in order to avoid accidentally leaking secrets.  The adapter ONLY
injects the following *non-sensitive* fields:

- ``session_id``     – Session identifier (first 6 chars kept)
- ``state``          – OAuth ``state`` value (first 6 chars kept)
- ``issuer``         – OpenID issuer URL
- ``correlation_id`` – Free-form identifier wired by the embedding app

Usage
-----
>>> from webext_authn.core.log_utils import get_auth_logger
>>> log = get_auth_logger(
...     base_logger_name="webext-authn.login.flow",
...     session_id="123e4567-e89b-12d3-a456-426614174000",
...     issuer="https://idp.example",
... )
>>> log.info("Starting login flow")
INFO webext-authn.login.flow session_id=123e45 issuer=https://idp.example ...
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, MutableMapping

_TRUNCATED_KEYS = ("session_id", "state")


class _AuthLoggerAdapter(logging.LoggerAdapter):
    """Inject whitelisted auth context into log records."""

    extra_keys = ("session_id", "state", "issuer", "correlation_id")

    def __init__(self, logger: logging.Logger, extra: Mapping[str, Any] | None = None):
        extra_clean: MutableMapping[str, Any] = {}
        for k in self.extra_keys:
            if not extra or extra.get(k) is None:
                continue
            if k in _TRUNCATED_KEYS:
                extra_clean[k] = str(extra[k])[:6]
            else:
                extra_clean[k] = extra[k]
        super().__init__(logger, extra_clean)

    def process(self, msg: str, kwargs: MutableMapping[str, Any]):
        if "extra" not in kwargs or kwargs["extra"] is None:
            kwargs["extra"] = {}
        # merge but do not overwrite call-site provided extras
        for k, v in self.extra.items():
            kwargs["extra"].setdefault(k, v)
        return msg, kwargs


def get_auth_logger(
    *,
    base_logger_name: str = "webext-authn",
    session_id: str | None = None,
    state: str | None = None,
    issuer: str | None = None,
    correlation_id: str | None = None,
) -> logging.LoggerAdapter:
    """Return a LoggerAdapter pre-filled with auth context."""
    logger = logging.getLogger(base_logger_name)
    return _AuthLoggerAdapter(
        logger,
        {
            "session_id": session_id,
            "state": state,
            "issuer": issuer,
            "correlation_id": correlation_id,
        },
    )


def mask_sensitive(value: str | None, keep: int = 4) -> str:
    """Return *value* with everything but the first *keep* characters masked."""
    if not value:
        return "<empty>"
    if len(value) <= keep:
        return "*" * len(value)
    return f"{value[:keep]}****"
