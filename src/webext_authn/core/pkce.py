"""PKCE (RFC 7636) and ``state`` values for the authorization request.

Every login attempt gets a fresh :class:`PkcePair`.  Only the S256
challenge leaves the process with the authorization request; the verifier
is persisted in the insecure partition until the code exchange.

``state`` is opaque: the redirect handler looks it up in storage to find the
session a callback belongs to, it is never parsed.

Nothing here logs verifiers, challenges or state values.
"""

from __future__ import annotations

import base64
import secrets
from dataclasses import dataclass, field
from hashlib import sha256
from typing import Final

CODE_CHALLENGE_METHOD: Final[str] = "S256"

# RFC-7636 §4.1: 43..128 characters from the unreserved set.
_MIN_LEN: Final[int] = 43
_MAX_LEN: Final[int] = 128
_DEFAULT_LEN: Final[int] = 64
_STATE_BYTES: Final[int] = 16


def _b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def generate_code_verifier(length: int = _DEFAULT_LEN) -> str:
    """Draw a fresh code verifier.

    Parameters
    ----------
    length:
        Number of characters, 43 to 128 inclusive.

    Returns
    -------
    str
        Random string over ``[A-Za-z0-9_-]``.
    """
    if not _MIN_LEN <= length <= _MAX_LEN:
        raise ValueError(f"code verifier length must be {_MIN_LEN}-{_MAX_LEN} characters")
    # token_urlsafe yields ~1.3 chars per byte, all within [A-Za-z0-9_-].
    return secrets.token_urlsafe(length)[:length]


def code_challenge_s256(verifier: str) -> str:
    """Derive the challenge sent with the authorization request.

    Parameters
    ----------
    verifier:
        Verifier kept back until the code exchange.

    Returns
    -------
    str
        Unpadded base64url SHA-256 digest of *verifier*.
    """
    return _b64url(sha256(verifier.encode("ascii")).digest())


def generate_state() -> str:
    """Return a fresh, opaque ``state`` value (32 hex characters)."""
    return secrets.token_hex(_STATE_BYTES)


@dataclass(frozen=True, slots=True)
class PkcePair:
    """Verifier and matching S256 challenge; the verifier is kept out of ``repr``."""

    verifier: str = field(repr=False)
    challenge: str

    @classmethod
    def new(cls, length: int = _DEFAULT_LEN) -> "PkcePair":
        verifier = generate_code_verifier(length)
        return cls(verifier=verifier, challenge=code_challenge_s256(verifier))
