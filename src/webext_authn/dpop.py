"""DPoP (RFC 9449) key material and proof creation.

A fresh EC P-256 key pair is generated per login.  Every request made with
a DPoP-bound access token carries a proof JWT signed with that key:

* header ``{"typ": "dpop+jwt", "alg": "ES256", "jwk": <public key>}``
* claims ``htu`` (target URI without query/fragment), ``htm`` (HTTP method),
  ``jti`` (unique id), ``iat`` and, when bound to an access token, ``ath``
  (base64url SHA-256 of the token).

Private keys and proofs are never logged.
"""

from __future__ import annotations

import base64
import uuid
from dataclasses import dataclass, field
from hashlib import sha256
from typing import Any
from urllib.parse import urlsplit, urlunsplit

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec
from jose import jwt

from webext_authn.core.clock import Clock, default_clock

DPOP_ALGORITHM = "ES256"


def _b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


@dataclass(frozen=True)
class DpopKey:
    """EC P-256 key pair bound to one session's tokens."""

    private_key: ec.EllipticCurvePrivateKey = field(repr=False)
    public_jwk: dict[str, str]

    def private_pem(self) -> str:
        return self.private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        ).decode("ascii")


def generate_dpop_key() -> DpopKey:
    """Return a new :class:`DpopKey`."""
    private_key = ec.generate_private_key(ec.SECP256R1())
    numbers = private_key.public_key().public_numbers()
    public_jwk = {
        "kty": "EC",
        "crv": "P-256",
        "x": _b64url(numbers.x.to_bytes(32, "big")),
        "y": _b64url(numbers.y.to_bytes(32, "big")),
        "alg": DPOP_ALGORITHM,
    }
    return DpopKey(private_key=private_key, public_jwk=public_jwk)


def normalize_htu(url: str) -> str:
    """Strip query and fragment, as required for the ``htu`` claim."""
    parts = urlsplit(url)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))


def create_dpop_header(
    htu: str,
    htm: str,
    key: DpopKey,
    *,
    access_token: str | None = None,
    nonce: str | None = None,
    clock: Clock = default_clock,
) -> str:
    """Return a signed DPoP proof for a request to *htu* with method *htm*."""
    claims: dict[str, Any] = {
        "htu": normalize_htu(htu),
        "htm": htm.upper(),
        "jti": str(uuid.uuid4()),
        "iat": int(clock()),
    }
    if access_token:
        claims["ath"] = _b64url(sha256(access_token.encode("ascii")).digest())
    if nonce:
        claims["nonce"] = nonce
    return jwt.encode(
        claims,
        key.private_pem(),
        algorithm=DPOP_ALGORITHM,
        headers={"typ": "dpop+jwt", "jwk": key.public_jwk},
    )
