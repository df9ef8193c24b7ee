"""
Unit tests for PKCE helpers and ``state`` generation.

These tests are CI-safe (no network), cover:
* Code-verifier / S256 challenge generation
* RFC 7636 appendix B test vector
* State value shape and uniqueness
"""

from __future__ import annotations

import re

import pytest

from webext_authn.core.pkce import (
    PkcePair,
    code_challenge_s256,
    generate_code_verifier,
    generate_state,
)

ALLOWED_CHARS_RE = re.compile(r"^[A-Za-z0-9\-._~]+$")  # RFC-7636


# --------------------------------------------------------------------------- #
# PKCE                                                                        #
# --------------------------------------------------------------------------- #
def test_generate_code_verifier_default_length() -> None:
    verifier = generate_code_verifier()
    assert len(verifier) == 64
    assert ALLOWED_CHARS_RE.match(verifier), "Verifier contains non-RFC chars"


def test_generate_code_verifier_invalid_len() -> None:
    with pytest.raises(ValueError):
        generate_code_verifier(42)
    with pytest.raises(ValueError):
        generate_code_verifier(129)


def test_code_challenge_rfc7636_vector() -> None:
    verifier = "dBjftJeZ4CVP-mB92K27uhbUJU1p1r_wW1gFWFOEjXk"
    assert code_challenge_s256(verifier) == "E9Melhoa2OwvFrEMTJguCHaoeK1t8URWbuGJSstw-cM"


def test_verifiers_are_unique() -> None:
    assert generate_code_verifier() != generate_code_verifier()


# --------------------------------------------------------------------------- #
# state                                                                       #
# --------------------------------------------------------------------------- #
def test_state_is_opaque_hex() -> None:
    state = generate_state()
    assert re.fullmatch(r"[0-9a-f]{32}", state)
    assert state != generate_state()


def test_pkce_pair_challenge_matches_verifier() -> None:
    pair = PkcePair.new()
    assert pair.challenge == code_challenge_s256(pair.verifier)
    assert pair.verifier not in repr(pair)
