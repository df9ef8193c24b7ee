"""Fixtures shared by the unit tests: fake host identity, storage, mock IdP."""

from __future__ import annotations

import httpx
import pytest

from authn_fakes import FakeIdentity, MockIdp
from webext_authn.core.storage import InMemoryStorage, StorageUtility


@pytest.fixture
def storage() -> StorageUtility:
    return StorageUtility(InMemoryStorage(), InMemoryStorage())


@pytest.fixture
def identity() -> FakeIdentity:
    return FakeIdentity()


@pytest.fixture
def idp() -> MockIdp:
    return MockIdp()


@pytest.fixture
def http_client(idp: MockIdp) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(idp))
