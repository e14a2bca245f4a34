from __future__ import annotations

import pytest

from steam_archive.credential_cipher import CredentialCipher
from steam_archive.storage.account_store import AccountStore
from steam_archive.storage.memory_transport import MemoryTransport
from tests.fakes import Clock, FakeSteam


@pytest.fixture
def cipher() -> CredentialCipher:
    return CredentialCipher(CredentialCipher.generate_key())


@pytest.fixture
def transport() -> MemoryTransport:
    return MemoryTransport()


@pytest.fixture
def clock() -> Clock:
    return Clock()


@pytest.fixture
def store(transport: MemoryTransport, cipher: CredentialCipher, clock: Clock) -> AccountStore:
    return AccountStore(transport, cipher, retention_days=30, clock=clock)


@pytest.fixture
def steam() -> FakeSteam:
    return FakeSteam()
