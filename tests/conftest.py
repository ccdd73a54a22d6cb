# tests/conftest.py
from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from cashid.services.client import CashIDClient
from cashid.services.crypto import CryptoService
from cashid.services.lifecycle import RequestLifecycle
from cashid.services.replay import MemoryStorageAdapter, ReplayStore

FIXED_NOW = datetime(2024, 1, 1, 12, 0, 0, tzinfo=UTC)


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture()
def clock() -> FrozenClock:
    return FrozenClock(FIXED_NOW)


@pytest.fixture()
def crypto() -> CryptoService:
    return CryptoService()


@pytest.fixture(scope="session")
def key_pair() -> tuple[str, str]:
    """Provide a (private_key_hex, address) pair shared across the session."""
    return CryptoService.generate_key_pair()


@pytest.fixture()
def memory_adapter() -> MemoryStorageAdapter:
    return MemoryStorageAdapter()


@pytest.fixture()
def store(memory_adapter: MemoryStorageAdapter) -> ReplayStore:
    return ReplayStore(memory_adapter)


@pytest.fixture()
def lifecycle(store: ReplayStore, crypto: CryptoService, clock: FrozenClock) -> RequestLifecycle:
    return RequestLifecycle("test", "test", store=store, signer=crypto, clock=clock)


@pytest.fixture()
def cashid_client(crypto: CryptoService) -> CashIDClient:
    return CashIDClient(crypto)
