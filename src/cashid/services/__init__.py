# src/cashid/services/__init__.py
"""Services built on the CashID protocol primitives."""

from .client import CashIDClient
from .crypto import CryptoService, SignatureProvider
from .lifecycle import RequestLifecycle, UserAction
from .replay import MemoryStorageAdapter, RedisStorageAdapter, ReplayStore, StorageAdapter

__all__ = [
    "CashIDClient",
    "CryptoService",
    "MemoryStorageAdapter",
    "RedisStorageAdapter",
    "ReplayStore",
    "RequestLifecycle",
    "SignatureProvider",
    "StorageAdapter",
    "UserAction",
]
