"""CashID protocol engine: request encoding, issuance and response validation."""

from cashid.core.codec import RequestCodec, create_request_url, parse_request
from cashid.core.errors import CashIDError, StatusCode
from cashid.services.client import CashIDClient
from cashid.services.crypto import CryptoService, SignatureProvider
from cashid.services.lifecycle import RequestLifecycle, get_lifecycle
from cashid.services.replay import (
    MemoryStorageAdapter,
    RedisStorageAdapter,
    ReplayStore,
    StorageAdapter,
)

__all__ = [
    "CashIDClient",
    "CashIDError",
    "CryptoService",
    "MemoryStorageAdapter",
    "RedisStorageAdapter",
    "ReplayStore",
    "RequestCodec",
    "RequestLifecycle",
    "SignatureProvider",
    "StatusCode",
    "StorageAdapter",
    "create_request_url",
    "get_lifecycle",
    "parse_request",
]
