"""Replay protection storage for issued CashID requests."""

from __future__ import annotations

import logging
from datetime import datetime
from threading import Lock
from typing import Any, Final, Protocol, runtime_checkable

import redis

from cashid.core.settings import settings
from cashid.schemas.request import ResponsePayload, StoredRequest

logger = logging.getLogger(__name__)

_LOCK_STRIPES: Final[int] = 64


@runtime_checkable
class StorageAdapter(Protocol):
    """Minimal key/value contract for request storage, addressed by nonce."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


@runtime_checkable
class ConditionalStorageAdapter(StorageAdapter, Protocol):
    """Adapter offering atomic conditional writes."""

    def add(self, key: str, value: str) -> bool:
        """Store ``value`` only if ``key`` is absent; return True if stored."""
        ...

    def replace(self, key: str, expected: str, value: str) -> bool:
        """Store ``value`` only if ``key`` still holds ``expected``."""
        ...


class MemoryStorageAdapter:
    """In-process adapter with unbounded retention."""

    def __init__(self) -> None:
        self._values: dict[str, str] = {}
        self._lock = Lock()

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._values[key] = value

    def delete(self, key: str) -> None:
        with self._lock:
            self._values.pop(key, None)

    def add(self, key: str, value: str) -> bool:
        with self._lock:
            if key in self._values:
                return False
            self._values[key] = value
            return True

    def replace(self, key: str, expected: str, value: str) -> bool:
        with self._lock:
            if self._values.get(key) != expected:
                return False
            self._values[key] = value
            return True

    def __len__(self) -> int:
        with self._lock:
            return len(self._values)


class RedisStorageAdapter:
    """Adapter backed by Redis, for services running several processes."""

    def __init__(
        self,
        client: Any,
        *,
        key_prefix: str | None = None,
        ttl_seconds: int | None = None,
    ) -> None:
        self._redis = client
        self._prefix = settings.redis_key_prefix if key_prefix is None else key_prefix
        self._ttl = settings.request_ttl_seconds if ttl_seconds is None else ttl_seconds

    @classmethod
    def from_url(cls, url: str | None = None, **kwargs: Any) -> RedisStorageAdapter:
        return cls(redis.from_url(url or settings.redis_url), **kwargs)  # type: ignore[no-untyped-call]

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    @staticmethod
    def _text(value: Any) -> str | None:
        if value is None:
            return None
        return value.decode() if isinstance(value, bytes) else str(value)

    def get(self, key: str) -> str | None:
        return self._text(self._redis.get(self._key(key)))

    def set(self, key: str, value: str) -> None:
        self._redis.set(self._key(key), value, ex=self._ttl)

    def delete(self, key: str) -> None:
        self._redis.delete(self._key(key))

    def add(self, key: str, value: str) -> bool:
        return bool(self._redis.set(self._key(key), value, ex=self._ttl, nx=True))

    def replace(self, key: str, expected: str, value: str) -> bool:
        # Optimistic transaction: abort if the key changes after WATCH
        with self._redis.pipeline() as pipe:
            try:
                pipe.watch(self._key(key))
                if self._text(pipe.get(self._key(key))) != expected:
                    pipe.unwatch()
                    return False
                pipe.multi()
                pipe.set(self._key(key), value, keepttl=True)
                pipe.execute()
            except redis.WatchError:
                return False
        return True


class ReplayStore:
    """Typed view over a :class:`StorageAdapter` holding :class:`StoredRequest` entries.

    Entries are serialized to JSON so every adapter stores plain text. When the
    adapter offers ``add``/``replace`` they are used for reservations and the
    consumption compare-and-set; otherwise a striped in-process lock guards the
    read-modify-write, which leaves a race window across processes.
    """

    def __init__(self, adapter: StorageAdapter | None = None) -> None:
        self.adapter: StorageAdapter = adapter if adapter is not None else MemoryStorageAdapter()
        self._conditional = isinstance(self.adapter, ConditionalStorageAdapter)
        self._stripes = [Lock() for _ in range(_LOCK_STRIPES)]

    def _lock_for(self, nonce: str) -> Lock:
        return self._stripes[hash(nonce) % _LOCK_STRIPES]

    def get(self, nonce: str) -> StoredRequest | None:
        raw = self.adapter.get(nonce)
        logger.debug("Replay store lookup for nonce %s: %s", nonce, "hit" if raw else "miss")
        if raw is None:
            return None
        return StoredRequest.model_validate_json(raw)

    def set(self, nonce: str, stored: StoredRequest) -> None:
        self.adapter.set(nonce, stored.model_dump_json())

    def delete(self, nonce: str) -> None:
        self.adapter.delete(nonce)

    def add(self, nonce: str, stored: StoredRequest) -> bool:
        """Store ``stored`` unless the nonce is already taken."""
        raw = stored.model_dump_json()
        if self._conditional:
            return self.adapter.add(nonce, raw)  # type: ignore[attr-defined]
        with self._lock_for(nonce):
            if self.adapter.get(nonce) is not None:
                return False
            self.adapter.set(nonce, raw)
            return True

    def consume(
        self,
        nonce: str,
        request: str,
        payload: ResponsePayload,
        consumed_at: datetime,
    ) -> StoredRequest | None:
        """Mark the entry for ``nonce`` consumed, exactly once.

        Returns the updated entry, or None if the entry vanished, was altered,
        or was consumed concurrently.
        """
        if self._conditional:
            return self._consume(nonce, request, payload, consumed_at)
        with self._lock_for(nonce):
            return self._consume(nonce, request, payload, consumed_at)

    def _consume(
        self,
        nonce: str,
        request: str,
        payload: ResponsePayload,
        consumed_at: datetime,
    ) -> StoredRequest | None:
        raw = self.adapter.get(nonce)
        if raw is None:
            return None
        stored = StoredRequest.model_validate_json(raw)
        if stored.consumed or stored.request != request:
            return None
        updated = stored.model_copy(
            update={"status": 0, "consumed_at": consumed_at, "payload": payload}
        )
        encoded = updated.model_dump_json()
        if self._conditional:
            if not self.adapter.replace(nonce, raw, encoded):  # type: ignore[attr-defined]
                return None
        else:
            self.adapter.set(nonce, encoded)
        return updated


def get_storage_adapter() -> StorageAdapter:
    """Return the storage adapter selected by settings."""
    if settings.storage_backend == "redis":
        return RedisStorageAdapter.from_url(settings.redis_url)
    return MemoryStorageAdapter()


def get_replay_store() -> ReplayStore:
    """Return a replay store over the configured adapter."""
    return ReplayStore(get_storage_adapter())
