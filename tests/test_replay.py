"""Tests for replay store adapters."""

from datetime import UTC, datetime
from unittest.mock import MagicMock, patch

import pytest
import redis

from cashid.core.settings import settings
from cashid.schemas.request import ResponsePayload, StoredRequest
from cashid.services.replay import (
    ConditionalStorageAdapter,
    MemoryStorageAdapter,
    RedisStorageAdapter,
    ReplayStore,
    StorageAdapter,
    get_storage_adapter,
)

ISSUED_AT = datetime(2024, 1, 1, tzinfo=UTC)
CONSUMED_AT = datetime(2024, 1, 1, 0, 5, tzinfo=UTC)
REQUEST = "cashid:test/test?a=auth&x=1"
PAYLOAD = ResponsePayload(request=REQUEST, address="addr", signature="sig")


class PlainAdapter:
    """Adapter exposing only get/set/delete."""

    def __init__(self) -> None:
        self.values: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self.values.get(key)

    def set(self, key: str, value: str) -> None:
        self.values[key] = value

    def delete(self, key: str) -> None:
        self.values.pop(key, None)


def _stored(**overrides) -> StoredRequest:
    fields = {"request": REQUEST, "issued_at": ISSUED_AT, "extra": {"user": 1}}
    fields.update(overrides)
    return StoredRequest(**fields)


class TestMemoryStorageAdapter:
    def test_get_set_delete(self, memory_adapter: MemoryStorageAdapter) -> None:
        assert memory_adapter.get("1") is None
        memory_adapter.set("1", "a")
        assert memory_adapter.get("1") == "a"
        memory_adapter.delete("1")
        assert memory_adapter.get("1") is None
        memory_adapter.delete("1")

    def test_add_only_when_absent(self, memory_adapter: MemoryStorageAdapter) -> None:
        assert memory_adapter.add("1", "a") is True
        assert memory_adapter.add("1", "b") is False
        assert memory_adapter.get("1") == "a"
        assert len(memory_adapter) == 1

    def test_replace_is_conditional(self, memory_adapter: MemoryStorageAdapter) -> None:
        memory_adapter.set("1", "a")
        assert memory_adapter.replace("1", "b", "c") is False
        assert memory_adapter.replace("1", "a", "c") is True
        assert memory_adapter.get("1") == "c"
        assert memory_adapter.replace("missing", "a", "c") is False

    def test_protocols(self, memory_adapter: MemoryStorageAdapter) -> None:
        assert isinstance(memory_adapter, StorageAdapter)
        assert isinstance(memory_adapter, ConditionalStorageAdapter)
        assert not isinstance(PlainAdapter(), ConditionalStorageAdapter)


class TestReplayStore:
    def test_round_trips_stored_request(self, store: ReplayStore) -> None:
        stored = _stored()
        store.set("1", stored)
        assert store.get("1") == stored
        store.delete("1")
        assert store.get("1") is None

    @pytest.mark.parametrize("adapter_cls", [MemoryStorageAdapter, PlainAdapter])
    def test_add_refuses_taken_nonce(self, adapter_cls) -> None:
        store = ReplayStore(adapter_cls())
        assert store.add("1", _stored()) is True
        assert store.add("1", _stored(request="other")) is False
        assert store.get("1").request == REQUEST

    @pytest.mark.parametrize("adapter_cls", [MemoryStorageAdapter, PlainAdapter])
    def test_consume_once(self, adapter_cls) -> None:
        store = ReplayStore(adapter_cls())
        store.set("1", _stored())

        consumed = store.consume("1", REQUEST, PAYLOAD, CONSUMED_AT)
        assert consumed is not None
        assert consumed.status == 0
        assert consumed.consumed_at == CONSUMED_AT
        assert consumed.payload == PAYLOAD
        assert consumed.extra == {"user": 1}
        assert store.get("1") == consumed

        assert store.consume("1", REQUEST, PAYLOAD, CONSUMED_AT) is None

    def test_consume_refuses_missing_or_altered(self, store: ReplayStore) -> None:
        assert store.consume("1", REQUEST, PAYLOAD, CONSUMED_AT) is None
        store.set("1", _stored())
        assert store.consume("1", REQUEST + "&o=i1", PAYLOAD, CONSUMED_AT) is None
        assert store.get("1").consumed is False

    def test_consume_loses_race(self, memory_adapter: MemoryStorageAdapter) -> None:
        store = ReplayStore(memory_adapter)
        store.set("1", _stored())
        with patch.object(memory_adapter, "replace", return_value=False):
            assert store.consume("1", REQUEST, PAYLOAD, CONSUMED_AT) is None
        assert store.get("1").consumed is False


class TestRedisStorageAdapter:
    def _adapter(self, ttl_seconds: int | None = None) -> tuple[RedisStorageAdapter, MagicMock]:
        redis_mock = MagicMock()
        return RedisStorageAdapter(redis_mock, key_prefix="req:", ttl_seconds=ttl_seconds), redis_mock

    def test_get_decodes_bytes(self) -> None:
        adapter, redis_mock = self._adapter()
        redis_mock.get.return_value = b"value"
        assert adapter.get("1") == "value"
        redis_mock.get.assert_called_with("req:1")

        redis_mock.get.return_value = None
        assert adapter.get("2") is None

    def test_set_and_delete(self) -> None:
        adapter, redis_mock = self._adapter(ttl_seconds=600)
        adapter.set("1", "value")
        redis_mock.set.assert_called_with("req:1", "value", ex=600)
        adapter.delete("1")
        redis_mock.delete.assert_called_with("req:1")

    def test_add_uses_nx(self) -> None:
        adapter, redis_mock = self._adapter()
        redis_mock.set.return_value = None
        assert adapter.add("1", "value") is False
        redis_mock.set.assert_called_with("req:1", "value", ex=None, nx=True)
        redis_mock.set.return_value = True
        assert adapter.add("1", "value") is True

    def test_replace_in_watched_transaction(self) -> None:
        adapter, redis_mock = self._adapter()
        pipe = MagicMock()
        redis_mock.pipeline.return_value.__enter__.return_value = pipe
        pipe.get.return_value = b"old"

        assert adapter.replace("1", "old", "new") is True
        pipe.watch.assert_called_with("req:1")
        pipe.multi.assert_called_once()
        pipe.set.assert_called_with("req:1", "new", keepttl=True)
        pipe.execute.assert_called_once()

    def test_replace_refuses_changed_value(self) -> None:
        adapter, redis_mock = self._adapter()
        pipe = MagicMock()
        redis_mock.pipeline.return_value.__enter__.return_value = pipe
        pipe.get.return_value = b"other"

        assert adapter.replace("1", "old", "new") is False
        pipe.execute.assert_not_called()

    def test_replace_aborted_by_concurrent_write(self) -> None:
        adapter, redis_mock = self._adapter()
        pipe = MagicMock()
        redis_mock.pipeline.return_value.__enter__.return_value = pipe
        pipe.get.return_value = b"old"
        pipe.execute.side_effect = redis.WatchError()

        assert adapter.replace("1", "old", "new") is False

    def test_default_prefix_from_settings(self) -> None:
        adapter = RedisStorageAdapter(MagicMock())
        assert adapter._key("1") == f"{settings.redis_key_prefix}1"


def test_storage_adapter_selection() -> None:
    assert isinstance(get_storage_adapter(), MemoryStorageAdapter)
    with patch.object(settings, "storage_backend", "redis"), patch(
        "cashid.services.replay.redis.from_url"
    ) as from_url:
        adapter = get_storage_adapter()
    assert isinstance(adapter, RedisStorageAdapter)
    from_url.assert_called_once_with(settings.redis_url)
