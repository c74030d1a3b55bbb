"""Tests for store decorators.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

import itertools

import pytest

from kitcache_core.events import CacheEvent
from kitcache_core.protocol.serializer import CompressionType, PickleSerializer
from kitcache_core.store.decorators import (
    CompressedStore,
    NamespacedStore,
    SerializedStore,
    StoreDecorator,
)
from kitcache_core.store.memory import MemoryStore

SAMPLES = [
    "short text",
    "long text " * 500,
    42,
    3.5,
    True,
    [1, "two", {"three": 3}],
    {"user": {"name": "Ada", "tags": ["x"] * 400}},
]

WRAPPERS = {
    "namespaced": lambda store: NamespacedStore(store, "ns"),
    "serialized": lambda store: SerializedStore(store),
    "compressed": lambda store: CompressedStore(store, threshold=64),
}


def build_stack(order):
    store = MemoryStore()
    for name in order:
        store = WRAPPERS[name](store)
    return store


class TestStoreDecorator:
    """Tests for the forwarding base decorator."""

    @pytest.mark.asyncio
    async def test_forwards_operations_and_events(self):
        """Test plain forwarding."""
        inner = MemoryStore()
        store = StoreDecorator(inner)
        sets = []
        store.on(CacheEvent.SET, lambda key, value: sets.append(key))

        await store.mset({"a": 1, "b": 2}, ttl=30)

        assert await inner.get("a") == 1
        assert await store.ttl("a") == pytest.approx(30, abs=1)
        assert sorted(await store.keys()) == ["a", "b"]
        assert sets == ["a", "b"]

    @pytest.mark.asyncio
    async def test_detach_leaves_inner_store(self):
        """Test detach stops forwarding without destroying."""
        inner = MemoryStore()
        store = StoreDecorator(inner)
        seen = []
        store.on(CacheEvent.SET, lambda key, value: seen.append(key))

        store.detach()
        await inner.set("a", 1)

        assert seen == []
        assert await inner.get("a") == 1


class TestNamespacedStore:
    """Tests for NamespacedStore."""

    @pytest.mark.asyncio
    async def test_isolation(self):
        """Test two namespaces over one store."""
        shared = MemoryStore()
        users = NamespacedStore(shared, "users")
        orders = NamespacedStore(shared, "orders")

        await users.set("1", "alice")
        await orders.set("1", "order-1")

        assert await users.get("1") == "alice"
        assert await orders.get("1") == "order-1"
        assert await users.keys() == ["1"]
        assert await users.mget(["1", "2"]) == {"1": "alice"}
        assert sorted(await shared.keys()) == ["orders:1", "users:1"]

    @pytest.mark.asyncio
    async def test_clear_only_own_keys(self):
        """Test clear removes one namespace."""
        shared = MemoryStore()
        users = NamespacedStore(shared, "users")
        orders = NamespacedStore(shared, "orders")

        await users.mset({"1": "a", "2": "b"})
        await orders.set("1", "x")

        assert await users.clear() == 2
        assert await users.keys() == []
        assert await orders.get("1") == "x"

    @pytest.mark.asyncio
    async def test_events_are_filtered_and_stripped(self):
        """Test only this namespace's events arrive, without prefix."""
        shared = MemoryStore()
        users = NamespacedStore(shared, "users")
        orders = NamespacedStore(shared, "orders")
        seen = []
        users.on(CacheEvent.SET, lambda key, value: seen.append(key))

        await users.set("1", "alice")
        await orders.set("1", "order")
        await shared.set("raw", "value")

        assert seen == ["1"]

    @pytest.mark.asyncio
    async def test_glob_characters_in_namespace(self):
        """Test a namespace that is not a valid literal pattern."""
        shared = MemoryStore()
        odd = NamespacedStore(shared, "a[1]")
        other = NamespacedStore(shared, "a1")

        await odd.set("k", 1)
        await other.set("k", 2)

        assert await odd.keys() == ["k"]
        assert await odd.keys("x*") == []

    def test_empty_namespace(self):
        """Test empty namespaces are rejected."""
        with pytest.raises(ValueError):
            NamespacedStore(MemoryStore(), "")


class TestSerializedStore:
    """Tests for SerializedStore."""

    @pytest.mark.asyncio
    async def test_stores_bytes(self):
        """Test values reach the inner store serialized."""
        inner = MemoryStore()
        store = SerializedStore(inner)

        await store.set("key", {"a": [1, 2]})

        assert await inner.get("key") == b'{"a": [1, 2]}'
        assert await store.get("key") == {"a": [1, 2]}

    @pytest.mark.asyncio
    async def test_unserializable_value_stored_raw(self):
        """Test encode failure falls back to the raw value."""
        store = SerializedStore(MemoryStore())
        errors = []
        store.on(CacheEvent.ERROR, errors.append)

        value = {1, 2, 3}
        await store.set("key", value)

        assert await store.get("key") == value
        assert len(errors) == 1
        assert (await store.get_stats()).errors == 1

    @pytest.mark.asyncio
    async def test_raw_bytes_are_not_decoded(self):
        """Test raw bytes that look like JSON come back unchanged."""
        store = SerializedStore(MemoryStore())
        errors = []
        store.on(CacheEvent.ERROR, errors.append)

        await store.set("key", b"[1, 2]")

        assert await store.get("key") == b"[1, 2]"
        assert await store.mget(["key"]) == {"key": b"[1, 2]"}
        assert len(errors) == 1

    @pytest.mark.asyncio
    async def test_corrupt_payload_returned_raw(self):
        """Test decode failure returns the stored payload."""
        inner = MemoryStore()
        store = SerializedStore(inner)
        errors = []
        store.on(CacheEvent.ERROR, errors.append)

        await inner.set("key", b"{not json")

        assert await store.get("key") == b"{not json"
        assert len(errors) == 1

    @pytest.mark.asyncio
    async def test_custom_serializer(self):
        """Test a pickle-backed store keeps Python types."""
        store = SerializedStore(MemoryStore(), PickleSerializer())

        await store.mset({"s": {1, 2}, "t": (1, 2)})

        assert await store.mget(["s", "t"]) == {"s": {1, 2}, "t": (1, 2)}


class TestCompressedStore:
    """Tests for CompressedStore."""

    @pytest.mark.asyncio
    async def test_large_bytes_are_marked(self):
        """Test bytes above the threshold are compressed."""
        inner = MemoryStore()
        store = CompressedStore(inner, threshold=100)
        payload = b"x" * 1000

        await store.set("key", payload)

        stored = await inner.get("key")
        assert stored.startswith(b"__GZIP__")
        assert len(stored) < len(payload)
        assert await store.get("key") == payload

    @pytest.mark.asyncio
    async def test_large_text_stays_text(self):
        """Test text above the threshold is stored as tagged base64."""
        inner = MemoryStore()
        store = CompressedStore(inner, threshold=100, compression=CompressionType.ZLIB)
        text = "héllo " * 200

        await store.set("key", text)

        stored = await inner.get("key")
        assert isinstance(stored, str)
        assert stored.startswith("__compressed__:zlib:")
        assert await store.get("key") == text

    @pytest.mark.asyncio
    async def test_small_and_structured_values_untouched(self):
        """Test values below the threshold or not text pass through."""
        inner = MemoryStore()
        store = CompressedStore(inner, threshold=100)

        await store.set("small", "tiny")
        await store.set("dict", {"k": "v" * 1000})

        assert await inner.get("small") == "tiny"
        assert await inner.get("dict") == {"k": "v" * 1000}

    @pytest.mark.asyncio
    async def test_corrupt_payload_returned_raw(self):
        """Test a damaged payload is returned with an error event."""
        inner = MemoryStore()
        store = CompressedStore(inner)
        errors = []
        store.on(CacheEvent.ERROR, errors.append)

        await inner.set("bytes", b"__GZIP__not really gzip")
        await inner.set("text", "__compressed__:gzip:!!!")

        assert await store.get("bytes") == b"__GZIP__not really gzip"
        assert await store.get("text") == "__compressed__:gzip:!!!"
        assert len(errors) == 2


class TestDecoratorStacks:
    """Round-trips through every decorator combination."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "order",
        [p for n in range(1, 4) for p in itertools.permutations(WRAPPERS, n)],
    )
    async def test_round_trip(self, order):
        """Test JSON-compatible values survive any stack order."""
        store = build_stack(order)

        for i, value in enumerate(SAMPLES):
            await store.set(f"k{i}", value)

        for i, value in enumerate(SAMPLES):
            assert await store.get(f"k{i}") == value

        found = await store.mget([f"k{i}" for i in range(len(SAMPLES))])
        assert list(found.values()) == SAMPLES


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
