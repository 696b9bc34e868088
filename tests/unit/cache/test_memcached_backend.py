"""
CacheBox — Memcached Cache Backend Tests

Unit tests patch pymemcache's Client with an in-memory stand-in. The live
test needs a Memcached server on localhost:11211 and is skipped otherwise.
"""

import pickle
from typing import Any

import pytest
from pymemcache.exceptions import (
    MemcacheIllegalInputError,
    MemcacheServerError,
    MemcacheUnexpectedCloseError,
)

import cachebox.cache.backends.memcached as memcached_module
from cachebox.cache.backends.memcached import MAX_RELATIVE_EXPIRY, MemcachedCacheBackend
from cachebox.errors import (
    CacheConnectionError,
    CacheOperationError,
    InvalidCacheKeyError,
    UnsupportedFormatError,
)


class FakeMemcache:
    """Just enough of pymemcache.client.base.Client for the backend."""

    def __init__(self) -> None:
        self.server: Any = None
        self.kwargs: dict[str, Any] = {}
        self.store: dict[str, bytes] = {}
        self.expire: dict[str, int] = {}
        self.closed = False
        self.fail_with: Exception | None = None
        self.accept_writes = True

    def _check(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with

    def version(self) -> bytes:
        self._check()
        return b"1.6.21"

    def set(self, key: str, value: bytes, expire: int = 0, noreply: bool | None = None) -> bool:
        self._check()
        if not self.accept_writes:
            return False
        self.store[key] = value
        self.expire[key] = expire
        return True

    def get(self, key: str) -> bytes | None:
        self._check()
        return self.store.get(key)

    def delete(self, key: str, noreply: bool | None = None) -> bool:
        self._check()
        return self.store.pop(key, None) is not None

    def flush_all(self, delay: int = 0, noreply: bool | None = None) -> bool:
        self._check()
        self.store.clear()
        return True

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_memcache(monkeypatch: pytest.MonkeyPatch) -> FakeMemcache:
    fake = FakeMemcache()

    def factory(server: Any, **kwargs: Any) -> FakeMemcache:
        fake.server = server
        fake.kwargs = kwargs
        return fake

    monkeypatch.setattr(memcached_module, "Client", factory)
    return fake


@pytest.fixture
def cache(fake_memcache: FakeMemcache) -> MemcachedCacheBackend:
    return MemcachedCacheBackend().connect("mc.local", 11211)


class TestConnection:
    def test_connect_passes_server_and_timeouts(self, fake_memcache: FakeMemcache) -> None:
        MemcachedCacheBackend(socket_timeout=2.0).connect("mc.local", 11212)

        assert fake_memcache.server == ("mc.local", 11212)
        assert fake_memcache.kwargs["connect_timeout"] == 2.0
        assert fake_memcache.kwargs["timeout"] == 2.0

    def test_unreachable_server_raises_connection_error(self, fake_memcache: FakeMemcache) -> None:
        fake_memcache.fail_with = ConnectionRefusedError(111, "Connection refused")

        with pytest.raises(CacheConnectionError) as exc_info:
            MemcachedCacheBackend().connect("mc.local", 11211)

        assert exc_info.value.backend == "memcached"
        assert fake_memcache.closed is True

    def test_operations_require_connect(self) -> None:
        cache = MemcachedCacheBackend()
        with pytest.raises(CacheConnectionError):
            cache.get("k")

    def test_close(self, cache: MemcachedCacheBackend, fake_memcache: FakeMemcache) -> None:
        cache.close()
        cache.close()
        assert fake_memcache.closed is True
        assert cache.get_stats()["connected"] is False


class TestOperations:
    def test_round_trip_with_wrapper(self, cache: MemcachedCacheBackend, fake_memcache: FakeMemcache) -> None:
        cache.set("k", {"a": 1})

        assert pickle.loads(fake_memcache.store["k"]) == {"type": "string", "value": {"a": 1}}
        assert cache.get("k") == {"a": 1}

    def test_json_format(self, fake_memcache: FakeMemcache) -> None:
        cache = MemcachedCacheBackend(format="json").connect("mc.local", 11211)
        cache.set("k", "[1, 2]")
        assert cache.get("k") == [1, 2]

    def test_unsupported_format_raises(self) -> None:
        with pytest.raises(UnsupportedFormatError):
            MemcachedCacheBackend().configure_format("serialize")

    @pytest.mark.parametrize(
        ("ttl", "expected"),
        [(None, 0), ("0s", 1), ("10m", 600), ("30d", MAX_RELATIVE_EXPIRY)],
    )
    def test_relative_expiry(
        self, cache: MemcachedCacheBackend, fake_memcache: FakeMemcache, ttl: str | None, expected: int
    ) -> None:
        cache.set("k", "v", ttl)
        assert fake_memcache.expire["k"] == expected

    def test_long_expiry_becomes_absolute_timestamp(
        self, cache: MemcachedCacheBackend, fake_memcache: FakeMemcache, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr(memcached_module.time, "time", lambda: 1_700_000_000.5)

        cache.set("k", "v", "31d")

        assert fake_memcache.expire["k"] == 1_700_000_000 + 31 * 86400

    def test_missing_key_reads_as_none(self, cache: MemcachedCacheBackend) -> None:
        assert cache.get("absent") is None

    def test_delete(self, cache: MemcachedCacheBackend) -> None:
        cache.set("k", "v")
        cache.delete("k")
        cache.delete("k")
        assert cache.get("k") is None
        assert cache.get_stats()["deletes"] == 1

    def test_namespace_prefix(self, fake_memcache: FakeMemcache) -> None:
        cache = MemcachedCacheBackend(namespace="app").connect("mc.local", 11211)
        cache.set("k", "v")
        assert list(fake_memcache.store) == ["app:k"]

    def test_clear_flushes_server(self, cache: MemcachedCacheBackend, fake_memcache: FakeMemcache) -> None:
        cache.set_many({"a": 1, "b": 2})
        assert cache.clear() is None
        assert fake_memcache.store == {}

    def test_refused_write_raises(self, cache: MemcachedCacheBackend, fake_memcache: FakeMemcache) -> None:
        fake_memcache.accept_writes = False
        with pytest.raises(CacheOperationError):
            cache.set("k", "v")


class TestErrorMapping:
    def test_illegal_key_maps_to_invalid_key(self, cache: MemcachedCacheBackend, fake_memcache: FakeMemcache) -> None:
        fake_memcache.fail_with = MemcacheIllegalInputError("Key contains whitespace")
        with pytest.raises(InvalidCacheKeyError):
            cache.get("has space")

    def test_unexpected_close_maps_to_connection_error(
        self, cache: MemcachedCacheBackend, fake_memcache: FakeMemcache
    ) -> None:
        fake_memcache.fail_with = MemcacheUnexpectedCloseError()
        with pytest.raises(CacheConnectionError):
            cache.set("k", "v")

    def test_server_error_maps_to_operation_error(self, cache: MemcachedCacheBackend, fake_memcache: FakeMemcache) -> None:
        fake_memcache.fail_with = MemcacheServerError("out of memory")
        with pytest.raises(CacheOperationError):
            cache.clear()

    def test_empty_key_rejected_before_io(self, cache: MemcachedCacheBackend) -> None:
        with pytest.raises(InvalidCacheKeyError):
            cache.set("", "v")


class TestLiveMemcached:
    """Exercises a real server; skipped when none is listening."""

    def test_round_trip(self, memcached_server: tuple[str, int]) -> None:
        cache = MemcachedCacheBackend(namespace="cachebox-test").connect(*memcached_server)
        try:
            cache.set("k", {"nested": [1, 2, 3]}, "1m")
            assert cache.get("k") == {"nested": [1, 2, 3]}
            cache.delete("k")
            assert cache.get("k") is None
        finally:
            cache.close()
