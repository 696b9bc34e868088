"""
CacheBox — Redis Cache Backend

Synchronous Redis cache driver:
- Values wrapped as ``{type, value}`` (pickled or JSON, see codec.wrap_value)
- TTL parsed by the shared TTL parser, expiry enforced by Redis itself
- Optional namespace prefix; clear() then deletes only that namespace

Requires: redis>=5

Example:
    cache = RedisCacheBackend().connect("localhost", 6379)
    cache.set("greeting", {"msg": "hello"}, ttl="1m")
    val = cache.get("greeting")
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from redis import Redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError

from ...config.schemas import RemoteFormat
from ...errors import (
    CacheConnectionError,
    CacheOperationError,
    InvalidCacheKeyError,
    UnsupportedFormatError,
)
from ..codec import unwrap_value, wrap_value
from ..interface import CacheInterface
from ..ttl import parse_ttl

logger = logging.getLogger(__name__)

SUPPORTED_FORMATS = [f.value for f in RemoteFormat]


class RedisCacheBackend(CacheInterface):
    """
    Redis cache backend.

    Notes:
    - connect() must succeed before any operation.
    - A missing or expired key reads as None; Redis owns expiration.
    - A TTL of zero seconds is sent as one second, the shortest expiry Redis accepts.
    """

    def __init__(
        self,
        format: str | RemoteFormat = RemoteFormat.STRING,
        db: int = 0,
        socket_timeout: float = 5.0,
        namespace: str = "",
    ) -> None:
        """
        Initialize Redis cache backend.

        Args:
            format: Value wrapping format (string or json)
            db: Redis database index
            socket_timeout: Socket timeout in seconds
            namespace: Optional key prefix
        """
        self._format = RemoteFormat.STRING
        self.configure_format(format)
        self.db = db
        self.socket_timeout = socket_timeout
        self.namespace = namespace.strip()
        self.host: str | None = None
        self.port: int | None = None

        self._client: Redis | None = None
        self._hits = 0
        self._misses = 0
        self._sets = 0
        self._deletes = 0

    # ------------ Configuration ------------

    def configure_format(self, fmt: str | RemoteFormat) -> RedisCacheBackend:
        """
        Select the value wrapping format.

        Raises:
            UnsupportedFormatError: If fmt is not string or json
        """
        try:
            self._format = RemoteFormat(fmt)
        except ValueError as e:
            raise UnsupportedFormatError(str(fmt), SUPPORTED_FORMATS) from e
        return self

    @property
    def format(self) -> RemoteFormat:
        return self._format

    def connect(self, host: str, port: int) -> RedisCacheBackend:
        """
        Connect to a Redis server and verify it answers PING.

        Raises:
            CacheConnectionError: If the server is unreachable
        """
        client = Redis(
            host=host,
            port=port,
            db=self.db,
            socket_timeout=self.socket_timeout,
            socket_connect_timeout=self.socket_timeout,
            decode_responses=False,
        )
        try:
            alive = client.ping()
        except RedisError as e:
            client.close()
            logger.error(
                "Could not connect to Redis at %s:%s: %s",
                host,
                port,
                e,
                extra={"host": host, "port": port, "error": str(e)},
            )
            raise CacheConnectionError("redis", {"host": host, "port": port, "error": str(e)}) from e

        if not alive:
            client.close()
            raise CacheConnectionError("redis", {"host": host, "port": port, "error": "PING failed"})

        self._client = client
        self.host = host
        self.port = port
        logger.info("Connected to Redis at %s:%s", host, port, extra={"host": host, "port": port, "db": self.db})
        return self

    # ------------ Helpers ------------

    def _make_key(self, key: str) -> str:
        if not isinstance(key, str) or not key:
            raise InvalidCacheKeyError(str(key), "key must be a non-empty string")
        return f"{self.namespace}:{key}" if self.namespace else key

    def _require_client(self) -> Redis:
        if self._client is None:
            raise CacheConnectionError("redis", {"error": "not connected, call connect() first"})
        return self._client

    @staticmethod
    def _expiry(ttl: str | None) -> int | None:
        seconds = parse_ttl(ttl)
        if seconds is None:
            return None
        return max(seconds, 1)

    @contextmanager
    def _guard(self, operation: str, key: str | None = None) -> Iterator[None]:
        """Translate redis-py exceptions into CacheBox errors."""
        try:
            yield
        except (RedisConnectionError, RedisTimeoutError) as e:
            logger.error(
                "Redis connection lost during %s: %s",
                operation,
                e,
                extra={"operation": operation, "key": key, "error": str(e)},
            )
            raise CacheConnectionError(
                "redis",
                {"host": self.host, "port": self.port, "operation": operation, "error": str(e)},
            ) from e
        except RedisError as e:
            logger.error(
                "Redis %s failed: %s",
                operation,
                e,
                extra={"operation": operation, "key": key, "error": str(e)},
                exc_info=True,
            )
            raise CacheOperationError(
                f"Redis {operation} failed for key: {key}" if key else f"Redis {operation} failed",
                details={"operation": operation, "key": key, "error": str(e)},
            ) from e

    # ------------ Core Interface ------------

    def set(self, key: str, value: Any, ttl: str | None = None) -> None:
        """Store a value with optional TTL."""
        client = self._require_client()
        ns_key = self._make_key(key)
        ex = self._expiry(ttl)
        payload = wrap_value(value, self._format)

        with self._guard("set", key):
            client.set(ns_key, payload, ex=ex)
        self._sets += 1

    def get(self, key: str) -> Any | None:
        """Retrieve a value by key, None if missing or expired."""
        client = self._require_client()
        ns_key = self._make_key(key)

        with self._guard("get", key):
            data = client.get(ns_key)

        if data is None:
            self._misses += 1
            return None

        self._hits += 1
        return unwrap_value(data)

    def delete(self, key: str) -> None:
        """Delete a key; a missing key is not an error."""
        client = self._require_client()
        ns_key = self._make_key(key)

        with self._guard("delete", key):
            deleted = client.delete(ns_key)
        if deleted:
            self._deletes += 1

    def clear(self) -> int | None:
        """
        Clear the cache.

        Without a namespace the whole database is flushed and None is returned.
        With a namespace, keys matching "<namespace>:*" are deleted and counted.
        """
        client = self._require_client()

        if not self.namespace:
            with self._guard("flushdb"):
                client.flushdb()
            logger.info("Flushed Redis database %d", self.db, extra={"db": self.db})
            return None

        total_deleted = 0
        with self._guard("clear"):
            batch: list[bytes] = []
            for ns_key in client.scan_iter(match=f"{self.namespace}:*", count=1000):
                batch.append(ns_key)
                if len(batch) >= 1000:
                    total_deleted += int(client.delete(*batch))
                    batch.clear()
            if batch:
                total_deleted += int(client.delete(*batch))

        self._deletes += total_deleted
        logger.info(
            "Cleared %d keys from namespace '%s'",
            total_deleted,
            self.namespace,
            extra={"namespace": self.namespace, "deleted": total_deleted},
        )
        return total_deleted

    def get_stats(self) -> dict[str, Any]:
        """Return cache statistics and connectivity."""
        total_requests = self._hits + self._misses
        stats: dict[str, Any] = {
            "backend": "redis",
            "host": self.host,
            "port": self.port,
            "db": self.db,
            "namespace": self.namespace,
            "format": self._format.value,
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": round((self._hits / total_requests) * 100, 2) if total_requests else 0.0,
            "sets": self._sets,
            "deletes": self._deletes,
            "connected": False,
        }

        if self._client is not None:
            try:
                stats["connected"] = bool(self._client.ping())
            except RedisError as e:
                logger.warning("Redis PING failed while collecting stats: %s", e, extra={"error": str(e)})

        return stats

    def close(self) -> None:
        """Close the Redis client and release its connection pool."""
        if self._client is None:
            return
        try:
            self._client.close()
            logger.info("Closed Redis cache backend", extra={"host": self.host, "port": self.port})
        except RedisError as e:
            logger.warning("Error closing Redis client: %s", e, extra={"error": str(e)})
        finally:
            self._client = None
