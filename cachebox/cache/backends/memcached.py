"""
CacheBox — Memcached Cache Backend

Synchronous Memcached driver built on pymemcache. Values are wrapped as
``{type, value}`` (see codec.wrap_value); expiry is enforced by the server.

Requires: pymemcache>=4
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from pymemcache.client.base import Client
from pymemcache.exceptions import (
    MemcacheError,
    MemcacheIllegalInputError,
    MemcacheUnexpectedCloseError,
)

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

# Memcached reads expiry values above this as absolute Unix timestamps
MAX_RELATIVE_EXPIRY = 60 * 60 * 24 * 30


class MemcachedCacheBackend(CacheInterface):
    """
    Memcached cache backend.

    A missing or expired key reads as None. A TTL of zero seconds is sent as
    one second because Memcached reads zero as "never expire".
    """

    def __init__(
        self,
        format: str | RemoteFormat = RemoteFormat.STRING,
        socket_timeout: float = 5.0,
        namespace: str = "",
    ) -> None:
        self._format = RemoteFormat.STRING
        self.configure_format(format)
        self.socket_timeout = socket_timeout
        self.namespace = namespace.strip()
        self.host: str | None = None
        self.port: int | None = None

        self._client: Client | None = None
        self._hits = 0
        self._misses = 0
        self._sets = 0
        self._deletes = 0

    def configure_format(self, fmt: str | RemoteFormat) -> MemcachedCacheBackend:
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

    def connect(self, host: str, port: int) -> MemcachedCacheBackend:
        """
        Connect to a Memcached server and verify it reports a version.

        Raises:
            CacheConnectionError: If the server is unreachable
        """
        client = Client(
            (host, port),
            connect_timeout=self.socket_timeout,
            timeout=self.socket_timeout,
            no_delay=True,
        )
        try:
            version = client.version()
        except (MemcacheError, OSError) as e:
            client.close()
            logger.error(
                "Connection to Memcached server at %s:%s failed: %s",
                host,
                port,
                e,
                extra={"host": host, "port": port, "error": str(e)},
            )
            raise CacheConnectionError("memcached", {"host": host, "port": port, "error": str(e)}) from e

        if not version:
            client.close()
            raise CacheConnectionError("memcached", {"host": host, "port": port, "error": "no version reported"})

        self._client = client
        self.host = host
        self.port = port
        logger.info(
            "Connected to Memcached at %s:%s",
            host,
            port,
            extra={"host": host, "port": port, "version": version.decode("ascii", "replace")},
        )
        return self

    def _make_key(self, key: str) -> str:
        if not isinstance(key, str) or not key:
            raise InvalidCacheKeyError(str(key), "key must be a non-empty string")
        return f"{self.namespace}:{key}" if self.namespace else key

    def _require_client(self) -> Client:
        if self._client is None:
            raise CacheConnectionError("memcached", {"error": "not connected, call connect() first"})
        return self._client

    @staticmethod
    def _expiry(ttl: str | None) -> int:
        seconds = parse_ttl(ttl)
        if seconds is None:
            return 0
        seconds = max(seconds, 1)
        if seconds > MAX_RELATIVE_EXPIRY:
            return int(time.time()) + seconds
        return seconds

    @contextmanager
    def _guard(self, operation: str, key: str | None = None) -> Iterator[None]:
        """Translate pymemcache and socket exceptions into CacheBox errors."""
        try:
            yield
        except MemcacheIllegalInputError as e:
            raise InvalidCacheKeyError(str(key), str(e)) from e
        except (MemcacheUnexpectedCloseError, OSError) as e:
            logger.error(
                "Memcached connection lost during %s: %s",
                operation,
                e,
                extra={"operation": operation, "key": key, "error": str(e)},
            )
            raise CacheConnectionError(
                "memcached",
                {"host": self.host, "port": self.port, "operation": operation, "error": str(e)},
            ) from e
        except MemcacheError as e:
            logger.error(
                "Memcached %s failed: %s",
                operation,
                e,
                extra={"operation": operation, "key": key, "error": str(e)},
                exc_info=True,
            )
            raise CacheOperationError(
                f"Memcached {operation} failed for key: {key}" if key else f"Memcached {operation} failed",
                details={"operation": operation, "key": key, "error": str(e)},
            ) from e

    def set(self, key: str, value: Any, ttl: str | None = None) -> None:
        """Store a value with optional TTL."""
        client = self._require_client()
        ns_key = self._make_key(key)
        expire = self._expiry(ttl)
        payload = wrap_value(value, self._format)

        with self._guard("set", key):
            stored = client.set(ns_key, payload, expire=expire, noreply=False)
        if not stored:
            raise CacheOperationError(
                f"Memcached refused to store key: {key}",
                details={"key": key, "size": len(payload)},
            )
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
            deleted = client.delete(ns_key, noreply=False)
        if deleted:
            self._deletes += 1

    def clear(self) -> None:
        """Flush every key on the server (Memcached has no per-prefix delete)."""
        client = self._require_client()
        with self._guard("flush_all"):
            client.flush_all(noreply=False)
        logger.info("Flushed Memcached server %s:%s", self.host, self.port, extra={"host": self.host, "port": self.port})

    def get_stats(self) -> dict[str, Any]:
        """Return cache statistics and connectivity."""
        total_requests = self._hits + self._misses
        stats: dict[str, Any] = {
            "backend": "memcached",
            "host": self.host,
            "port": self.port,
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
                stats["connected"] = bool(self._client.version())
            except (MemcacheError, OSError) as e:
                logger.warning("Memcached version check failed while collecting stats: %s", e, extra={"error": str(e)})

        return stats

    def close(self) -> None:
        """Close the client socket."""
        if self._client is None:
            return
        try:
            self._client.close()
            logger.info("Closed Memcached cache backend", extra={"host": self.host, "port": self.port})
        finally:
            self._client = None
