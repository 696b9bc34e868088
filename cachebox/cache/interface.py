"""
CacheBox — Cache Interface

Defines the abstract interface that all cache drivers must implement.
"""

from abc import ABC, abstractmethod
from typing import Any

from ..errors import CacheKeyNotFoundError


class CacheInterface(ABC):
    """
    Abstract base class for cache drivers.

    All drivers (file, Redis, Memcached) implement this interface.
    Operations are synchronous and block until the backend answers.
    """

    @abstractmethod
    def set(self, key: str, value: Any, ttl: str | None = None) -> None:
        """
        Store a value in the cache.

        Args:
            key: Cache key
            value: Value to cache (must be representable in the driver's format)
            ttl: Duration string such as "30s", "5m", "2h", "1d" (None = no expiry)
        """

    @abstractmethod
    def get(self, key: str) -> Any | None:
        """
        Retrieve a value from the cache.

        Args:
            key: Cache key

        Returns:
            Cached value, or None when the entry has expired
        """

    @abstractmethod
    def delete(self, key: str) -> None:
        """
        Delete a key from the cache.

        Args:
            key: Cache key to delete
        """

    @abstractmethod
    def clear(self) -> int | None:
        """
        Clear all entries from the cache.

        Returns:
            Number of entries removed, or None when the backend cannot tell
        """

    @abstractmethod
    def get_stats(self) -> dict[str, Any]:
        """
        Get cache statistics.

        Returns:
            Dictionary with cache statistics (hits, misses, sets, ...)
        """

    @abstractmethod
    def close(self) -> None:
        """
        Close the driver and release resources.
        """

    def get_many(self, keys: list[str]) -> dict[str, Any]:
        """
        Retrieve multiple values from the cache.

        Keys that are not found or have expired are omitted.

        Args:
            keys: List of cache keys

        Returns:
            Dictionary mapping keys to values
        """
        result = {}
        for key in keys:
            try:
                value = self.get(key)
            except CacheKeyNotFoundError:
                continue
            if value is not None:
                result[key] = value
        return result

    def set_many(self, items: dict[str, Any], ttl: str | None = None) -> int:
        """
        Store multiple values in the cache.

        Args:
            items: Dictionary mapping keys to values
            ttl: Duration string applied to all items

        Returns:
            Number of items stored
        """
        count = 0
        for key, value in items.items():
            self.set(key, value, ttl)
            count += 1
        return count
