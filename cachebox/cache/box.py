"""
CacheBox — Chainable Cache Facade

Selects one driver and forwards cache calls to it:

    cache = CacheBox().driver("file").path("/tmp").directory("app").format("json")
    cache.set("user:1", {"name": "Ada"}, "10m")

    redis = CacheBox().driver("redis").server("localhost", 6379)
"""

from __future__ import annotations

import logging
from typing import Any

from ..config.schemas import CacheDriver
from ..errors import ConfigurationError, UnsupportedDriverError
from .backends.file import FileCacheBackend
from .interface import CacheInterface

logger = logging.getLogger(__name__)

SUPPORTED_DRIVERS = [d.value for d in CacheDriver]


def _new_driver(driver: CacheDriver) -> CacheInterface:
    if driver == CacheDriver.REDIS:
        from .backends.redis import RedisCacheBackend

        return RedisCacheBackend()
    if driver == CacheDriver.MEMCACHED:
        from .backends.memcached import MemcachedCacheBackend

        return MemcachedCacheBackend()
    return FileCacheBackend()


class CacheBox:
    """
    Entry point for working with one cache driver at a time.

    Each call to driver() replaces the current driver with a fresh instance.
    """

    def __init__(self) -> None:
        self._driver: CacheInterface | None = None
        self._driver_name: CacheDriver | None = None

    @property
    def cache(self) -> CacheInterface:
        """The selected driver instance."""
        if self._driver is None:
            raise ConfigurationError("No cache driver selected. Call driver() first.")
        return self._driver

    def _configure(self, method: str, *args: Any) -> CacheBox:
        configure = getattr(self.cache, method, None)
        if configure is None:
            name = self._driver_name.value if self._driver_name else None
            raise ConfigurationError(
                f"Driver '{name}' does not support {method}()",
                details={"driver": name, "method": method},
            )
        configure(*args)
        return self

    def driver(self, name: str) -> CacheBox:
        """
        Select the cache driver.

        Raises:
            UnsupportedDriverError: If name is not file, memcached or redis
        """
        try:
            driver = CacheDriver(name)
        except ValueError as e:
            raise UnsupportedDriverError(name, SUPPORTED_DRIVERS) from e

        if self._driver is not None:
            self._driver.close()

        self._driver = _new_driver(driver)
        self._driver_name = driver
        logger.debug("Selected cache driver: %s", driver.value, extra={"driver": driver.value})
        return self

    def path(self, path: str) -> CacheBox:
        """Set the cache storage root (file driver)."""
        return self._configure("configure_path", path)

    def directory(self, directory: str) -> CacheBox:
        """Set the cache subdirectory (file driver)."""
        return self._configure("configure_directory", directory)

    def server(self, host: str, port: int) -> CacheBox:
        """Connect to a cache server (memcached and redis drivers)."""
        return self._configure("connect", host, port)

    def format(self, fmt: str) -> CacheBox:
        """Set the storage format."""
        return self._configure("configure_format", fmt)

    def set(self, key: str, value: Any, ttl: str | None = None) -> None:
        """Store a value; ttl like "10s", "5m", "1h" or "2d"."""
        self.cache.set(key, value, ttl)

    def get(self, key: str) -> Any | None:
        return self.cache.get(key)

    def delete(self, key: str) -> None:
        self.cache.delete(key)

    def clear(self) -> int | None:
        return self.cache.clear()

    def close(self) -> None:
        if self._driver is not None:
            self._driver.close()
