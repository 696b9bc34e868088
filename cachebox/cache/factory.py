"""
CacheBox — Cache Factory

Factory for creating cache driver instances from configuration.

Key points:
- Driver selected by CacheConfig.driver: file | redis | memcached
- Redis and Memcached modules are imported only when selected
- Instances are kept in a named registry; close_all_caches() releases them

Examples:
    from cachebox.cache.factory import create_cache
    from cachebox.config import CacheConfig, CacheDriver

    cfg = CacheConfig(driver=CacheDriver.FILE, path="/tmp", format="json")
    cache = create_cache(cfg, name="files")
"""

from __future__ import annotations

import logging

from ..config import CacheConfig, CacheDriver, get_config
from ..errors import CacheBoxError, ConfigurationError, UnsupportedDriverError
from .backends.file import FileCacheBackend
from .interface import CacheInterface

logger = logging.getLogger(__name__)

# Global cache instances registry
_cache_instances: dict[str, CacheInterface] = {}

SUPPORTED_DRIVERS = [d.value for d in CacheDriver]


def _require_port(config: CacheConfig) -> int:
    """Return the remote port, which CacheConfig fills in for remote drivers."""
    if config.port is None:
        raise ConfigurationError(
            f"CACHE_PORT must be set when CACHE_DRIVER={config.driver.value}",
            details={"env": "CACHE_PORT", "driver": config.driver.value},
        )
    return config.port


def _create_file_cache(config: CacheConfig) -> CacheInterface:
    """Internal helper to construct a filesystem cache backend."""
    backend = FileCacheBackend().configure_directory(config.directory)
    if config.path:
        backend.configure_path(config.path)
    if config.format is not None:
        backend.configure_format(config.format)
    return backend


def _create_redis_cache(config: CacheConfig) -> CacheInterface:
    """Internal helper to construct and connect a Redis cache backend."""
    from .backends.redis import RedisCacheBackend

    backend = RedisCacheBackend(
        format=config.remote_format,
        db=config.redis_db,
        socket_timeout=config.socket_timeout,
        namespace=config.namespace,
    )
    return backend.connect(config.host, _require_port(config))


def _create_memcached_cache(config: CacheConfig) -> CacheInterface:
    """Internal helper to construct and connect a Memcached cache backend."""
    from .backends.memcached import MemcachedCacheBackend

    backend = MemcachedCacheBackend(
        format=config.remote_format,
        socket_timeout=config.socket_timeout,
        namespace=config.namespace,
    )
    return backend.connect(config.host, _require_port(config))


_BUILDERS = {
    CacheDriver.FILE: _create_file_cache,
    CacheDriver.REDIS: _create_redis_cache,
    CacheDriver.MEMCACHED: _create_memcached_cache,
}


def create_cache(
    config: CacheConfig | None = None,
    name: str = "default",
) -> CacheInterface:
    """
    Create a cache driver instance based on configuration.

    Args:
        config: Cache configuration (uses global config if not provided)
        name: Cache instance name (for multiple cache instances)

    Returns:
        Configured cache driver instance

    Raises:
        UnsupportedDriverError: If the configured driver is unknown
        CacheBoxError: If the driver rejects its configuration or cannot connect
        ConfigurationError: If construction fails for any other reason
    """
    if config is None:
        config = get_config().cache

    try:
        driver = CacheDriver(config.driver)
    except ValueError as e:
        raise UnsupportedDriverError(str(config.driver), SUPPORTED_DRIVERS) from e

    builder = _BUILDERS[driver]
    logger.info(
        "Creating cache instance '%s' with driver: %s",
        name,
        driver.value,
        extra={"cache_name": name, "driver": driver.value},
    )

    try:
        cache = builder(config)
    except CacheBoxError:
        raise
    except Exception as e:
        logger.error(
            "Unexpected error creating cache instance '%s': %s",
            name,
            e,
            extra={"cache_name": name, "driver": driver.value, "error": str(e)},
            exc_info=True,
        )
        raise ConfigurationError(
            f"Failed to create cache instance '{name}': {e}",
            details={"cache_name": name, "driver": driver.value, "error": str(e)},
        ) from e

    previous = _cache_instances.get(name)
    if previous is not None and previous is not cache:
        logger.debug("Replacing cache instance '%s'", name)
        previous.close()

    _cache_instances[name] = cache
    return cache


def get_cache(name: str = "default") -> CacheInterface:
    """
    Get an existing cache instance by name.

    If the instance doesn't exist, it is created from the global configuration.

    Args:
        name: Cache instance name

    Returns:
        Cache driver instance
    """
    if name not in _cache_instances:
        logger.debug("Cache instance '%s' not found, creating new instance", name)
        return create_cache(name=name)

    return _cache_instances[name]


def close_all_caches() -> None:
    """
    Close all cache instances and release resources.

    Errors from individual drivers are logged so that every instance gets closed.
    """
    if not _cache_instances:
        logger.debug("No cache instances to close")
        return

    logger.info("Closing %d cache instance(s)...", len(_cache_instances))

    for name, cache in list(_cache_instances.items()):
        try:
            cache.close()
            logger.debug("Closed cache instance: %s", name)
        except Exception as e:
            logger.error(
                "Error closing cache instance '%s': %s",
                name,
                e,
                extra={"cache_name": name, "error": str(e)},
                exc_info=True,
            )

    _cache_instances.clear()


def reset_cache_factory() -> None:
    """
    Forget all registered instances without closing them.

    Intended for tests; use close_all_caches() for proper cleanup.
    """
    count = len(_cache_instances)
    _cache_instances.clear()
    logger.debug("Reset cache factory, cleared %d instance reference(s)", count)


def list_cache_instances() -> list[str]:
    """
    List all registered cache instance names.

    Returns:
        List of cache instance names
    """
    return list(_cache_instances.keys())
