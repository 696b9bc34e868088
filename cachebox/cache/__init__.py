"""
CacheBox — Cache Module

Provides caching functionality with pluggable drivers.

- interface.py: Abstract driver contract
- ttl.py / codec.py: TTL parsing and entry serialization shared by drivers
- backends/: file driver (always available), redis and memcached (lazy)
- factory.py: Config-driven creation and instance registry
- box.py: Chainable CacheBox facade

Usage:
    from cachebox.cache import CacheBox

    cache = CacheBox().driver("file").path("/tmp").format("json")
    cache.set("key", "value", "1h")
    value = cache.get("key")
"""

from .box import CacheBox
from .codec import CacheEntry, decode_entry, encode_entry, unwrap_value, wrap_value
from .factory import (
    close_all_caches,
    create_cache,
    get_cache,
    list_cache_instances,
    reset_cache_factory,
)
from .interface import CacheInterface
from .ttl import parse_ttl

__all__ = [
    # Factory functions
    "create_cache",
    "get_cache",
    "close_all_caches",
    "list_cache_instances",
    "reset_cache_factory",
    # Facade
    "CacheBox",
    # Interface
    "CacheInterface",
    # Shared helpers
    "CacheEntry",
    "encode_entry",
    "decode_entry",
    "wrap_value",
    "unwrap_value",
    "parse_ttl",
]
