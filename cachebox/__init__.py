"""
CacheBox — Pluggable Key-Value Caching

Filesystem, Redis and Memcached drivers behind one interface, with
human-readable TTLs ("30s", "5m", "2h", "1d").
"""

__version__ = "1.0.0"

from .cache import CacheBox, CacheInterface, create_cache, get_cache, parse_ttl
from .cache.backends.file import FileCacheBackend

__all__ = [
    "CacheBox",
    "CacheInterface",
    "FileCacheBackend",
    "create_cache",
    "get_cache",
    "parse_ttl",
]
