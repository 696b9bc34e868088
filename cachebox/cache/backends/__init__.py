"""
CacheBox — Cache Backends

Exports available cache backend implementations.

Redis and Memcached backends are lazy-loaded via factory.py so that their
client libraries are only imported when selected.
"""

from .file import FileCacheBackend

__all__ = [
    "FileCacheBackend",
]
