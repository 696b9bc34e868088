"""
CacheBox — Configuration Module

Provides typed configuration loading and validation.
"""

from .loader import get_config, load_config, reload_config
from .schemas import (
    DEFAULT_DIRECTORY,
    CacheBoxConfig,
    CacheConfig,
    CacheDriver,
    CacheFormat,
    Environment,
    LogLevel,
    RemoteFormat,
)

__all__ = [
    # Loader functions
    "load_config",
    "get_config",
    "reload_config",
    # Main config
    "CacheBoxConfig",
    "CacheConfig",
    # Enums
    "Environment",
    "CacheDriver",
    "CacheFormat",
    "RemoteFormat",
    "LogLevel",
    # Defaults
    "DEFAULT_DIRECTORY",
]
