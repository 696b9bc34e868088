"""
CacheBox — Configuration Schemas

Defines typed configuration models using Pydantic for validation and type safety.

The filesystem driver's path and directory are deliberately NOT validated here:
they are checked on first use by the driver itself, so a config without a path
still builds and fails only when an operation touches the disk.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

DEFAULT_DIRECTORY = "cacheBox"
DEFAULT_REDIS_PORT = 6379
DEFAULT_MEMCACHED_PORT = 11211


class Environment(str, Enum):
    """Runtime environment."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"
    TEST = "test"


class CacheDriver(str, Enum):
    """Supported cache drivers."""

    FILE = "file"
    MEMCACHED = "memcached"
    REDIS = "redis"


class CacheFormat(str, Enum):
    """Envelope formats for the filesystem driver (value doubles as file extension)."""

    JSON = "json"
    SERIALIZE = "serialize"
    TXT = "txt"


class RemoteFormat(str, Enum):
    """Value wrapping formats for the remote drivers."""

    STRING = "string"
    JSON = "json"


class LogLevel(str, Enum):
    """Log levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class CacheConfig(BaseModel):
    """Cache driver configuration."""

    driver: CacheDriver = Field(default=CacheDriver.FILE, description="Cache driver to use")

    # Filesystem driver
    path: str | None = Field(default=None, description="Root path for cache files (file driver)")
    directory: str = Field(default=DEFAULT_DIRECTORY, description="Subdirectory under path (file driver)")
    format: CacheFormat | None = Field(default=None, description="Envelope format (file driver)")

    # Remote drivers
    remote_format: RemoteFormat = Field(default=RemoteFormat.STRING, description="Value wrapping (remote drivers)")
    host: str = Field(default="127.0.0.1", description="Remote server host")
    port: int | None = Field(default=None, ge=1, le=65535, description="Remote server port")
    redis_db: int = Field(default=0, ge=0, description="Redis database index")
    socket_timeout: float = Field(default=5.0, gt=0, description="Remote socket timeout in seconds")
    namespace: str = Field(default="", description="Key prefix for remote drivers")

    @field_validator("namespace")
    @classmethod
    def validate_namespace(cls, v: str) -> str:
        """Namespaces must not contain whitespace (Memcached rejects such keys)."""
        if any(ch.isspace() for ch in v):
            raise ValueError("namespace must not contain whitespace")
        return v

    @model_validator(mode="after")
    def apply_default_port(self) -> "CacheConfig":
        """Fill in the well-known port of the selected remote driver."""
        if self.port is None:
            if self.driver == CacheDriver.REDIS:
                self.port = DEFAULT_REDIS_PORT
            elif self.driver == CacheDriver.MEMCACHED:
                self.port = DEFAULT_MEMCACHED_PORT
        return self


class CacheBoxConfig(BaseModel):
    """Root configuration for CacheBox."""

    environment: Environment = Field(default=Environment.DEVELOPMENT, description="Runtime environment")
    log_level: LogLevel = Field(default=LogLevel.INFO, description="Logging level")
    log_json: bool = Field(default=False, description="Emit logs as JSON lines")

    cache: CacheConfig = Field(default_factory=CacheConfig)

    @field_validator("cache")
    @classmethod
    def validate_cache(cls, v: CacheConfig, info: Any) -> CacheConfig:
        """Production deployments must name an explicit file cache root."""
        environment = info.data.get("environment")
        if environment == Environment.PRODUCTION and v.driver == CacheDriver.FILE and not v.path:
            raise ValueError("CACHE_PATH must be set for the file driver in production")
        return v

    model_config = ConfigDict(validate_assignment=True)
