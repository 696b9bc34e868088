"""
CacheBox - Core Error Types

Defines the exception hierarchy for every cache driver.
All exceptions inherit from CacheBoxError for consistent error handling.

Configuration mistakes (bad TTL strings, unsupported formats, missing path or
directory) subclass CacheConfigurationError and are never worth retrying.
"""

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """
    Standard error codes attached to every CacheBox exception.

    Used for structured error reporting by callers.
    """

    # Caller configuration errors
    INVALID_TTL = "INVALID_TTL"
    INVALID_KEY = "INVALID_KEY"
    UNSUPPORTED_FORMAT = "UNSUPPORTED_FORMAT"
    UNSUPPORTED_DRIVER = "UNSUPPORTED_DRIVER"
    UNINITIALIZED_PATH = "UNINITIALIZED_PATH"
    UNINITIALIZED_DIRECTORY = "UNINITIALIZED_DIRECTORY"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"

    # Storage errors
    DIRECTORY_CREATE_FAILED = "DIRECTORY_CREATE_FAILED"
    NOT_FOUND = "NOT_FOUND"
    DECODE_ERROR = "DECODE_ERROR"
    ENCODE_ERROR = "ENCODE_ERROR"
    IO_FAILURE = "IO_FAILURE"

    # Remote errors
    CONNECTION_FAILED = "CONNECTION_FAILED"
    OPERATION_FAILED = "OPERATION_FAILED"

    UNKNOWN_ERROR = "UNKNOWN_ERROR"


class CacheBoxError(Exception):
    """Base exception for all CacheBox errors."""

    code: ErrorCode = ErrorCode.UNKNOWN_ERROR

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for structured reporting."""
        return {
            "error": self.__class__.__name__,
            "error_code": self.code.value,
            "message": self.message,
            "details": self.details,
        }


class CacheConfigurationError(CacheBoxError):
    """Base exception for caller configuration mistakes."""

    code = ErrorCode.CONFIGURATION_ERROR


class ConfigurationError(CacheConfigurationError):
    """Raised when configuration is invalid or missing."""


class UnsupportedDriverError(CacheConfigurationError):
    """Raised when a driver name is not one of the supported drivers."""

    code = ErrorCode.UNSUPPORTED_DRIVER

    def __init__(self, driver: str, supported: list[str] | None = None):
        message = f"Driver {driver} Not Supported"
        super().__init__(message, {"driver": driver, "supported": supported or []})
        self.driver = driver


class InvalidTtlFormatError(CacheConfigurationError):
    """Raised when a TTL string is not ``<digits><s|m|h|d>``."""

    code = ErrorCode.INVALID_TTL

    def __init__(self, ttl: str):
        message = f"Invalid TTL format: {ttl!r} (expected e.g. '30s', '5m', '2h', '1d')"
        super().__init__(message, {"ttl": ttl})
        self.ttl = ttl


class InvalidCacheKeyError(CacheConfigurationError):
    """Raised when a key cannot be mapped to a file inside the cache directory."""

    code = ErrorCode.INVALID_KEY

    def __init__(self, key: str, reason: str):
        message = f"Invalid cache key {key!r}: {reason}"
        super().__init__(message, {"key": key, "reason": reason})
        self.key = key


class UnsupportedFormatError(CacheConfigurationError):
    """Raised when a storage format is not supported by the driver."""

    code = ErrorCode.UNSUPPORTED_FORMAT

    def __init__(
        self,
        fmt: str | None,
        supported: list[str] | None = None,
        message: str | None = None,
    ):
        message = message or f"Unsupported cache format: {fmt}"
        super().__init__(message, {"format": fmt, "supported": supported or []})
        self.format = fmt


class FormatNotSelectedError(UnsupportedFormatError):
    """Raised when an operation runs before any format was configured."""

    def __init__(self, supported: list[str] | None = None):
        super().__init__(None, supported, "No cache format selected. Call configure_format() first.")


class UninitializedPathError(CacheConfigurationError):
    """Raised when the cache root path was never configured."""

    code = ErrorCode.UNINITIALIZED_PATH

    def __init__(self) -> None:
        super().__init__("Uninitialized cache path. Call configure_path() first.")


class UninitializedDirectoryError(CacheConfigurationError):
    """Raised when the cache subdirectory name is empty."""

    code = ErrorCode.UNINITIALIZED_DIRECTORY

    def __init__(self) -> None:
        super().__init__("Uninitialized cache directory. Call configure_directory() first.")


class CacheError(CacheBoxError):
    """Base exception for storage and backend failures."""


class DirectoryCreateError(CacheError):
    """Raised when the cache directory cannot be created."""

    code = ErrorCode.DIRECTORY_CREATE_FAILED

    def __init__(self, path: str, details: dict[str, Any] | None = None):
        message = f"Unable to create cache directory: {path}"
        super().__init__(message, {"path": path, **(details or {})})
        self.path = path


class CacheKeyNotFoundError(CacheError):
    """Raised when a key has no stored entry."""

    code = ErrorCode.NOT_FOUND

    def __init__(self, key: str, path: str | None = None):
        if path:
            message = f"Cache entry does not exist at path: {path}"
        else:
            message = f"Cache entry not found: {key}"
        super().__init__(message, {"key": key, "path": path})
        self.key = key


class CacheDecodeError(CacheError):
    """Raised when a stored payload is corrupt or not in the declared format."""

    code = ErrorCode.DECODE_ERROR


class CacheEncodeError(CacheError):
    """Raised when a value cannot be represented in the configured format."""

    code = ErrorCode.ENCODE_ERROR


class CacheIOError(CacheError):
    """Raised when reading or writing a cache file fails."""

    code = ErrorCode.IO_FAILURE


class CacheConnectionError(CacheError):
    """Raised when a remote cache backend cannot be reached."""

    code = ErrorCode.CONNECTION_FAILED

    def __init__(self, backend: str, details: dict[str, Any] | None = None):
        message = f"Failed to connect to cache backend: {backend}"
        super().__init__(message, details)
        self.backend = backend


class CacheOperationError(CacheError):
    """Raised when a remote cache operation fails."""

    code = ErrorCode.OPERATION_FAILED


def is_retryable_error(error: Exception) -> bool:
    """
    Check if an error is transient and the operation may be retried.

    Args:
        error: Exception to check

    Returns:
        True for connection and I/O failures, False for everything else
    """
    return isinstance(error, (CacheConnectionError, CacheIOError))


def extract_error_code(error: Exception) -> ErrorCode:
    """
    Extract the ErrorCode for an exception.

    Args:
        error: Exception to categorize

    Returns:
        The error's code, or UNKNOWN_ERROR for foreign exceptions
    """
    if isinstance(error, CacheBoxError):
        return error.code
    return ErrorCode.UNKNOWN_ERROR
