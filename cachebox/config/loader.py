"""
CacheBox — Configuration Loader

Loads and validates configuration from environment variables and .env files.
Provides a singleton configuration instance for the process.
"""

import logging
import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import ValidationError

from ..errors import ConfigurationError
from .schemas import CacheBoxConfig

logger = logging.getLogger(__name__)

_config_instance: CacheBoxConfig | None = None


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


def load_config(
    env_file: str | None = None,
    reload: bool = False,
) -> CacheBoxConfig:
    """
    Load configuration from environment variables and .env file.

    Args:
        env_file: Path to .env file (default: .env in current directory)
        reload: Force reload even if config already loaded

    Returns:
        Validated CacheBoxConfig instance

    Raises:
        ConfigurationError: If configuration is invalid
    """
    global _config_instance

    if _config_instance is not None and not reload:
        return _config_instance

    env_path = Path(env_file) if env_file else Path.cwd() / ".env"

    if env_path.exists():
        logger.info("Loading environment from %s", env_path)
        try:
            load_dotenv(env_path, override=True)
        except Exception as e:
            logger.error(
                "Failed to load .env file from %s: %s",
                env_path,
                e,
                extra={"path": str(env_path), "error": str(e)},
                exc_info=True,
            )
            raise ConfigurationError(
                f"Failed to load environment file: {e}",
                details={"path": str(env_path), "error": str(e)},
            ) from e
    else:
        logger.debug("No .env file found, using environment variables only")

    port = os.getenv("CACHE_PORT")
    cache_format = os.getenv("CACHE_FORMAT")

    config_dict = {
        "environment": os.getenv("ENVIRONMENT", "development"),
        "log_level": os.getenv("LOG_LEVEL", "INFO").upper(),
        "log_json": _env_bool("LOG_JSON"),
        "cache": {
            "driver": os.getenv("CACHE_DRIVER", "file"),
            "path": os.getenv("CACHE_PATH") or None,
            "directory": os.getenv("CACHE_DIRECTORY", "cacheBox"),
            "format": cache_format or None,
            "remote_format": os.getenv("CACHE_REMOTE_FORMAT", "string"),
            "host": os.getenv("CACHE_HOST", "127.0.0.1"),
            "port": port or None,
            "redis_db": os.getenv("CACHE_REDIS_DB", "0"),
            "socket_timeout": os.getenv("CACHE_SOCKET_TIMEOUT", "5"),
            "namespace": os.getenv("CACHE_NAMESPACE", ""),
        },
    }

    try:
        _config_instance = CacheBoxConfig(**config_dict)  # type: ignore[arg-type]
        logger.info(
            "Configuration loaded successfully (environment: %s)",
            _config_instance.environment.value,
            extra={
                "environment": _config_instance.environment.value,
                "cache_driver": _config_instance.cache.driver.value,
            },
        )
        return _config_instance
    except ValidationError as e:
        logger.error(
            "Configuration validation failed: %s",
            e,
            extra={"validation_errors": e.errors(), "config_dict_keys": list(config_dict.keys())},
        )
        raise ConfigurationError(
            "Configuration validation failed. Check your environment variables and configuration.",
            details={"validation_errors": e.errors()},
        ) from e


def get_config() -> CacheBoxConfig:
    """
    Get the current configuration instance, loading it on first access.

    Returns:
        Current CacheBoxConfig instance
    """
    if _config_instance is None:
        return load_config()

    return _config_instance


def reload_config(env_file: str | None = None) -> CacheBoxConfig:
    """
    Force reload configuration.

    Args:
        env_file: Optional path to .env file

    Returns:
        Reloaded CacheBoxConfig instance
    """
    return load_config(env_file=env_file, reload=True)
