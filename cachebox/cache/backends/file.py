"""
CacheBox — Filesystem Cache Backend

Stores one file per key under ``<path>/<directory>/<key>.<format>``.

Behaviour worth knowing:
- The cache directory is resolved (and created if missing) on every call, so a
  directory removed externally mid-session is recreated by the next operation.
- get() on a key with no file raises CacheKeyNotFoundError, while get() on an
  expired entry deletes the file and returns None. The two kinds of miss are
  intentionally different.
- Writes land in ``<directory>/.staging`` first and are renamed into place, so
  concurrent readers never observe a partially written file.

Example:
    cache = FileCacheBackend().configure_path("/var/cache/app").configure_format("json")
    cache.set("greeting", {"msg": "hello"}, ttl="10m")
    cache.get("greeting")
"""

import contextlib
import logging
import os
import tempfile
import threading
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any

from ...config.schemas import DEFAULT_DIRECTORY, CacheFormat
from ...errors import (
    CacheDecodeError,
    CacheIOError,
    CacheKeyNotFoundError,
    DirectoryCreateError,
    FormatNotSelectedError,
    InvalidCacheKeyError,
    UninitializedDirectoryError,
    UninitializedPathError,
    UnsupportedFormatError,
)
from ..codec import CacheEntry, decode_entry, encode_entry
from ..interface import CacheInterface
from ..ttl import parse_ttl

logger = logging.getLogger(__name__)

STAGING_DIRECTORY = ".staging"
DIRECTORY_MODE = 0o755
FILE_MODE = 0o644

SUPPORTED_FORMATS = [f.value for f in CacheFormat]


class FileCacheBackend(CacheInterface):
    """
    Filesystem cache backend with lazy TTL eviction.

    Configuration may be passed to the constructor or applied afterwards with
    the chainable configure_* methods. Path and directory are only checked when
    an operation needs the disk.
    """

    def __init__(
        self,
        path: str | os.PathLike[str] | None = None,
        directory: str = DEFAULT_DIRECTORY,
        format: str | CacheFormat | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Initialize filesystem cache backend.

        Args:
            path: Root path for cache files
            directory: Subdirectory of path that holds the files
            format: Envelope format (json, serialize or txt)
            clock: Source of the current Unix time
        """
        self._path = path
        self._directory = directory
        self._format: CacheFormat | None = None
        self._clock = clock

        if format is not None:
            self.configure_format(format)

        self._stats_lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._expirations = 0
        self._sets = 0
        self._deletes = 0
        self._clears = 0

    # ------------ Configuration ------------

    def configure_path(self, path: str | os.PathLike[str]) -> "FileCacheBackend":
        """Set the root path. Stored verbatim, validated on first use."""
        self._path = path
        return self

    def configure_directory(self, directory: str) -> "FileCacheBackend":
        """Set the subdirectory holding the cache files."""
        self._directory = directory
        return self

    def configure_format(self, fmt: str | CacheFormat) -> "FileCacheBackend":
        """
        Select the envelope format.

        Raises:
            UnsupportedFormatError: If fmt is not json, serialize or txt
        """
        try:
            self._format = CacheFormat(fmt)
        except ValueError as e:
            raise UnsupportedFormatError(str(fmt), SUPPORTED_FORMATS) from e
        return self

    @property
    def path(self) -> str | os.PathLike[str] | None:
        return self._path

    @property
    def directory(self) -> str:
        return self._directory

    @property
    def format(self) -> CacheFormat | None:
        return self._format

    # ------------ Helpers ------------

    def create_cache_directory(self) -> Path:
        """
        Resolve the cache directory, creating it and its parents if missing.

        Returns:
            Path of the cache directory

        Raises:
            UninitializedPathError: If no root path was configured
            UninitializedDirectoryError: If the subdirectory name is empty
            DirectoryCreateError: If the directory cannot be created
        """
        if not self._path:
            raise UninitializedPathError()
        if not self._directory:
            raise UninitializedDirectoryError()

        cache_dir = Path(self._path) / self._directory
        try:
            # exist_ok also covers a concurrent creator winning the race
            cache_dir.mkdir(mode=DIRECTORY_MODE, parents=True, exist_ok=True)
        except OSError as e:
            logger.error(
                "Unable to create cache directory %s: %s",
                cache_dir,
                e,
                extra={"path": str(cache_dir), "error": str(e)},
            )
            raise DirectoryCreateError(str(cache_dir), {"error": str(e)}) from e

        return cache_dir

    def _require_format(self) -> CacheFormat:
        if self._format is None:
            raise FormatNotSelectedError(SUPPORTED_FORMATS)
        return self._format

    @staticmethod
    def _validate_key(key: str) -> None:
        if not isinstance(key, str) or not key:
            raise InvalidCacheKeyError(str(key), "key must be a non-empty string")
        if key in (".", ".."):
            raise InvalidCacheKeyError(key, "key must not be a relative directory reference")
        separators = {"/", "\\", "\x00", os.sep}
        if os.altsep:
            separators.add(os.altsep)
        if any(sep in key for sep in separators):
            raise InvalidCacheKeyError(key, "key must not contain path separators or NUL bytes")

    def _resolve(self, key: str) -> tuple[Path, Path, CacheFormat]:
        """Return (cache_dir, entry_file, format) for key, in error-check order."""
        cache_dir = self.create_cache_directory()
        fmt = self._require_format()
        self._validate_key(key)
        return cache_dir, cache_dir / f"{key}.{fmt.value}", fmt

    def _now(self) -> int:
        return int(self._clock())

    def _count(self, counter: str, amount: int = 1) -> None:
        with self._stats_lock:
            setattr(self, counter, getattr(self, counter) + amount)

    def _write_atomic(self, cache_dir: Path, file_path: Path, payload: bytes) -> None:
        """Write payload to a staging file and rename it over file_path."""
        staging = cache_dir / STAGING_DIRECTORY
        tmp_name: str | None = None
        try:
            staging.mkdir(mode=DIRECTORY_MODE, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=staging, prefix=f"{file_path.name}.", suffix=".tmp")
            with os.fdopen(fd, "wb") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.chmod(tmp_name, FILE_MODE)
            os.replace(tmp_name, file_path)
        except OSError as e:
            if tmp_name is not None:
                with contextlib.suppress(OSError):
                    os.unlink(tmp_name)
            logger.error(
                "Failed to write cache file %s: %s",
                file_path,
                e,
                extra={"path": str(file_path), "error": str(e)},
                exc_info=True,
            )
            raise CacheIOError(
                f"Failed to write cache file: {file_path}",
                details={"path": str(file_path), "error": str(e)},
            ) from e

    def _read(self, key: str, file_path: Path) -> tuple[bytes, int]:
        """Read file_path, returning its content and inode."""
        try:
            with open(file_path, "rb") as f:
                inode = os.fstat(f.fileno()).st_ino
                return f.read(), inode
        except FileNotFoundError as e:
            # Covers a concurrent delete or eviction between lookup and open
            raise CacheKeyNotFoundError(key, str(file_path)) from e
        except OSError as e:
            logger.error(
                "Failed to read cache file %s: %s",
                file_path,
                e,
                extra={"key": key, "path": str(file_path), "error": str(e)},
                exc_info=True,
            )
            raise CacheIOError(
                f"Failed to read cache file: {file_path}",
                details={"key": key, "path": str(file_path), "error": str(e)},
            ) from e

    def _evict(self, key: str, file_path: Path, inode: int) -> None:
        """Remove an expired file unless a newer write already replaced it."""
        try:
            if os.stat(file_path).st_ino != inode:
                logger.debug("Expired entry for '%s' was rewritten before eviction", key, extra={"key": key})
                return
            file_path.unlink()
        except FileNotFoundError:
            logger.debug("Expired entry for '%s' already removed", key, extra={"key": key})
        except OSError as e:
            raise CacheIOError(
                f"Failed to remove expired cache file: {file_path}",
                details={"key": key, "path": str(file_path), "error": str(e)},
            ) from e

    # ------------ Core Interface ------------

    def set(self, key: str, value: Any, ttl: str | None = None) -> None:
        """Store value under key, overwriting any existing entry."""
        cache_dir, file_path, fmt = self._resolve(key)

        seconds = parse_ttl(ttl)
        now = self._now()
        entry = CacheEntry(
            created_at=now,
            expires_at=now + seconds if seconds is not None else None,
            value=value,
        )

        self._write_atomic(cache_dir, file_path, encode_entry(entry, fmt))
        self._count("_sets")
        logger.debug(
            "Stored cache entry '%s'",
            key,
            extra={"key": key, "path": str(file_path), "expires_at": entry.expires_at},
        )

    def get(self, key: str) -> Any | None:
        """
        Retrieve the value stored under key.

        Returns:
            The value, or None if the entry expired (its file is removed)

        Raises:
            CacheKeyNotFoundError: If no file exists for key
            CacheDecodeError: If the file is corrupt or in another format
        """
        _, file_path, fmt = self._resolve(key)

        try:
            data, inode = self._read(key, file_path)
        except CacheKeyNotFoundError:
            self._count("_misses")
            raise

        try:
            entry = decode_entry(data, fmt)
        except CacheDecodeError as e:
            e.details.update({"key": key, "path": str(file_path)})
            logger.warning(
                "Corrupt cache file for '%s': %s",
                key,
                e.message,
                extra={"key": key, "path": str(file_path)},
            )
            raise

        if entry.is_expired(self._now()):
            self._evict(key, file_path, inode)
            self._count("_expirations")
            self._count("_misses")
            logger.debug(
                "Evicted expired cache entry '%s'",
                key,
                extra={"key": key, "expires_at": entry.expires_at},
            )
            return None

        self._count("_hits")
        return entry.value

    def delete(self, key: str) -> None:
        """
        Delete the entry stored under key.

        Raises:
            CacheKeyNotFoundError: If no file exists for key
        """
        _, file_path, _ = self._resolve(key)
        try:
            file_path.unlink()
        except FileNotFoundError as e:
            raise CacheKeyNotFoundError(key, str(file_path)) from e
        except OSError as e:
            raise CacheIOError(
                f"Failed to delete cache file: {file_path}",
                details={"key": key, "path": str(file_path), "error": str(e)},
            ) from e

        self._count("_deletes")
        logger.debug("Deleted cache entry '%s'", key, extra={"key": key})

    def clear(self) -> int:
        """
        Remove every regular file directly inside the cache directory.

        Subdirectories are left alone. Files that vanish or cannot be removed
        while clearing are skipped.

        Returns:
            Number of files removed
        """
        cache_dir = self.create_cache_directory()
        self._require_format()

        deleted = 0
        try:
            with os.scandir(cache_dir) as entries:
                for item in entries:
                    try:
                        if not item.is_file():
                            continue
                        os.unlink(item.path)
                    except FileNotFoundError:
                        continue
                    except OSError as e:
                        logger.warning(
                            "Could not remove cache file %s: %s",
                            item.path,
                            e,
                            extra={"path": item.path, "error": str(e)},
                        )
                        continue
                    deleted += 1
        except OSError as e:
            raise CacheIOError(
                f"Failed to list cache directory: {cache_dir}",
                details={"path": str(cache_dir), "error": str(e)},
            ) from e

        self._count("_clears")
        self._count("_deletes", deleted)
        logger.info(
            "Cleared %d entries from cache directory %s",
            deleted,
            cache_dir,
            extra={"path": str(cache_dir), "deleted": deleted},
        )
        return deleted

    def get_stats(self) -> dict[str, Any]:
        """Get cache statistics."""
        with self._stats_lock:
            total_requests = self._hits + self._misses
            hit_rate = (self._hits / total_requests * 100) if total_requests > 0 else 0.0

            return {
                "backend": "file",
                "path": str(self._path) if self._path else None,
                "directory": self._directory,
                "format": self._format.value if self._format else None,
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": round(hit_rate, 2),
                "expirations": self._expirations,
                "sets": self._sets,
                "deletes": self._deletes,
                "clears": self._clears,
            }

    def close(self) -> None:
        """Nothing to release; files persist on disk."""
        logger.debug("File cache backend closed", extra={"path": str(self._path)})
