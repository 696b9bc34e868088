"""
CacheBox — Test Configuration and Shared Fixtures

Provides pytest configuration and shared fixtures for unit and integration tests.
"""

import os
import socket
from collections.abc import Generator
from pathlib import Path
from typing import Any

import pytest

from cachebox.cache.backends.file import FileCacheBackend

# Set test environment
os.environ["ENVIRONMENT"] = "test"
os.environ["LOG_LEVEL"] = "DEBUG"


def is_server_available(port: int, host: str = "localhost") -> bool:
    """Check if a server accepts TCP connections on host:port."""
    try:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.settimeout(1)
        result = sock.connect_ex((host, port))
        sock.close()
        return result == 0
    except OSError:
        return False


@pytest.fixture
def redis_server() -> tuple[str, int]:
    """Address of a live Redis server; skips the test when none is listening."""
    if not is_server_available(6379):
        pytest.skip("Redis server not available")
    return "localhost", 6379


@pytest.fixture
def memcached_server() -> tuple[str, int]:
    """Address of a live Memcached server; skips the test when none is listening."""
    if not is_server_available(11211):
        pytest.skip("Memcached server not available")
    return "localhost", 11211


class FakeClock:
    """Manually advanced replacement for time.time()."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    """A fake clock starting at a fixed Unix time."""
    return FakeClock()


@pytest.fixture
def cache_root(tmp_path: Path) -> Path:
    """Root path for file cache tests (the cache directory itself is not created)."""
    return tmp_path / "root"


@pytest.fixture(params=["json", "serialize", "txt"])
def file_format(request: pytest.FixtureRequest) -> str:
    """Every envelope format supported by the file driver."""
    return request.param


@pytest.fixture
def file_cache(cache_root: Path, clock: FakeClock) -> FileCacheBackend:
    """A JSON file cache driven by the fake clock."""
    return FileCacheBackend(path=cache_root, format="json", clock=clock)


@pytest.fixture
def sample_cache_data() -> dict[str, Any]:
    """Sample data for cache testing."""
    return {
        "simple_string": "hello",
        "simple_int": 42,
        "simple_float": 3.14,
        "simple_bool": True,
        "simple_none": None,
        "unicode": "héllo wörld ✓",
        "complex_dict": {
            "nested": {
                "key": "value",
                "number": 123,
                "list": [1, 2, 3],
            }
        },
        "complex_list": [
            {"id": 1, "name": "Alice"},
            {"id": 2, "name": "Bob"},
        ],
    }


@pytest.fixture(autouse=True)
def reset_cache_factory() -> Generator[None, None, None]:
    """Reset cache factory after each test to prevent state leakage."""
    yield
    from cachebox.cache.factory import reset_cache_factory

    reset_cache_factory()


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> pytest.MonkeyPatch:
    """Remove CACHE_* variables and run from an empty directory (no stray .env)."""
    for name in list(os.environ):
        if name.startswith("CACHE_") or name in ("LOG_JSON",):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    return monkeypatch
