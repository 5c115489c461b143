"""Shared test fixtures and configuration."""

import os

import pytest

from kvsearch.config import IndexSettings
from kvsearch.engine import InvertedIndex
from kvsearch.errors import StorageError
from kvsearch.storage.backend import DEFAULT_SCAN_BATCH_SIZE
from kvsearch.storage.memory import MemoryKVStore


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep KVSEARCH_* variables from the developer's shell out of the tests."""
    for key in list(os.environ):
        if key.upper().startswith("KVSEARCH_"):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture
def make_settings(tmp_path, monkeypatch):
    """Build IndexSettings isolated from any .env file in the working directory."""
    monkeypatch.chdir(tmp_path)

    def _make(**overrides) -> IndexSettings:
        return IndexSettings(**overrides)

    return _make


@pytest.fixture
def memory_store():
    return MemoryKVStore()


@pytest.fixture
def make_index(memory_store, make_settings):
    """Factory for an InvertedIndex over the shared in-memory store."""

    def _make(fetch=None, rank_algorithm=None, **overrides) -> InvertedIndex:
        return InvertedIndex(memory_store, make_settings(**overrides), fetch=fetch, rank_algorithm=rank_algorithm)

    return _make


@pytest.fixture
def index(make_index):
    return make_index()


class FailingScanStore(MemoryKVStore):
    """Memory store whose scans can be made to fail after yielding one key."""

    def __init__(self) -> None:
        super().__init__()
        self.fail_prefix: bytes | None = None
        self.opened_scans = 0
        self.closed_scans = 0

    async def scan_keys(self, key_range, *, batch_size: int = DEFAULT_SCAN_BATCH_SIZE):
        self.opened_scans += 1
        try:
            async for key in super().scan_keys(key_range, batch_size=batch_size):
                yield key
                if self.fail_prefix is not None and key_range.start.startswith(self.fail_prefix):
                    raise StorageError("scan interrupted")
        finally:
            self.closed_scans += 1


@pytest.fixture
def failing_store():
    return FailingScanStore()


@pytest.fixture
def failing_index(failing_store, make_settings):
    return InvertedIndex(failing_store, make_settings())
