"""Unit tests for the expiring-entry store."""

from __future__ import annotations

import pytest

from kvsearch.errors import KeyNotFoundError, StorageError
from kvsearch.storage import MemoryKVStore, TTLStore


pytestmark = pytest.mark.unit


class FakeClock:
    def __init__(self, now: int = 1_000) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def backing() -> MemoryKVStore:
    return MemoryKVStore()


@pytest.fixture
def ttl_store(backing, clock) -> TTLStore:
    return TTLStore(backing, prefix=b"page/", clock=clock)


@pytest.mark.asyncio
async def test_entry_is_readable_until_expiry(ttl_store, backing, clock) -> None:
    await ttl_store.put(b"token", b"payload", 500)

    assert backing.keys() == [b"page/token"]
    clock.now += 499
    assert await ttl_store.get(b"token") == b"payload"

    clock.now += 1
    with pytest.raises(KeyNotFoundError):
        await ttl_store.get(b"token")
    assert len(backing) == 0


@pytest.mark.asyncio
async def test_stored_value_carries_expiry_header(ttl_store, backing, clock) -> None:
    await ttl_store.put(b"token", b"payload", 250)

    raw = await backing.get(b"page/token")

    assert int.from_bytes(raw[:8], "big") == clock.now + 250
    assert raw[8:] == b"payload"


@pytest.mark.asyncio
async def test_missing_entry_raises(ttl_store) -> None:
    with pytest.raises(KeyNotFoundError):
        await ttl_store.get(b"nope")


@pytest.mark.asyncio
async def test_rejects_non_positive_ttl(ttl_store) -> None:
    with pytest.raises(ValueError):
        await ttl_store.put(b"token", b"payload", 0)


def test_requires_prefix(backing) -> None:
    with pytest.raises(ValueError):
        TTLStore(backing, prefix=b"")


@pytest.mark.asyncio
async def test_sweep_removes_only_expired_entries(ttl_store, backing, clock) -> None:
    await backing.put(b"other", b"untouched")
    await ttl_store.put(b"short", b"1", 10)
    await ttl_store.put(b"long", b"2", 1_000)

    clock.now += 100

    assert await ttl_store.sweep() == 1
    assert backing.keys() == [b"other", b"page/long"]
    assert await ttl_store.get(b"long") == b"2"


@pytest.mark.asyncio
async def test_delete(ttl_store, backing) -> None:
    await ttl_store.put(b"token", b"payload", 10)
    await ttl_store.delete(b"token")

    assert len(backing) == 0


class BrokenReadStore(MemoryKVStore):
    """Memory store that fails reading one key and counts open scans."""

    def __init__(self, broken_key: bytes) -> None:
        super().__init__()
        self.broken_key = broken_key
        self.open_scans = 0

    async def get(self, key: bytes) -> bytes:
        if key == self.broken_key:
            raise StorageError("read failed")
        return await super().get(key)

    async def scan_keys(self, key_range, *, batch_size=256):
        self.open_scans += 1
        try:
            async for key in super().scan_keys(key_range, batch_size=batch_size):
                yield key
        finally:
            self.open_scans -= 1


@pytest.mark.asyncio
async def test_sweep_closes_scan_when_read_fails(clock) -> None:
    backing = BrokenReadStore(b"page/b")
    ttl_store = TTLStore(backing, prefix=b"page/", clock=clock)
    for key in (b"a", b"b", b"c"):
        await ttl_store.put(key, b"payload", 10)
    clock.now += 100

    with pytest.raises(StorageError):
        await ttl_store.sweep()

    assert backing.open_scans == 0
    assert len(backing) == 3
