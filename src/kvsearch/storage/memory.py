"""In-memory ordered key-value store."""

from __future__ import annotations

import asyncio
from bisect import bisect_left, bisect_right, insort
from collections.abc import AsyncIterator, Sequence

from kvsearch.errors import KeyNotFoundError
from kvsearch.storage.backend import DEFAULT_SCAN_BATCH_SIZE, PUT, BatchOperation, KeyRange, OrderedKVStore


class MemoryKVStore(OrderedKVStore):
    """Dict-backed store with a sorted key list for range scans.

    Batches are applied without yielding to the event loop, which makes them
    atomic with respect to every other coroutine.
    """

    def __init__(self) -> None:
        self._data: dict[bytes, bytes] = {}
        self._keys: list[bytes] = []

    async def get(self, key: bytes) -> bytes:
        try:
            return self._data[key]
        except KeyError:
            raise KeyNotFoundError(key) from None

    async def put(self, key: bytes, value: bytes) -> None:
        self._set(key, value)

    async def delete(self, key: bytes) -> None:
        self._unset(key)

    async def apply_batch(self, operations: Sequence[BatchOperation]) -> None:
        for operation, key, value in operations:
            if operation == PUT:
                self._set(key, value)
            else:
                self._unset(key)

    async def scan_keys(
        self, key_range: KeyRange, *, batch_size: int = DEFAULT_SCAN_BATCH_SIZE
    ) -> AsyncIterator[bytes]:
        batch_size = max(1, batch_size)
        emitted = 0
        index = bisect_left(self._keys, key_range.start)
        while True:
            chunk = self._keys[index : index + batch_size]
            if not chunk:
                return
            for key in chunk:
                if not key_range.before_end(key):
                    return
                yield key
                emitted += 1
                if key_range.limit is not None and emitted >= key_range.limit:
                    return
            # writers may have run while we were suspended; re-find our place
            await asyncio.sleep(0)
            index = bisect_right(self._keys, chunk[-1])

    def __len__(self) -> int:
        return len(self._keys)

    def keys(self) -> list[bytes]:
        return list(self._keys)

    def clear(self) -> None:
        self._data.clear()
        self._keys.clear()

    def _set(self, key: bytes, value: bytes) -> None:
        if key not in self._data:
            insort(self._keys, key)
        self._data[key] = value

    def _unset(self, key: bytes) -> None:
        if key not in self._data:
            return
        del self._data[key]
        del self._keys[bisect_left(self._keys, key)]


__all__ = ["MemoryKVStore"]
