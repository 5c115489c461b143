"""Time-to-live decorator for an ordered key-value store.

Entries are written under a dedicated key prefix with an 8-byte big-endian
expiry timestamp (milliseconds since the epoch) in front of the payload.
Expired entries are invisible to ``get`` and are deleted lazily when read or
eagerly by ``sweep()``.
"""

from __future__ import annotations

from collections.abc import Callable
from contextlib import aclosing
import logging
import struct
import time

from kvsearch.errors import KeyNotFoundError
from kvsearch.storage.backend import KeyRange, OrderedKVStore


logger = logging.getLogger(__name__)

_EXPIRY = struct.Struct(">Q")


def _now_ms() -> int:
    return int(time.time() * 1000)


class TTLStore:
    """Expiring entries layered on top of an ``OrderedKVStore``."""

    def __init__(
        self,
        store: OrderedKVStore,
        *,
        prefix: bytes = b"ttl/",
        clock: Callable[[], int] = _now_ms,
    ) -> None:
        if not prefix:
            raise ValueError("TTLStore requires a non-empty key prefix")
        self.store = store
        self.prefix = prefix
        self._clock = clock

    async def put(self, key: bytes, value: bytes, ttl_ms: int) -> None:
        if ttl_ms <= 0:
            raise ValueError(f"ttl must be positive, got {ttl_ms}")
        expires_at = self._clock() + ttl_ms
        await self.store.put(self.prefix + key, _EXPIRY.pack(expires_at) + value)

    async def get(self, key: bytes) -> bytes:
        full_key = self.prefix + key
        raw = await self.store.get(full_key)
        expires_at, payload = self._unpack(raw)
        if expires_at <= self._clock():
            await self.store.delete(full_key)
            raise KeyNotFoundError(full_key)
        return payload

    async def delete(self, key: bytes) -> None:
        await self.store.delete(self.prefix + key)

    async def sweep(self) -> int:
        """Delete every expired entry under the prefix; return how many were removed."""
        now = self._clock()
        batch = self.store.batch()
        key_range = KeyRange(start=self.prefix, end=self.prefix + b"\xff")
        async with aclosing(self.store.scan_keys(key_range)) as keys:
            async for full_key in keys:
                try:
                    raw = await self.store.get(full_key)
                except KeyNotFoundError:
                    continue
                expires_at, _ = self._unpack(raw)
                if expires_at <= now:
                    batch.delete(full_key)
        removed = await batch.write()
        if removed:
            logger.debug("Swept %d expired entries under %r", removed, self.prefix)
        return removed

    @staticmethod
    def _unpack(raw: bytes) -> tuple[int, bytes]:
        (expires_at,) = _EXPIRY.unpack_from(raw)
        return expires_at, raw[_EXPIRY.size :]


__all__ = ["TTLStore"]
