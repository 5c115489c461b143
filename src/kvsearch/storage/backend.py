"""Abstract ordered key-value store consumed by the search engine.

Keys and values are raw bytes. Keys are kept in ascending byte order so that a
range scan streams postings in the order the keyspace encodes them. Every
implementation must provide:

* point operations (``get``/``put``/``delete``),
* atomic multi-operation commits through ``batch()``,
* ``scan_keys`` - a lazy, finite, forward-only async iterator over a
  ``KeyRange`` that can be closed mid-stream with ``aclose()``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Sequence
from dataclasses import dataclass
import logging


logger = logging.getLogger(__name__)

DEFAULT_SCAN_BATCH_SIZE = 256

PUT = "put"
DELETE = "del"

BatchOperation = tuple[str, bytes, bytes | None]


@dataclass(frozen=True)
class KeyRange:
    """Half-open byte interval ``[start, end)`` with an optional key limit."""

    start: bytes = b""
    end: bytes | None = None
    limit: int | None = None

    def before_end(self, key: bytes) -> bool:
        return self.end is None or key < self.end


class WriteBatch:
    """Staged puts/deletes committed atomically by ``write()``.

    Operations apply in staging order, so a delete staged after a put of the
    same key wins. A batch that is never written is simply discarded.
    """

    def __init__(self, store: OrderedKVStore) -> None:
        self._store = store
        self._operations: list[BatchOperation] = []

    def put(self, key: bytes, value: bytes) -> WriteBatch:
        self._operations.append((PUT, key, value))
        return self

    def delete(self, key: bytes) -> WriteBatch:
        self._operations.append((DELETE, key, None))
        return self

    def clear(self) -> None:
        self._operations.clear()

    def __len__(self) -> int:
        return len(self._operations)

    async def write(self) -> int:
        """Commit every staged operation and return how many were applied."""
        operations = list(self._operations)
        self._operations.clear()
        if operations:
            await self._store.apply_batch(operations)
        return len(operations)


class OrderedKVStore(ABC):
    """Async ordered key-value store."""

    @abstractmethod
    async def get(self, key: bytes) -> bytes:
        """Return the value for ``key`` or raise ``KeyNotFoundError``."""

    @abstractmethod
    async def put(self, key: bytes, value: bytes) -> None:
        pass

    @abstractmethod
    async def delete(self, key: bytes) -> None:
        """Remove ``key``; deleting a missing key is not an error."""

    @abstractmethod
    async def apply_batch(self, operations: Sequence[BatchOperation]) -> None:
        """Apply all operations atomically (all or nothing)."""

    @abstractmethod
    def scan_keys(self, key_range: KeyRange, *, batch_size: int = DEFAULT_SCAN_BATCH_SIZE) -> AsyncIterator[bytes]:
        """Stream keys inside ``key_range`` in ascending byte order.

        ``batch_size`` controls read-ahead only; the stream keeps going until
        the range (or ``key_range.limit``) is exhausted or the consumer closes it.
        """

    def batch(self) -> WriteBatch:
        return WriteBatch(self)

    async def close(self) -> None:
        return None

    async def __aenter__(self) -> OrderedKVStore:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


__all__ = ["DEFAULT_SCAN_BATCH_SIZE", "KeyRange", "OrderedKVStore", "WriteBatch"]
