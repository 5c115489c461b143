"""Per-document mutual exclusion.

Each document id gets an ``asyncio.Lock`` on first use. Entries are reference
counted (holder plus waiters) and dropped as soon as nobody needs them, so the
table only ever holds ids with work in flight. ``asyncio.Lock`` hands the lock
to waiters in arrival order, which gives FIFO ordering per id. There is no
timeout: a holder that never finishes blocks later callers for that id.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import TypeVar


T = TypeVar("T")


@dataclass
class _LockEntry:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    refs: int = 0


class DocumentLocks:
    """Registry of per-id locks."""

    def __init__(self) -> None:
        self._entries: dict[str, _LockEntry] = {}

    @asynccontextmanager
    async def hold(self, doc_id: str) -> AsyncIterator[None]:
        entry = self._entries.get(doc_id)
        if entry is None:
            entry = self._entries[doc_id] = _LockEntry()
        entry.refs += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.refs -= 1
            if entry.refs == 0:
                del self._entries[doc_id]

    async def run(self, doc_id: str, func: Callable[[], Awaitable[T]]) -> T:
        """Await ``func()`` while holding the lock for ``doc_id``."""
        async with self.hold(doc_id):
            return await func()

    def is_locked(self, doc_id: str) -> bool:
        entry = self._entries.get(doc_id)
        return entry is not None and entry.lock.locked()

    def __len__(self) -> int:
        return len(self._entries)


__all__ = ["DocumentLocks"]
