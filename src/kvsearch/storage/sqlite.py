"""SQLite-backed ordered key-value store.

Keys live in a ``WITHOUT ROWID`` table whose primary key is a BLOB, so SQLite
keeps them clustered in ``memcmp`` order - exactly the byte order range scans
need. All blocking calls run in a worker thread via ``anyio.to_thread`` and a
single connection is shared behind a ``threading.Lock``.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Sequence
import logging
from pathlib import Path
import sqlite3
import threading

import anyio

from kvsearch.errors import KeyNotFoundError, StorageError
from kvsearch.storage.backend import DEFAULT_SCAN_BATCH_SIZE, PUT, BatchOperation, KeyRange, OrderedKVStore
from kvsearch.storage.sqlite_pragmas import apply_kv_pragmas


logger = logging.getLogger(__name__)

_SCHEMA = """
    CREATE TABLE IF NOT EXISTS kv (
        key BLOB PRIMARY KEY,
        value BLOB NOT NULL
    ) WITHOUT ROWID;
"""


class SqliteKVStore(OrderedKVStore):
    """Persistent store in a single SQLite database file."""

    def __init__(self, db_path: str | Path) -> None:
        self.db_path = str(db_path)
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._conn: sqlite3.Connection | None = sqlite3.connect(
            self.db_path, check_same_thread=False, isolation_level=None
        )
        apply_kv_pragmas(self._conn)
        self._conn.executescript(_SCHEMA)
        logger.debug("Opened SQLite key-value store at %s", self.db_path)

    async def get(self, key: bytes) -> bytes:
        row = await self._run(self._fetch_one, "SELECT value FROM kv WHERE key = ?", (key,))
        if row is None:
            raise KeyNotFoundError(key)
        return bytes(row[0])

    async def put(self, key: bytes, value: bytes) -> None:
        await self._run(self._apply_sync, [(PUT, key, value)])

    async def delete(self, key: bytes) -> None:
        await self._run(self._execute, "DELETE FROM kv WHERE key = ?", (key,))

    async def apply_batch(self, operations: Sequence[BatchOperation]) -> None:
        await self._run(self._apply_sync, list(operations))

    async def scan_keys(
        self, key_range: KeyRange, *, batch_size: int = DEFAULT_SCAN_BATCH_SIZE
    ) -> AsyncIterator[bytes]:
        batch_size = max(1, batch_size)
        remaining = key_range.limit
        cursor = key_range.start
        comparator = ">="
        while remaining is None or remaining > 0:
            page_size = batch_size if remaining is None else min(batch_size, remaining)
            rows = await self._run(self._select_keys, cursor, comparator, key_range.end, page_size)
            if not rows:
                return
            for key in rows:
                yield key
            if remaining is not None:
                remaining -= len(rows)
            if len(rows) < page_size:
                return
            cursor = rows[-1]
            comparator = ">"

    async def close(self) -> None:
        if self._conn is None:
            return
        await anyio.to_thread.run_sync(self._close_sync)

    def _close_sync(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    async def _run(self, func, *args):
        try:
            return await anyio.to_thread.run_sync(func, *args)
        except sqlite3.Error as exc:
            raise StorageError(f"SQLite operation failed on {self.db_path}: {exc}") from exc

    def _connection(self) -> sqlite3.Connection:
        if self._conn is None:
            raise StorageError(f"SQLite store {self.db_path} is closed")
        return self._conn

    def _fetch_one(self, sql: str, params: tuple) -> tuple | None:
        with self._lock:
            return self._connection().execute(sql, params).fetchone()

    def _execute(self, sql: str, params: tuple) -> None:
        with self._lock:
            self._connection().execute(sql, params)

    def _select_keys(self, cursor: bytes, comparator: str, end: bytes | None, limit: int) -> list[bytes]:
        sql = f"SELECT key FROM kv WHERE key {comparator} ?"
        params: list[object] = [cursor]
        if end is not None:
            sql += " AND key < ?"
            params.append(end)
        sql += " ORDER BY key LIMIT ?"
        params.append(limit)
        with self._lock:
            rows = self._connection().execute(sql, params).fetchall()
        return [bytes(row[0]) for row in rows]

    def _apply_sync(self, operations: list[BatchOperation]) -> None:
        with self._lock:
            conn = self._connection()
            conn.execute("BEGIN IMMEDIATE")
            try:
                for operation, key, value in operations:
                    if operation == PUT:
                        conn.execute("INSERT OR REPLACE INTO kv (key, value) VALUES (?, ?)", (key, value))
                    else:
                        conn.execute("DELETE FROM kv WHERE key = ?", (key,))
                conn.execute("COMMIT")
            except BaseException:
                conn.execute("ROLLBACK")
                raise


__all__ = ["SqliteKVStore"]
