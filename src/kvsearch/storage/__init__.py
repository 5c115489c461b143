"""Ordered key-value storage backends."""

from kvsearch.storage.backend import DEFAULT_SCAN_BATCH_SIZE, KeyRange, OrderedKVStore, WriteBatch
from kvsearch.storage.memory import MemoryKVStore
from kvsearch.storage.sqlite import SqliteKVStore
from kvsearch.storage.ttl import TTLStore


__all__ = [
    "DEFAULT_SCAN_BATCH_SIZE",
    "KeyRange",
    "MemoryKVStore",
    "OrderedKVStore",
    "SqliteKVStore",
    "TTLStore",
    "WriteBatch",
]
