"""kvsearch: an embeddable inverted-index search engine on an ordered key-value store."""

from kvsearch.config import IndexSettings
from kvsearch.engine import InvertedIndex
from kvsearch.errors import (
    KeyDecodeError,
    KeyNotFoundError,
    PageNotFoundError,
    SearchEngineError,
    StorageError,
)
from kvsearch.observability import configure_observability
from kvsearch.search.models import DocumentMatch, IndexResult, SearchOptions, SearchPage, SearchQuery
from kvsearch.search.stats import StatisticsSnapshot
from kvsearch.storage import KeyRange, MemoryKVStore, OrderedKVStore, SqliteKVStore, TTLStore


__version__ = "0.1.0"

__all__ = [
    "DocumentMatch",
    "IndexResult",
    "IndexSettings",
    "InvertedIndex",
    "KeyDecodeError",
    "KeyNotFoundError",
    "KeyRange",
    "MemoryKVStore",
    "OrderedKVStore",
    "PageNotFoundError",
    "SearchEngineError",
    "SearchOptions",
    "SearchPage",
    "SearchQuery",
    "SqliteKVStore",
    "StatisticsSnapshot",
    "StorageError",
    "TTLStore",
    "configure_observability",
]
