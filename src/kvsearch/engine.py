"""Public entry point: an inverted index on an ordered key-value store.

``InvertedIndex`` wires the keyspace, analyzer, statistics, document locks,
indexer, query engine and ranker together and wraps each public operation in
a trace span, latency/outcome metrics and failure logging.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
import logging
from typing import Any

import orjson

from kvsearch.config import IndexSettings
from kvsearch.errors import KeyNotFoundError
from kvsearch.observability.context import operation_context
from kvsearch.observability.metrics import OPERATION_COUNT, OPERATION_LATENCY, SEARCH_RESULTS, track_latency
from kvsearch.observability.tracing import create_span
from kvsearch.search.analyzers import TermAnalyzer
from kvsearch.search.indexer import DocumentIndexer
from kvsearch.search.keyspace import KeySpace
from kvsearch.search.locks import DocumentLocks
from kvsearch.search.models import IndexResult, SearchOptions, SearchPage, SearchQuery
from kvsearch.search.query import PAGE_PREFIX, QueryEngine
from kvsearch.search.ranking import Fetcher, Ranker, ScoreFunction
from kvsearch.search.stats import STATS_KEY, RunningStatistics, StatisticsSnapshot
from kvsearch.storage.backend import OrderedKVStore
from kvsearch.storage.memory import MemoryKVStore
from kvsearch.storage.sqlite import SqliteKVStore
from kvsearch.storage.ttl import TTLStore


logger = logging.getLogger(__name__)


class InvertedIndex:
    """Faceted, paginated full-text index over an ``OrderedKVStore``.

    Args:
        store: Ordered key-value store holding postings, documents and cursors.
        settings: Index options; defaults come from the environment.
        fetch: Optional callable ``id -> content`` (sync or async). When given,
            document content is not stored in the index and the callable is
            used to fetch candidates for ranking.
        rank_algorithm: Custom ``(content, query) -> float`` scorer overriding
            ``settings.rank_algorithm``.
    """

    def __init__(
        self,
        store: OrderedKVStore,
        settings: IndexSettings | None = None,
        *,
        fetch: Fetcher | None = None,
        rank_algorithm: ScoreFunction | None = None,
    ) -> None:
        self.settings = settings or IndexSettings()
        self.store = store
        self.keyspace = KeySpace(idf=self.settings.idf, facets=self.settings.facets)
        self.analyzer = TermAnalyzer(stem=self.settings.stem)
        self.statistics = RunningStatistics()
        self.locks = DocumentLocks()
        self.pages = TTLStore(store, prefix=PAGE_PREFIX)
        self.has_fetcher = fetch is not None
        self.ranker = Ranker(
            fetch if fetch is not None else self._fetch_stored,
            self.analyzer,
            enabled=self.settings.rank,
            algorithm=rank_algorithm if rank_algorithm is not None else self.settings.rank_algorithm,
        )
        self.indexer = DocumentIndexer(
            store,
            self.keyspace,
            self.analyzer,
            self.statistics,
            self.locks,
            store_content=not self.has_fetcher,
        )
        self.query_engine = QueryEngine(store, self.pages, self.keyspace, self.analyzer, self.statistics, self.ranker)
        self._statistics_loaded = False
        self._statistics_lock = asyncio.Lock()

    @classmethod
    async def open(cls, settings: IndexSettings | None = None, **kwargs: Any) -> InvertedIndex:
        """Build an index on the store described by ``settings`` and load its statistics."""
        settings = settings or IndexSettings()
        store: OrderedKVStore
        if settings.database_path:
            store = SqliteKVStore(settings.database_path)
        else:
            store = MemoryKVStore()
        index = cls(store, settings, **kwargs)
        await index.load_statistics()
        return index

    async def __aenter__(self) -> InvertedIndex:
        await self.load_statistics()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        await self.store.close()

    async def load_statistics(self) -> bool:
        """Seed statistics from the persisted record; returns False when starting fresh."""
        async with self._statistics_lock:
            loaded = await self._read_statistics()
            self._statistics_loaded = True
            return loaded

    async def _read_statistics(self) -> bool:
        try:
            raw = await self.store.get(STATS_KEY)
            self.statistics.seed(orjson.loads(raw))
        except KeyNotFoundError:
            return False
        except Exception as exc:
            logger.warning("Could not load index statistics, starting fresh: %s", exc)
            return False
        return True

    async def index(self, content: Any, doc_id: str, facets: Sequence[str] | str | None = None) -> IndexResult:
        """Index ``content`` under ``doc_id``, replacing any previous postings."""
        await self._ensure_statistics()
        with self._instrument("index", doc_id=doc_id):
            return await self.indexer.index(content, doc_id, facets)

    async def remove(self, doc_id: str) -> int:
        """Remove every posting of ``doc_id``; returns the number of postings removed."""
        with self._instrument("remove", doc_id=doc_id):
            return await self.indexer.remove(doc_id)

    async def search(
        self,
        query: str | dict[str, Any] | SearchQuery,
        facets: Sequence[str] | str | None = None,
        options: SearchOptions | dict[str, Any] | None = None,
    ) -> SearchPage:
        """Search for ``query``; pass ``{"text": ..., "last": page.last}`` to fetch the next page."""
        await self._ensure_statistics()
        resolved = self._resolve_options(options)
        with self._instrument("search"):
            page = await self.query_engine.search(query, facets, resolved)
        SEARCH_RESULTS.observe(len(page.ids))
        return page

    def get_statistics(self) -> StatisticsSnapshot:
        return self.statistics.snapshot()

    async def purge_expired_pages(self) -> int:
        """Delete expired pagination cursors."""
        return await self.pages.sweep()

    def _resolve_options(self, options: SearchOptions | dict[str, Any] | None) -> SearchOptions:
        if isinstance(options, SearchOptions):
            return options
        defaults = {"limit": self.settings.default_limit, "ttl": self.settings.default_ttl_ms}
        return SearchOptions.model_validate({**defaults, **(options or {})})

    async def _ensure_statistics(self) -> None:
        if self._statistics_loaded:
            return
        # concurrent first calls wait for one load; nothing may record before it
        async with self._statistics_lock:
            if not self._statistics_loaded:
                await self._read_statistics()
                self._statistics_loaded = True

    async def _fetch_stored(self, doc_id: str) -> Any:
        try:
            raw = await self.store.get(self.keyspace.text_key(doc_id))
        except KeyNotFoundError:
            # removed after its postings were scanned; ranks with no content
            logger.debug("Document %s vanished before ranking", doc_id)
            return None
        return orjson.loads(raw)

    @contextmanager
    def _instrument(self, operation: str, **attributes: str) -> Iterator[None]:
        span_attributes = {f"kvsearch.{key}": value for key, value in attributes.items() if isinstance(value, str)}
        with (
            operation_context(operation, **attributes),
            create_span(f"kvsearch.{operation}", attributes=span_attributes),
            track_latency(OPERATION_LATENCY, operation=operation),
        ):
            try:
                yield
            except Exception as exc:
                OPERATION_COUNT.labels(operation=operation, status="error").inc()
                logger.warning("Index operation %s failed: %s", operation, exc)
                raise
            OPERATION_COUNT.labels(operation=operation, status="success").inc()


__all__ = ["InvertedIndex"]
