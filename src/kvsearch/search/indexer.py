"""Writes and removes a document's postings.

Re-indexing is always remove-then-write under the document's lock. The removal
and the new postings are committed as two separate batches; a crash between
them leaves the document unindexed, and indexing it again is safe because
removal always starts from a fresh scan of the reverse index.
"""

from __future__ import annotations

from collections.abc import Sequence
from contextlib import aclosing
import logging
from typing import Any

import orjson

from kvsearch.search.analyzers import TermAnalyzer, WeightedToken
from kvsearch.search.keyspace import KeySpace, decode_key, normalize_facets, validate_segment
from kvsearch.search.locks import DocumentLocks
from kvsearch.search.models import IndexResult
from kvsearch.search.stats import STATS_KEY, RunningStatistics
from kvsearch.storage.backend import OrderedKVStore, WriteBatch


logger = logging.getLogger(__name__)


def validate_document_id(doc_id: Any) -> str:
    if not isinstance(doc_id, str) or not doc_id:
        raise ValueError("document id must be a non-empty string")
    return validate_segment(doc_id, "document id")


class DocumentIndexer:
    """Maintains the four key families for each document."""

    def __init__(
        self,
        store: OrderedKVStore,
        keyspace: KeySpace,
        analyzer: TermAnalyzer,
        statistics: RunningStatistics,
        locks: DocumentLocks,
        *,
        store_content: bool = True,
    ) -> None:
        self.store = store
        self.keyspace = keyspace
        self.analyzer = analyzer
        self.statistics = statistics
        self.locks = locks
        self.store_content = store_content

    async def index(self, content: Any, doc_id: str, facets: Sequence[str] | str | None = None) -> IndexResult:
        if content is None:
            raise ValueError("content is required")
        validate_document_id(doc_id)
        labels = normalize_facets(facets)
        for label in labels:
            validate_segment(label, "facet")

        tokens: list[WeightedToken] = self.analyzer.analyze(content, weights=True)  # type: ignore[assignment]
        stored = None
        if self.store_content:
            stored = orjson.dumps({"content": content, "tokens": [token.word for token in tokens]})

        async with self.locks.hold(doc_id):
            removed = await self._remove_postings(doc_id)
            self.statistics.record(len(tokens) * len(labels))

            batch = self.store.batch()
            if stored is not None:
                batch.put(self.keyspace.text_key(doc_id), stored)
            self._stage_postings(batch, doc_id, tokens, labels)
            batch.put(STATS_KEY, orjson.dumps(self.statistics.to_record()))
            operations = await batch.write()

        logger.debug(
            "Indexed document %s: %d tokens x %d facets, %d operations",
            doc_id,
            len(tokens),
            len(labels),
            operations,
        )
        return IndexResult(doc_id=doc_id, tokens=len(tokens), facets=labels, operations=operations, removed=removed)

    async def remove(self, doc_id: str) -> int:
        """Delete every posting of ``doc_id``; returns the number of reverse-index keys removed."""
        validate_document_id(doc_id)
        async with self.locks.hold(doc_id):
            return await self._remove_postings(doc_id)

    def _stage_postings(self, batch: WriteBatch, doc_id: str, tokens: list[WeightedToken], labels: list[str]) -> None:
        keyspace = self.keyspace
        value = doc_id.encode("utf-8")
        for token in tokens:
            for facet in labels:
                fields = {"id": doc_id, "word": token.word, "weight": token.weight, "facet": facet}
                batch.put(keyspace.by_id.encode(**fields), value)
                if keyspace.facets and facet:
                    batch.put(keyspace.faceted.encode(**fields), value)
            batch.put(keyspace.word.encode(id=doc_id, word=token.word, weight=token.weight), value)

    async def _remove_postings(self, doc_id: str) -> int:
        keyspace = self.keyspace
        batch = self.store.batch()
        removed = 0
        async with aclosing(self.store.scan_keys(keyspace.document_range(doc_id))) as keys:
            async for key in keys:
                fields = decode_key(key)
                batch.delete(key)
                batch.delete(keyspace.word.encode(**fields))
                if keyspace.facets and fields.get("facet"):
                    batch.delete(keyspace.faceted.encode(**fields))
                removed += 1
        if self.store_content:
            batch.delete(keyspace.text_key(doc_id))
        await batch.write()
        if removed:
            logger.debug("Removed %d postings for document %s", removed, doc_id)
        return removed


__all__ = ["DocumentIndexer", "validate_document_id"]
