"""Range-scan query execution with resumable pagination.

Every (facet, term) pair becomes one key range. Ranges are scanned
concurrently; each scan streams keys in order and collects document ids until
the page limit is reached or the range runs out. Where a scan stopped is
saved, with the ids already returned, in a time-limited cursor so the next
call can continue from there.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from contextlib import aclosing
from dataclasses import dataclass, field
import logging
import math
import time
from typing import Any
from uuid import uuid4

import orjson

from kvsearch.errors import KeyNotFoundError, PageNotFoundError
from kvsearch.search.analyzers import TermAnalyzer
from kvsearch.search.keyspace import KeySpace, decode_key, normalize_facets, validate_segment
from kvsearch.search.models import DocumentMatch, SearchOptions, SearchPage, SearchQuery
from kvsearch.search.ranking import Ranker
from kvsearch.search.stats import RunningStatistics
from kvsearch.storage.backend import KeyRange, OrderedKVStore
from kvsearch.storage.ttl import TTLStore


logger = logging.getLogger(__name__)

PAGE_PREFIX = b"page/"


def new_page_token() -> str:
    """Unique token whose lexicographic order follows creation time."""
    return f"{time.time_ns():016x}{uuid4().hex[:12]}"


@dataclass(frozen=True)
class ScanRange:
    """A key interval to scan for postings of ``word``."""

    start: bytes
    end: bytes
    word: str

    def to_dict(self) -> dict[str, str]:
        return {"start": self.start.hex(), "end": self.end.hex(), "word": self.word}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ScanRange:
        return cls(start=bytes.fromhex(data["start"]), end=bytes.fromhex(data["end"]), word=data["word"])


@dataclass
class _ScanState:
    """Shared state of one search call across its concurrent scans."""

    limit: int
    seen: set[str] = field(default_factory=set)
    ids: list[str] = field(default_factory=list)
    matches: list[dict[str, Any]] = field(default_factory=list)
    ranges: list[ScanRange] = field(default_factory=list)
    found: int = 0

    @property
    def full(self) -> bool:
        return self.found >= self.limit

    def exclude(self, ids: Sequence[str]) -> None:
        for doc_id in ids:
            if doc_id not in self.seen:
                self.seen.add(doc_id)
                self.ids.append(doc_id)

    def accept(self, doc_id: str, fields: dict[str, Any]) -> None:
        self.seen.add(doc_id)
        self.ids.append(doc_id)
        self.matches.append(fields)
        self.found += 1


def collect_documents(matches: Sequence[dict[str, Any]]) -> dict[str, DocumentMatch]:
    """Group matched postings by document and sum their weights."""
    grouped: dict[str, list[float]] = {}
    for fields in matches:
        grouped.setdefault(fields["id"], []).append(float(fields.get("weight", 0.0)))
    return {
        doc_id: DocumentMatch(id=doc_id, weights=sorted(weights), collective_weight=sum(weights))
        for doc_id, weights in grouped.items()
    }


class QueryEngine:
    """Executes searches against the posting key families."""

    def __init__(
        self,
        store: OrderedKVStore,
        pages: TTLStore,
        keyspace: KeySpace,
        analyzer: TermAnalyzer,
        statistics: RunningStatistics,
        ranker: Ranker,
    ) -> None:
        self.store = store
        self.pages = pages
        self.keyspace = keyspace
        self.analyzer = analyzer
        self.statistics = statistics
        self.ranker = ranker

    async def search(
        self,
        query: str | dict[str, Any] | SearchQuery,
        facets: Sequence[str] | str | None = None,
        options: SearchOptions | None = None,
    ) -> SearchPage:
        request = SearchQuery.coerce(query)
        options = options or SearchOptions()
        labels = normalize_facets(facets) if self.keyspace.facets else [""]
        for label in labels:
            validate_segment(label, "facet")

        state = _ScanState(limit=options.limit)
        batch_size = self.scan_batch_size(len(labels), options.limit)

        if request.last:
            cursor = await self.load_cursor(request.last)
            state.exclude(cursor["ids"])
            ranges = [ScanRange.from_dict(item) for item in cursor["ranges"]]
        else:
            words = self.analyzer.analyze(request.text)
            ranges = [self._term_scan(word, facet) for facet in labels for word in words]

        await asyncio.gather(*(self._scan(scan, state, batch_size) for scan in ranges))

        documents = collect_documents(state.matches)
        ids, token = await asyncio.gather(
            self.ranker.rank(request.text, list(documents)),
            self.save_cursor(state, options.ttl),
        )
        logger.debug(
            "Search %r over %d ranges matched %d documents (page %s)",
            request.text,
            len(ranges),
            len(ids),
            token,
        )
        return SearchPage(ids=ids, last=token, documents=documents)

    def scan_batch_size(self, facet_count: int, limit: int) -> int:
        """Read-ahead sized to the densest document ever indexed."""
        return math.ceil(self.statistics.max * facet_count) or limit

    async def load_cursor(self, token: str) -> dict[str, Any]:
        key = token.encode("utf-8")
        try:
            raw = await self.pages.get(key)
        except KeyNotFoundError as exc:
            raise PageNotFoundError(token, exc.key) from exc
        return orjson.loads(raw)

    async def save_cursor(self, state: _ScanState, ttl_ms: int) -> str:
        token = new_page_token()
        payload = {"ids": state.ids, "ranges": [scan.to_dict() for scan in state.ranges]}
        await self.pages.put(token.encode("utf-8"), orjson.dumps(payload), ttl_ms)
        return token

    def _term_scan(self, word: str, facet: str) -> ScanRange:
        key_range = self.keyspace.term_range(word, facet)
        return ScanRange(start=key_range.start, end=key_range.end or b"", word=word)

    async def _scan(self, scan: ScanRange, state: _ScanState, batch_size: int) -> None:
        last_key: bytes | None = None
        stream = self.store.scan_keys(KeyRange(start=scan.start, end=scan.end), batch_size=batch_size)
        async with aclosing(stream) as keys:
            async for key in keys:
                last_key = key
                if state.full:
                    break
                fields = decode_key(key, decode_weight=True)
                if not fields.get("word", "").startswith(scan.word):
                    break
                doc_id = fields.get("id", "")
                if doc_id in state.seen:
                    continue
                state.accept(doc_id, fields)
                if state.full:
                    break
        state.ranges.append(ScanRange(start=last_key if last_key is not None else scan.start, end=scan.end, word=scan.word))


__all__ = ["PAGE_PREFIX", "QueryEngine", "ScanRange", "collect_documents", "new_page_token"]
