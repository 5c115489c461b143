"""Candidate ranking.

The ranker fetches each candidate's content and scores it against the query
text. The scoring algorithm is chosen once, at construction:

* ``"cosine"`` - cosine similarity of term-frequency vectors built from token
  lists (content without stored tokens is analyzed first);
* ``"edit_distance"`` - Levenshtein similarity of the raw texts,
  ``1 - distance / max(len)``;
* any callable ``(content, query) -> float``.

Higher scores rank first; equal scores keep candidate order.
"""

from __future__ import annotations

import asyncio
from collections import Counter
from collections.abc import Callable, Sequence
from dataclasses import dataclass
import inspect
import logging
import math
from typing import Any

import orjson

from kvsearch.search.analyzers import TermAnalyzer


logger = logging.getLogger(__name__)

Fetcher = Callable[[str], Any]
ScoreFunction = Callable[[Any, Any], float]

COSINE = "cosine"
EDIT_DISTANCE = "edit_distance"


@dataclass(frozen=True)
class FetchedDocument:
    """Content returned by a fetcher, with stored tokens when available."""

    content: Any
    tokens: list[str] | None = None

    @classmethod
    def from_fetched(cls, value: Any) -> FetchedDocument:
        if isinstance(value, dict) and "content" in value:
            tokens = value.get("tokens")
            return cls(content=value["content"], tokens=list(tokens) if tokens is not None else None)
        return cls(content=value)


def cosine_similarity(left: Sequence[str], right: Sequence[str]) -> float:
    """Cosine similarity of two bags of terms, in ``[0, 1]``."""
    if not left or not right:
        return 0.0
    left_counts = Counter(left)
    right_counts = Counter(right)
    dot_product = sum(count * right_counts[term] for term, count in left_counts.items())
    magnitude1 = math.sqrt(sum(count * count for count in left_counts.values()))
    magnitude2 = math.sqrt(sum(count * count for count in right_counts.values()))
    if magnitude1 == 0 or magnitude2 == 0:
        return 0.0
    return dot_product / (magnitude1 * magnitude2)


def levenshtein_distance(s1: str, s2: str) -> int:
    """Minimum number of single-character edits turning ``s1`` into ``s2``."""
    if not s1:
        return len(s2)
    if not s2:
        return len(s1)

    # Use shorter string as columns for space efficiency
    if len(s1) > len(s2):
        s1, s2 = s2, s1

    m, n = len(s1), len(s2)
    prev_row = list(range(m + 1))
    curr_row = [0] * (m + 1)

    for j in range(1, n + 1):
        curr_row[0] = j
        for i in range(1, m + 1):
            cost = 0 if s1[i - 1] == s2[j - 1] else 1
            curr_row[i] = min(
                prev_row[i] + 1,  # deletion
                curr_row[i - 1] + 1,  # insertion
                prev_row[i - 1] + cost,  # substitution
            )
        prev_row, curr_row = curr_row, prev_row

    return prev_row[m]


def edit_distance_similarity(left: str, right: str) -> float:
    """Normalised Levenshtein similarity: 1.0 for equal strings, 0.0 for disjoint."""
    longest = max(len(left), len(right))
    if longest == 0:
        return 1.0
    return 1.0 - levenshtein_distance(left, right) / longest


def _as_text(content: Any) -> str:
    if isinstance(content, str):
        return content
    return orjson.dumps(content, option=orjson.OPT_SORT_KEYS).decode("utf-8")


class Ranker:
    """Orders candidate ids by similarity to the query."""

    def __init__(
        self,
        fetch: Fetcher,
        analyzer: TermAnalyzer,
        *,
        enabled: bool = True,
        algorithm: str | ScoreFunction = COSINE,
    ) -> None:
        self.fetch = fetch
        self.analyzer = analyzer
        self.enabled = enabled
        if callable(algorithm):
            self._score: Callable[[FetchedDocument, str], float] = self._custom(algorithm)
        elif algorithm == COSINE:
            self._score = self._cosine
        elif algorithm == EDIT_DISTANCE:
            self._score = self._edit_distance
        else:
            raise ValueError(f"Unknown rank algorithm {algorithm!r}. Available: {[COSINE, EDIT_DISTANCE]}")

    async def rank(self, query: str, candidate_ids: Sequence[str]) -> list[str]:
        ids = list(candidate_ids)
        if not self.enabled or not ids:
            return ids
        documents = await asyncio.gather(*(self._fetch_document(doc_id) for doc_id in ids))
        scores = [self._score(document, query) for document in documents]
        order = sorted(range(len(ids)), key=lambda idx: scores[idx], reverse=True)
        return [ids[idx] for idx in order]

    async def _fetch_document(self, doc_id: str) -> FetchedDocument:
        value = self.fetch(doc_id)
        if inspect.isawaitable(value):
            value = await value
        return FetchedDocument.from_fetched(value)

    def _cosine(self, document: FetchedDocument, query: str) -> float:
        tokens = document.tokens if document.tokens is not None else self.analyzer.terms(document.content)
        return cosine_similarity(tokens, self.analyzer.terms(query))

    def _edit_distance(self, document: FetchedDocument, query: str) -> float:
        return edit_distance_similarity(_as_text(document.content), query)

    @staticmethod
    def _custom(algorithm: ScoreFunction) -> Callable[[FetchedDocument, str], float]:
        def score(document: FetchedDocument, query: str) -> float:
            return float(algorithm(document.content, query))

        return score


__all__ = [
    "COSINE",
    "EDIT_DISTANCE",
    "FetchedDocument",
    "Ranker",
    "cosine_similarity",
    "edit_distance_similarity",
    "levenshtein_distance",
]
