"""Unit tests for candidate ranking."""

from __future__ import annotations

import pytest

from kvsearch.search.analyzers import TermAnalyzer
from kvsearch.search.ranking import (
    EDIT_DISTANCE,
    FetchedDocument,
    Ranker,
    cosine_similarity,
    edit_distance_similarity,
    levenshtein_distance,
)


pytestmark = pytest.mark.unit


FRUIT = {"1": "red apple pie", "2": "green pear", "3": "apple"}


def test_cosine_similarity() -> None:
    assert cosine_similarity(["a", "b"], ["a", "b"]) == pytest.approx(1.0)
    assert cosine_similarity(["a"], ["b"]) == 0.0
    assert cosine_similarity([], ["a"]) == 0.0


def test_levenshtein_distance() -> None:
    assert levenshtein_distance("kitten", "sitting") == 3
    assert levenshtein_distance("", "abc") == 3
    assert levenshtein_distance("same", "same") == 0


def test_edit_distance_similarity_is_normalised() -> None:
    assert edit_distance_similarity("kitten", "kitten") == 1.0
    assert edit_distance_similarity("abc", "xyz") == 0.0
    assert edit_distance_similarity("", "") == 1.0


def test_fetched_document_unwraps_stored_records() -> None:
    stored = FetchedDocument.from_fetched({"content": "red apple", "tokens": ["red", "apple"]})
    plain = FetchedDocument.from_fetched({"title": "x"})

    assert stored == FetchedDocument("red apple", ["red", "apple"])
    assert plain == FetchedDocument({"title": "x"})


@pytest.mark.asyncio
async def test_cosine_ranking_orders_by_similarity() -> None:
    ranker = Ranker(FRUIT.get, TermAnalyzer())

    assert await ranker.rank("red apple", ["2", "3", "1"]) == ["1", "3", "2"]


@pytest.mark.asyncio
async def test_edit_distance_ranking() -> None:
    documents = {"a": "sitting", "b": "kitten", "c": "xyz"}
    ranker = Ranker(documents.get, TermAnalyzer(), algorithm=EDIT_DISTANCE)

    assert await ranker.rank("kitten", ["c", "a", "b"]) == ["b", "a", "c"]


@pytest.mark.asyncio
async def test_custom_ranking_receives_content_and_query() -> None:
    calls = []

    def by_length(content, query):
        calls.append(query)
        return len(content)

    ranker = Ranker(FRUIT.get, TermAnalyzer(), algorithm=by_length)

    assert await ranker.rank("q", ["3", "1", "2"]) == ["1", "2", "3"]
    assert calls == ["q", "q", "q"]


@pytest.mark.asyncio
async def test_ties_keep_candidate_order() -> None:
    ranker = Ranker(FRUIT.get, TermAnalyzer(), algorithm=lambda content, query: 0)

    assert await ranker.rank("q", ["2", "3", "1"]) == ["2", "3", "1"]


@pytest.mark.asyncio
async def test_async_fetcher_is_awaited() -> None:
    async def fetch(doc_id: str) -> str:
        return FRUIT[doc_id]

    ranker = Ranker(fetch, TermAnalyzer())

    assert await ranker.rank("apple", ["2", "3"]) == ["3", "2"]


@pytest.mark.asyncio
async def test_disabled_ranker_does_not_fetch() -> None:
    def fetch(doc_id: str) -> str:
        raise AssertionError("fetch should not be called")

    ranker = Ranker(fetch, TermAnalyzer(), enabled=False)

    assert await ranker.rank("apple", ["2", "3"]) == ["2", "3"]


def test_unknown_algorithm_is_rejected() -> None:
    with pytest.raises(ValueError, match="Unknown rank algorithm"):
        Ranker(FRUIT.get, TermAnalyzer(), algorithm="bm25")
