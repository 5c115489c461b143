"""Unit tests for the InvertedIndex facade."""

from __future__ import annotations

import asyncio

import orjson
import pytest

from kvsearch import InvertedIndex, MemoryKVStore, SqliteKVStore
from kvsearch.observability.metrics import OPERATION_COUNT
from kvsearch.search.stats import STATS_KEY


pytestmark = pytest.mark.unit


def _count(operation: str, status: str) -> float:
    return OPERATION_COUNT.labels(operation=operation, status=status)._value.get()


@pytest.mark.asyncio
async def test_ranked_search_over_stored_documents(index) -> None:
    await index.index("red apple pie", "1")
    await index.index("green apple", "2")
    await index.index("apple", "3")

    page = await index.search("apple")

    assert page.ids[0] == "3"
    assert sorted(page.ids) == ["1", "2", "3"]


@pytest.mark.asyncio
async def test_custom_fetcher_and_rank_function(make_index) -> None:
    catalog = {"short": "fox", "long": "fox " * 10}
    index = make_index(fetch=catalog.get, rank_algorithm=lambda content, query: len(content))
    for doc_id, content in catalog.items():
        await index.index(content, doc_id)

    page = await index.search("fox")

    assert page.ids == ["long", "short"]


@pytest.mark.asyncio
async def test_default_options_come_from_settings(make_index) -> None:
    index = make_index(default_limit=2, rank=False)
    for number in range(5):
        await index.index("common", f"d{number}")

    assert len((await index.search("common")).ids) == 2
    assert len((await index.search("common", options={"limit": 4})).ids) == 4


@pytest.mark.asyncio
async def test_statistics_are_loaded_from_store(memory_store, make_settings) -> None:
    await memory_store.put(STATS_KEY, orjson.dumps({"n": 3, "min": 1, "max": 12, "sum": 20, "mean": 6.5, "m2": 4}))

    async with InvertedIndex(memory_store, make_settings()) as index:
        snapshot = index.get_statistics()

    assert snapshot.n == 3
    assert snapshot.max == 12


@pytest.mark.asyncio
async def test_unreadable_statistics_start_fresh(memory_store, make_settings) -> None:
    await memory_store.put(STATS_KEY, b"not json")
    index = InvertedIndex(memory_store, make_settings())

    assert await index.load_statistics() is False
    await index.index("fox", "d1")

    assert index.get_statistics().n == 1


@pytest.mark.asyncio
async def test_statistics_survive_reopening(tmp_path, make_settings) -> None:
    settings = make_settings(database_path=str(tmp_path / "index.db"))

    index = await InvertedIndex.open(settings)
    assert isinstance(index.store, SqliteKVStore)
    await index.index("alpha beta gamma", "d1")
    await index.close()

    reopened = await InvertedIndex.open(settings)
    try:
        assert reopened.get_statistics().max == 3
        assert (await reopened.search("beta")).ids == ["d1"]
    finally:
        await reopened.close()


@pytest.mark.asyncio
async def test_open_defaults_to_memory_store(make_settings) -> None:
    index = await InvertedIndex.open(make_settings())

    assert isinstance(index.store, MemoryKVStore)


@pytest.mark.asyncio
async def test_purge_expired_pages(index, memory_store) -> None:
    await index.index("fox", "d1")
    await index.search("fox", options={"ttl": 1})
    await index.search("fox", options={"ttl": 60_000})
    await asyncio.sleep(0.01)

    assert await index.purge_expired_pages() == 1
    assert len([key for key in memory_store.keys() if key.startswith(b"page/")]) == 1


@pytest.mark.asyncio
async def test_expired_page_cannot_be_resumed(index) -> None:
    from kvsearch.errors import PageNotFoundError

    await index.index("fox", "d1")
    page = await index.search("fox", options={"ttl": 1})
    await asyncio.sleep(0.01)

    with pytest.raises(PageNotFoundError):
        await index.search({"text": "fox", "last": page.last})


@pytest.mark.asyncio
async def test_operations_are_counted(index) -> None:
    success_before = _count("index", "success")
    error_before = _count("index", "error")

    await index.index("fox", "d1")
    with pytest.raises(ValueError):
        await index.index("fox", "bad/id")

    assert _count("index", "success") == success_before + 1
    assert _count("index", "error") == error_before + 1


@pytest.mark.asyncio
async def test_failures_are_logged(index, caplog) -> None:
    with caplog.at_level("WARNING", logger="kvsearch.engine"), pytest.raises(ValueError):
        await index.remove("bad/id")

    assert "Index operation remove failed" in caplog.text


@pytest.mark.asyncio
async def test_ranking_tolerates_missing_stored_document(index, memory_store) -> None:
    await index.index("apple", "kept")
    await index.index("apple pie", "dropped")
    await memory_store.delete(b"text/dropped")

    page = await index.search("apple")

    assert page.ids == ["kept", "dropped"]


class SlowStatisticsStore(MemoryKVStore):
    """Memory store whose statistics read takes a while."""

    async def get(self, key: bytes) -> bytes:
        if key == STATS_KEY:
            await asyncio.sleep(0.05)
        return await super().get(key)


@pytest.mark.asyncio
async def test_concurrent_first_calls_wait_for_persisted_statistics(make_settings) -> None:
    store = SlowStatisticsStore()
    await store.put(STATS_KEY, orjson.dumps({"n": 5, "min": 1, "max": 9, "sum": 25, "mean": 5, "m2": 20}))
    index = InvertedIndex(store, make_settings())

    await asyncio.gather(index.index("a b c d", "x"), index.index("e f g h i j", "y"))

    snapshot = index.get_statistics()
    assert snapshot.n == 7
    assert snapshot.sum == 35
    assert snapshot.max == 9
    assert orjson.loads(await store.get(STATS_KEY))["n"] == 7
