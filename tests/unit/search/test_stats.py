"""Unit tests for the running statistics accumulator."""

from __future__ import annotations

import pytest

from kvsearch.search.stats import RunningStatistics


pytestmark = pytest.mark.unit


def test_empty_statistics_are_zero() -> None:
    snapshot = RunningStatistics().snapshot()

    assert snapshot.n == 0
    assert snapshot.max == 0.0
    assert snapshot.variance == 0.0


def test_records_population_moments() -> None:
    stats = RunningStatistics()
    for value in [2, 4, 4, 4, 5, 5, 7, 9]:
        stats.record(value)

    snapshot = stats.snapshot()

    assert snapshot.n == 8
    assert snapshot.min == 2
    assert snapshot.max == 9
    assert snapshot.sum == 40
    assert snapshot.mean == pytest.approx(5.0)
    assert snapshot.variance == pytest.approx(4.0)
    assert snapshot.standard_deviation == pytest.approx(2.0)


def test_seed_restores_persisted_record() -> None:
    original = RunningStatistics()
    for value in [3, 1, 8]:
        original.record(value)

    restored = RunningStatistics()
    restored.seed(original.to_record())
    restored.record(4)
    original.record(4)

    assert restored.snapshot() == original.snapshot()


def test_seed_tolerates_missing_fields() -> None:
    stats = RunningStatistics()
    stats.seed({"n": 2, "max": 6})

    assert stats.n == 2
    assert stats.max == 6.0
    assert stats.snapshot().to_dict()["mean"] == 0.0
