"""Running statistics over the number of terms written per document.

The accumulator uses Welford's online algorithm so the mean and variance stay
numerically stable without keeping individual samples. Its state is persisted
under the ``stats`` key after every index operation and read back once at
startup.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import asdict, dataclass
import math
from typing import Any


STATS_KEY = b"stats"


@dataclass(frozen=True)
class StatisticsSnapshot:
    """Point-in-time view of the accumulator."""

    n: int
    min: float
    max: float
    sum: float
    mean: float
    variance: float
    standard_deviation: float

    def to_dict(self) -> dict[str, float]:
        return asdict(self)


class RunningStatistics:
    """count/min/max/sum/mean/variance accumulator."""

    def __init__(self) -> None:
        self._n = 0
        self._min = 0.0
        self._max = 0.0
        self._sum = 0.0
        self._mean = 0.0
        self._m2 = 0.0

    def record(self, value: float) -> None:
        value = float(value)
        if self._n == 0:
            self._min = self._max = value
        else:
            self._min = min(self._min, value)
            self._max = max(self._max, value)
        self._n += 1
        self._sum += value
        delta = value - self._mean
        self._mean += delta / self._n
        self._m2 += delta * (value - self._mean)

    @property
    def n(self) -> int:
        return self._n

    @property
    def max(self) -> float:
        return self._max

    @property
    def variance(self) -> float:
        if self._n == 0:
            return 0.0
        return self._m2 / self._n

    def snapshot(self) -> StatisticsSnapshot:
        variance = self.variance
        return StatisticsSnapshot(
            n=self._n,
            min=self._min,
            max=self._max,
            sum=self._sum,
            mean=self._mean,
            variance=variance,
            standard_deviation=math.sqrt(variance),
        )

    def to_record(self) -> dict[str, float]:
        """Serializable state written under ``STATS_KEY``."""
        return {
            "n": self._n,
            "min": self._min,
            "max": self._max,
            "sum": self._sum,
            "mean": self._mean,
            "m2": self._m2,
        }

    def seed(self, record: Mapping[str, Any]) -> None:
        """Restore state from a persisted record; missing fields default to 0."""
        self._n = int(record.get("n") or 0)
        self._min = float(record.get("min") or 0)
        self._max = float(record.get("max") or 0)
        self._sum = float(record.get("sum") or 0)
        self._mean = float(record.get("mean") or 0)
        self._m2 = float(record.get("m2") or 0)


__all__ = ["STATS_KEY", "RunningStatistics", "StatisticsSnapshot"]
