"""Prometheus metrics for index operations."""

from __future__ import annotations

from contextlib import contextmanager
import time
from typing import TYPE_CHECKING

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest


if TYPE_CHECKING:
    from collections.abc import Generator


OPERATION_COUNT = Counter(
    "kvsearch_operations_total",
    "Index operations by outcome",
    ["operation", "status"],
)

OPERATION_LATENCY = Histogram(
    "kvsearch_operation_latency_seconds",
    "Index operation latency in seconds",
    ["operation"],
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

SEARCH_RESULTS = Histogram(
    "kvsearch_search_results",
    "Documents returned per search page",
    buckets=(0, 1, 5, 10, 25, 50, 100, 250, 500),
)


@contextmanager
def track_latency(histogram: Histogram, **labels: str) -> Generator[None, None, None]:
    """Context manager to track operation latency."""
    start = time.perf_counter()
    try:
        yield
    finally:
        target = histogram.labels(**labels) if labels else histogram
        target.observe(time.perf_counter() - start)


def get_metrics() -> bytes:
    """Generate Prometheus metrics output."""
    return generate_latest()


def get_metrics_content_type() -> str:
    """Get content type for metrics endpoint."""
    return CONTENT_TYPE_LATEST
