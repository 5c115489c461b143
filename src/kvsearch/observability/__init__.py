"""Observability helpers: structured logging, tracing and metrics."""

from __future__ import annotations

from typing import TYPE_CHECKING

from kvsearch.observability.context import get_trace_context, operation_context, set_trace_context, trace_context
from kvsearch.observability.logging import JsonFormatter, configure_logging
from kvsearch.observability.metrics import (
    OPERATION_COUNT,
    OPERATION_LATENCY,
    SEARCH_RESULTS,
    get_metrics,
    get_metrics_content_type,
    track_latency,
)
from kvsearch.observability.tracing import create_span, get_tracer, init_tracing


if TYPE_CHECKING:
    from kvsearch.config import IndexSettings


def configure_observability(settings: IndexSettings) -> None:
    """Apply the logging and tracing options of ``settings`` to this process."""
    configure_logging(settings.log_level, settings.json_logs)
    if settings.tracing_enabled:
        init_tracing()


__all__ = [
    "OPERATION_COUNT",
    "OPERATION_LATENCY",
    "SEARCH_RESULTS",
    "JsonFormatter",
    "configure_logging",
    "configure_observability",
    "create_span",
    "get_metrics",
    "get_metrics_content_type",
    "get_trace_context",
    "get_tracer",
    "init_tracing",
    "operation_context",
    "set_trace_context",
    "trace_context",
    "track_latency",
]
