"""Value objects exchanged with callers of the index."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class SearchQuery(BaseModel):
    """Query text plus an optional pagination token to resume from."""

    model_config = ConfigDict(frozen=True)

    text: str = ""
    last: str | None = None

    @classmethod
    def coerce(cls, query: Any) -> SearchQuery:
        if isinstance(query, cls):
            return query
        if isinstance(query, str):
            return cls(text=query)
        if isinstance(query, dict):
            return cls.model_validate(query)
        raise TypeError(f"query must be a string, dict or SearchQuery, got {type(query).__name__}")


class SearchOptions(BaseModel):
    """Per-call search options."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    limit: int = Field(default=100, ge=1, description="Maximum distinct documents per page")
    ttl: int = Field(default=3_600_000, ge=1, description="Pagination cursor lifetime in milliseconds")


class DocumentMatch(BaseModel):
    """Matched posting weights for one candidate document.

    ``collective_weight`` is the sum of the matched weights. It is reported
    for diagnostics and does not influence result order.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    weights: list[float] = Field(default_factory=list)
    collective_weight: float = 0.0


class SearchPage(BaseModel):
    """One page of ranked results and the token for the next page."""

    model_config = ConfigDict(frozen=True)

    ids: list[str]
    last: str
    documents: dict[str, DocumentMatch] = Field(default_factory=dict)


class IndexResult(BaseModel):
    """Outcome of indexing one document."""

    model_config = ConfigDict(frozen=True)

    doc_id: str
    tokens: int
    facets: list[str]
    operations: int
    removed: int = 0
