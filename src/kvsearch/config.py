"""Centralized configuration for kvsearch using Pydantic Settings."""

from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


_ALGORITHM_ALIASES = {
    "editdistance": "edit_distance",
    "edit-distance": "edit_distance",
    "levenshtein": "edit_distance",
}


class IndexSettings(BaseSettings):
    """Index options loaded from ``KVSEARCH_*`` environment variables or ``.env``.

    Options that change the key layout (``idf``, ``facets``) must stay the
    same for the lifetime of a store.
    """

    model_config = SettingsConfigDict(
        env_prefix="KVSEARCH_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        validate_default=True,
        extra="ignore",
    )

    # Key layout
    idf: bool = Field(default=True, description="Embed per-document term weights in posting keys")
    facets: bool = Field(default=True, description="Write the facet-scoped key family")

    # Analysis and ranking
    stem: bool = Field(default=True, description="Apply Porter-style stemming to terms")
    rank: bool = Field(default=True, description="Re-order candidates by similarity to the query")
    rank_algorithm: Literal["cosine", "edit_distance"] = Field(
        default="cosine", description="Built-in similarity used when ranking"
    )

    # Search defaults
    default_limit: int = Field(default=100, ge=1, description="Maximum distinct documents per page")
    default_ttl_ms: int = Field(default=3_600_000, ge=1, description="Pagination cursor lifetime in milliseconds")

    # Storage
    database_path: str | None = Field(
        default=None, description="SQLite database file; an in-memory store is used when unset"
    )

    # Logging / observability
    log_level: str = Field(default="info", description="Logging level")
    json_logs: bool = Field(default=True, description="Emit structured JSON logs")
    tracing_enabled: bool = Field(default=False, description="Install an OpenTelemetry tracer provider")

    @field_validator("rank_algorithm", mode="before")
    @classmethod
    def _normalize_algorithm(cls, value: object) -> object:
        if isinstance(value, str):
            lowered = value.strip().lower()
            return _ALGORITHM_ALIASES.get(lowered, lowered)
        return value

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, value: str) -> str:
        allowed = {"debug", "info", "warning", "error", "critical"}
        if value.lower() not in allowed:
            raise ValueError(f"log_level must be one of {sorted(allowed)}")
        return value.lower()
