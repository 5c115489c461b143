"""Unit tests for IndexSettings."""

from __future__ import annotations

from pydantic import ValidationError
import pytest

from kvsearch.config import IndexSettings


pytestmark = pytest.mark.unit


def test_defaults(make_settings) -> None:
    settings = make_settings()

    assert settings.idf is True
    assert settings.facets is True
    assert settings.stem is True
    assert settings.rank is True
    assert settings.rank_algorithm == "cosine"
    assert settings.default_limit == 100
    assert settings.default_ttl_ms == 3_600_000
    assert settings.database_path is None


def test_environment_overrides(make_settings, monkeypatch) -> None:
    monkeypatch.setenv("KVSEARCH_IDF", "false")
    monkeypatch.setenv("KVSEARCH_RANK_ALGORITHM", "editDistance")
    monkeypatch.setenv("KVSEARCH_DEFAULT_LIMIT", "25")

    settings = make_settings()

    assert settings.idf is False
    assert settings.rank_algorithm == "edit_distance"
    assert settings.default_limit == 25


def test_env_file_is_read(tmp_path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    (tmp_path / ".env").write_text("KVSEARCH_FACETS=false\nKVSEARCH_LOG_LEVEL=DEBUG\n")

    settings = IndexSettings()

    assert settings.facets is False
    assert settings.log_level == "debug"


@pytest.mark.parametrize("alias", ["levenshtein", "Edit-Distance", "edit_distance"])
def test_rank_algorithm_aliases(make_settings, alias) -> None:
    assert make_settings(rank_algorithm=alias).rank_algorithm == "edit_distance"


@pytest.mark.parametrize(
    "overrides",
    [{"rank_algorithm": "bm25"}, {"default_limit": 0}, {"default_ttl_ms": -1}, {"log_level": "verbose"}],
)
def test_invalid_values_are_rejected(make_settings, overrides) -> None:
    with pytest.raises(ValidationError):
        make_settings(**overrides)
