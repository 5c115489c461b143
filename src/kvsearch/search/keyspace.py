"""Key layout for postings in the ordered key-value store.

Every key is a sequence of ``name/value`` pairs joined by ``/`` so a key can be
decoded without knowing which family produced it::

    text/{id}                                            stored document
    facet/{facet}/word/{word}/weight/{weight}/id/{id}    facet-scoped lookup
    word/{word}/weight/{weight}/id/{id}                  facet-agnostic lookup
    id/{id}/word/{word}/weight/{weight}/facet/{facet}    reverse index for removal

Weights are written with ``encode_number`` so that, within one word, keys sort
by ascending weight. ``\\xff`` never occurs in UTF-8 and closes scan ranges.
"""

from __future__ import annotations

from typing import Any

from kvsearch.errors import KeyDecodeError
from kvsearch.search.ordering import decode_number, encode_number
from kvsearch.storage.backend import KeyRange


SEPARATOR = "/"
SENTINEL = b"\xff"
WEIGHT_FIELD = "weight"


def validate_segment(value: str, what: str) -> str:
    """Reject values that would corrupt the key layout."""
    if not isinstance(value, str):
        raise TypeError(f"{what} must be a string, got {type(value).__name__}")
    if SEPARATOR in value:
        raise ValueError(f"{what} must not contain '/': {value!r}")
    try:
        value.encode("utf-8")
    except UnicodeEncodeError as exc:
        raise ValueError(f"{what} is not encodable as UTF-8: {value!r}") from exc
    return value


def normalize_facets(facets: Any) -> list[str]:
    """Normalise a facet argument into a non-empty list of lowercase labels."""
    if isinstance(facets, str):
        facets = [facets]
    if not isinstance(facets, (list, tuple)):
        facets = [""]
    labels = [facet.lower() for facet in facets if isinstance(facet, str)]
    return labels or [""]


class KeyTemplate:
    """Ordered list of field names that renders to a ``name/value`` key."""

    def __init__(self, *fields: str) -> None:
        self.fields = fields

    def encode(self, **values: Any) -> bytes:
        parts: list[str] = []
        for name in self.fields:
            value = values[name]
            if name == WEIGHT_FIELD and not isinstance(value, str):
                value = encode_number(value)
            parts.append(name)
            parts.append(str(value))
        return SEPARATOR.join(parts).encode("utf-8")

    def __repr__(self) -> str:
        return f"KeyTemplate({SEPARATOR.join(self.fields)})"


def decode_key(key: bytes, *, decode_weight: bool = False) -> dict[str, Any]:
    """Split a key back into its named fields.

    With ``decode_weight`` the ``weight`` field is returned as a float instead
    of its hex encoding.
    """
    try:
        text = key.replace(SENTINEL, b"").decode("utf-8")
    except UnicodeDecodeError as exc:
        raise KeyDecodeError(f"Key is not valid UTF-8: {key!r}") from exc
    parts = text.split(SEPARATOR)
    if len(parts) % 2:
        raise KeyDecodeError(f"Key has an unpaired segment: {key!r}")
    fields: dict[str, Any] = dict(zip(parts[::2], parts[1::2]))
    if decode_weight and WEIGHT_FIELD in fields:
        try:
            fields[WEIGHT_FIELD] = decode_number(fields[WEIGHT_FIELD])
        except ValueError as exc:
            raise KeyDecodeError(f"Key has a malformed weight: {key!r}") from exc
    return fields


class KeySpace:
    """The four key families for one index configuration."""

    def __init__(self, *, idf: bool = True, facets: bool = True) -> None:
        self.idf = idf
        self.facets = facets
        weight = (WEIGHT_FIELD,) if idf else ()
        self.text = KeyTemplate("text")
        self.faceted = KeyTemplate("facet", "word", *weight, "id")
        self.word = KeyTemplate("word", *weight, "id")
        self.by_id = KeyTemplate("id", "word", *weight, *(("facet",) if facets else ()))

    def text_key(self, doc_id: str) -> bytes:
        return self.text.encode(text=doc_id)

    def document_range(self, doc_id: str) -> KeyRange:
        """Every reverse-index key belonging to ``doc_id``."""
        prefix = f"id{SEPARATOR}{doc_id}{SEPARATOR}".encode("utf-8")
        return KeyRange(start=prefix, end=prefix + SENTINEL)

    def term_range(self, word: str, facet: str = "") -> KeyRange:
        """Postings whose word starts with ``word``, optionally inside ``facet``."""
        if self.facets and facet:
            prefix = f"facet{SEPARATOR}{facet}{SEPARATOR}word{SEPARATOR}{word}"
        else:
            prefix = f"word{SEPARATOR}{word}"
        start = prefix.encode("utf-8")
        return KeyRange(start=start, end=start + SENTINEL)


__all__ = ["KeySpace", "KeyTemplate", "decode_key", "normalize_facets", "validate_segment"]
