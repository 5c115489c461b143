"""Term analysis for documents and queries.

Analyzers follow a composable tokenizer/filter design: a tokenizer emits
``Token`` objects and each filter transforms the stream. ``TermAnalyzer``
wires the pipeline used by the index and adds per-document term weighting.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Callable, Iterable, Iterator, MutableMapping, Sequence
from dataclasses import dataclass, field
import math
import re
from typing import Any, Protocol
import unicodedata

from kvsearch.search.ordering import encode_value


@dataclass
class Token:
    """Represents a token emitted by analyzers."""

    text: str
    position: int
    start_char: int
    end_char: int
    attributes: MutableMapping[str, Any] = field(default_factory=dict)

    def copy_with(self, **updates: Any) -> Token:
        data = {
            "text": self.text,
            "position": self.position,
            "start_char": self.start_char,
            "end_char": self.end_char,
            "attributes": dict(self.attributes),
        }
        data.update(updates)
        return Token(**data)


@dataclass(frozen=True)
class WeightedToken:
    """A normalised word and its per-document weight."""

    word: str
    weight: float = 0.0


class Tokenizer(Protocol):
    """Protocol implemented by tokenizers."""

    def __call__(self, text: str) -> Iterator[Token]:  # pragma: no cover - interface definition
        ...


class TokenFilter(Protocol):
    """Protocol implemented by token filters."""

    def __call__(self, tokens: Iterable[Token]) -> Iterator[Token]:  # pragma: no cover - interface definition
        ...


def strip_diacritics(text: str) -> str:
    """Drop combining marks after NFKD decomposition (``café`` -> ``cafe``)."""
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(char for char in decomposed if not unicodedata.combining(char))


class RegexTokenizer:
    """Regex-based tokenizer.

    The default pattern splits text into runs of word characters and runs of
    punctuation, so ``"don't"`` yields ``don``, ``'``, ``t``.
    """

    def __init__(self, pattern: str = r"\w+|[^\w\s]+", flags: int = re.UNICODE | re.MULTILINE) -> None:
        self.pattern = re.compile(pattern, flags)

    def __call__(self, text: str) -> Iterator[Token]:
        for position, match in enumerate(self.pattern.finditer(text)):
            yield Token(
                text=match.group(0),
                position=position,
                start_char=match.start(),
                end_char=match.end(),
            )


_PUNCTUATION = re.compile(r"[.,\-/#!$%^&*;:{}=_`~()?]")
_WHITESPACE = re.compile(r"\s")
_LONE_QUOTE = re.compile(r"^[’—\"']$")


class PunctuationFilter:
    """Strips punctuation classes, whitespace and lone quote marks."""

    def __call__(self, tokens: Iterable[Token]) -> Iterator[Token]:
        for token in tokens:
            text = _PUNCTUATION.sub("", token.text)
            text = _WHITESPACE.sub("", text)
            text = _LONE_QUOTE.sub("", text)
            yield token if text == token.text else token.copy_with(text=text)


class LowercaseFilter:
    """Filter that lowercases token text."""

    def __call__(self, tokens: Iterable[Token]) -> Iterator[Token]:
        for token in tokens:
            if token.text.islower():
                yield token
            else:
                yield token.copy_with(text=token.text.lower())


class EmptyTokenFilter:
    """Drops tokens whose text was reduced to nothing."""

    def __call__(self, tokens: Iterable[Token]) -> Iterator[Token]:
        for token in tokens:
            if token.text:
                yield token


DEFAULT_STOPWORDS = frozenset(
    (
        "a an and are as at be but by for if "
        "in into is it no not of on or such that "
        "the their then there these they this to was will with"
    ).split()
)

_SUFFIX_RULES: tuple[tuple[str, str], ...] = (
    ("ization", "ize"),
    ("ational", "ate"),
    ("fulness", "ful"),
    ("ousness", "ous"),
    ("iveness", "ive"),
    ("tional", "tion"),
    ("biliti", "ble"),
    ("lessli", "less"),
    ("entli", "ent"),
    ("enci", "ence"),
    ("anci", "ance"),
    ("izer", "ize"),
    ("abli", "able"),
    ("alli", "al"),
    ("ator", "ate"),
    ("alism", "al"),
    ("aliti", "al"),
    ("ousli", "ous"),
    ("ration", "rate"),
    ("ation", "ate"),
    ("ness", ""),
    ("ment", ""),
    ("ance", "an"),
    ("ence", "en"),
    ("able", ""),
    ("ible", ""),
)

_SIMPLE_SUFFIXES: tuple[str, ...] = ("ingly", "edly", "ing", "ed", "ly", "es", "s")


class PorterStemFilter:
    """Applies a minimal Porter-style stemming routine."""

    def __init__(self) -> None:
        self._stem = _build_porter_stemmer()

    def __call__(self, tokens: Iterable[Token]) -> Iterator[Token]:
        for token in tokens:
            yield token.copy_with(text=self._stem(token.text))


def _build_porter_stemmer() -> Callable[[str], str]:
    def stem(word: str) -> str:
        lower = word.lower()
        candidate = _strip_complex_suffix(lower)
        if candidate:
            return candidate
        fallback = _strip_simple_suffix(lower)
        if fallback:
            return fallback
        return lower

    return stem


def _strip_complex_suffix(lower: str) -> str | None:
    for suffix, replacement in _SUFFIX_RULES:
        if lower.endswith(suffix) and len(lower) - len(suffix) >= 2:
            candidate = lower[: -len(suffix)] + replacement
            if len(candidate) >= 2:
                return candidate
    return None


def _strip_simple_suffix(lower: str) -> str | None:
    for suffix in _SIMPLE_SUFFIXES:
        if lower.endswith(suffix) and len(lower) - len(suffix) >= 2:
            candidate = lower[: -len(suffix)]
            if len(candidate) >= 2:
                return candidate
    return None


class AnalyzerPipeline:
    """Composable analyzer pipeline (tokenizer + filters)."""

    def __init__(self, tokenizer: Tokenizer, filters: Sequence[TokenFilter] | None = None) -> None:
        self.tokenizer = tokenizer
        self.filters = list(filters or [])

    def __call__(self, text: str) -> list[Token]:
        stream: Iterable[Token] = self.tokenizer(text)
        for token_filter in self.filters:
            stream = token_filter(stream)
        tokens = list(stream)
        for idx, token in enumerate(tokens):  # normalize positions post-filtering
            token.position = idx
        return tokens


class TermAnalyzer:
    """Turns document content or query text into index terms.

    String content is diacritic-stripped, tokenized, cleaned of punctuation,
    lowercased and (optionally) stemmed; stopwords are kept. Any other value
    becomes a single synthetic term: the hex form of its order-preserving
    encoding.

    Weights are computed from the document's own term distribution: a term
    seen ``f`` times among ``n`` distinct terms weighs ``ln(n / f)``.
    Synthetic terms always weigh 0.
    """

    def __init__(self, *, stem: bool = True, stopwords: Sequence[str] | None = None) -> None:
        filters: list[TokenFilter] = [PunctuationFilter(), LowercaseFilter(), EmptyTokenFilter()]
        if stem:
            filters.append(PorterStemFilter())
        self.stem = stem
        self.stopwords = frozenset(word.lower() for word in (stopwords if stopwords is not None else DEFAULT_STOPWORDS))
        self.pipeline = AnalyzerPipeline(RegexTokenizer(), filters)

    def analyze(
        self,
        content: Any,
        *,
        weights: bool = False,
        allow_duplicates: bool = False,
    ) -> list[str] | list[WeightedToken]:
        if isinstance(content, str):
            words = [token.text for token in self.pipeline(strip_diacritics(content))]
            synthetic = False
        else:
            words = [encode_value(content).hex()]
            synthetic = True

        if synthetic and not allow_duplicates:
            words = [word for word in dict.fromkeys(words) if word not in self.stopwords]

        if not weights:
            return words

        if synthetic:
            return [WeightedToken(word, 0.0) for word in words]

        frequencies = Counter(words)
        distinct = len(frequencies)
        return [WeightedToken(word, math.log(distinct / frequencies[word])) for word in words]

    def terms(self, content: Any) -> list[str]:
        """Unweighted terms with duplicates kept, as used for similarity scoring."""
        return self.analyze(content, allow_duplicates=True)  # type: ignore[return-value]


__all__ = [
    "DEFAULT_STOPWORDS",
    "AnalyzerPipeline",
    "EmptyTokenFilter",
    "LowercaseFilter",
    "PorterStemFilter",
    "PunctuationFilter",
    "RegexTokenizer",
    "TermAnalyzer",
    "Token",
    "WeightedToken",
    "strip_diacritics",
]
