"""Exception hierarchy shared by the storage layer and the search engine."""

from __future__ import annotations


class SearchEngineError(Exception):
    """Base class for errors raised by kvsearch."""


class StorageError(SearchEngineError):
    """An ordered key-value store operation failed."""


class KeyNotFoundError(StorageError):
    """The requested key does not exist (or has expired)."""

    def __init__(self, key: bytes) -> None:
        super().__init__(f"Key not found: {key!r}")
        self.key = key


class PageNotFoundError(KeyNotFoundError):
    """A pagination cursor was requested that is missing or expired."""

    def __init__(self, token: str, key: bytes) -> None:
        super().__init__(key)
        self.token = token
        self.args = (f"Search page not found or expired: {token}",)


class KeyDecodeError(SearchEngineError):
    """A stored key does not follow the keyspace layout."""
