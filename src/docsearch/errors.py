"""Exception hierarchy shared by ingestion, retrieval and the HTTP layer."""

from __future__ import annotations


class DocSearchError(Exception):
    """Base class for every error raised by ``docsearch``."""


class ValidationError(DocSearchError):
    """Caller supplied an unusable input (empty query, bad file, …).

    Never retried; surfaced to the caller as-is.
    """


class ProviderError(DocSearchError):
    """The embedding provider failed after all retries were exhausted."""


class StoreError(DocSearchError):
    """A vector-store statement failed."""


class StoreConnectionError(StoreError):
    """The vector store could not be reached at all."""


class ConfigurationError(DocSearchError):
    """The running configuration is inconsistent with the outside world."""


class EmbeddingDimensionError(ConfigurationError):
    """A vector's width does not match the store's configured dimensionality."""

    def __init__(self, expected: int, actual: int, context: str = "") -> None:
        self.expected = expected
        self.actual = actual
        where = f" ({context})" if context else ""
        super().__init__(
            f"Embedding dimension mismatch{where}: expected {expected}, got {actual}"
        )
