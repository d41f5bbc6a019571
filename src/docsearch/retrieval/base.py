"""Abstract base class for vector-store backends.

Adding a new backend only requires subclassing :class:`VectorStoreBase`
and implementing the abstract methods.  Ingestion and retrieval never
talk to a concrete database directly.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Sequence

from docsearch.retrieval.models import DocumentId, EmbeddedChunk, SearchResult, StoredDocument


class VectorStoreBase(ABC):
    """Backend-agnostic vector-store interface.

    Parameters
    ----------
    collection_name:
        Logical name of the table / collection holding the chunks.
    dimension:
        Width of the stored vectors.
    """

    def __init__(self, collection_name: str, dimension: int) -> None:
        self.collection_name = collection_name
        self.dimension = dimension

    # -- lifecycle -------------------------------------------------------------

    def open(self) -> None:
        """Acquire long-lived resources (connection pool, client)."""

    def close(self) -> None:
        """Release everything acquired by :meth:`open`."""

    def __enter__(self) -> VectorStoreBase:
        self.open()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # -- required overrides ---------------------------------------------------

    @abstractmethod
    def initialize_schema(self) -> None:
        """Create the table / collection and its similarity index if missing."""
        ...

    @abstractmethod
    def count_all(self) -> int:
        """Return the number of stored chunks."""
        ...

    @abstractmethod
    def insert_batch(self, records: Sequence[EmbeddedChunk]) -> list[DocumentId]:
        """Persist *records* as one write and return the assigned ids.

        The write is all-or-nothing: on failure none of the records is
        stored and a :class:`~docsearch.errors.StoreError` is raised.
        """
        ...

    @abstractmethod
    def exists_for_source(self, source_id: str) -> bool:
        """Return ``True`` when at least one chunk of *source_id* is stored."""
        ...

    @abstractmethod
    def query_by_similarity(
        self,
        vector: Sequence[float],
        *,
        threshold: float,
        limit: int,
    ) -> list[SearchResult]:
        """Return up to *limit* chunks whose similarity strictly exceeds *threshold*.

        Similarity is ``1 - cosine_distance``; results are ordered by
        descending similarity.
        """
        ...

    @abstractmethod
    def delete_source(self, source_id: str) -> int:
        """Delete every chunk of *source_id* and return how many were removed."""
        ...

    @abstractmethod
    def health_check(self) -> bool:
        """Return ``True`` when the backend is reachable and ready."""
        ...

    # -- optional overrides ---------------------------------------------------

    def vector_dimension(self) -> int | None:
        """Width of the vectors the backend currently accepts, if it can tell."""
        return self.dimension

    def get_source_documents(self, source_id: str) -> list[StoredDocument]:
        """Return the stored chunks of *source_id* ordered by chunk index."""
        raise NotImplementedError(f"{type(self).__name__} does not support get_source_documents")
