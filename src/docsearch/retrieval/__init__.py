"""
Retrieval — vector stores and similarity search.

The vector store is hidden behind :class:`VectorStoreBase` so that the
ingestion and search code never need to know which database is in use.

Public surface
--------------
- :class:`RetrievalService` — threshold-based semantic search.
- :class:`VectorStoreBase` — abstract backend.
- :class:`PgVectorStore` — PostgreSQL + pgvector backend (default).
- :class:`ChromaVectorStore` — Chroma backend.
- :class:`Chunk`, :class:`EmbeddedChunk`, :class:`StoredDocument`,
  :class:`SearchResult` — data models.
"""

from docsearch.retrieval.base import VectorStoreBase
from docsearch.retrieval.models import (
    Chunk,
    EmbeddedChunk,
    IngestionReport,
    IngestionRunSummary,
    IngestionStatus,
    SearchResult,
    StoredDocument,
)
from docsearch.retrieval.retriever import RetrievalService

__all__ = [
    "ChromaVectorStore",
    "Chunk",
    "EmbeddedChunk",
    "IngestionReport",
    "IngestionRunSummary",
    "IngestionStatus",
    "PgVectorStore",
    "RetrievalService",
    "SearchResult",
    "StoredDocument",
    "VectorStoreBase",
]


def __getattr__(name: str):  # noqa: ANN001
    """Lazy-import the concrete stores to avoid pulling in their drivers at import time."""
    if name == "ChromaVectorStore":
        from docsearch.retrieval.chroma_store import ChromaVectorStore

        return ChromaVectorStore
    if name == "PgVectorStore":
        from docsearch.retrieval.pgvector_store import PgVectorStore

        return PgVectorStore
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
