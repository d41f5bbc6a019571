"""
Ingestion — document loading, chunking, embedding and storage.

Turns raw text documents into embedded chunks persisted in a vector store,
either one upload at a time or as a bulk walk over a directory tree.
"""

from docsearch.ingestion.chunker import chunk_document, chunk_text, iter_spans
from docsearch.ingestion.embedder import EmbeddingClient, EmbeddingMode
from docsearch.ingestion.orchestrator import IngestionOrchestrator, IngestMode

__all__ = [
    "EmbeddingClient",
    "EmbeddingMode",
    "IngestMode",
    "IngestionOrchestrator",
    "chunk_document",
    "chunk_text",
    "iter_spans",
]
