"""Shared pytest configuration and fixtures."""

from __future__ import annotations

import hashlib
import math
import re
import threading
from datetime import datetime, timezone
from typing import Any, Sequence

import pytest
from langchain_core.embeddings import Embeddings

from docsearch.config import Settings
from docsearch.context import AppContext
from docsearch.errors import StoreError
from docsearch.ingestion.embedder import EmbeddingClient
from docsearch.retrieval.base import VectorStoreBase
from docsearch.retrieval.models import DocumentId, EmbeddedChunk, SearchResult, StoredDocument
from docsearch.retry import RetryPolicy

DIM = 64


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: marks tests requiring external services")


# ── Fakes ───────────────────────────────────────────────────────────────


class KeywordEmbeddings(Embeddings):
    """Deterministic bag-of-words embeddings: each word lights up one bucket."""

    def __init__(self, dim: int = DIM) -> None:
        self.dim = dim
        self.document_calls: list[list[str]] = []
        self.query_calls: list[str] = []
        self._lock = threading.Lock()

    def _vector(self, text: str) -> list[float]:
        vec = [0.0] * self.dim
        for word in re.findall(r"[a-z]+", text.lower()):
            bucket = int(hashlib.md5(word.encode()).hexdigest(), 16) % self.dim
            vec[bucket] += 1.0
        norm = math.sqrt(sum(x * x for x in vec)) or 1.0
        return [x / norm for x in vec]

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        with self._lock:
            self.document_calls.append(list(texts))
        return [self._vector(t) for t in texts]

    def embed_query(self, text: str) -> list[float]:
        with self._lock:
            self.query_calls.append(text)
        return self._vector(text)


def _cosine_distance(a: Sequence[float], b: Sequence[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    na = math.sqrt(sum(x * x for x in a))
    nb = math.sqrt(sum(y * y for y in b))
    if na == 0 or nb == 0:
        return 1.0
    return 1 - dot / (na * nb)


class InMemoryVectorStore(VectorStoreBase):
    """Thread-safe in-memory store computing exact cosine similarity."""

    def __init__(self, dimension: int = DIM) -> None:
        super().__init__("test-collection", dimension)
        self.rows: list[StoredDocument] = []
        self.insert_calls: list[list[EmbeddedChunk]] = []
        self.fail_on_insert: set[int] = set()
        self.opened = False
        self.closed = False
        self.schema_initialized = False
        self._next_id = 1
        self._lock = threading.Lock()

    def open(self) -> None:
        self.opened = True

    def close(self) -> None:
        self.closed = True

    def initialize_schema(self) -> None:
        self.schema_initialized = True

    def count_all(self) -> int:
        return len(self.rows)

    def insert_batch(self, records: Sequence[EmbeddedChunk]) -> list[DocumentId]:
        with self._lock:
            self.insert_calls.append(list(records))
            if any(rec.chunk.index in self.fail_on_insert for rec in records):
                raise StoreError("insert rejected")
            ids: list[DocumentId] = []
            for rec in records:
                self.rows.append(
                    StoredDocument(
                        id=self._next_id,
                        content=rec.chunk.content,
                        metadata=dict(rec.chunk.metadata),
                        embedding=list(rec.embedding),
                        source_file=rec.chunk.source_id,
                        chunk_index=rec.chunk.index,
                        created_at=datetime.now(timezone.utc),
                    )
                )
                ids.append(self._next_id)
                self._next_id += 1
            return ids

    def exists_for_source(self, source_id: str) -> bool:
        return any(row.source_file == source_id for row in self.rows)

    def query_by_similarity(
        self,
        vector: Sequence[float],
        *,
        threshold: float,
        limit: int,
    ) -> list[SearchResult]:
        scored = [
            SearchResult(
                id=row.id,
                content=row.content,
                similarity=1 - _cosine_distance(vector, row.embedding or []),
                source_file=row.source_file,
                chunk_index=row.chunk_index,
                metadata=row.metadata,
            )
            for row in self.rows
        ]
        hits = [hit for hit in scored if hit.similarity > threshold]
        hits.sort(key=lambda hit: hit.similarity, reverse=True)
        return hits[:limit]

    def delete_source(self, source_id: str) -> int:
        before = len(self.rows)
        self.rows = [row for row in self.rows if row.source_file != source_id]
        return before - len(self.rows)

    def health_check(self) -> bool:
        return True

    def get_source_documents(self, source_id: str) -> list[StoredDocument]:
        return sorted(
            (row for row in self.rows if row.source_file == source_id),
            key=lambda row: row.chunk_index,
        )


# ── Fixtures ────────────────────────────────────────────────────────────


@pytest.fixture()
def test_settings() -> Settings:
    return Settings(
        _env_file=None,
        embedding_dim=DIM,
        batch_delay=0.0,
        upload_batch_delay=0.0,
        retry_base_delay=0.0,
        batch_size=3,
        upload_batch_size=3,
        chunk_size=200,
        chunk_overlap=40,
        min_chunk_length=20,
    )


@pytest.fixture()
def store() -> InMemoryVectorStore:
    return InMemoryVectorStore()


@pytest.fixture()
def provider() -> KeywordEmbeddings:
    return KeywordEmbeddings()


@pytest.fixture()
def embedder(provider: KeywordEmbeddings) -> EmbeddingClient:
    return EmbeddingClient(provider, dimension=DIM, retry=RetryPolicy(max_retries=0, base_delay=0.0))


@pytest.fixture()
def context(
    test_settings: Settings, store: InMemoryVectorStore, provider: KeywordEmbeddings
) -> AppContext:
    return AppContext(test_settings, store=store, provider=provider)


def make_text(sentences: int, words_per_sentence: int = 12, seed: str = "alpha") -> str:
    """Build prose-like text with regular sentence boundaries."""
    vocab = [f"{seed}", "deploy", "server", "vector", "chunk", "index", "query", "store"]
    parts: list[str] = []
    for i in range(sentences):
        words = [vocab[(i + j) % len(vocab)] for j in range(words_per_sentence)]
        parts.append(" ".join(words).capitalize() + ".")
    return " ".join(parts)


@pytest.fixture()
def text_factory() -> Any:
    return make_text
