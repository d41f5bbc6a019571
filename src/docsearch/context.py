"""Process-wide resources with an explicit open/close lifecycle."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from docsearch.config import Settings
from docsearch.config import settings as default_settings
from docsearch.errors import ConfigurationError, EmbeddingDimensionError
from docsearch.ingestion.embedder import EmbeddingClient
from docsearch.ingestion.orchestrator import IngestionOrchestrator, IngestMode
from docsearch.retrieval.retriever import RetrievalService

if TYPE_CHECKING:
    from langchain_core.embeddings import Embeddings

    from docsearch.retrieval.base import VectorStoreBase

logger = logging.getLogger(__name__)


def build_store(settings: Settings) -> VectorStoreBase:
    """Instantiate the backend selected by ``settings.vector_backend``."""
    if settings.vector_backend == "pgvector":
        from docsearch.retrieval.pgvector_store import PgVectorStore

        return PgVectorStore.from_settings(settings)
    if settings.vector_backend == "chroma":
        from docsearch.retrieval.chroma_store import ChromaVectorStore

        return ChromaVectorStore.from_settings(settings)
    raise ConfigurationError(f"Unsupported vector_backend={settings.vector_backend!r}")


class AppContext:
    """Owns the store and the embedding client for the lifetime of a process.

    Components are built lazily from :attr:`settings`; pass *store* or
    *provider* to substitute them (tests, alternative backends).

    Usage::

        with AppContext() as ctx:
            ctx.retriever.search("deploy app")
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        store: VectorStoreBase | None = None,
        provider: Embeddings | None = None,
    ) -> None:
        self.settings = settings or default_settings
        self._store = store
        self._provider = provider
        self._embedder: EmbeddingClient | None = None
        self.is_open = False

    # -- lifecycle -------------------------------------------------------------

    def open(self) -> AppContext:
        """Connect to the store, create the schema, verify the vector width."""
        if self.is_open:
            return self
        store = self.store
        store.open()
        try:
            store.initialize_schema()
            actual = store.vector_dimension()
            if actual is not None and actual != self.settings.embedding_dim:
                raise EmbeddingDimensionError(
                    self.settings.embedding_dim, actual, f"store {store.collection_name!r}"
                )
        except Exception:
            store.close()
            raise
        self.is_open = True
        logger.info("Context open (backend=%s)", self.settings.vector_backend)
        return self

    def close(self) -> None:
        if self._store is not None and self.is_open:
            self._store.close()
        self.is_open = False

    def __enter__(self) -> AppContext:
        return self.open()

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # -- components -----------------------------------------------------------

    @property
    def store(self) -> VectorStoreBase:
        if self._store is None:
            self._store = build_store(self.settings)
        return self._store

    @property
    def embedder(self) -> EmbeddingClient:
        if self._embedder is None:
            self._embedder = EmbeddingClient.from_settings(self.settings, provider=self._provider)
        return self._embedder

    @property
    def retriever(self) -> RetrievalService:
        return RetrievalService.from_settings(self.settings, self.store, self.embedder)

    def orchestrator(self, mode: IngestMode = IngestMode.BULK) -> IngestionOrchestrator:
        return IngestionOrchestrator.from_settings(self.settings, self.store, self.embedder, mode=mode)
