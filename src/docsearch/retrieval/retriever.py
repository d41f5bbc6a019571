"""Retrieval service — query embedding plus threshold-based similarity search.

Usage::

    from docsearch.retrieval.retriever import RetrievalService

    service = RetrievalService(store, embedder)
    for hit in service.search("How do I deploy the app?", limit=5, threshold=0.3):
        print(hit.short_ref(), hit.similarity)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from docsearch.errors import ValidationError
from docsearch.retrieval.models import SearchResult

if TYPE_CHECKING:
    from docsearch.config import Settings
    from docsearch.ingestion.embedder import EmbeddingClient
    from docsearch.retrieval.base import VectorStoreBase

logger = logging.getLogger(__name__)

MAX_LIMIT = 20


class RetrievalService:
    """Semantic search over a :class:`VectorStoreBase`.

    Parameters
    ----------
    store:
        A concrete vector-store backend.
    embedder:
        Client used to embed queries in query mode.
    default_limit:
        Number of results when the caller does not ask for a specific count.
    max_limit:
        Hard ceiling applied to every requested limit.
    default_threshold:
        Minimum similarity used when the caller passes none.
    """

    def __init__(
        self,
        store: VectorStoreBase,
        embedder: EmbeddingClient,
        *,
        default_limit: int = 5,
        max_limit: int = MAX_LIMIT,
        default_threshold: float = 0.3,
    ) -> None:
        self._store = store
        self._embedder = embedder
        self.default_limit = default_limit
        self.max_limit = max_limit
        self.default_threshold = default_threshold

    @classmethod
    def from_settings(
        cls, settings: Settings, store: VectorStoreBase, embedder: EmbeddingClient
    ) -> RetrievalService:
        return cls(
            store,
            embedder,
            default_limit=settings.search_default_limit,
            max_limit=settings.search_max_limit,
            default_threshold=settings.search_default_threshold,
        )

    # -- public API -----------------------------------------------------------

    def search(
        self,
        query: Any,
        *,
        limit: int | None = None,
        threshold: float | None = None,
    ) -> list[SearchResult]:
        """Return stored chunks more similar to *query* than *threshold*.

        Parameters
        ----------
        query:
            Natural-language query; must be a non-blank string.
        limit:
            Maximum number of results, clamped to :attr:`max_limit`.
        threshold:
            Minimum cosine similarity in ``[0, 1]``; matches must exceed it.

        Returns
        -------
        list[SearchResult]
            Results ordered by descending similarity, possibly empty.
        """
        if not isinstance(query, str):
            raise ValidationError("Query is required and must be a string")
        if not query.strip():
            raise ValidationError("Query cannot be empty")

        effective_limit = self.effective_limit(limit)
        effective_threshold = self.effective_threshold(threshold)

        vector = self._embedder.embed_query(query)
        logger.info(
            "Searching for %r (limit=%d, threshold=%s, dim=%d)",
            query, effective_limit, effective_threshold, len(vector),
        )
        results = self._store.query_by_similarity(
            vector, threshold=effective_threshold, limit=effective_limit
        )
        results.sort(key=lambda hit: hit.similarity, reverse=True)
        logger.info("Found %d similar chunks", len(results))
        return results[:effective_limit]

    def effective_limit(self, limit: int | None) -> int:
        """Resolve the caller's *limit* against the default and the ceiling."""
        if limit is None:
            return min(self.default_limit, self.max_limit)
        if isinstance(limit, bool) or not isinstance(limit, int):
            raise ValidationError(f"limit must be an integer, got {limit!r}")
        if limit < 1:
            raise ValidationError(f"limit must be >= 1, got {limit}")
        return min(limit, self.max_limit)

    def effective_threshold(self, threshold: float | None) -> float:
        if threshold is None:
            return self.default_threshold
        if isinstance(threshold, bool) or not isinstance(threshold, (int, float)):
            raise ValidationError(f"threshold must be a number, got {threshold!r}")
        if not 0.0 <= threshold <= 1.0:
            raise ValidationError(f"threshold must be between 0 and 1, got {threshold}")
        return float(threshold)
