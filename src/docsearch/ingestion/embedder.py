"""Embedding client — retried, dimension-checked calls to an embedding provider."""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING, Sequence

from docsearch.errors import EmbeddingDimensionError, ProviderError, ValidationError
from docsearch.retry import RetryExhausted, RetryPolicy

if TYPE_CHECKING:
    from langchain_core.embeddings import Embeddings

    from docsearch.config import Settings

logger = logging.getLogger(__name__)


class EmbeddingMode(str, Enum):
    """Intent of an embedding call; providers may weight the two differently."""

    QUERY = "query"
    DOCUMENT = "document"


def get_embedding_function(settings: Settings) -> Embeddings:
    """Return the configured sentence-transformer embedding function."""
    from langchain_huggingface import HuggingFaceEmbeddings

    return HuggingFaceEmbeddings(
        model_name=settings.embedding_model,
        encode_kwargs={"normalize_embeddings": True},
    )


class EmbeddingClient:
    """Turns texts into vectors through a LangChain ``Embeddings`` provider.

    Parameters
    ----------
    provider:
        Any LangChain embeddings implementation.  Document mode maps to
        ``embed_documents``, query mode to ``embed_query``.
    dimension:
        Expected vector width (the store's column width).
    retry:
        Policy wrapped around every provider call.
    strict_dimension:
        When ``True`` a vector of the wrong width raises
        :class:`~docsearch.errors.EmbeddingDimensionError`; otherwise the
        mismatch is only logged.
    """

    def __init__(
        self,
        provider: Embeddings,
        *,
        dimension: int,
        retry: RetryPolicy | None = None,
        strict_dimension: bool = True,
        model_name: str = "",
    ) -> None:
        self._provider = provider
        self.dimension = dimension
        self.retry = retry or RetryPolicy()
        self.strict_dimension = strict_dimension
        self.model_name = model_name or type(provider).__name__

    @classmethod
    def from_settings(cls, settings: Settings, provider: Embeddings | None = None) -> EmbeddingClient:
        return cls(
            provider if provider is not None else get_embedding_function(settings),
            dimension=settings.embedding_dim,
            retry=RetryPolicy(
                max_retries=settings.retry_max_retries,
                base_delay=settings.retry_base_delay,
                multiplier=settings.retry_multiplier,
            ),
            strict_dimension=settings.strict_embedding_dim,
            model_name=settings.embedding_model,
        )

    # -- public API -----------------------------------------------------------

    def embed(
        self,
        texts: Sequence[str],
        mode: EmbeddingMode = EmbeddingMode.DOCUMENT,
    ) -> list[list[float]]:
        """Embed *texts*, returning one vector per text in the same order.

        Raises
        ------
        ValidationError
            If *texts* is empty.
        ProviderError
            If the provider keeps failing or returns the wrong number of vectors.
        EmbeddingDimensionError
            On a width mismatch in strict mode.
        """
        texts = list(texts)
        if not texts:
            raise ValidationError("embed() requires at least one text")

        description = f"{mode.value} embedding of {len(texts)} text(s) with {self.model_name}"
        try:
            vectors = self.retry.call(lambda: self._call_provider(texts, mode), description=description)
        except RetryExhausted as exc:
            logger.error("%s", exc)
            raise ProviderError(f"Failed to generate embeddings: {exc.last_error}") from exc.last_error

        if len(vectors) != len(texts):
            raise ProviderError(
                f"Provider returned {len(vectors)} vectors for {len(texts)} texts"
            )
        self._check_dimensions(vectors)
        return vectors

    def embed_query(self, text: str) -> list[float]:
        """Embed a single search query."""
        return self.embed([text], EmbeddingMode.QUERY)[0]

    def embed_documents(self, texts: Sequence[str]) -> list[list[float]]:
        """Embed a batch of document chunks."""
        return self.embed(texts, EmbeddingMode.DOCUMENT)

    # -- internals ------------------------------------------------------------

    def _call_provider(self, texts: list[str], mode: EmbeddingMode) -> list[list[float]]:
        if mode is EmbeddingMode.QUERY:
            return [list(self._provider.embed_query(text)) for text in texts]
        return [list(vec) for vec in self._provider.embed_documents(texts)]

    def _check_dimensions(self, vectors: list[list[float]]) -> None:
        for position, vector in enumerate(vectors):
            if len(vector) == self.dimension:
                continue
            if self.strict_dimension:
                raise EmbeddingDimensionError(self.dimension, len(vector), f"vector {position}")
            logger.warning(
                "Embedding dimension mismatch: expected %d, got %d (vector %d)",
                self.dimension, len(vector), position,
            )
