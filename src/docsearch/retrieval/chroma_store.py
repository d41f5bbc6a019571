"""Chroma implementation of the vector-store abstraction."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Sequence
from uuid import uuid4

import chromadb
from chromadb.errors import ChromaError

from docsearch.errors import StoreConnectionError, StoreError
from docsearch.retrieval.base import VectorStoreBase
from docsearch.retrieval.models import DocumentId, EmbeddedChunk, SearchResult, StoredDocument

if TYPE_CHECKING:
    from docsearch.config import Settings

logger = logging.getLogger(__name__)

_RESERVED_KEYS = ("source_file", "chunk_index", "created_at")


def _flatten_metadata(chunk_meta: dict[str, Any]) -> dict[str, Any]:
    """Keep only the scalar values Chroma accepts as metadata."""
    meta: dict[str, Any] = {}
    for key, value in chunk_meta.items():
        if key in _RESERVED_KEYS:
            continue
        if isinstance(value, (str, int, float, bool)):
            meta[key] = value
        else:
            logger.debug("Dropping non-scalar metadata key %r", key)
    return meta


def _split_metadata(meta: dict[str, Any] | None) -> tuple[str | None, int | None, dict[str, Any]]:
    meta = dict(meta or {})
    source = meta.pop("source_file", None)
    index = meta.pop("chunk_index", None)
    meta.pop("created_at", None)
    return source, index, meta


class ChromaVectorStore(VectorStoreBase):
    """Chroma-backed vector store.

    The collection uses cosine space, so Chroma distances convert to
    similarity as ``1 - distance``.

    Parameters
    ----------
    collection_name:
        Name of the Chroma collection.
    host / port:
        Chroma server location.
    dimension:
        Expected vector width, recorded in the collection metadata.
    client:
        Pre-built Chroma client (tests, embedded ``EphemeralClient``).
    """

    def __init__(
        self,
        collection_name: str = "documents",
        *,
        host: str = "localhost",
        port: int = 8000,
        dimension: int = 384,
        client: Any | None = None,
    ) -> None:
        super().__init__(collection_name, dimension)
        self._host = host
        self._port = port
        self._client = client
        self._collection: Any | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> ChromaVectorStore:
        return cls(
            settings.chroma_collection,
            host=settings.chroma_host,
            port=settings.chroma_port,
            dimension=settings.embedding_dim,
        )

    # -- lifecycle -------------------------------------------------------------

    def open(self) -> None:
        if self._client is None:
            try:
                self._client = chromadb.HttpClient(host=self._host, port=self._port)
            except (ValueError, ConnectionError) as exc:
                raise StoreConnectionError(
                    f"cannot reach Chroma at {self._host}:{self._port}: {exc}"
                ) from exc

    def close(self) -> None:
        self._collection = None

    @property
    def collection(self) -> Any:
        if self._collection is None:
            self.initialize_schema()
        return self._collection

    # -- VectorStoreBase overrides --------------------------------------------

    def initialize_schema(self) -> None:
        if self._client is None:
            raise StoreConnectionError("initialize_schema: store is not open")
        try:
            self._collection = self._client.get_or_create_collection(
                name=self.collection_name,
                metadata={"hnsw:space": "cosine", "embedding_dim": self.dimension},
            )
        except ChromaError as exc:
            raise StoreError(f"initialize_schema failed: {exc}") from exc

    def count_all(self) -> int:
        try:
            return int(self.collection.count())
        except ChromaError as exc:
            raise StoreError(f"count_all failed: {exc}") from exc

    def insert_batch(self, records: Sequence[EmbeddedChunk]) -> list[DocumentId]:
        if not records:
            return []
        created_at = datetime.now(timezone.utc).isoformat()
        ids = [uuid4().hex for _ in records]
        metadatas = [
            {
                **_flatten_metadata(rec.chunk.metadata),
                "source_file": rec.chunk.source_id,
                "chunk_index": rec.chunk.index,
                "created_at": created_at,
            }
            for rec in records
        ]
        try:
            self.collection.add(
                ids=ids,
                embeddings=[rec.embedding for rec in records],
                documents=[rec.chunk.content for rec in records],
                metadatas=metadatas,
            )
        except (ChromaError, ValueError) as exc:
            raise StoreError(f"insert_batch failed: {exc}") from exc
        logger.info("Inserted %d document chunks", len(ids))
        return list(ids)

    def exists_for_source(self, source_id: str) -> bool:
        try:
            found = self.collection.get(where={"source_file": source_id}, limit=1, include=[])
        except ChromaError as exc:
            raise StoreError(f"exists_for_source failed: {exc}") from exc
        return bool(found.get("ids"))

    def query_by_similarity(
        self,
        vector: Sequence[float],
        *,
        threshold: float,
        limit: int,
    ) -> list[SearchResult]:
        try:
            results = self.collection.query(
                query_embeddings=[list(vector)],
                n_results=limit,
                include=["documents", "metadatas", "distances"],
            )
        except ChromaError as exc:
            raise StoreError(f"query_by_similarity failed: {exc}") from exc

        ids = (results.get("ids") or [[]])[0]
        docs = (results.get("documents") or [[]])[0]
        metas = (results.get("metadatas") or [[]])[0]
        distances = (results.get("distances") or [[]])[0]

        hits: list[SearchResult] = []
        for doc_id, content, meta, dist in zip(ids, docs, metas, distances):
            similarity = 1.0 - float(dist)
            if similarity <= threshold:
                continue
            source, index, extra = _split_metadata(meta)
            hits.append(
                SearchResult(
                    id=doc_id,
                    content=content or "",
                    similarity=similarity,
                    source_file=source,
                    chunk_index=index,
                    metadata=extra,
                )
            )
        hits.sort(key=lambda hit: hit.similarity, reverse=True)
        return hits

    def delete_source(self, source_id: str) -> int:
        try:
            found = self.collection.get(where={"source_file": source_id}, include=[])
            ids = found.get("ids") or []
            if ids:
                self.collection.delete(ids=ids)
        except ChromaError as exc:
            raise StoreError(f"delete_source failed: {exc}") from exc
        return len(ids)

    def health_check(self) -> bool:
        if self._client is None:
            return False
        try:
            self._client.heartbeat()
            return True
        except Exception:
            logger.warning("Chroma health-check failed", exc_info=True)
            return False

    # -- optional overrides ---------------------------------------------------

    def vector_dimension(self) -> int | None:
        meta = self.collection.metadata or {}
        dim = meta.get("embedding_dim")
        return int(dim) if dim is not None else None

    def get_source_documents(self, source_id: str) -> list[StoredDocument]:
        try:
            found = self.collection.get(
                where={"source_file": source_id},
                include=["documents", "metadatas", "embeddings"],
            )
        except ChromaError as exc:
            raise StoreError(f"get_source_documents failed: {exc}") from exc

        embeddings = found.get("embeddings")
        if embeddings is None:
            embeddings = [None] * len(found["ids"])
        documents: list[StoredDocument] = []
        for doc_id, content, meta, emb in zip(found["ids"], found["documents"], found["metadatas"], embeddings):
            created_at = (meta or {}).get("created_at")
            source, index, extra = _split_metadata(meta)
            documents.append(
                StoredDocument(
                    id=doc_id,
                    content=content or "",
                    metadata=extra,
                    embedding=[float(x) for x in emb] if emb is not None else None,
                    source_file=source or source_id,
                    chunk_index=index if index is not None else 0,
                    created_at=datetime.fromisoformat(created_at) if created_at else None,
                )
            )
        documents.sort(key=lambda doc: doc.chunk_index)
        return documents
