"""PostgreSQL + pgvector implementation of the vector-store abstraction.

All statements run through a pooled SQLAlchemy engine.  Each operation
checks out one connection inside ``engine.begin()``, so the connection is
returned to the pool (and the transaction committed or rolled back) on
every exit path.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Sequence

from pgvector.sqlalchemy import Vector
from sqlalchemy import (
    Column,
    DateTime,
    Index,
    Integer,
    MetaData,
    Table,
    Text,
    create_engine,
    delete,
    exists,
    func,
    insert,
    select,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.exc import InterfaceError, OperationalError, SQLAlchemyError
from sqlalchemy.pool import QueuePool

from docsearch.errors import StoreConnectionError, StoreError
from docsearch.retrieval.base import VectorStoreBase
from docsearch.retrieval.models import DocumentId, EmbeddedChunk, SearchResult, StoredDocument

if TYPE_CHECKING:
    from sqlalchemy.engine import Connection, Engine

    from docsearch.config import Settings

logger = logging.getLogger(__name__)


def build_documents_table(metadata: MetaData, name: str, dimension: int, lists: int = 100) -> Table:
    """Describe the ``documents`` table and its cosine ivfflat index."""
    table = Table(
        name,
        metadata,
        Column("id", Integer, primary_key=True, autoincrement=True),
        Column("content", Text, nullable=False),
        Column("metadata", JSONB, server_default=text("'{}'::jsonb")),
        Column("embedding", Vector(dimension)),
        Column("created_at", DateTime, server_default=func.now()),
        Column("source_file", Text),
        Column("chunk_index", Integer, server_default=text("0")),
    )
    Index(f"{name}_source_file_idx", table.c.source_file)
    Index(
        f"{name}_embedding_idx",
        table.c.embedding,
        postgresql_using="ivfflat",
        postgresql_with={"lists": lists},
        postgresql_ops={"embedding": "vector_cosine_ops"},
    )
    return table


class PgVectorStore(VectorStoreBase):
    """pgvector-backed vector store.

    Parameters
    ----------
    database_url:
        SQLAlchemy URL, e.g. ``postgresql+psycopg://user:pw@host/db``.
    table_name:
        Name of the chunk table.
    dimension:
        Width of the ``vector`` column.
    engine:
        Pre-built engine; when given, :meth:`open` does not create one and
        :meth:`close` does not dispose it.
    """

    def __init__(
        self,
        database_url: str,
        *,
        table_name: str = "documents",
        dimension: int = 384,
        pool_size: int = 5,
        max_overflow: int = 10,
        pool_timeout: float = 30.0,
        ivfflat_lists: int = 100,
        engine: Engine | None = None,
    ) -> None:
        super().__init__(table_name, dimension)
        self._database_url = database_url
        self._pool_options = {
            "pool_size": pool_size,
            "max_overflow": max_overflow,
            "pool_timeout": pool_timeout,
        }
        self._engine = engine
        self._owns_engine = engine is None
        self._metadata = MetaData()
        self.table = build_documents_table(self._metadata, table_name, dimension, ivfflat_lists)

    @classmethod
    def from_settings(cls, settings: Settings) -> PgVectorStore:
        return cls(
            settings.database_url,
            table_name=settings.documents_table,
            dimension=settings.embedding_dim,
            pool_size=settings.pool_size,
            max_overflow=settings.max_overflow,
            pool_timeout=settings.pool_timeout,
            ivfflat_lists=settings.ivfflat_lists,
        )

    # -- lifecycle -------------------------------------------------------------

    def open(self) -> None:
        if self._engine is None:
            self._engine = create_engine(
                self._database_url,
                poolclass=QueuePool,
                pool_pre_ping=True,
                **self._pool_options,
            )
            self._owns_engine = True

    def close(self) -> None:
        if self._engine is not None and self._owns_engine:
            self._engine.dispose()
            self._engine = None

    @contextmanager
    def _transaction(self, operation: str) -> Iterator[Connection]:
        if self._engine is None:
            raise StoreConnectionError(f"{operation}: store is not open")
        try:
            with self._engine.begin() as conn:
                yield conn
        except (OperationalError, InterfaceError) as exc:
            raise StoreConnectionError(f"{operation}: cannot reach database: {exc}") from exc
        except SQLAlchemyError as exc:
            raise StoreError(f"{operation} failed: {exc}") from exc

    # -- VectorStoreBase overrides --------------------------------------------

    def initialize_schema(self) -> None:
        with self._transaction("initialize_schema") as conn:
            conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))
            self._metadata.create_all(conn, checkfirst=True)
        logger.info("Table %r and indexes ready (dim=%d)", self.collection_name, self.dimension)

    def count_all(self) -> int:
        with self._transaction("count_all") as conn:
            return int(conn.execute(select(func.count()).select_from(self.table)).scalar_one())

    def insert_batch(self, records: Sequence[EmbeddedChunk]) -> list[DocumentId]:
        if not records:
            return []
        now = datetime.now(timezone.utc).replace(tzinfo=None)
        rows = [
            {
                "content": rec.chunk.content,
                "metadata": rec.chunk.metadata,
                "embedding": rec.embedding,
                "source_file": rec.chunk.source_id,
                "chunk_index": rec.chunk.index,
                "created_at": now,
            }
            for rec in records
        ]
        stmt = insert(self.table).values(rows).returning(self.table.c.id)
        with self._transaction("insert_batch") as conn:
            ids = list(conn.execute(stmt).scalars())
        logger.info("Inserted %d document chunks", len(ids))
        return ids

    def exists_for_source(self, source_id: str) -> bool:
        stmt = select(exists().where(self.table.c.source_file == source_id))
        with self._transaction("exists_for_source") as conn:
            return bool(conn.execute(stmt).scalar())

    def query_by_similarity(
        self,
        vector: Sequence[float],
        *,
        threshold: float,
        limit: int,
    ) -> list[SearchResult]:
        t = self.table
        similarity = 1 - t.c.embedding.cosine_distance(list(vector))
        stmt = (
            select(
                t.c.id,
                t.c.content,
                t.c["metadata"],
                t.c.source_file,
                t.c.chunk_index,
                similarity.label("similarity"),
            )
            .where(similarity > threshold)
            .order_by(similarity.desc())
            .limit(limit)
        )
        with self._transaction("query_by_similarity") as conn:
            rows = conn.execute(stmt).mappings().all()

        logger.info("Similarity query returned %d rows (threshold=%s, limit=%d)", len(rows), threshold, limit)
        return [
            SearchResult(
                id=row["id"],
                content=row["content"],
                similarity=float(row["similarity"]),
                source_file=row["source_file"],
                chunk_index=row["chunk_index"],
                metadata=row["metadata"] or {},
            )
            for row in rows
        ]

    def delete_source(self, source_id: str) -> int:
        with self._transaction("delete_source") as conn:
            result = conn.execute(delete(self.table).where(self.table.c.source_file == source_id))
        return result.rowcount or 0

    def health_check(self) -> bool:
        try:
            with self._transaction("health_check") as conn:
                conn.execute(text("SELECT 1"))
            return True
        except StoreError:
            logger.warning("PostgreSQL health-check failed", exc_info=True)
            return False

    # -- optional overrides ---------------------------------------------------

    def vector_dimension(self) -> int | None:
        stmt = text(
            "SELECT atttypmod FROM pg_attribute "
            "WHERE attrelid = to_regclass(:table) AND attname = 'embedding'"
        )
        with self._transaction("vector_dimension") as conn:
            typmod = conn.execute(stmt, {"table": self.collection_name}).scalar()
        if typmod is None or typmod < 0:
            return None
        return int(typmod)

    def get_source_documents(self, source_id: str) -> list[StoredDocument]:
        t = self.table
        stmt = select(t).where(t.c.source_file == source_id).order_by(t.c.chunk_index)
        with self._transaction("get_source_documents") as conn:
            rows = conn.execute(stmt).mappings().all()
        return [
            StoredDocument(
                id=row["id"],
                content=row["content"],
                metadata=row["metadata"] or {},
                embedding=[float(x) for x in row["embedding"]] if row["embedding"] is not None else None,
                source_file=row["source_file"],
                chunk_index=row["chunk_index"],
                created_at=row["created_at"],
            )
            for row in rows
        ]
