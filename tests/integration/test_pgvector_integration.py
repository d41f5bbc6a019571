"""End-to-end tests against a real PostgreSQL server with pgvector.

Set ``DOCSEARCH_TEST_DATABASE_URL`` (a throwaway database) to run them.
"""

from __future__ import annotations

import os
import uuid

import pytest

from docsearch.ingestion.orchestrator import IngestionOrchestrator
from docsearch.retrieval.pgvector_store import PgVectorStore
from docsearch.retrieval.retriever import RetrievalService

DATABASE_URL = os.environ.get("DOCSEARCH_TEST_DATABASE_URL")

pytestmark = [
    pytest.mark.integration,
    pytest.mark.skipif(not DATABASE_URL, reason="DOCSEARCH_TEST_DATABASE_URL not set"),
]

DOC = "Deploy the app with the deploy script. The deploy step pushes the app to the cluster.\n" * 8


@pytest.fixture()
def pg_store(embedder):
    table = f"documents_{uuid.uuid4().hex[:8]}"
    store = PgVectorStore(DATABASE_URL, table_name=table, dimension=embedder.dimension)
    store.open()
    store.initialize_schema()
    try:
        yield store
    finally:
        with store._transaction("drop") as conn:
            store.table.drop(conn)
        store.close()


def test_schema_reports_vector_width(pg_store: PgVectorStore, embedder) -> None:
    assert pg_store.health_check()
    assert pg_store.vector_dimension() == embedder.dimension
    pg_store.initialize_schema()  # idempotent


def test_ingest_search_and_reindex(pg_store: PgVectorStore, embedder) -> None:
    orchestrator = IngestionOrchestrator(
        pg_store, embedder, chunk_size=200, chunk_overlap=40, min_chunk_length=20, batch_delay=0.0
    )
    report = orchestrator.ingest_text(DOC, "deploy.md")
    assert report.ok
    assert pg_store.count_all() == report.total_chunks
    assert pg_store.exists_for_source("deploy.md")

    hits = RetrievalService(pg_store, embedder).search("deploy app", limit=25, threshold=0.1)
    assert hits
    assert all(hit.similarity > 0.1 for hit in hits)
    assert [h.similarity for h in hits] == sorted((h.similarity for h in hits), reverse=True)

    orchestrator.ingest_text(DOC, "deploy.md")
    assert pg_store.count_all() == report.total_chunks
    chunks = pg_store.get_source_documents("deploy.md")
    assert [c.chunk_index for c in chunks] == list(range(report.total_chunks))
