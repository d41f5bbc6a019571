"""Unit tests for ChromaVectorStore against a mocked Chroma client."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from docsearch.errors import StoreConnectionError
from docsearch.retrieval.chroma_store import ChromaVectorStore, _flatten_metadata
from docsearch.retrieval.models import Chunk, EmbeddedChunk


@pytest.fixture()
def collection() -> MagicMock:
    collection = MagicMock(name="collection")
    collection.metadata = {"hnsw:space": "cosine", "embedding_dim": 4}
    return collection


@pytest.fixture()
def chroma(collection: MagicMock) -> ChromaVectorStore:
    client = MagicMock(name="client")
    client.get_or_create_collection.return_value = collection
    store = ChromaVectorStore("docs", dimension=4, client=client)
    store.open()
    store.initialize_schema()
    return store


def test_collection_uses_cosine_space(chroma: ChromaVectorStore) -> None:
    kwargs = chroma._client.get_or_create_collection.call_args.kwargs
    assert kwargs["name"] == "docs"
    assert kwargs["metadata"]["hnsw:space"] == "cosine"


def test_schema_requires_open_client() -> None:
    store = ChromaVectorStore("docs")
    with pytest.raises(StoreConnectionError):
        store.initialize_schema()


def test_flatten_metadata_keeps_scalars() -> None:
    meta = {"filename": "a.md", "file_size": 10, "tags": ["x"], "nested": {"a": 1}, "chunk_index": 9}
    assert _flatten_metadata(meta) == {"filename": "a.md", "file_size": 10}


def test_insert_batch_records_location(chroma: ChromaVectorStore, collection: MagicMock) -> None:
    records = [
        EmbeddedChunk(
            chunk=Chunk(content=f"chunk {i}", source_id="a.md", index=i, metadata={"filename": "a.md"}),
            embedding=[0.5] * 4,
        )
        for i in range(2)
    ]
    ids = chroma.insert_batch(records)

    assert len(ids) == 2 and len(set(ids)) == 2
    kwargs = collection.add.call_args.kwargs
    assert kwargs["documents"] == ["chunk 0", "chunk 1"]
    assert [m["chunk_index"] for m in kwargs["metadatas"]] == [0, 1]
    assert all(m["source_file"] == "a.md" for m in kwargs["metadatas"])


def test_query_converts_distance_and_filters(chroma: ChromaVectorStore, collection: MagicMock) -> None:
    collection.query.return_value = {
        "ids": [["b", "a", "c"]],
        "documents": [["second", "first", "far"]],
        "metadatas": [
            [
                {"source_file": "b.md", "chunk_index": 1, "filename": "b.md"},
                {"source_file": "a.md", "chunk_index": 0},
                {"source_file": "c.md", "chunk_index": 2},
            ]
        ],
        "distances": [[0.3, 0.1, 0.8]],
    }
    hits = chroma.query_by_similarity([1.0, 0.0, 0.0, 0.0], threshold=0.3, limit=5)

    assert [h.id for h in hits] == ["a", "b"]
    assert hits[0].similarity == pytest.approx(0.9)
    assert hits[1].metadata == {"filename": "b.md"}
    assert collection.query.call_args.kwargs["n_results"] == 5


def test_exists_and_delete(chroma: ChromaVectorStore, collection: MagicMock) -> None:
    collection.get.return_value = {"ids": ["x", "y"]}
    assert chroma.exists_for_source("a.md") is True
    assert chroma.delete_source("a.md") == 2
    collection.delete.assert_called_once_with(ids=["x", "y"])


def test_delete_unknown_source(chroma: ChromaVectorStore, collection: MagicMock) -> None:
    collection.get.return_value = {"ids": []}
    assert chroma.exists_for_source("missing.md") is False
    assert chroma.delete_source("missing.md") == 0
    collection.delete.assert_not_called()


def test_vector_dimension_from_collection_metadata(chroma: ChromaVectorStore) -> None:
    assert chroma.vector_dimension() == 4


def test_health_check(chroma: ChromaVectorStore) -> None:
    assert chroma.health_check() is True
    chroma._client.heartbeat.side_effect = RuntimeError("down")
    assert chroma.health_check() is False
