"""Unit tests for the serving layer."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from docsearch.serving.app import create_app

DOC = "Deploy the app with the deploy script. The deploy step pushes the app to the cluster.\n" * 5


@pytest.fixture()
def client(context):
    with TestClient(create_app(context)) as test_client:
        yield test_client


def test_health_endpoint(client: TestClient) -> None:
    """GET /health should return 200 with status ok."""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_lifespan_opens_and_closes_context(context, store) -> None:
    with TestClient(create_app(context)):
        assert store.opened
    assert store.closed


def test_upload_then_search(client: TestClient) -> None:
    upload = client.post("/upload", json={"filename": "deploy.md", "content": DOC})
    assert upload.status_code == 200
    body = upload.json()
    assert body["processed_chunks"] == body["total_chunks"] > 0

    search = client.post("/search", json={"query": "deploy app", "limit": 25, "threshold": 0.1})
    assert search.status_code == 200
    assert search.json()["count"] > 0
    assert search.json()["results"][0]["source_file"] == "deploy.md"

    stats = client.get("/stats")
    assert stats.json()["documents"] == body["total_documents"]


@pytest.mark.parametrize("payload", [{"query": ""}, {"query": 5}, {}])
def test_invalid_query_is_400(client: TestClient, payload: dict) -> None:
    response = client.post("/search", json=payload)
    assert response.status_code == 400
    assert response.json()["error"] == "ValidationError"


@pytest.mark.parametrize(
    "payload",
    [
        {"query": "deploy", "limit": 0},
        {"query": "deploy", "limit": "ten"},
        {"query": "deploy", "threshold": 1.5},
        {"query": "deploy", "threshold": -0.2},
    ],
)
def test_invalid_limit_or_threshold_is_400(client: TestClient, payload: dict) -> None:
    response = client.post("/search", json=payload)
    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "ValidationError"
    assert body["message"]


def test_unsupported_upload_is_400(client: TestClient) -> None:
    response = client.post("/upload", json={"filename": "scan.pdf", "content": "x"})
    assert response.status_code == 400


def test_provider_failure_is_502(client: TestClient, provider) -> None:
    def down(text: str) -> list[float]:
        raise ConnectionError("provider unavailable")

    provider.embed_query = down
    response = client.post("/search", json={"query": "deploy"})
    assert response.status_code == 502
    assert response.json()["error"] == "ProviderError"
