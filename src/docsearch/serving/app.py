"""FastAPI application exposing search and upload over REST."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from docsearch.config import configure_logging, settings
from docsearch.context import AppContext
from docsearch.errors import (
    ConfigurationError,
    DocSearchError,
    ProviderError,
    StoreError,
    ValidationError,
)
from docsearch.service import DocumentService


# ── Request schemas ───────────────────────────────────────────────────
class SearchRequest(BaseModel):
    """Incoming semantic search."""

    query: Any = None
    limit: Any = None
    threshold: Any = None


class UploadRequest(BaseModel):
    """A text document to index; the client has already read the file."""

    filename: str
    content: str


_STATUS_BY_ERROR: list[tuple[type[DocSearchError], int]] = [
    (ValidationError, 400),
    (ProviderError, 502),
    (StoreError, 503),
    (ConfigurationError, 500),
]


def create_app(context: AppContext | None = None) -> FastAPI:
    """Build the API around *context* (a settings-driven one by default)."""
    ctx = context or AppContext(settings)

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        ctx.open()
        try:
            yield
        finally:
            ctx.close()

    app = FastAPI(
        title="Document Search API",
        version="0.1.0",
        description="Semantic search over chunked, embedded documents.",
        lifespan=lifespan,
    )
    service = DocumentService(ctx)
    app.state.context = ctx

    @app.exception_handler(DocSearchError)
    async def _handle_error(_: Request, exc: DocSearchError) -> JSONResponse:
        status = next((code for cls, code in _STATUS_BY_ERROR if isinstance(exc, cls)), 500)
        return JSONResponse(status_code=status, content={"error": type(exc).__name__, "message": str(exc)})

    # ── Routes ────────────────────────────────────────────────────────
    @app.get("/health")
    def health() -> dict[str, str]:
        """Liveness probe."""
        return {"status": "ok" if ctx.store.health_check() else "degraded"}

    @app.get("/stats")
    def stats() -> dict[str, Any]:
        return service.stats()

    @app.post("/search")
    def search(request: SearchRequest) -> dict[str, Any]:
        """Return chunks similar to the query."""
        return service.search(request.query, request.limit, request.threshold)

    @app.post("/upload")
    def upload(request: UploadRequest) -> dict[str, Any]:
        """Chunk, embed and store an uploaded document."""
        return service.ingest(request.content, request.filename)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    configure_logging(settings.verbose)
    uvicorn.run(app, host="0.0.0.0", port=8080)
