"""Framework-free operations exposed to the HTTP layer.

Every method takes plain values and returns plain dicts so the web
adapter only has to translate requests and exceptions.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import PurePath
from typing import TYPE_CHECKING, Any

from docsearch.errors import ValidationError
from docsearch.ingestion.loader import SUPPORTED_EXTENSIONS, is_supported_file
from docsearch.ingestion.orchestrator import IngestMode

if TYPE_CHECKING:
    from docsearch.context import AppContext

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class DocumentService:
    """Search and upload entry points backed by an open :class:`AppContext`."""

    def __init__(self, context: AppContext) -> None:
        self.context = context

    def search(
        self,
        query: Any,
        limit: int | None = None,
        threshold: float | None = None,
    ) -> dict[str, Any]:
        """Run a semantic search and shape the response."""
        retriever = self.context.retriever
        results = retriever.search(query, limit=limit, threshold=threshold)
        return {
            "query": query,
            "results": [
                {**hit.model_dump(), "similarity": round(hit.similarity, 4)} for hit in results
            ],
            "count": len(results),
            "threshold": retriever.effective_threshold(threshold),
            "timestamp": _now(),
        }

    def ingest(self, file_content: bytes | str, filename: str) -> dict[str, Any]:
        """Validate an uploaded text file and ingest it interactively."""
        if not filename or not PurePath(filename).name:
            raise ValidationError("A filename is required")
        if not is_supported_file(filename):
            raise ValidationError(
                f"Unsupported file type: {filename!r}. "
                f"Please upload one of {', '.join(SUPPORTED_EXTENSIONS)}"
            )

        raw = file_content.encode("utf-8") if isinstance(file_content, str) else file_content
        max_bytes = self.context.settings.max_upload_bytes
        if len(raw) > max_bytes:
            raise ValidationError(f"File too large: {len(raw)} bytes (limit {max_bytes})")
        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ValidationError(f"{filename!r} is not valid UTF-8 text") from exc

        logger.info("Processing uploaded file %s (%d characters)", filename, len(text))
        metadata = {
            "source": "upload",
            "filename": filename,
            "uploaded_at": _now(),
            "file_size": len(raw),
        }
        orchestrator = self.context.orchestrator(IngestMode.INTERACTIVE)
        report = orchestrator.ingest_text(text, filename, metadata=metadata)
        logger.info(
            "Upload complete: %d/%d chunks processed", report.processed_chunks, report.total_chunks
        )
        return {
            "source_id": report.source_id,
            "status": report.status.value,
            "total_chunks": report.total_chunks,
            "processed_chunks": report.processed_chunks,
            "errors": report.errors,
            "total_documents": self.context.store.count_all(),
            "timestamp": _now(),
        }

    def stats(self) -> dict[str, Any]:
        return {"documents": self.context.store.count_all(), "timestamp": _now()}
