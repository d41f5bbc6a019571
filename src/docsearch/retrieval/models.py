"""Domain models shared by ingestion and retrieval."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

DocumentId = Union[int, str]


class Chunk(BaseModel):
    """A contiguous, trimmed slice of a source document.

    Attributes
    ----------
    content:
        Non-empty text, stripped of surrounding whitespace.
    source_id:
        Path or filename of the originating document.
    index:
        Zero-based position of the chunk within its source.
    metadata:
        Opaque key/value pairs carried through to the store.
    """

    model_config = ConfigDict(frozen=True)

    content: str
    source_id: str
    index: int = Field(ge=0)
    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("content")
    @classmethod
    def _strip_content(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("chunk content must not be empty")
        return value

    @property
    def number(self) -> int:
        """1-based chunk number used in human-readable messages."""
        return self.index + 1


class EmbeddedChunk(BaseModel):
    """A :class:`Chunk` paired with its embedding vector."""

    model_config = ConfigDict(frozen=True)

    chunk: Chunk
    embedding: list[float]

    @property
    def dimension(self) -> int:
        return len(self.embedding)


class StoredDocument(BaseModel):
    """Durable record as held by a vector store."""

    id: DocumentId
    content: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    embedding: list[float] | None = None
    source_file: str
    chunk_index: int
    created_at: datetime | None = None


class SearchResult(BaseModel):
    """One retrieved chunk, ranked by cosine similarity."""

    id: DocumentId
    content: str
    similarity: float
    source_file: str | None = None
    chunk_index: int | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    def short_ref(self) -> str:
        """Return a compact ``[source§chunk]`` reference string."""
        chunk = self.chunk_index if self.chunk_index is not None else "?"
        return f"[{self.source_file or 'unknown'}§{chunk}]"

    def __str__(self) -> str:  # noqa: D105
        return f"{self.short_ref()} ({self.similarity:.4f}) {self.content[:120]}…"


class IngestionStatus(str, Enum):
    """Lifecycle of one document through the ingestion pipeline."""

    DISCOVERED = "discovered"
    CHECKED_EXISTING = "checked_existing"
    CHUNKING = "chunking"
    EMBEDDING = "embedding_batch"
    INSERTED = "inserted"
    COMPLETED = "completed"
    SKIPPED = "skipped"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (IngestionStatus.COMPLETED, IngestionStatus.SKIPPED, IngestionStatus.FAILED)


class IngestionReport(BaseModel):
    """Outcome of ingesting a single document."""

    source_id: str
    status: IngestionStatus = IngestionStatus.DISCOVERED
    total_chunks: int = 0
    processed_chunks: int = 0
    errors: list[str] = Field(default_factory=list)
    finished_at: datetime | None = None

    @property
    def ok(self) -> bool:
        """``True`` when the document completed without any chunk error."""
        return self.status is IngestionStatus.COMPLETED and not self.errors

    def finish(self, status: IngestionStatus) -> IngestionReport:
        self.status = status
        self.finished_at = datetime.now(timezone.utc)
        return self


class IngestionRunSummary(BaseModel):
    """Aggregate of a bulk ingestion run over a directory tree."""

    root: str
    processed: int = 0
    skipped: int = 0
    errors: int = 0
    reports: list[IngestionReport] = Field(default_factory=list)

    def add(self, report: IngestionReport) -> None:
        self.reports.append(report)
        if report.status is IngestionStatus.SKIPPED:
            self.skipped += 1
        elif report.status is IngestionStatus.FAILED:
            self.errors += 1
        else:
            self.processed += 1

    @property
    def total_files(self) -> int:
        return len(self.reports)
