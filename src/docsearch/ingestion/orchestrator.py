"""Ingestion orchestrator — chunk, embed in batches, store, report.

Per document the orchestrator walks the states of
:class:`~docsearch.retrieval.models.IngestionStatus`::

    discovered → checked_existing → skipped
                                  → chunking → embedding_batch → inserted → … → completed
                                  (any step) → failed

Chunk- and batch-level failures are recorded on the report and never stop
the remaining batches.  Losing the store connection fails the document.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any, Sequence

from docsearch.errors import EmbeddingDimensionError, ProviderError, StoreConnectionError, StoreError
from docsearch.ingestion.chunker import chunk_document
from docsearch.ingestion.loader import SUPPORTED_EXTENSIONS, discover_files, load_text, source_id_for
from docsearch.retrieval.models import (
    Chunk,
    EmbeddedChunk,
    IngestionReport,
    IngestionRunSummary,
    IngestionStatus,
)

if TYPE_CHECKING:
    from docsearch.config import Settings
    from docsearch.ingestion.embedder import EmbeddingClient
    from docsearch.retrieval.base import VectorStoreBase

logger = logging.getLogger(__name__)


class IngestMode(str, Enum):
    """How chunks inside a batch are embedded and written."""

    BULK = "bulk"
    """One multi-text embedding call and one batch insert per batch."""

    INTERACTIVE = "interactive"
    """Each chunk embedded and inserted on its own, concurrently within the batch."""


def _batch_label(batch: Sequence[Chunk]) -> str:
    first, last = batch[0].number, batch[-1].number
    return f"Chunk {first}" if first == last else f"Chunks {first}-{last}"


class IngestionOrchestrator:
    """Drive documents from raw text to stored, embedded chunks.

    Parameters
    ----------
    store:
        Destination vector store (already opened).
    embedder:
        Embedding client used in document mode.
    chunk_size / chunk_overlap / min_chunk_length:
        Chunker parameters.
    batch_size:
        Number of chunks per embedding/insert batch.
    batch_delay:
        Seconds to pause between batches, never after the last one.
    skip_existing:
        Skip sources that already have stored chunks.  When disabled, an
        existing source is deleted and fully re-indexed.
    mode:
        Batch processing strategy, see :class:`IngestMode`.
    """

    def __init__(
        self,
        store: VectorStoreBase,
        embedder: EmbeddingClient,
        *,
        chunk_size: int = 1000,
        chunk_overlap: int = 200,
        min_chunk_length: int = 50,
        batch_size: int = 10,
        batch_delay: float = 1.0,
        skip_existing: bool = False,
        mode: IngestMode = IngestMode.BULK,
    ) -> None:
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")
        if chunk_overlap >= chunk_size:
            raise ValueError(f"chunk_overlap ({chunk_overlap}) must be < chunk_size ({chunk_size})")
        self.store = store
        self.embedder = embedder
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        self.min_chunk_length = min_chunk_length
        self.batch_size = batch_size
        self.batch_delay = batch_delay
        self.skip_existing = skip_existing
        self.mode = mode

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        store: VectorStoreBase,
        embedder: EmbeddingClient,
        *,
        mode: IngestMode = IngestMode.BULK,
    ) -> IngestionOrchestrator:
        interactive = mode is IngestMode.INTERACTIVE
        return cls(
            store,
            embedder,
            chunk_size=settings.chunk_size,
            chunk_overlap=settings.chunk_overlap,
            min_chunk_length=settings.min_chunk_length,
            batch_size=settings.upload_batch_size if interactive else settings.batch_size,
            batch_delay=settings.upload_batch_delay if interactive else settings.batch_delay,
            skip_existing=settings.skip_existing,
            mode=mode,
        )

    # -- public API -----------------------------------------------------------

    def ingest_text(
        self,
        text: str,
        source_id: str,
        *,
        metadata: dict[str, Any] | None = None,
    ) -> IngestionReport:
        """Ingest one document's text under *source_id*.

        Raises
        ------
        EmbeddingDimensionError
            When the provider's vector width contradicts the store (strict mode).
        """
        report = IngestionReport(source_id=source_id)
        logger.info("Processing %s", source_id)

        try:
            exists = self.store.exists_for_source(source_id)
            report.status = IngestionStatus.CHECKED_EXISTING
            if exists and self.skip_existing:
                logger.info("Skipping already processed source: %s", source_id)
                return report.finish(IngestionStatus.SKIPPED)

            report.status = IngestionStatus.CHUNKING
            chunks = chunk_document(
                text,
                source_id,
                max_size=self.chunk_size,
                overlap=self.chunk_overlap,
                min_length=self.min_chunk_length,
                metadata=metadata,
            )
            report.total_chunks = len(chunks)
            logger.info("Created %d chunks from %s", len(chunks), source_id)
            if not chunks:
                # Stored chunks of the source are only replaced by new ones.
                return report.finish(IngestionStatus.COMPLETED)
            if exists:
                removed = self.store.delete_source(source_id)
                logger.info("Re-indexing %s: removed %d stale chunks", source_id, removed)

            n_batches = -(-len(chunks) // self.batch_size)
            for start in range(0, len(chunks), self.batch_size):
                batch = chunks[start : start + self.batch_size]
                logger.info(
                    "Processing batch %d/%d for %s",
                    start // self.batch_size + 1, n_batches, source_id,
                )
                report.status = IngestionStatus.EMBEDDING
                if self.mode is IngestMode.INTERACTIVE:
                    self._process_batch_concurrently(batch, report)
                else:
                    self._process_batch(batch, report)
                report.status = IngestionStatus.INSERTED

                if start + self.batch_size < len(chunks):
                    time.sleep(self.batch_delay)
        except StoreError as exc:
            logger.error("Error processing %s: %s", source_id, exc)
            report.errors.append(f"{source_id}: {exc}")
            return report.finish(IngestionStatus.FAILED)

        logger.info(
            "Finished %s: %d/%d chunks processed, %d error(s)",
            source_id, report.processed_chunks, report.total_chunks, len(report.errors),
        )
        return report.finish(IngestionStatus.COMPLETED)

    def ingest_file(self, path: str | Path, root: str | Path) -> IngestionReport:
        """Read *path* and ingest it with a source id relative to *root*."""
        text = load_text(path)
        metadata = {
            "file_size": len(text),
            "processed_at": datetime.now(timezone.utc).isoformat(),
        }
        return self.ingest_text(text, source_id_for(path, root), metadata=metadata)

    def ingest_directory(self, root: str | Path) -> IngestionRunSummary:
        """Ingest every supported file below *root*, one after the other."""
        summary = IngestionRunSummary(root=str(root))
        files = discover_files(root)
        if not files:
            logger.warning(
                "No supported documents found in %s (supported: %s)",
                root, ", ".join(SUPPORTED_EXTENSIONS),
            )
            return summary

        logger.info("Found %d document(s) to process", len(files))
        for path in files:
            try:
                report = self.ingest_file(path, root)
            except EmbeddingDimensionError:
                raise
            except Exception as exc:
                logger.error("Failed to process %s: %s", path, exc, exc_info=True)
                report = IngestionReport(source_id=source_id_for(path, root), errors=[str(exc)])
                report.finish(IngestionStatus.FAILED)
            summary.add(report)

        logger.info(
            "Ingestion complete: %d processed, %d skipped, %d error(s)",
            summary.processed, summary.skipped, summary.errors,
        )
        return summary

    # -- internals ------------------------------------------------------------

    def _process_batch(self, batch: Sequence[Chunk], report: IngestionReport) -> None:
        label = _batch_label(batch)
        try:
            vectors = self.embedder.embed_documents([chunk.content for chunk in batch])
            self.store.insert_batch(
                [EmbeddedChunk(chunk=chunk, embedding=vec) for chunk, vec in zip(batch, vectors)]
            )
        except StoreConnectionError:
            raise
        except (ProviderError, StoreError) as exc:
            logger.error("%s of %s failed: %s", label, report.source_id, exc)
            report.errors.append(f"{label}: {exc}")
            return
        report.processed_chunks += len(batch)

    def _embed_and_insert(self, chunk: Chunk) -> None:
        vector = self.embedder.embed_documents([chunk.content])[0]
        self.store.insert_batch([EmbeddedChunk(chunk=chunk, embedding=vector)])

    def _process_batch_concurrently(self, batch: Sequence[Chunk], report: IngestionReport) -> None:
        with ThreadPoolExecutor(max_workers=len(batch), thread_name_prefix="ingest") as pool:
            futures = [(chunk, pool.submit(self._embed_and_insert, chunk)) for chunk in batch]
        # Leaving the ``with`` block joins every task before results are read.

        fatal: BaseException | None = None
        for chunk, future in futures:
            exc = future.exception()
            if exc is None:
                report.processed_chunks += 1
                logger.info("Processed chunk %d/%d", chunk.number, report.total_chunks)
            elif isinstance(exc, StoreConnectionError) or not isinstance(exc, (ProviderError, StoreError)):
                fatal = fatal or exc
            else:
                logger.error("Error processing chunk %d of %s: %s", chunk.number, report.source_id, exc)
                report.errors.append(f"Chunk {chunk.number}: {exc}")
        if fatal is not None:
            raise fatal
