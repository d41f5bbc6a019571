"""Boundary-aware text chunking with overlap."""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any

from docsearch.retrieval.models import Chunk

DEFAULT_CHUNK_SIZE = 1000
DEFAULT_CHUNK_OVERLAP = 200
MIN_CHUNK_LENGTH = 50

# A boundary earlier than this fraction of the window is ignored.
_MIN_WINDOW_FRACTION = 0.5
_BOUNDARY_CHARS = (".", "\n")


def _validate(max_size: int, overlap: int) -> None:
    if max_size <= 0:
        raise ValueError(f"max_size must be > 0, got {max_size}")
    if overlap < 0:
        raise ValueError(f"overlap must be >= 0, got {overlap}")
    if overlap >= max_size:
        raise ValueError(f"overlap ({overlap}) must be < max_size ({max_size})")


def iter_spans(text: str, max_size: int, overlap: int) -> Iterator[tuple[int, int]]:
    """Yield the untrimmed ``(start, end)`` windows that :func:`chunk_text` slices.

    A window ends just after the last ``.`` or newline it contains, provided
    that boundary sits in the second half of the window; otherwise it is cut
    at *max_size*.  The next window starts *overlap* characters before the
    previous end, and always after the previous start.
    """
    _validate(max_size, overlap)
    length = len(text)
    start = 0
    while start < length:
        end = min(start + max_size, length)
        if end < length:
            boundary = max(text.rfind(ch, start, end) for ch in _BOUNDARY_CHARS)
            if boundary != -1 and boundary >= start + max_size * _MIN_WINDOW_FRACTION:
                end = boundary + 1
        yield start, end
        if end >= length:
            break
        start = max(end - overlap, start + 1)


def chunk_text(
    text: str,
    max_size: int = DEFAULT_CHUNK_SIZE,
    overlap: int = DEFAULT_CHUNK_OVERLAP,
    min_length: int = MIN_CHUNK_LENGTH,
) -> list[str]:
    """Split *text* into overlapping, trimmed chunks.

    Parameters
    ----------
    text:
        Raw document text.
    max_size:
        Maximum number of characters per chunk.
    overlap:
        Number of characters shared by consecutive chunks.
    min_length:
        Trimmed chunks shorter than this are dropped as noise.

    Returns
    -------
    list[str]
        Chunks in document order; empty for blank text.
    """
    chunks: list[str] = []
    for start, end in iter_spans(text, max_size, overlap):
        piece = text[start:end].strip()
        if piece and len(piece) >= min_length:
            chunks.append(piece)
    return chunks


def chunk_document(
    text: str,
    source_id: str,
    *,
    max_size: int = DEFAULT_CHUNK_SIZE,
    overlap: int = DEFAULT_CHUNK_OVERLAP,
    min_length: int = MIN_CHUNK_LENGTH,
    metadata: dict[str, Any] | None = None,
) -> list[Chunk]:
    """Chunk *text* and wrap every piece in a :class:`Chunk`.

    Indices are contiguous from 0.  Each chunk gets a copy of *metadata*
    plus its own ``chunk_size``.
    """
    base = dict(metadata or {})
    return [
        Chunk(
            content=piece,
            source_id=source_id,
            index=idx,
            metadata={**base, "chunk_size": len(piece)},
        )
        for idx, piece in enumerate(chunk_text(text, max_size, overlap, min_length))
    ]
