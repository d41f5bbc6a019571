"""Document discovery and loading for bulk ingestion."""

from __future__ import annotations

import logging
from pathlib import Path

from langchain_community.document_loaders import TextLoader

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS: tuple[str, ...] = (".txt", ".md", ".markdown", ".rst", ".tex")


def is_supported_file(filename: str | Path) -> bool:
    """Return ``True`` when *filename* has a supported text extension."""
    return str(filename).lower().endswith(SUPPORTED_EXTENSIONS)


def discover_files(root: str | Path) -> list[Path]:
    """Recursively list supported files under *root*, in sorted order.

    A missing root is logged and yields an empty list.
    """
    root = Path(root)
    if not root.is_dir():
        logger.error("Documents directory not found: %s", root)
        return []
    return sorted(p for p in root.rglob("*") if p.is_file() and is_supported_file(p.name))


def source_id_for(path: str | Path, root: str | Path) -> str:
    """Identifier stored with every chunk of *path*: its POSIX path relative to *root*."""
    path, root = Path(path), Path(root)
    try:
        return path.relative_to(root).as_posix()
    except ValueError:
        return path.as_posix()


def load_text(path: str | Path) -> str:
    """Load a single text document as one string."""
    docs = TextLoader(str(path), encoding="utf-8").load()
    return "".join(doc.page_content for doc in docs)
