"""``docsearch-ingest`` — bulk ingestion of a documents directory.

Usage::

    docsearch-ingest --docs-dir ./docs --skip-existing --verbose
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from docsearch.config import configure_logging, settings
from docsearch.context import AppContext
from docsearch.errors import DocSearchError
from docsearch.ingestion.orchestrator import IngestMode

if TYPE_CHECKING:
    from langchain_core.embeddings import Embeddings

    from docsearch.retrieval.base import VectorStoreBase

logger = logging.getLogger("docsearch.ingest")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="docsearch-ingest",
        description="Chunk, embed and store every supported document below a directory.",
    )
    parser.add_argument(
        "--docs-dir",
        type=Path,
        default=None,
        help=f"Root directory to ingest (default: {settings.docs_dir})",
    )
    parser.add_argument(
        "--skip-existing",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Skip files that already have stored chunks (default: SKIP_EXISTING)",
    )
    parser.add_argument("--verbose", action="store_true", default=None, help="Log progress")
    return parser


def main(
    argv: list[str] | None = None,
    *,
    store: VectorStoreBase | None = None,
    provider: Embeddings | None = None,
) -> int:
    args = build_parser().parse_args(argv)

    overrides = {
        key: value
        for key, value in {
            "docs_dir": args.docs_dir,
            "skip_existing": args.skip_existing,
            "verbose": args.verbose,
        }.items()
        if value is not None
    }
    run_settings = settings.model_copy(update=overrides)
    configure_logging(run_settings.verbose)

    context = AppContext(run_settings, store=store, provider=provider)
    logger.info("Starting document ingestion from %s", run_settings.docs_dir)
    try:
        with context:
            summary = context.orchestrator(IngestMode.BULK).ingest_directory(run_settings.docs_dir)
    except DocSearchError as exc:
        logger.error("Fatal error during ingestion: %s", exc)
        return 1

    logger.info("=" * 50)
    logger.info("Files processed: %d", summary.processed)
    logger.info("Files skipped: %d", summary.skipped)
    logger.info("Errors: %d", summary.errors)
    logger.info("=" * 50)
    return 1 if summary.errors else 0


if __name__ == "__main__":
    sys.exit(main())
