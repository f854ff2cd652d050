"""
prodrag - Vector Index Setup & ETL Script
==========================================
CLI entry point that orchestrates:
    1. Load and validate settings (fail-fast on missing keys).
    2. Initialise ``ProductVectorStore`` (optionally delete the index).
    3. Run the ``ETLPipeline`` (MongoDB → embeddings → LanceDB).
    4. Print a structured execution summary.

Flags:
    --drop       Delete the index before indexing (full re-index).
    --drop-only  Delete the index and exit immediately (no ETL).
    --check      Check MongoDB connectivity and report record / index
                 counts without writing anything.

Exit status is 1 when the run aborts (index setup or fetch failure);
per-product errors are reported in the summary but do not fail the run.

Usage:
    python -m prodrag.scripts.setup_db
    python -m prodrag.scripts.setup_db --drop
    python -m prodrag.scripts.setup_db --drop-only
    python -m prodrag.scripts.setup_db --check
"""

from __future__ import annotations

import argparse
import asyncio
import sys
import time
from typing import TYPE_CHECKING

from prodrag.config.settings import Settings

if TYPE_CHECKING:
    from prodrag.src.database.product_source import ProductSource
    from prodrag.src.database.vector_store import ProductVectorStore


# ── CLI Argument Parsing ───────────────────────────────────────────────

def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="setup_db", description="prodrag — Prepare the vector index and index products from MongoDB.")
    group = parser.add_mutually_exclusive_group()
    group.add_argument("--drop", action="store_true", default=False, help="Delete the index before indexing (full re-index).")
    group.add_argument("--drop-only", action="store_true", default=False, help="Delete the index and exit (no ETL).")
    group.add_argument("--check", action="store_true", default=False, help="Check MongoDB and the vector index without writing.")
    return parser.parse_args(argv)


# ── Main Orchestration ─────────────────────────────────────────────────

def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    t_start = time.perf_counter()

    # ── 0. Load settings + .env ────────────────────────────────────────
    try:
        from prodrag.config.settings import get_settings

        settings = get_settings()
    except Exception as exc:
        print("\n[FATAL] Configuration error — check your .env file:\n")
        print(f"  {exc}")
        print()
        return 1

    from prodrag.src.utils.logger import configure_logging, get_logger

    configure_logging(settings.ENV)
    logger = get_logger(__name__)

    _print_header(settings)

    from prodrag.src.database.product_source import ProductSource
    from prodrag.src.database.vector_store import ProductVectorStore

    store = ProductVectorStore.from_settings(settings)
    source = ProductSource.from_settings(settings)

    if args.check:
        return asyncio.run(_check(source, store))

    if args.drop or args.drop_only:
        logger.warning("Deleting index '%s' as requested.", settings.LANCEDB_TABLE_NAME)
        store.delete_index()

        if args.drop_only:
            logger.info("--drop-only: Index deleted. Exiting.")
            return 0

    # ── 1. Build the pipeline ──────────────────────────────────────────
    from prodrag.src.core.embedder import EmbeddingClient
    from prodrag.src.core.etl import ETLPipeline
    from prodrag.src.utils.errors import PipelineAbortedError

    try:
        embedder = EmbeddingClient.from_settings(settings)
    except Exception:
        logger.exception("Failed to initialise embedding model.")
        return 1

    pipeline = ETLPipeline.from_settings(settings, source=source, embedder=embedder, store=store)

    # ── 2. Run ─────────────────────────────────────────────────────────
    try:
        summary = asyncio.run(pipeline.run())
    except PipelineAbortedError as exc:
        logger.error("ETL process failed: %s", exc)
        return 1

    # ── 3. Print execution summary ─────────────────────────────────────
    _print_footer(summary.processed, summary.errors, summary.skipped, summary.total, store.count(), time.perf_counter() - t_start)
    return 0


async def _check(source: ProductSource, store: ProductVectorStore) -> int:
    """Connectivity report: MongoDB ping + counts, vector index row count."""
    ok = await source.health_check()
    records = await source.count() if ok else 0
    await source.close()

    print(f"  MongoDB      : {'OK' if ok else 'UNREACHABLE'} ({records} products)")
    print(f"  Vector index : {store.table_name} ({'exists' if store.exists() else 'missing'}, {store.count()} documents)")
    print()
    return 0 if ok else 1


# ── Pretty-print helpers ──────────────────────────────────────────────

def _print_header(settings: Settings) -> None:
    api_key_val = settings.GOOGLE_API_KEY.get_secret_value()
    masked = f"****{api_key_val[-4:]}" if len(api_key_val) > 4 else "****"

    mongo_uri_val = settings.MONGO_URI.get_secret_value()
    mongo_masked = mongo_uri_val.split("@")[-1] if "@" in mongo_uri_val else mongo_uri_val

    print()
    print("=" * 60)
    print("  PRODRAG — Vector Index Setup & ETL")
    print("=" * 60)
    print(f"  Environment  : {settings.ENV}")
    print(f"  Embedding    : {settings.EMBEDDING_MODEL} (dim={settings.EMBEDDING_DIMENSION})")
    print(f"  LanceDB      : {settings.LANCEDB_URI} (table: {settings.LANCEDB_TABLE_NAME})")
    print(f"  MongoDB      : {mongo_masked} (db: {settings.MONGO_DB_NAME}, collection: {settings.MONGO_COLLECTION})")
    print(f"  Throttle     : {settings.ETL_THROTTLE_SECONDS}s every {settings.ETL_THROTTLE_EVERY} products")
    print(f"  API Key      : {masked}")
    print("=" * 60)
    print()


def _print_footer(processed: int, errors: int, skipped: int, total: int, indexed_rows: int, elapsed: float) -> None:
    print()
    print("=" * 60)
    print("  EXECUTION SUMMARY")
    print("-" * 60)
    print(f"  Total products       : {total}")
    print(f"  Successfully indexed : {processed}")
    print(f"  Errors               : {errors}")
    print(f"  Skipped (no text)    : {skipped}")
    print(f"  Documents in index   : {indexed_rows}")
    print(f"  Total elapsed        : {elapsed:>8.2f}s")
    print("=" * 60)
    print()


# ── Entry point ────────────────────────────────────────────────────────

if __name__ == "__main__":
    sys.exit(main())
