"""
prodrag - ETLPipeline
======================
Batch pipeline that reads every product from MongoDB, flattens it into
text, embeds it, and upserts vector + metadata into the
``ProductVectorStore``.

Run states::

    Init → IndexReady → Fetching → PerRecordLoop → Done
      └──────────────┴──────────→ FatalAborted

Key design decisions:
    • **Fail fast on setup** – index creation and the fetch are
      preconditions; any error there raises ``PipelineAbortedError``.
    • **Partial-failure tolerance** – each product is processed by
      ``_process_record``, which returns a tagged ``RecordOutcome``
      (indexed / skipped / failed) instead of letting exceptions escape.
      One bad product never aborts the batch.
    • **Sequential** – products are processed one at a time; after every
      ``throttle_every`` indexed products the pipeline pauses briefly to
      stay under the embedding / indexing rate limits.
    • **Stable ids** – ``_id``, else ``id``, else ``product_<position>``.

Usage:
    from prodrag.src.core.etl import ETLPipeline
    pipeline = ETLPipeline(source, embedder, store)
    summary  = await pipeline.run()
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Literal, Protocol

from prodrag.config.settings import Settings
from prodrag.src.core.embedder import EmbeddingClient
from prodrag.src.database.vector_store import ProductVectorStore
from prodrag.src.utils.errors import PipelineAbortedError
from prodrag.src.utils.events import LoggingObserver, PipelineObserver, emit
from prodrag.src.utils.logger import get_logger
from prodrag.src.utils.text_utils import ProductMetadata, ProductRecord, build_product_metadata, flatten_product

logger = get_logger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class RecordSource(Protocol):
    """What the pipeline needs from the product database."""

    async def connect(self) -> None: ...

    async def fetch_all(self) -> list[Any]: ...

    async def close(self) -> None: ...


@dataclass(frozen=True)
class RecordOutcome:
    """Tagged result of processing one product."""

    status: Literal["indexed", "skipped", "failed"]
    index: int
    product_id: str | None = None
    metadata: ProductMetadata | None = None
    reason: str | None = None


@dataclass(frozen=True)
class ETLSummary:
    processed: int
    errors: int
    skipped: int
    total: int
    elapsed_seconds: float

    def as_dict(self) -> dict[str, int | float]:
        return {"processed": self.processed, "errors": self.errors, "skipped": self.skipped, "total": self.total, "elapsed_seconds": self.elapsed_seconds}


def fallback_product_id(index: int) -> str:
    """Positional id for products that carry neither ``_id`` nor ``id``."""
    return f"product_{index}"


class ETLPipeline:
    """
    End-to-end product indexing: fetch → flatten → embed → upsert.

    Parameters
    ----------
    source
        Product database (``ProductSource`` or any ``RecordSource``).
    embedder
        ``EmbeddingClient`` used for every product text.
    store
        ``ProductVectorStore`` receiving the documents.
    throttle_every, throttle_seconds
        Pause ``throttle_seconds`` after every ``throttle_every`` indexed products.
    observer
        Receives ``etl.*`` diagnostic events.
    sleep
        Awaitable pause function (``asyncio.sleep``); injectable for tests.
    """

    def __init__(self, source: RecordSource, embedder: EmbeddingClient, store: ProductVectorStore, throttle_every: int = 10, throttle_seconds: float = 1.0, observer: PipelineObserver | None = None, sleep: Sleep = asyncio.sleep) -> None:
        self._source = source
        self._embedder = embedder
        self._store = store
        self._throttle_every = throttle_every
        self._throttle_seconds = throttle_seconds
        self._observer = observer or LoggingObserver()
        self._sleep = sleep


    @classmethod
    def from_settings(cls, settings: Settings, source: RecordSource, embedder: EmbeddingClient, store: ProductVectorStore, observer: PipelineObserver | None = None) -> ETLPipeline:
        return cls(source, embedder, store, throttle_every=settings.ETL_THROTTLE_EVERY, throttle_seconds=settings.ETL_THROTTLE_SECONDS, observer=observer)

    # ══════════════════════════════════════════════════════════════════
    #  PUBLIC ENTRY POINT
    # ══════════════════════════════════════════════════════════════════

    async def run(self) -> ETLSummary:
        """
        Execute the full ETL run.

        Returns
        -------
        ETLSummary
            Counts of indexed, failed, skipped and total products.

        Raises
        ------
        PipelineAbortedError
            If the index cannot be prepared or the products cannot be fetched.
        """
        t_start = time.perf_counter()
        emit(self._observer, "etl.started", "Starting ETL process")

        # ── Init: index readiness ──────────────────────────────────────
        try:
            self._store.create_index()
        except Exception as exc:
            logger.exception("Index setup failed.")
            raise PipelineAbortedError("init", exc) from exc

        # ── Fetching ───────────────────────────────────────────────────
        products = await self._fetch_products()
        emit(self._observer, "etl.fetched", f"Fetched {len(products)} product(s)", total=len(products))

        if not products:
            logger.warning("No products found in the source database.")
            return self._finish(0, 0, 0, 0, t_start)

        # ── Per-record loop ────────────────────────────────────────────
        processed = 0
        errors = 0
        skipped = 0

        for index, record in enumerate(products):
            outcome = await self._process_record(index, record)

            if outcome.status == "indexed":
                processed += 1
                emit(self._observer, "etl.record_indexed", f"Indexed product {processed}/{len(products)}", logging.DEBUG, index=index, product_id=outcome.product_id, name=outcome.metadata["name"] if outcome.metadata else None)
                if processed % self._throttle_every == 0:
                    emit(self._observer, "etl.throttled", f"Processed {processed} products so far, pausing", processed=processed, seconds=self._throttle_seconds)
                    await self._sleep(self._throttle_seconds)
            elif outcome.status == "skipped":
                skipped += 1
                emit(self._observer, "etl.record_skipped", "Skipping product with no embeddable text", logging.WARNING, index=index, product_id=outcome.product_id)
            else:
                errors += 1
                emit(self._observer, "etl.record_failed", f"Error processing product: {outcome.reason}", logging.ERROR, index=index, product_id=outcome.product_id, reason=outcome.reason)

        # ── Done ───────────────────────────────────────────────────────
        if processed:
            self._refresh_ann_index()

        return self._finish(processed, errors, skipped, len(products), t_start)

    # ══════════════════════════════════════════════════════════════════
    #  STAGES
    # ══════════════════════════════════════════════════════════════════

    async def _fetch_products(self) -> list[ProductRecord]:
        """Pull the whole catalogue in one call, closing the connection afterwards."""
        try:
            await self._source.connect()
            try:
                return list(await self._source.fetch_all())
            finally:
                await self._source.close()
        except Exception as exc:
            logger.exception("Fetching products failed.")
            raise PipelineAbortedError("fetch", exc) from exc


    async def _process_record(self, index: int, record: ProductRecord) -> RecordOutcome:
        """
        Flatten, embed, describe and upsert a single product.

        Never raises: every failure is returned as a ``failed`` outcome.
        """
        product_id: str | None = None
        try:
            text = flatten_product(record)
            metadata = build_product_metadata(record, text=text)
            product_id = metadata["id"] or fallback_product_id(index)  # type: ignore[assignment]

            if not text:
                return RecordOutcome("skipped", index, product_id=product_id)

            vector = await self._embedder.embed(text)
            metadata["id"] = product_id
            self._store.upsert(product_id, vector, metadata)
        except Exception as exc:
            return RecordOutcome("failed", index, product_id=product_id, reason=f"{type(exc).__name__}: {exc}")

        return RecordOutcome("indexed", index, product_id=product_id, metadata=metadata)


    def _refresh_ann_index(self) -> None:
        """Rebuild the ANN graph; a failure leaves exact search in place."""
        try:
            self._store.build_ann_index()
        except Exception as exc:
            emit(self._observer, "etl.ann_index_failed", f"ANN index build failed; exact search remains available: {exc}", logging.WARNING)


    def _finish(self, processed: int, errors: int, skipped: int, total: int, t_start: float) -> ETLSummary:
        summary = ETLSummary(processed=processed, errors=errors, skipped=skipped, total=total, elapsed_seconds=round(time.perf_counter() - t_start, 2))
        emit(self._observer, "etl.completed", "ETL process completed", **summary.as_dict())
        return summary
