"""
prodrag - RAG Engine
=====================
Orchestrates the online question-answering path.

``RAGManager``
    Stateless pipeline orchestrator.  Flow:
        1. Validate   → non-empty question, else ``InvalidQuestionError``
        2. Embed      → ``EmbeddingClient`` (failure: ``EmbeddingStageError``)
        3. Retrieve   → top-k ANN search (failure: ``SearchStageError``)
        4. Context    → join hit texts; sentinel when there are no hits
        5. Prompt     → fixed grounding template (context + question)
        6. Generate   → ``GenerationClient`` (failure: ``GenerationStageError``
                        carrying the context so the caller keeps partial value)
        7. Return     → ``AnswerResult``

Each request is an independent sequential pipeline; the manager holds no
request-scoped state and is safe for concurrent use.

Usage:
    from prodrag.src.core.rag_engine import RAGManager
    rag = RAGManager(embedder, store, generator)
    result = await rag.answer("What is the price of X?")
"""

from __future__ import annotations

import logging
import time
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol

from prodrag.config.prompt_templates import MISSING_PRODUCT_TEXT, NO_CONTEXT_SENTINEL, PRODUCT_QA_PROMPT_TEMPLATE
from prodrag.src.core.embedder import EmbeddingClient
from prodrag.src.core.generator import GenerationClient
from prodrag.src.database.vector_store import SearchHit
from prodrag.src.utils.errors import EmbeddingStageError, GenerationStageError, InvalidQuestionError, SearchStageError
from prodrag.src.utils.events import LoggingObserver, PipelineObserver, emit
from prodrag.src.utils.logger import get_logger

logger = get_logger(__name__)


class VectorSearcher(Protocol):
    def search(self, vector: list[float], k: int = 5) -> list[SearchHit]: ...


@dataclass(frozen=True)
class AnswerResult:
    answer: str
    context: str
    hits: int


def build_context(hits: Sequence[SearchHit]) -> str:
    """Join the stored text of each hit with blank lines; sentinel if there are none."""
    if not hits:
        return NO_CONTEXT_SENTINEL

    blocks: list[str] = []
    for hit in hits:
        metadata = hit.get("metadata") or {}
        text = metadata.get("text") if isinstance(metadata, dict) else None
        blocks.append(text or MISSING_PRODUCT_TEXT)
    return "\n\n".join(blocks)


def build_prompt(context: str, question: str) -> str:
    return PRODUCT_QA_PROMPT_TEMPLATE.format(context=context, question=question)


class RAGManager:
    """
    Embed → retrieve → ground → generate.

    Parameters
    ----------
    embedder
        ``EmbeddingClient`` for the question.
    store
        Anything with ``search(vector, k)`` (``ProductVectorStore``).
    generator
        ``GenerationClient`` for the final answer.
    top_k
        Number of products retrieved per question.
    observer
        Receives ``rag.*`` diagnostic events.
    """

    __slots__ = ("_embedder", "_store", "_generator", "_top_k", "_observer")

    def __init__(self, embedder: EmbeddingClient, store: VectorSearcher, generator: GenerationClient, top_k: int = 5, observer: PipelineObserver | None = None) -> None:
        self._embedder = embedder
        self._store = store
        self._generator = generator
        self._top_k = top_k
        self._observer = observer or LoggingObserver()


    async def answer(self, question: str | None) -> AnswerResult:
        """
        Run the full question-answering pipeline.

        Raises
        ------
        InvalidQuestionError
            Missing or blank question.
        EmbeddingStageError, SearchStageError
            Retrieval failed; no partial payload.
        GenerationStageError
            The LLM failed; ``.context`` holds the retrieved context.
        """
        if question is None or not question.strip():
            raise InvalidQuestionError("Question is required")

        t_start = time.perf_counter()
        logger.info("[RAG] Processing question: %.80s", question)

        # ── 1. Embed question ─────────────────────────────────────────
        try:
            query_vector = await self._embedder.embed(question)
        except Exception as exc:
            self._stage_failed("embedding", exc)
            raise EmbeddingStageError(str(exc)) from exc

        # ── 2. ANN search ─────────────────────────────────────────────
        try:
            hits = self._store.search(query_vector, k=self._top_k)
        except Exception as exc:
            self._stage_failed("search", exc)
            raise SearchStageError(str(exc)) from exc

        # ── 3. Context ────────────────────────────────────────────────
        if not hits:
            emit(self._observer, "rag.no_hits", "No relevant products found, answering without grounding", logging.WARNING)
        context = build_context(hits)

        # ── 4. Prompt ─────────────────────────────────────────────────
        prompt = build_prompt(context, question)

        # ── 5. Generate ───────────────────────────────────────────────
        try:
            answer = await self._generator.generate(prompt)
        except Exception as exc:
            self._stage_failed("generation", exc)
            raise GenerationStageError(str(exc), context=context) from exc

        total_ms = (time.perf_counter() - t_start) * 1000
        emit(self._observer, "rag.answered", "Answer generated", hits=len(hits), elapsed_ms=round(total_ms, 1))
        return AnswerResult(answer=answer, context=context, hits=len(hits))


    def _stage_failed(self, stage: str, exc: BaseException) -> None:
        emit(self._observer, "rag.stage_failed", f"{stage} failed: {exc}", logging.ERROR, stage=stage)
