"""
prodrag - Error Taxonomy
=========================
Every error raised by the pipeline carries the ``stage`` it came from so
the HTTP layer and the CLI can report *which* step failed.

Degraded results (no search hits, empty completion) are **not** errors;
they map to sentinel strings in ``prodrag.config.prompt_templates``.
"""

from __future__ import annotations

from typing import Any


class ProdRagError(Exception):
    """Base exception for all prodrag errors."""

    stage: str = "unknown"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)


# ── Vector store / embedding preconditions ───────────────────────────


class IndexNotReadyError(ProdRagError):
    """Raised on upsert/search when the vector index has not been created."""

    stage = "index"


class EmbeddingDimensionError(ProdRagError, ValueError):
    """Raised when a vector's length differs from the index dimension."""

    stage = "embedding"

    def __init__(self, expected: int, actual: int) -> None:
        super().__init__(f"Embedding dimension mismatch: expected {expected}, got {actual}", {"expected": expected, "actual": actual})


# ── ETL ──────────────────────────────────────────────────────────────


class PipelineAbortedError(ProdRagError):
    """A non per-record failure (index setup or fetch) that ends the ETL run."""

    def __init__(self, stage: str, cause: BaseException) -> None:
        self.stage = stage
        super().__init__(f"ETL aborted during {stage}: {cause}", {"cause": str(cause)})


# ── Query path ───────────────────────────────────────────────────────


class InvalidQuestionError(ProdRagError):
    """Missing or blank question (client error)."""

    stage = "input"


class EmbeddingStageError(ProdRagError):
    """The question could not be embedded."""

    stage = "embedding"


class SearchStageError(ProdRagError):
    """The vector search failed."""

    stage = "search"


class GenerationStageError(ProdRagError):
    """The LLM call failed; ``context`` keeps the retrieved product text."""

    stage = "generation"

    def __init__(self, message: str, context: str) -> None:
        super().__init__(message)
        self.context = context
