"""
prodrag - Embedding Client
===========================
Thin contract around the hosted embedding model.

* Inputs longer than ``EMBEDDING_MAX_CHARS`` are prefix-truncated before
  submission (reported as an ``embedding.truncated`` event, never an error).
* The returned vector must have exactly ``EMBEDDING_DIMENSION`` values.
* Model / transport errors propagate unmodified; there is no retry here.

The model itself is injected (anything with ``aembed_query``), so the
client is testable with a fake embedder.
"""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

from prodrag.config.settings import Settings
from prodrag.src.utils.errors import EmbeddingDimensionError
from prodrag.src.utils.events import LoggingObserver, PipelineObserver, emit
from prodrag.src.utils.logger import get_logger

logger = get_logger(__name__)


# ── Embedder Protocol ─────────────────────────────────────────────────

@runtime_checkable
class EmbeddingModel(Protocol):
    """Structural type for a LangChain-compatible async embedding model."""

    async def aembed_query(self, text: str) -> list[float]: ...


class GeminiEmbeddingModel:
    """
    ``GoogleGenerativeAIEmbeddings`` pinned to the index dimension.

    Gemini embeddings default to 3072 values; the vector index is built
    for ``EMBEDDING_DIMENSION``, so every call requests that size.
    """

    __slots__ = ("_inner", "_dimension")

    def __init__(self, settings: Settings) -> None:
        from langchain_google_genai import GoogleGenerativeAIEmbeddings

        self._inner = GoogleGenerativeAIEmbeddings(model=settings.EMBEDDING_MODEL, google_api_key=settings.GOOGLE_API_KEY.get_secret_value())
        self._dimension = settings.EMBEDDING_DIMENSION


    async def aembed_query(self, text: str) -> list[float]:
        return await self._inner.aembed_query(text, output_dimensionality=self._dimension)


def build_embedding_model(settings: Settings) -> EmbeddingModel:
    """Create the production embedding model from settings."""
    logger.info("Initialising embedding model: %s (dim=%d)", settings.EMBEDDING_MODEL, settings.EMBEDDING_DIMENSION)
    return GeminiEmbeddingModel(settings)


def truncate_for_embedding(text: str, max_chars: int) -> str:
    """Deterministic prefix truncation to *max_chars* characters."""
    return text if len(text) <= max_chars else text[:max_chars]


class EmbeddingClient:
    """
    Embed one text into a fixed-dimension vector.

    Parameters
    ----------
    model
        Any ``EmbeddingModel`` (e.g. ``GeminiEmbeddingModel``).
    dimension
        Expected vector length.
    max_chars
        Input ceiling; longer text is truncated.
    observer
        Receives the ``embedding.truncated`` event.
    """

    __slots__ = ("_model", "_dimension", "_max_chars", "_observer")

    def __init__(self, model: EmbeddingModel, dimension: int = 1536, max_chars: int = 8000, observer: PipelineObserver | None = None) -> None:
        self._model = model
        self._dimension = dimension
        self._max_chars = max_chars
        self._observer = observer or LoggingObserver()


    @classmethod
    def from_settings(cls, settings: Settings, model: EmbeddingModel | None = None, observer: PipelineObserver | None = None) -> EmbeddingClient:
        return cls(model or build_embedding_model(settings), dimension=settings.EMBEDDING_DIMENSION, max_chars=settings.EMBEDDING_MAX_CHARS, observer=observer)


    async def embed(self, text: str) -> list[float]:
        """
        Return the embedding of *text* (truncated to the ceiling first).

        Raises
        ------
        EmbeddingDimensionError
            If the model returns a vector of the wrong size.
        Exception
            Anything the model raises, unmodified.
        """
        submitted = truncate_for_embedding(text, self._max_chars)
        if len(submitted) < len(text):
            emit(self._observer, "embedding.truncated", f"Text truncated from {len(text)} to {len(submitted)} characters", logging.INFO, original_length=len(text), submitted_length=len(submitted))

        logger.debug("Getting embedding for text: %.50s…", submitted.replace("\n", " "))
        vector = await self._model.aembed_query(submitted)

        if len(vector) != self._dimension:
            raise EmbeddingDimensionError(self._dimension, len(vector))
        return [float(v) for v in vector]
