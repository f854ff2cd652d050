"""
prodrag - Centralized Configuration
====================================
Uses ``pydantic-settings`` (``BaseSettings``) to load *all* configuration
from environment variables and the project-level ``.env`` file.

Settings are built **once** at startup via ``get_settings()`` and passed
explicitly into every client and orchestrator constructor.  Nothing in
the package reads the environment on its own, so tests can hand a
fixture ``Settings`` to any component.

Security
--------
- ``GOOGLE_API_KEY`` is typed as ``SecretStr`` and has **no default value**.
  If the key is missing at startup, Pydantic raises a ``ValidationError``
  before any pipeline work begins.
- ``MONGO_URI`` is also ``SecretStr``; connection strings contain
  credentials and must never leak into logs.
- ``LANCEDB_API_KEY`` is only needed for a remote (``db://``) LanceDB.

Paths
-----
The default LanceDB location is ``Path.resolve()``-d at class level so it
works identically on Windows, WSL, and Linux.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent


class Settings(BaseSettings):
    """
    Application-wide settings.

    Every field is loaded from environment variables (or ``.env``).
    Fields *without* a default are **required**.

    Attributes
    ----------
    GOOGLE_API_KEY : SecretStr
        API key for Google AI Studio (Gemini embeddings + chat).  **Required.**
    MONGO_URI : SecretStr
        MongoDB connection string holding the product catalogue.  **Required.**
    MONGO_DB_NAME, MONGO_COLLECTION : str
        Where the product records live.
    EMBEDDING_DIMENSION : int
        Vector size requested from the embedding model.  Must match the
        dimension the LanceDB table was created with.
    EMBEDDING_MAX_CHARS : int
        Character ceiling; longer inputs are prefix-truncated.
    LANCEDB_URI : str
        Local directory or ``db://`` URI of the vector store.
    ANN_M, ANN_EF_CONSTRUCTION, ANN_EF_SEARCH : int
        HNSW graph parameters (build-time degree / candidate list, and
        search-time candidate list).
    ANN_MIN_ROWS : int
        Row count below which no ANN index is trained (exact search is used).
    SEARCH_TOP_K : int
        Number of products retrieved per question.
    ETL_THROTTLE_EVERY, ETL_THROTTLE_SECONDS
        Pause ``ETL_THROTTLE_SECONDS`` after every N indexed products.
    REQUEST_TIMEOUT_SECONDS : float
        Timeout applied to the generation model and MongoDB server selection.
    """

    # ── Environment Mode ───────────────────────────────────────────────
    ENV: Literal["dev", "prod"] = "dev"

    # ── API Keys (REQUIRED — no default) ───────────────────────────────
    GOOGLE_API_KEY: SecretStr

    # ── MongoDB (REQUIRED — no default) ────────────────────────────────
    MONGO_URI: SecretStr
    MONGO_DB_NAME: str = "ecommerce"
    MONGO_COLLECTION: str = "products"

    # ── Model Configuration ────────────────────────────────────────────
    EMBEDDING_MODEL: str = "gemini-embedding-001"
    EMBEDDING_DIMENSION: int = 1536
    EMBEDDING_MAX_CHARS: int = 8000
    LLM_MODEL: str = "gemini-2.0-flash"

    # ── LanceDB ────────────────────────────────────────────────────────
    LANCEDB_URI: str = str(_PROJECT_ROOT / "data" / "lancedb")
    LANCEDB_API_KEY: SecretStr | None = None
    LANCEDB_TABLE_NAME: str = "products"

    # ── ANN index ──────────────────────────────────────────────────────
    ANN_M: int = 16
    ANN_EF_CONSTRUCTION: int = 128
    ANN_EF_SEARCH: int = 100
    ANN_MIN_ROWS: int = 256

    # ── Retrieval ──────────────────────────────────────────────────────
    SEARCH_TOP_K: int = 5

    # ── ETL throttling ─────────────────────────────────────────────────
    ETL_THROTTLE_EVERY: int = 10
    ETL_THROTTLE_SECONDS: float = 1.0

    # ── HTTP / timeouts ────────────────────────────────────────────────
    REQUEST_TIMEOUT_SECONDS: float = 30.0
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 7000

    # ── Validators ─────────────────────────────────────────────────────

    @field_validator("EMBEDDING_DIMENSION", "EMBEDDING_MAX_CHARS", "SEARCH_TOP_K", "ETL_THROTTLE_EVERY", "ANN_M", "ANN_EF_CONSTRUCTION", "ANN_EF_SEARCH")
    @classmethod
    def _positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"value must be ≥ 1, got {v}")
        return v


    @field_validator("ETL_THROTTLE_SECONDS", "REQUEST_TIMEOUT_SECONDS")
    @classmethod
    def _non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError(f"value must be ≥ 0, got {v}")
        return v

    # ── Pydantic Settings Configuration ────────────────────────────────
    model_config = SettingsConfigDict(env_file=_PROJECT_ROOT / ".env", env_file_encoding="utf-8", extra="ignore")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Build the process-wide ``Settings`` on first call (fail-fast on missing keys)."""
    return Settings()
