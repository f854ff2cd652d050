"""
prodrag - API Route Definitions
================================
  - POST /ask    → answer a product question
  - GET  /health → liveness probe

Each handler is a thin controller: it validates the request, delegates to
``RAGManager`` and formats the JSON response.  Every error body names the
stage that failed, so a caller can tell "couldn't embed", "couldn't
search" and "couldn't generate" apart.
"""

from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from prodrag.src.core.rag_engine import RAGManager
from prodrag.src.utils.errors import EmbeddingStageError, GenerationStageError, InvalidQuestionError, SearchStageError
from prodrag.src.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()


class AskRequest(BaseModel):
    question: str | None = None


class AskResponse(BaseModel):
    answer: str


def get_rag_manager(request: Request) -> RAGManager:
    return request.app.state.rag_manager


def _error(status_code: int, error: str, **fields: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": error, **fields})


@router.post("/ask", response_model=AskResponse)
async def ask(request: Request, body: AskRequest | None = None) -> AskResponse | JSONResponse:
    rag = get_rag_manager(request)
    question = body.question if body else None

    try:
        result = await rag.answer(question)
    except InvalidQuestionError as exc:
        return _error(400, exc.message)
    except EmbeddingStageError as exc:
        return _error(500, "Failed to embed question", stage=exc.stage, details=exc.message)
    except SearchStageError as exc:
        return _error(500, "Failed to query product database", stage=exc.stage, details=exc.message)
    except GenerationStageError as exc:
        return _error(500, "Failed to generate answer", stage=exc.stage, details=exc.message, context=exc.context)

    return AskResponse(answer=result.answer)


@router.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}
