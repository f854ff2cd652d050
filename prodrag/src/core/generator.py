"""
prodrag - Generation Client
============================
Calls the hosted chat model with fixed decoding parameters and returns
the completion text.

An empty completion becomes ``NO_ANSWER_FALLBACK``; this is the only
place a missing result turns into a sentinel.  Transport and model
errors propagate to the caller.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from prodrag.config.prompt_templates import NO_ANSWER_FALLBACK, STOP_SEQUENCE
from prodrag.config.settings import Settings
from prodrag.src.utils.logger import get_logger

logger = get_logger(__name__)

# ── Fixed decoding parameters ──────────────────────────────────────────
TEMPERATURE = 0.7
TOP_P = 0.999
TOP_K = 250
MAX_OUTPUT_TOKENS = 500


@runtime_checkable
class ChatModel(Protocol):
    """Anything with LangChain's ``ainvoke(messages, stop=...)``."""

    async def ainvoke(self, input: Any, stop: list[str] | None = None, **kwargs: Any) -> Any: ...


def build_generation_model(settings: Settings) -> ChatModel:
    """Initialise the Gemini chat model via LangChain."""
    from langchain_google_genai import ChatGoogleGenerativeAI

    llm = ChatGoogleGenerativeAI(model=settings.LLM_MODEL, temperature=TEMPERATURE, top_p=TOP_P, top_k=TOP_K, max_output_tokens=MAX_OUTPUT_TOKENS, timeout=settings.REQUEST_TIMEOUT_SECONDS, google_api_key=settings.GOOGLE_API_KEY.get_secret_value())
    logger.info("LLM initialised: %s (temperature=%.1f, max_tokens=%d)", settings.LLM_MODEL, TEMPERATURE, MAX_OUTPUT_TOKENS)
    return llm


def _completion_text(response: Any) -> str:
    """Extract plain text from an ``AIMessage`` (string or list-of-parts content)."""
    content = response.content if hasattr(response, "content") else response
    if isinstance(content, list):
        pieces = [part.get("text", "") if isinstance(part, dict) else str(part) for part in content]
        return "".join(pieces)
    return "" if content is None else str(content)


class GenerationClient:
    """Generate an answer for a fully composed prompt."""

    __slots__ = ("_llm",)

    def __init__(self, llm: ChatModel) -> None:
        self._llm = llm


    @classmethod
    def from_settings(cls, settings: Settings, llm: ChatModel | None = None) -> GenerationClient:
        return cls(llm or build_generation_model(settings))


    async def generate(self, prompt: str) -> str:
        """Return the model's completion, or ``NO_ANSWER_FALLBACK`` if it is empty."""
        from langchain_core.messages import HumanMessage

        logger.debug("Generating answer for prompt: %.50s…", prompt.replace("\n", " "))
        response = await self._llm.ainvoke([HumanMessage(content=prompt)], stop=[STOP_SEQUENCE])
        answer = _completion_text(response)

        if not answer.strip():
            logger.warning("Model returned an empty completion, using fallback answer.")
            return NO_ANSWER_FALLBACK
        return answer
