"""
Tests for the HTTP surface.
"""

import pytest
from fastapi.testclient import TestClient

from conftest import DIM, FakeChatModel, FakeEmbeddingModel, FakeStore, make_hit
from prodrag.config.prompt_templates import NO_ANSWER_FALLBACK
from prodrag.src.core.embedder import EmbeddingClient
from prodrag.src.core.generator import GenerationClient
from prodrag.src.core.rag_engine import RAGManager
from prodrag.src.main import create_app


def _client(observer, store=None, chat=None, model=None) -> TestClient:
    rag = RAGManager(EmbeddingClient(model or FakeEmbeddingModel(), dimension=DIM, observer=observer), store or FakeStore(), GenerationClient(chat or FakeChatModel()), observer=observer)
    return TestClient(create_app(rag_manager=rag))


class TestAskEndpoint:
    """Test POST /ask."""

    @pytest.mark.unit
    def test_answer(self, observer):
        client = _client(observer, store=FakeStore(hits=[make_hit("Product: X\nPrice: $10")]), chat=FakeChatModel(reply="It costs $10."))

        response = client.post("/ask", json={"question": "What is the price of X?"})

        assert response.status_code == 200
        assert response.json() == {"answer": "It costs $10."}

    @pytest.mark.unit
    def test_empty_completion_returns_fallback(self, observer):
        response = _client(observer, chat=FakeChatModel(reply="")).post("/ask", json={"question": "q"})
        assert response.json() == {"answer": NO_ANSWER_FALLBACK}

    @pytest.mark.unit
    @pytest.mark.parametrize("payload", [{}, {"question": ""}, {"question": "  "}])
    def test_missing_question(self, observer, payload):
        response = _client(observer).post("/ask", json=payload)

        assert response.status_code == 400
        assert response.json() == {"error": "Question is required"}

    @pytest.mark.unit
    def test_malformed_body(self, observer):
        response = _client(observer).post("/ask", json={"question": ["not", "a", "string"]})

        assert response.status_code == 400
        assert "error" in response.json()

    @pytest.mark.unit
    def test_embedding_failure(self, observer):
        response = _client(observer, model=FakeEmbeddingModel(fail_on="q")).post("/ask", json={"question": "q"})

        assert response.status_code == 500
        body = response.json()
        assert body["error"] == "Failed to embed question"
        assert body["stage"] == "embedding"
        assert "context" not in body

    @pytest.mark.unit
    def test_search_failure(self, observer):
        response = _client(observer, store=FakeStore(search_error=ConnectionError("index offline"))).post("/ask", json={"question": "q"})

        assert response.status_code == 500
        assert response.json() == {"error": "Failed to query product database", "stage": "search", "details": "index offline"}

    @pytest.mark.unit
    def test_generation_failure_returns_context(self, observer):
        client = _client(observer, store=FakeStore(hits=[make_hit("Product: A")]), chat=FakeChatModel(error=RuntimeError("throttled")))

        response = client.post("/ask", json={"question": "q"})

        assert response.status_code == 500
        assert response.json() == {"error": "Failed to generate answer", "stage": "generation", "details": "throttled", "context": "Product: A"}


@pytest.mark.unit
def test_health(observer):
    response = _client(observer).get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["timestamp"]
