"""Tests for the Gemini and Ollama providers (no network)."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
import requests

from repodocs.llm.provider import GeminiProvider, OllamaProvider, create_provider


# ── Gemini ──


@pytest.fixture
def genai_client():
    with patch("repodocs.llm.provider.genai") as genai:
        client = MagicMock()
        genai.Client.return_value = client
        yield client


class TestGeminiProvider:
    def test_construction(self, genai_client) -> None:
        provider = GeminiProvider(api_key="k", generation_model="gemini-x", timeout=2)
        assert provider.model_name == "gemini-x"

    def test_generate_with_system(self, genai_client) -> None:
        genai_client.models.generate_content.return_value = SimpleNamespace(text="hello")
        provider = GeminiProvider(api_key="k", generation_model="gemini-x")

        assert provider.generate("prompt", system="be brief") == "hello"
        kwargs = genai_client.models.generate_content.call_args.kwargs
        assert kwargs["model"] == "gemini-x"
        assert kwargs["contents"] == "prompt"
        assert kwargs["config"].system_instruction == "be brief"
        assert kwargs["config"].temperature == 0.1

    def test_generate_none_text(self, genai_client) -> None:
        genai_client.models.generate_content.return_value = SimpleNamespace(text=None)
        assert GeminiProvider(api_key="k").generate("prompt") == ""

    def test_embed(self, genai_client) -> None:
        genai_client.models.embed_content.return_value = SimpleNamespace(
            embeddings=[SimpleNamespace(values=[0.1, 0.2]), SimpleNamespace(values=[0.3, 0.4])]
        )
        provider = GeminiProvider(api_key="k", embedding_model="emb", embedding_dims=2)

        assert provider.embed(["a", "b"]) == [[0.1, 0.2], [0.3, 0.4]]
        kwargs = genai_client.models.embed_content.call_args.kwargs
        assert kwargs["model"] == "emb"
        assert kwargs["contents"] == ["a", "b"]
        assert kwargs["config"].output_dimensionality == 2

    def test_check_connection(self, genai_client) -> None:
        provider = GeminiProvider(api_key="k")
        assert provider.check_connection()

        genai_client.models.get.side_effect = RuntimeError("401")
        assert not provider.check_connection()

    def test_embeddings_available(self, genai_client) -> None:
        genai_client.models.embed_content.return_value = SimpleNamespace(
            embeddings=[SimpleNamespace(values=[0.5])]
        )
        provider = GeminiProvider(api_key="k")
        assert provider.embeddings_available()

        genai_client.models.embed_content.side_effect = RuntimeError("quota")
        assert not provider.embeddings_available()


# ── Ollama ──


def _response(payload: dict | None = None, status_error: Exception | None = None) -> MagicMock:
    response = MagicMock()
    response.json.return_value = payload or {}
    if status_error is not None:
        response.raise_for_status.side_effect = status_error
    return response


@pytest.fixture
def session():
    with patch("repodocs.llm.provider.requests.Session") as session_cls:
        s = MagicMock()
        session_cls.return_value = s
        yield s


@pytest.fixture
def ollama(session) -> OllamaProvider:
    return OllamaProvider(
        base_url="http://ollama:11434/",
        model="coder",
        embedding_model="nomic-embed-text",
        timeout=30,
        embed_timeout=5,
    )


class TestOllamaProvider:
    def test_generate(self, ollama, session) -> None:
        session.post.return_value = _response({"message": {"content": "answer"}})

        assert ollama.generate("question", system="sys") == "answer"
        url = session.post.call_args.args[0]
        body = session.post.call_args.kwargs["json"]
        assert url == "http://ollama:11434/api/chat"
        assert body["model"] == "coder"
        assert body["stream"] is False
        assert body["messages"] == [
            {"role": "system", "content": "sys"},
            {"role": "user", "content": "question"},
        ]
        assert session.post.call_args.kwargs["timeout"] == 30

    def test_generate_http_error_propagates(self, ollama, session) -> None:
        session.post.return_value = _response(status_error=requests.HTTPError("500"))
        with pytest.raises(requests.HTTPError):
            ollama.generate("question")

    def test_embed(self, ollama, session) -> None:
        session.post.return_value = _response({"embeddings": [[1.0, 2.0]]})

        assert ollama.embed(["text"]) == [[1.0, 2.0]]
        assert session.post.call_args.args[0] == "http://ollama:11434/api/embed"
        assert session.post.call_args.kwargs["json"] == {"model": "nomic-embed-text", "input": ["text"]}
        assert session.post.call_args.kwargs["timeout"] == 5

    def test_check_connection(self, ollama, session) -> None:
        session.get.return_value = _response({"models": []})
        assert ollama.check_connection()

        session.get.side_effect = requests.ConnectionError("refused")
        assert not ollama.check_connection()

    @pytest.mark.parametrize("models,expected", [
        ([{"name": "nomic-embed-text:latest"}], True),
        ([{"name": "nomic-embed-text"}], True),
        ([{"name": "coder"}], False),
        ([], False),
    ])
    def test_embeddings_available(self, ollama, session, models, expected) -> None:
        session.get.return_value = _response({"models": models})
        assert ollama.embeddings_available() is expected

    def test_embeddings_unavailable_when_listing_fails(self, ollama, session) -> None:
        session.get.side_effect = requests.Timeout("slow")
        assert not ollama.embeddings_available()

    def test_no_embedding_model_configured(self, session) -> None:
        provider = OllamaProvider(base_url="http://x", embedding_model="")
        assert not provider.embeddings_available()
        session.get.assert_not_called()


def test_create_provider(session) -> None:
    assert isinstance(create_provider("ollama"), OllamaProvider)
    with patch("repodocs.llm.provider.genai"):
        assert isinstance(create_provider("GEMINI"), GeminiProvider)
    with pytest.raises(ValueError, match="Unknown LLM provider"):
        create_provider("openai")
