"""LLM provider interface with Gemini and Ollama implementations."""

from __future__ import annotations

import logging
import time
from typing import Protocol

import requests
from google import genai
from google.genai import types

from repodocs import config

logger = logging.getLogger(__name__)


class EmbeddingProvider(Protocol):
    """Protocol for embedding providers."""

    def embed(self, texts: list[str]) -> list[list[float]]:
        """Embed a list of texts, returning a list of float vectors."""
        ...


class GenerationProvider(Protocol):
    """Protocol for text generation providers."""

    def generate(self, prompt: str, system: str | None = None) -> str:
        """Generate text from a prompt, returning the response string."""
        ...


class LLMProvider(EmbeddingProvider, GenerationProvider, Protocol):
    """A provider offering both services plus the pre-run availability checks."""

    def check_connection(self) -> bool:
        """True if the generation endpoint answers."""
        ...

    def embeddings_available(self) -> bool:
        """True if the embedding model can be used for this run."""
        ...


class GeminiProvider:
    """Gemini implementation of embedding and generation."""

    def __init__(
        self,
        api_key: str | None = None,
        embedding_model: str | None = None,
        embedding_dims: int | None = None,
        generation_model: str | None = None,
        timeout: float | None = None,
    ) -> None:
        timeout_ms = int((timeout or config.LLM_TIMEOUT) * 1000)
        self._client = genai.Client(
            api_key=api_key or config.GEMINI_API_KEY,
            http_options=types.HttpOptions(timeout=timeout_ms),
        )
        self._embedding_model = embedding_model or config.EMBEDDING_MODEL
        self._embedding_dims = embedding_dims or config.EMBEDDING_DIMS
        self._generation_model = generation_model or config.GEMINI_MODEL

    @property
    def model_name(self) -> str:
        return self._generation_model

    def check_connection(self) -> bool:
        try:
            self._client.models.get(model=self._generation_model)
            return True
        except Exception as e:
            logger.warning("Gemini connection check failed: %s", e)
            return False

    def embeddings_available(self) -> bool:
        try:
            vectors = self.embed(["ping"])
        except Exception as e:
            logger.warning("Gemini embedding check failed: %s", e)
            return False
        return bool(vectors and vectors[0])

    def embed(self, texts: list[str]) -> list[list[float]]:
        """Embed texts using Gemini embedding API.

        Args:
            texts: List of strings to embed. Max 250 per call.

        Returns:
            List of float vectors, one per input text.
        """
        total_chars = sum(len(t) for t in texts)
        logger.debug("Embedding %d text(s) (%d chars) via %s", len(texts), total_chars, self._embedding_model)
        t0 = time.perf_counter()
        result = self._client.models.embed_content(
            model=self._embedding_model,
            contents=texts,
            config=types.EmbedContentConfig(
                output_dimensionality=self._embedding_dims,
            ),
        )
        logger.debug("Embed complete: %.0fms", (time.perf_counter() - t0) * 1000)
        return [e.values for e in result.embeddings]

    def generate(self, prompt: str, system: str | None = None) -> str:
        """Generate text using Gemini.

        Args:
            prompt: The user prompt.
            system: Optional system instruction.

        Returns:
            The generated text response.
        """
        logger.debug("Generate via %s (%d char prompt)", self._generation_model, len(prompt))
        t0 = time.perf_counter()
        gen_config = types.GenerateContentConfig(temperature=0.1)
        if system:
            gen_config = types.GenerateContentConfig(
                system_instruction=system,
                temperature=0.1,
            )
        response = self._client.models.generate_content(
            model=self._generation_model,
            contents=prompt,
            config=gen_config,
        )
        logger.debug("Generate complete: %d chars, %.0fms", len(response.text or ""), (time.perf_counter() - t0) * 1000)
        return response.text or ""


class OllamaProvider:
    """Local Ollama server: /api/chat for generation, /api/embed for vectors."""

    CHECK_TIMEOUT = 8

    def __init__(
        self,
        base_url: str | None = None,
        model: str | None = None,
        embedding_model: str | None = None,
        timeout: float | None = None,
        embed_timeout: float | None = None,
    ) -> None:
        self._base_url = (base_url or config.OLLAMA_BASE_URL).rstrip("/")
        self._model = model or config.OLLAMA_MODEL
        self._embedding_model = embedding_model if embedding_model is not None else config.OLLAMA_EMBEDDING_MODEL
        self._timeout = timeout or config.LLM_TIMEOUT
        self._embed_timeout = embed_timeout or config.EMBED_TIMEOUT
        self._session = requests.Session()

    @property
    def model_name(self) -> str:
        return self._model

    def _list_models(self) -> list[str]:
        response = self._session.get(f"{self._base_url}/api/tags", timeout=self.CHECK_TIMEOUT)
        response.raise_for_status()
        return [m.get("name") for m in response.json().get("models", []) if m.get("name")]

    def check_connection(self) -> bool:
        try:
            self._session.get(
                f"{self._base_url}/api/tags", timeout=self.CHECK_TIMEOUT
            ).raise_for_status()
            return True
        except requests.RequestException as e:
            logger.warning("Ollama connection check failed at %s: %s", self._base_url, e)
            return False

    def embeddings_available(self) -> bool:
        if not self._embedding_model:
            return False
        try:
            models = self._list_models()
        except requests.RequestException as e:
            logger.warning("Ollama model listing failed: %s", e)
            return False
        wanted = self._embedding_model
        return any(m == wanted or m == f"{wanted}:latest" for m in models)

    def embed(self, texts: list[str]) -> list[list[float]]:
        logger.debug("Embedding %d text(s) via %s", len(texts), self._embedding_model)
        t0 = time.perf_counter()
        response = self._session.post(
            f"{self._base_url}/api/embed",
            json={"model": self._embedding_model, "input": texts},
            timeout=self._embed_timeout,
        )
        response.raise_for_status()
        logger.debug("Embed complete: %.0fms", (time.perf_counter() - t0) * 1000)
        return response.json()["embeddings"]

    def generate(self, prompt: str, system: str | None = None) -> str:
        logger.debug("Generate via %s (%d char prompt)", self._model, len(prompt))
        t0 = time.perf_counter()
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})
        response = self._session.post(
            f"{self._base_url}/api/chat",
            json={
                "model": self._model,
                "messages": messages,
                "stream": False,
                "options": {"temperature": 0.1, "num_ctx": 16384},
            },
            timeout=self._timeout,
        )
        response.raise_for_status()
        text = response.json()["message"]["content"]
        logger.debug("Generate complete: %d chars, %.0fms", len(text), (time.perf_counter() - t0) * 1000)
        return text


def create_provider(name: str | None = None) -> GeminiProvider | OllamaProvider:
    """Build the provider named by ``name`` or ``LLM_PROVIDER``."""
    name = (name or config.LLM_PROVIDER).lower()
    if name == "gemini":
        return GeminiProvider()
    if name == "ollama":
        return OllamaProvider()
    raise ValueError(f"Unknown LLM provider: {name!r}. Use 'gemini' or 'ollama'.")
