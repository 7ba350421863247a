"""Embedding and text completion providers.

The RAG pipeline only depends on the two small protocols defined here.
Concrete providers talk to an OpenAI-compatible server or Ollama through
:mod:`site_chat_server.backends`; a local HuggingFace embedding provider
lives in :mod:`site_chat_server.local_embeddings`.
"""

import logging
from typing import Protocol, runtime_checkable
from urllib.parse import urlparse

import requests
from langchain_core.embeddings import Embeddings

from .backends import call_ollama_chat, call_ollama_embeddings, call_openai_chat, call_openai_embeddings
from .errors import ConfigurationError, UpstreamProviderError

logger = logging.getLogger(__name__)

Prompt = str | list[dict[str, str]]


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Turns text into fixed-dimension vectors."""

    model_name: str

    @property
    def is_configured(self) -> bool:
        """Whether credentials needed for embedding calls are present."""
        ...

    def embed(self, text: str) -> list[float]:
        """Embed a single text."""
        ...

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Embed several texts, one vector per input in input order."""
        ...


@runtime_checkable
class TextCompletionProvider(Protocol):
    """Produces a text response for a prompt or chat message list."""

    def complete(self, prompt: Prompt, temperature: float | None = None) -> str:
        """Return the model's text response."""
        ...


def as_messages(prompt: Prompt) -> list[dict[str, str]]:
    """Normalize a prompt into a chat message list."""
    if isinstance(prompt, str):
        return [{"role": "user", "content": prompt}]
    return list(prompt)


def _uses_hosted_openai(config) -> bool:
    return urlparse(config.OPENAI_ENDPOINT).netloc.lower() == "api.openai.com"


class BackendEmbeddingProvider:
    """Embedding provider backed by an OpenAI-compatible server or Ollama."""

    def __init__(self, config, model_name: str | None = None):
        """Initialize the provider.

        Args:
            config: ServerConfig instance
            model_name: Embedding model (defaults to config.EMBEDDING_MODEL)
        """
        self.config = config
        self.backend = config.EMBEDDING_BACKEND
        self.model_name = model_name or config.EMBEDDING_MODEL

    @property
    def is_configured(self) -> bool:
        # The hosted OpenAI API needs a key; local compatible servers and Ollama do not
        if self.backend == "openai" and _uses_hosted_openai(self.config):
            return bool(self.config.OPENAI_API_KEY)
        return True

    def embed(self, text: str) -> list[float]:
        return self.embed_batch([text])[0]

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        try:
            if self.backend == "ollama":
                vectors = call_ollama_embeddings(texts, self.model_name, self.config)
            else:
                vectors = call_openai_embeddings(texts, self.model_name, self.config)
        except requests.RequestException as e:
            raise UpstreamProviderError(f"Embedding request to {self.backend} backend failed: {e}") from e
        except (KeyError, TypeError, ValueError) as e:
            raise UpstreamProviderError(f"Malformed embedding response from {self.backend} backend: {e}") from e

        if len(vectors) != len(texts):
            raise UpstreamProviderError(
                f"Embedding backend returned {len(vectors)} vectors for {len(texts)} inputs"
            )
        return vectors


class BackendCompletionProvider:
    """Text completion provider backed by an OpenAI-compatible server or Ollama."""

    def __init__(self, config, model_name: str | None = None, temperature: float | None = None):
        """Initialize the provider.

        Args:
            config: ServerConfig instance
            model_name: Chat model (defaults to config.BACKEND_MODEL)
            temperature: Default sampling temperature (defaults to config.DEFAULT_TEMPERATURE)
        """
        self.config = config
        self.backend = config.BACKEND_TYPE
        self.model_name = model_name or config.BACKEND_MODEL
        self.temperature = config.DEFAULT_TEMPERATURE if temperature is None else temperature

    def complete(self, prompt: Prompt, temperature: float | None = None) -> str:
        messages = as_messages(prompt)
        temperature = self.temperature if temperature is None else temperature
        try:
            if self.backend == "ollama":
                return call_ollama_chat(messages, self.model_name, self.config, temperature)
            return call_openai_chat(messages, self.model_name, self.config, temperature)
        except requests.Timeout as e:
            raise UpstreamProviderError(
                f"{self.backend} backend timed out after {self.config.BACKEND_READ_TIMEOUT}s"
            ) from e
        except requests.RequestException as e:
            raise UpstreamProviderError(f"Completion request to {self.backend} backend failed: {e}") from e
        except (KeyError, TypeError, ValueError) as e:
            raise UpstreamProviderError(f"Malformed completion response from {self.backend} backend: {e}") from e


class ProviderEmbeddings(Embeddings):
    """LangChain ``Embeddings`` adapter over an :class:`EmbeddingProvider`.

    The FAISS vector store needs an Embeddings object even when vectors are
    computed up front; this adapter keeps it on the same provider.
    """

    def __init__(self, provider: EmbeddingProvider):
        self.provider = provider

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        return self.provider.embed_batch(list(texts))

    def embed_query(self, text: str) -> list[float]:
        return self.provider.embed(text)


def create_embedding_provider(config) -> EmbeddingProvider:
    """Create the embedding provider selected by config.EMBEDDING_BACKEND."""
    if config.EMBEDDING_BACKEND == "huggingface":
        # Optional heavy dependencies (torch); only imported when selected
        from .local_embeddings import HuggingFaceEmbeddingProvider

        return HuggingFaceEmbeddingProvider(config.EMBEDDING_MODEL)
    if config.EMBEDDING_BACKEND in ("openai", "ollama"):
        return BackendEmbeddingProvider(config)
    raise ConfigurationError(f"Unknown embedding backend: {config.EMBEDDING_BACKEND}")


def create_completion_provider(
    config, model_name: str | None = None, temperature: float | None = None
) -> TextCompletionProvider:
    """Create the completion provider selected by config.BACKEND_TYPE."""
    if config.BACKEND_TYPE not in ("openai", "ollama"):
        raise ConfigurationError(f"Unknown completion backend: {config.BACKEND_TYPE}")
    if config.BACKEND_TYPE == "openai" and _uses_hosted_openai(config) and not config.OPENAI_API_KEY:
        logger.warning("[PROVIDERS] OPENAI_API_KEY is not set; completion calls to api.openai.com will fail")
    return BackendCompletionProvider(config, model_name=model_name, temperature=temperature)
