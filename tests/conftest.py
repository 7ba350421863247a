"""Shared pytest fixtures for Site Chat Server tests."""

import hashlib
import math
import re
from pathlib import Path

import pytest
import requests

from site_chat_server.config import ServerConfig
from site_chat_server.errors import UpstreamProviderError
from site_chat_server.rag.cache import CacheStore
from site_chat_server.rag.config import RAGConfig
from site_chat_server.rag.conversation import ConversationEngine
from site_chat_server.rag.crawler import SiteCrawler
from site_chat_server.rag.reranker import LLMReranker
from site_chat_server.rag.session import SessionManager, SitePipeline


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast tests with no network access")


class FakeEmbeddingProvider:
    """Deterministic hashed bag-of-words embeddings."""

    model_name = "fake-embedding"

    def __init__(self, dimension: int = 256, configured: bool = True):
        self.dimension = dimension
        self.configured = configured
        self.calls = []

    @property
    def is_configured(self) -> bool:
        return self.configured

    def embed(self, text):
        return self.embed_batch([text])[0]

    def embed_batch(self, texts):
        self.calls.append(list(texts))
        return [self._vector(text) for text in texts]

    def _vector(self, text):
        vector = [0.0] * self.dimension
        for word in re.findall(r"\w+", text.lower()):
            digest = hashlib.md5(word.encode("utf-8")).digest()
            vector[int.from_bytes(digest[:4], "big") % self.dimension] += 1.0
        norm = math.sqrt(sum(v * v for v in vector)) or 1.0
        return [v / norm for v in vector]


class FakeCompletionProvider:
    """Returns scripted responses and records every prompt."""

    def __init__(self, responses=None, error=None, default="OK"):
        self.responses = list(responses or [])
        self.error = error
        self.default = default
        self.prompts = []

    def complete(self, prompt, temperature=None):
        self.prompts.append((prompt, temperature))
        if self.error is not None:
            raise self.error
        if self.responses:
            return self.responses.pop(0)
        return self.default


class FakeBlobStore:
    """In-memory blob store."""

    def __init__(self, fail_uploads: bool = False):
        self.entries = {}
        self.fail_uploads = fail_uploads

    def exists(self, key):
        return key in self.entries

    def upload(self, local_path, key):
        if self.fail_uploads:
            raise UpstreamProviderError("simulated upload failure")
        self.entries[key] = {p.name: p.read_bytes() for p in Path(local_path).iterdir() if p.is_file()}

    def download(self, key, local_path):
        local_path = Path(local_path)
        local_path.mkdir(parents=True, exist_ok=True)
        for name, data in self.entries[key].items():
            (local_path / name).write_bytes(data)


class FakeResponse:
    """Minimal stand-in for requests.Response."""

    def __init__(self, url, text="", status_code=200, content_type="text/html; charset=utf-8"):
        self.url = url
        self.text = text
        self.status_code = status_code
        self.headers = {"content-type": content_type}

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error for url: {self.url}", response=self)


class FakeSite:
    """Serves canned pages in place of requests.get."""

    def __init__(self):
        self.pages = {}
        self.requested = []
        self.request_headers = []
        self.timeouts = []

    def add(self, url, html="", status_code=200, content_type="text/html; charset=utf-8", final_url=None, error=None):
        self.pages[url] = {
            "html": html,
            "status_code": status_code,
            "content_type": content_type,
            "final_url": final_url or url,
            "error": error,
        }

    def get(self, url, headers=None, timeout=None):
        self.requested.append(url)
        self.request_headers.append(headers)
        self.timeouts.append(timeout)
        page = self.pages.get(url)
        if page is None:
            return FakeResponse(url, "Not found", status_code=404)
        if page["error"] is not None:
            raise page["error"]
        return FakeResponse(page["final_url"], page["html"], page["status_code"], page["content_type"])


def html_page(body: str, title: str = "Example") -> str:
    return f"<html><head><title>{title}</title></head><body>{body}</body></html>"


@pytest.fixture
def fake_site(monkeypatch):
    """Patch requests.get with an in-memory site."""
    site = FakeSite()
    monkeypatch.setattr(requests, "get", site.get)
    return site


@pytest.fixture
def example_site(fake_site):
    """A small three-page site about a bakery."""
    fake_site.add(
        "https://example.com/",
        html_page(
            "<nav>Home | About | Shipping</nav>"
            "<h1>Sunrise Bakery</h1><p>Our bakery sells sourdough bread every morning.</p>"
            '<a href="/about">About</a> <a href="/shipping">Shipping</a>'
            "<footer>Copyright Sunrise Bakery</footer>"
        ),
    )
    fake_site.add(
        "https://example.com/about",
        html_page('<p>The founders opened the shop in nineteen ninety.</p><a href="/">Home</a>'),
    )
    fake_site.add(
        "https://example.com/shipping",
        html_page('<p>The shipping policy covers returns within thirty days.</p><a href="/">Home</a>'),
    )
    return fake_site


@pytest.fixture
def default_config():
    """Provide a default ServerConfig instance for testing."""
    return ServerConfig()


@pytest.fixture
def rag_config(tmp_path):
    """Small passages so test corpora produce several of them."""
    return RAGConfig(cache_dir=tmp_path / "cache", max_pages=10, chunk_size=80, chunk_overlap=10)


@pytest.fixture
def embedding_provider():
    return FakeEmbeddingProvider()


@pytest.fixture
def cache_store(rag_config):
    return CacheStore(rag_config.cache_dir)


@pytest.fixture
def rerank_provider():
    return FakeCompletionProvider(default="{}")


@pytest.fixture
def chat_provider():
    return FakeCompletionProvider(default="Sunrise Bakery sells sourdough bread.")


@pytest.fixture
def pipeline(rag_config, cache_store, embedding_provider):
    return SitePipeline(
        config=rag_config,
        crawler=SiteCrawler(request_timeout=rag_config.request_timeout),
        cache_store=cache_store,
        embedding_provider=embedding_provider,
    )


@pytest.fixture
def engine(embedding_provider, chat_provider, rerank_provider, rag_config):
    return ConversationEngine(
        embedding_provider=embedding_provider,
        completion_provider=chat_provider,
        reranker=LLMReranker(rerank_provider, top_n=rag_config.rerank_top_n),
        top_k=rag_config.search_top_k,
    )


@pytest.fixture
def session_manager(pipeline, engine):
    return SessionManager(pipeline, engine)
