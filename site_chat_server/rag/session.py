"""Per-session site preparation and chat state.

A session owns one prepared site at a time: its readiness, the active
vector index and the conversation history. Sessions are independent, so
two callers can prepare different sites without overwriting each other.
"""

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from urllib.parse import urlparse

from ..errors import EmptyContentError, InvalidInputError, NotReadyError
from ..providers import EmbeddingProvider
from .cache import CacheStore, cache_key
from .config import RAGConfig
from .conversation import INVALID_QUESTION_MESSAGE, ConversationEngine, ConversationTurn
from .crawler import SiteCrawler
from .indexer import VectorIndex, ingest

logger = logging.getLogger(__name__)

DEFAULT_SESSION_ID = "default"


class Readiness(str, Enum):
    """Lifecycle of a session's prepared site."""

    NOT_READY = "not_ready"
    PREPARING = "preparing"
    READY = "ready"
    FAILED = "failed"


@dataclass(frozen=True)
class SiteSnapshot:
    """Readiness, site and index of a session, swapped as one value."""

    readiness: Readiness = Readiness.NOT_READY
    site_url: str | None = None
    index: VectorIndex | None = None
    error: str | None = None

    @property
    def is_ready(self) -> bool:
        return self.readiness is Readiness.READY and self.index is not None


@dataclass(frozen=True)
class ReadinessResult:
    """Outcome of a successful site preparation."""

    site_url: str
    from_cache: bool
    num_passages: int


def validate_site_url(url) -> str:
    """Return url stripped of whitespace if it is an absolute http(s) URL.

    Raises:
        InvalidInputError: If url is missing or not an http(s) URL with a host
    """
    if not isinstance(url, str) or not url.strip():
        raise InvalidInputError("A site URL is required.")
    url = url.strip()
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise InvalidInputError(f"Please enter a valid URL (e.g., https://example.com), got: {url}")
    return url


class SitePipeline:
    """Loads a site's index from cache, or crawls and indexes it on a miss."""

    def __init__(
        self,
        config: RAGConfig,
        crawler: SiteCrawler,
        cache_store: CacheStore,
        embedding_provider: EmbeddingProvider,
    ):
        self.config = config
        self.crawler = crawler
        self.cache_store = cache_store
        self.embedding_provider = embedding_provider

    def load_or_build(self, url: str) -> tuple[VectorIndex, bool]:
        """Return (index, from_cache) for url.

        The cache is consulted on every call; there is no in-memory memo.

        Raises:
            EmptyContentError: If crawling produced no text
            ConfigurationError: If no embedding provider is configured
            UpstreamProviderError: If embedding or remote storage calls fail
        """
        key = cache_key(url)
        logger.info(f"[RAG] Preparing {url} (cache key: {key[:16]}...)")

        index = self.cache_store.load(key, self.embedding_provider)
        if index is not None:
            return index, True

        text = self.crawler.crawl(url, self.config.max_pages)
        if not text.strip():
            raise EmptyContentError(f"No text content could be extracted from {url}.")

        index = ingest(text, self.embedding_provider, self.config)
        self.cache_store.store(key, index, url)
        return index, False


class SiteSession:
    """State for one caller: the prepared site and its conversation."""

    def __init__(self, session_id: str, pipeline: SitePipeline, engine: ConversationEngine):
        self.session_id = session_id
        self.pipeline = pipeline
        self.engine = engine

        self._snapshot = SiteSnapshot()
        self._history: tuple[ConversationTurn, ...] = ()
        # One preparation at a time per session
        self._prepare_lock = threading.Lock()
        # Guards snapshot and history replacement
        self._state_lock = threading.Lock()

    @property
    def snapshot(self) -> SiteSnapshot:
        return self._snapshot

    @property
    def history(self) -> tuple[ConversationTurn, ...]:
        return self._history

    def status(self) -> dict:
        """Readiness report; failed loads are reported as not ready with no URL."""
        snapshot = self._snapshot
        return {
            "state": snapshot.readiness.value,
            "isReady": snapshot.is_ready,
            "siteUrl": snapshot.site_url if snapshot.is_ready else None,
            "error": snapshot.error,
        }

    def prepare_site(self, url) -> ReadinessResult:
        """Load or build the index for url and make it this session's active site.

        On success the conversation history is reset. On any failure the
        session becomes not ready, with no site URL and no active index, and
        the error is re-raised.
        """
        url = validate_site_url(url)

        with self._prepare_lock:
            self._set_snapshot(SiteSnapshot(readiness=Readiness.PREPARING))
            logger.info(f"[SESSION] {self.session_id}: preparing {url}")
            try:
                index, from_cache = self.pipeline.load_or_build(url)
            except Exception as e:
                self._set_snapshot(SiteSnapshot(readiness=Readiness.FAILED, error=str(e)))
                logger.error(f"[SESSION] {self.session_id}: failed to prepare {url}: {e}")
                raise

            with self._state_lock:
                self._snapshot = SiteSnapshot(readiness=Readiness.READY, site_url=url, index=index)
                self._history = ()

        logger.info(
            f"[SESSION] {self.session_id}: ✓ ready for {url} "
            f"({len(index)} passages, {'cached' if from_cache else 'freshly built'})"
        )
        return ReadinessResult(site_url=url, from_cache=from_cache, num_passages=len(index))

    def answer(self, question) -> str:
        """Answer question against the active site and record the turn.

        Raises:
            InvalidInputError: If question is empty or not text
            NotReadyError: If no site is ready
            UpstreamProviderError: If a model call fails (history is left unchanged)
        """
        if not isinstance(question, str) or not question.strip():
            raise InvalidInputError(INVALID_QUESTION_MESSAGE)

        snapshot = self._snapshot
        if not snapshot.is_ready:
            raise NotReadyError("Chatbot is not ready. Please prepare a site first.")

        result = self.engine.answer(question, snapshot.index, self._history)

        with self._state_lock:
            # Drop the turn if the site was replaced while answering
            if self._snapshot is snapshot:
                self._history = (*self._history, result.history[-1])
        return result.answer

    def _set_snapshot(self, snapshot: SiteSnapshot):
        with self._state_lock:
            self._snapshot = snapshot


class SessionManager:
    """Maps caller-supplied session ids to independent sessions."""

    def __init__(self, pipeline: SitePipeline, engine: ConversationEngine):
        self.pipeline = pipeline
        self.engine = engine
        self._sessions: dict[str, SiteSession] = {}
        self._lock = threading.Lock()

    def get(self, session_id: str | None = None) -> SiteSession:
        """Return the session for session_id, creating it on first use."""
        session_id = session_id or DEFAULT_SESSION_ID
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                session = SiteSession(session_id, self.pipeline, self.engine)
                self._sessions[session_id] = session
            return session

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)
