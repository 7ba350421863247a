"""Crawling, indexing, caching and retrieval-augmented chat."""

from .cache import CacheStore, cache_key, normalize_site_url
from .chunker import Passage, split_passages
from .config import RAGConfig
from .conversation import ConversationEngine, ConversationResult, ConversationTurn
from .crawler import SiteCrawler
from .indexer import VectorIndex, ingest
from .reranker import LLMReranker
from .retriever import retrieve
from .session import Readiness, ReadinessResult, SessionManager, SitePipeline, SiteSession

__all__ = [
    "CacheStore",
    "ConversationEngine",
    "ConversationResult",
    "ConversationTurn",
    "LLMReranker",
    "Passage",
    "RAGConfig",
    "Readiness",
    "ReadinessResult",
    "SessionManager",
    "SiteCrawler",
    "SitePipeline",
    "SiteSession",
    "VectorIndex",
    "cache_key",
    "ingest",
    "normalize_site_url",
    "retrieve",
    "split_passages",
]
