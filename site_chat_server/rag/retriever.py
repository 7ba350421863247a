"""First-stage retrieval against the active vector index."""

import logging

from ..providers import EmbeddingProvider
from .chunker import Passage
from .indexer import VectorIndex

logger = logging.getLogger(__name__)


def retrieve(index: VectorIndex, query: str, k: int, embedding_provider: EmbeddingProvider) -> list[Passage]:
    """Return the k passages nearest to query, nearest first.

    The query must be embedded with the provider that built the index.
    """
    query_vector = embedding_provider.embed(query)
    passages = index.nearest(query_vector, k)
    logger.debug(f"[RAG] Retrieved {len(passages)} passages for: {query[:80]}")
    return passages
