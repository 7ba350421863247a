"""RAG configuration dataclass."""

from dataclasses import dataclass
from pathlib import Path

# Browser-like user agent; some sites refuse obvious bot agents
DEFAULT_USER_AGENT = "Mozilla/5.0 (compatible; SiteChatBot/1.0)"


@dataclass
class RAGConfig:
    """Configuration for crawling, indexing and answering questions about a site.

    Attributes:
        cache_dir: Root directory holding one cache entry per site

        # Crawling settings
        max_pages: Maximum number of distinct pages fetched per crawl (default: 50)
        request_timeout: HTTP timeout per page in seconds (default: 10.0)
        user_agent: User-Agent header sent with every page request

        # Chunking settings
        chunk_size: Target passage length in characters (default: 1000)
        chunk_overlap: Characters shared between neighbouring passages (default: 200)
        embedding_batch_size: Passages embedded per provider call (default: 100)

        # Search settings
        search_top_k: Passages retrieved from the vector index per question (default: 5)
        rerank_top_n: Passages kept after LLM reranking (default: 3)

        show_progress: Show tqdm progress bars while crawling and embedding
    """

    cache_dir: str | Path = "./site_cache"

    # Crawling settings
    max_pages: int = 50
    request_timeout: float = 10.0
    user_agent: str = DEFAULT_USER_AGENT

    # Chunking settings
    chunk_size: int = 1000
    chunk_overlap: int = 200
    embedding_batch_size: int = 100

    # Search settings
    search_top_k: int = 5
    rerank_top_n: int = 3

    show_progress: bool = False

    def __post_init__(self):
        """Convert cache_dir to Path and validate limits."""
        self.cache_dir = Path(self.cache_dir)

        if self.max_pages < 1:
            raise ValueError(f"max_pages must be at least 1, got {self.max_pages}")
        if self.chunk_size < 1:
            raise ValueError(f"chunk_size must be at least 1, got {self.chunk_size}")
        if not 0 <= self.chunk_overlap < self.chunk_size:
            raise ValueError(
                f"chunk_overlap must be in [0, chunk_size), got {self.chunk_overlap} (chunk_size={self.chunk_size})"
            )
        if self.embedding_batch_size < 1:
            raise ValueError(f"embedding_batch_size must be at least 1, got {self.embedding_batch_size}")
        if not 1 <= self.rerank_top_n <= self.search_top_k:
            raise ValueError(
                f"rerank_top_n must be between 1 and search_top_k, got {self.rerank_top_n} "
                f"(search_top_k={self.search_top_k})"
            )
