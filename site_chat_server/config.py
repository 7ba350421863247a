"""Base configuration for Site Chat Server."""

from typing import Literal

from .rag.config import DEFAULT_USER_AGENT, RAGConfig


class ServerConfig:
    """Base configuration class for Site Chat Server.

    Projects should subclass this and override as needed.
    """

    # Completion backend configuration
    BACKEND_TYPE: Literal["openai", "ollama"] = "openai"
    BACKEND_MODEL: str = "gpt-3.5-turbo"
    RERANK_MODEL: str = "gpt-3.5-turbo-0125"

    # Embedding backend configuration
    EMBEDDING_BACKEND: Literal["openai", "ollama", "huggingface"] = "openai"
    EMBEDDING_MODEL: str = "text-embedding-3-small"

    # Backend endpoints (OPENAI_ENDPOINT also serves LM Studio and other compatible servers)
    OPENAI_ENDPOINT: str = "https://api.openai.com/v1"
    OPENAI_API_KEY: str = ""
    OLLAMA_ENDPOINT: str = "http://localhost:11434"

    # Server configuration
    DEFAULT_HOST: str = "127.0.0.1"  # Default to localhost for security (use 0.0.0.0 for all interfaces)
    DEFAULT_PORT: int = 3000
    DEFAULT_TEMPERATURE: float = 0.2
    RERANK_TEMPERATURE: float = 0.0

    # Debug settings
    DEBUG_LOG: bool = False
    DEBUG_LOG_FILE: str = "site_chat_debug.log"
    DEBUG_LOG_MAX_BYTES: int = 10 * 1024 * 1024  # 10MB default
    DEBUG_LOG_BACKUP_COUNT: int = 5  # Keep 5 backup files

    # Backend timeout settings (in seconds)
    BACKEND_CONNECT_TIMEOUT: int = 10  # Connection timeout
    BACKEND_READ_TIMEOUT: int = 120  # Read timeout

    # Health check settings
    HEALTH_CHECK_ON_STARTUP: bool = True  # Check backend availability before starting server
    HEALTH_CHECK_TIMEOUT: int = 5  # Timeout for health check requests (in seconds)

    # Retry settings for backend calls
    BACKEND_RETRY_ATTEMPTS: int = 3  # Number of attempts for connection errors
    BACKEND_RETRY_INITIAL_DELAY: float = 1.0  # Initial delay in seconds (doubles each retry)

    # Index cache and optional S3 mirror (empty bucket = local storage only)
    CACHE_DIR: str = "./site_cache"
    S3_BUCKET: str = ""
    S3_PREFIX: str = "site-index"
    S3_REGION: str = ""

    # Crawling, chunking and retrieval
    PAGE_LIMIT: int = 50
    PAGE_TIMEOUT: float = 10.0
    CRAWLER_USER_AGENT: str = DEFAULT_USER_AGENT
    CHUNK_SIZE: int = 1000
    CHUNK_OVERLAP: int = 200
    EMBEDDING_BATCH_SIZE: int = 100
    RETRIEVAL_TOP_K: int = 5
    RERANK_TOP_N: int = 3
    SHOW_PROGRESS: bool = False

    @classmethod
    def from_env(cls, env_prefix: str = ""):
        """Create config from environment variables with optional prefix.

        Args:
            env_prefix: Prefix for environment variables (e.g., "SITECHAT_")

        Returns:
            ServerConfig instance populated from environment
        """
        import os

        from dotenv import load_dotenv

        load_dotenv()

        config = cls()

        # Helper to get env var with prefix
        def get_env(name: str, default):
            # Try with prefix first, then without
            prefixed = os.getenv(f"{env_prefix}{name}", None)
            if prefixed is not None:
                return prefixed
            return os.getenv(name, default)

        def get_flag(name: str, default: bool) -> bool:
            value = get_env(name, None)
            if value is None:
                return default
            return value.lower() in ("true", "1", "yes")

        # Backends
        config.BACKEND_TYPE = get_env("BACKEND", cls.BACKEND_TYPE)
        config.BACKEND_MODEL = get_env("BACKEND_MODEL", cls.BACKEND_MODEL)
        config.RERANK_MODEL = get_env("RERANK_MODEL", cls.RERANK_MODEL)
        config.EMBEDDING_BACKEND = get_env("EMBEDDING_BACKEND", cls.EMBEDDING_BACKEND)
        config.EMBEDDING_MODEL = get_env("EMBEDDING_MODEL", cls.EMBEDDING_MODEL)
        config.OPENAI_ENDPOINT = get_env("OPENAI_ENDPOINT", cls.OPENAI_ENDPOINT)
        config.OPENAI_API_KEY = get_env("OPENAI_API_KEY", cls.OPENAI_API_KEY)
        config.OLLAMA_ENDPOINT = get_env("OLLAMA_ENDPOINT", cls.OLLAMA_ENDPOINT)

        # Server
        config.DEFAULT_HOST = get_env("HOST", cls.DEFAULT_HOST)
        config.DEFAULT_PORT = int(get_env("PORT", str(cls.DEFAULT_PORT)))
        config.DEFAULT_TEMPERATURE = float(get_env("TEMPERATURE", str(cls.DEFAULT_TEMPERATURE)))
        config.RERANK_TEMPERATURE = float(get_env("RERANK_TEMPERATURE", str(cls.RERANK_TEMPERATURE)))
        config.DEBUG_LOG = get_flag("DEBUG_LOG", cls.DEBUG_LOG)
        config.DEBUG_LOG_FILE = get_env("DEBUG_LOG_FILE", cls.DEBUG_LOG_FILE)
        config.DEBUG_LOG_MAX_BYTES = int(get_env("DEBUG_LOG_MAX_BYTES", str(cls.DEBUG_LOG_MAX_BYTES)))
        config.DEBUG_LOG_BACKUP_COUNT = int(get_env("DEBUG_LOG_BACKUP_COUNT", str(cls.DEBUG_LOG_BACKUP_COUNT)))
        config.BACKEND_CONNECT_TIMEOUT = int(get_env("BACKEND_CONNECT_TIMEOUT", str(cls.BACKEND_CONNECT_TIMEOUT)))
        config.BACKEND_READ_TIMEOUT = int(get_env("BACKEND_READ_TIMEOUT", str(cls.BACKEND_READ_TIMEOUT)))
        config.HEALTH_CHECK_ON_STARTUP = get_flag("HEALTH_CHECK_ON_STARTUP", cls.HEALTH_CHECK_ON_STARTUP)
        config.HEALTH_CHECK_TIMEOUT = int(get_env("HEALTH_CHECK_TIMEOUT", str(cls.HEALTH_CHECK_TIMEOUT)))
        config.BACKEND_RETRY_ATTEMPTS = int(get_env("BACKEND_RETRY_ATTEMPTS", str(cls.BACKEND_RETRY_ATTEMPTS)))
        config.BACKEND_RETRY_INITIAL_DELAY = float(
            get_env("BACKEND_RETRY_INITIAL_DELAY", str(cls.BACKEND_RETRY_INITIAL_DELAY))
        )

        # Storage
        config.CACHE_DIR = get_env("CACHE_DIR", cls.CACHE_DIR)
        config.S3_BUCKET = get_env("S3_BUCKET", cls.S3_BUCKET)
        config.S3_PREFIX = get_env("S3_PREFIX", cls.S3_PREFIX)
        config.S3_REGION = get_env("S3_REGION", cls.S3_REGION)

        # RAG
        config.PAGE_LIMIT = int(get_env("PAGE_LIMIT", str(cls.PAGE_LIMIT)))
        config.PAGE_TIMEOUT = float(get_env("PAGE_TIMEOUT", str(cls.PAGE_TIMEOUT)))
        config.CRAWLER_USER_AGENT = get_env("CRAWLER_USER_AGENT", cls.CRAWLER_USER_AGENT)
        config.CHUNK_SIZE = int(get_env("CHUNK_SIZE", str(cls.CHUNK_SIZE)))
        config.CHUNK_OVERLAP = int(get_env("CHUNK_OVERLAP", str(cls.CHUNK_OVERLAP)))
        config.EMBEDDING_BATCH_SIZE = int(get_env("EMBEDDING_BATCH_SIZE", str(cls.EMBEDDING_BATCH_SIZE)))
        config.RETRIEVAL_TOP_K = int(get_env("RETRIEVAL_TOP_K", str(cls.RETRIEVAL_TOP_K)))
        config.RERANK_TOP_N = int(get_env("RERANK_TOP_N", str(cls.RERANK_TOP_N)))
        config.SHOW_PROGRESS = get_flag("SHOW_PROGRESS", cls.SHOW_PROGRESS)

        return config

    def rag_config(self) -> RAGConfig:
        """Build the RAGConfig used by the crawling and indexing pipeline."""
        return RAGConfig(
            cache_dir=self.CACHE_DIR,
            max_pages=self.PAGE_LIMIT,
            request_timeout=self.PAGE_TIMEOUT,
            user_agent=self.CRAWLER_USER_AGENT,
            chunk_size=self.CHUNK_SIZE,
            chunk_overlap=self.CHUNK_OVERLAP,
            embedding_batch_size=self.EMBEDDING_BATCH_SIZE,
            search_top_k=self.RETRIEVAL_TOP_K,
            rerank_top_n=self.RERANK_TOP_N,
            show_progress=self.SHOW_PROGRESS,
        )
