"""Site Chat Server - Chat with any website, grounded in its own content."""

from .config import ServerConfig
from .errors import (
    ConfigurationError,
    EmptyContentError,
    InvalidInputError,
    NetworkError,
    NotReadyError,
    RerankParseError,
    SiteChatError,
    UpstreamProviderError,
)
from .server import SiteChatServer, build_session_manager

# Optional modules available but not imported by default to avoid dependency bloat:
# - Local embeddings: from site_chat_server.local_embeddings import HuggingFaceEmbeddingProvider
# - S3 mirror: from site_chat_server.rag.s3_store import S3BlobStore

__version__ = "0.1.0"
__all__ = [
    "ConfigurationError",
    "EmptyContentError",
    "InvalidInputError",
    "NetworkError",
    "NotReadyError",
    "RerankParseError",
    "ServerConfig",
    "SiteChatError",
    "SiteChatServer",
    "UpstreamProviderError",
    "build_session_manager",
]
