"""Flask server exposing site preparation and chat."""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import List, Optional

from flask import Flask, jsonify, request
from flask_cors import CORS

from .backends import check_ollama_health, check_openai_health
from .config import ServerConfig
from .errors import (
    ConfigurationError,
    EmptyContentError,
    InvalidInputError,
    NotReadyError,
    SiteChatError,
    UpstreamProviderError,
)
from .providers import create_completion_provider, create_embedding_provider
from .rag.cache import CacheStore
from .rag.conversation import ConversationEngine
from .rag.crawler import SiteCrawler
from .rag.reranker import LLMReranker
from .rag.session import SessionManager, SitePipeline

logger = logging.getLogger(__name__)

SESSION_HEADER = "X-Session-Id"

# HTTP status per error type; anything else is a 500
_ERROR_STATUS = {
    InvalidInputError: 400,
    NotReadyError: 400,
    EmptyContentError: 422,
    ConfigurationError: 500,
    UpstreamProviderError: 502,
}


def build_session_manager(config: ServerConfig) -> SessionManager:
    """Wire providers, crawler, cache store and conversation engine from config."""
    rag_config = config.rag_config()

    blob_store = None
    if config.S3_BUCKET:
        from .rag.s3_store import S3BlobStore

        blob_store = S3BlobStore(config.S3_BUCKET, prefix=config.S3_PREFIX, region_name=config.S3_REGION or None)

    embedding_provider = create_embedding_provider(config)
    pipeline = SitePipeline(
        config=rag_config,
        crawler=SiteCrawler(
            request_timeout=rag_config.request_timeout,
            user_agent=rag_config.user_agent,
            show_progress=rag_config.show_progress,
        ),
        cache_store=CacheStore(rag_config.cache_dir, blob_store=blob_store),
        embedding_provider=embedding_provider,
    )
    engine = ConversationEngine(
        embedding_provider=embedding_provider,
        completion_provider=create_completion_provider(config),
        reranker=LLMReranker(
            create_completion_provider(config, model_name=config.RERANK_MODEL, temperature=config.RERANK_TEMPERATURE),
            top_n=rag_config.rerank_top_n,
            temperature=config.RERANK_TEMPERATURE,
        ),
        top_k=rag_config.search_top_k,
    )
    return SessionManager(pipeline, engine)


class SiteChatServer:
    """Flask server letting a client prepare a site and chat about it."""

    def __init__(
        self,
        config: ServerConfig,
        sessions: Optional[SessionManager] = None,
        name: str = "SiteChat",
        logger_names: Optional[List[str]] = None,
    ):
        """Initialize Site Chat Server.

        Args:
            config: ServerConfig instance
            sessions: Optional SessionManager (built from config when omitted)
            name: Display name for the server
            logger_names: Optional list of logger names for debug logging
        """
        self.name = name
        self.config = config
        self.sessions = sessions if sessions is not None else build_session_manager(config)

        # Create Flask app
        self.app = Flask(name.lower())
        CORS(self.app)

        # Configure logging
        logger_names = logger_names or ["site_chat_server"]

        if config.DEBUG_LOG:
            log_file = Path(config.DEBUG_LOG_FILE)
            # Use RotatingFileHandler for automatic log rotation
            file_handler = RotatingFileHandler(
                log_file,
                maxBytes=config.DEBUG_LOG_MAX_BYTES,
                backupCount=config.DEBUG_LOG_BACKUP_COUNT,
                encoding="utf-8",
            )
            file_handler.setLevel(logging.DEBUG)

            formatter = logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s", datefmt="%Y-%m-%d %H:%M:%S"
            )
            file_handler.setFormatter(formatter)

            for logger_name in logger_names:
                logger_obj = logging.getLogger(logger_name)
                logger_obj.setLevel(logging.DEBUG)
                logger_obj.addHandler(file_handler)

            max_mb = config.DEBUG_LOG_MAX_BYTES / (1024 * 1024)
            logger.info(
                f"Debug logging enabled: {log_file.absolute()} "
                f"({max_mb:.1f}MB max, {config.DEBUG_LOG_BACKUP_COUNT} backups)"
            )

        # Register routes
        self._register_routes()

    def _register_routes(self):
        """Register Flask routes."""
        self.app.route("/health", methods=["GET"])(self.health)
        self.app.route("/api/status", methods=["GET"])(self.status)
        self.app.route("/api/prepare-site", methods=["POST"])(self.prepare_site)
        self.app.route("/api/chat", methods=["POST"])(self.chat)

    def _session(self):
        return self.sessions.get(request.headers.get(SESSION_HEADER))

    def _error_response(self, error: Exception):
        """Map an exception to a JSON error response."""
        for error_type, status in _ERROR_STATUS.items():
            if isinstance(error, error_type):
                return jsonify({"error": str(error)}), status
        if isinstance(error, SiteChatError):
            return jsonify({"error": str(error)}), 500
        logger.exception("[SERVER] Unexpected error")
        return jsonify({"error": "Internal server error."}), 500

    def check_backend_health(self) -> bool:
        """Check if the completion backend is healthy and reachable.

        Returns:
            True if backend is healthy, False otherwise
        """
        if self.config.BACKEND_TYPE == "ollama":
            is_healthy, message = check_ollama_health(self.config, timeout=self.config.HEALTH_CHECK_TIMEOUT)
        else:
            is_healthy, message = check_openai_health(self.config, timeout=self.config.HEALTH_CHECK_TIMEOUT)

        if is_healthy:
            logger.info(f"✓ {message}")
        else:
            logger.warning(f"✗ {message}")

        return is_healthy

    def health(self):
        """Health check endpoint."""
        return jsonify({"status": "healthy", "backend": self.config.BACKEND_TYPE, "model": self.config.BACKEND_MODEL})

    def status(self):
        """Report readiness and the active site for the caller's session."""
        return jsonify({"status": "Server is running", **self._session().status()})

    def prepare_site(self):
        """Crawl and index a site, or load it from cache."""
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            return jsonify({"error": "Invalid JSON in request body"}), 400

        try:
            result = self._session().prepare_site(data.get("url"))
        except Exception as e:
            return self._error_response(e)

        return jsonify(
            {
                "success": True,
                "siteUrl": result.site_url,
                "fromCache": result.from_cache,
                "passages": result.num_passages,
            }
        )

    def chat(self):
        """Answer a chat message about the prepared site."""
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            return jsonify({"error": "Invalid JSON in request body"}), 400

        try:
            response = self._session().answer(data.get("message"))
        except Exception as e:
            return self._error_response(e)

        return jsonify({"response": response})

    def run(self, port: Optional[int] = None, host: Optional[str] = None, debug: bool = False):
        """Run the Flask server.

        Args:
            port: Port to run on (defaults to config.DEFAULT_PORT)
            host: Host to bind to (defaults to config.DEFAULT_HOST, which is 127.0.0.1 for security)
            debug: Enable debug mode
        """
        port = port or self.config.DEFAULT_PORT
        host = host or self.config.DEFAULT_HOST

        logger.info(
            f"{self.name} starting: backend={self.config.BACKEND_TYPE} model={self.config.BACKEND_MODEL} "
            f"embeddings={self.config.EMBEDDING_BACKEND}/{self.config.EMBEDDING_MODEL} url=http://{host}:{port}"
        )

        # Security warning if binding to all interfaces
        if host == "0.0.0.0":
            logger.warning(
                "Server is binding to 0.0.0.0 (all network interfaces). "
                "This exposes the API to your entire network without authentication."
            )

        # Check backend health if enabled
        if self.config.HEALTH_CHECK_ON_STARTUP and not self.check_backend_health():
            logger.warning(
                "Backend health check failed. The server will start anyway, but requests may fail. "
                "To disable this check, set HEALTH_CHECK_ON_STARTUP=false"
            )

        self.app.run(host=host, port=port, debug=debug)
