"""Content-addressed cache of built vector indexes.

Each site gets one entry directory named after a hash of its normalized URL.
Local storage is the source of truth; an optional BlobStore mirrors entries
so other machines can skip crawling.
"""

import hashlib
import logging
import os
import re
import shutil
import uuid
from datetime import datetime, timezone
from pathlib import Path

from ..errors import UpstreamProviderError
from ..providers import EmbeddingProvider
from .blob_store import BlobStore
from .indexer import MANIFEST_FILE, VectorIndex

logger = logging.getLogger(__name__)

_PROTOCOL_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*://")


def normalize_site_url(url: str) -> str:
    """Normalize a site URL for cache keying.

    Strips surrounding whitespace, the protocol, a leading "www." and
    trailing slashes, so http://www.example.com/ and https://example.com
    share an entry.
    """
    normalized = _PROTOCOL_RE.sub("", url.strip())
    if normalized.lower().startswith("www."):
        normalized = normalized[4:]
    return normalized.rstrip("/")


def cache_key(url: str) -> str:
    """Return the SHA256 hex digest identifying a site's cache entry."""
    return hashlib.sha256(normalize_site_url(url).encode("utf-8")).hexdigest()


class CacheStore:
    """Two-tier store of serialized vector indexes keyed by cache key."""

    def __init__(self, cache_dir: str | Path, blob_store: BlobStore | None = None):
        """Initialize the cache store.

        Args:
            cache_dir: Root directory for local entries (created if missing)
            blob_store: Optional remote mirror
        """
        self.cache_dir = Path(cache_dir)
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self.blob_store = blob_store

    def entry_dir(self, key: str) -> Path:
        return self.cache_dir / key

    def has_local(self, key: str) -> bool:
        return (self.entry_dir(key) / MANIFEST_FILE).exists()

    def exists(self, key: str) -> bool:
        """Whether an entry exists locally or in the remote mirror."""
        if self.has_local(key):
            return True
        return self.blob_store is not None and self.blob_store.exists(key)

    def load(self, key: str, embedding_provider: EmbeddingProvider) -> VectorIndex | None:
        """Load the index stored under key.

        Remote entries are downloaded into local storage before loading.
        A corrupt local entry is discarded and treated as missing.

        Args:
            key: Cache key
            embedding_provider: Provider used to embed queries against the loaded index

        Returns:
            The cached VectorIndex, or None on a cache miss

        Raises:
            UpstreamProviderError: If the remote mirror cannot be queried or downloaded
        """
        if self.has_local(key):
            index = self._load_local(key, embedding_provider)
            if index is not None:
                logger.info(f"[CACHE] Local cache hit for {key[:16]}...")
                return index

        if self.blob_store is None or not self.blob_store.exists(key):
            logger.info(f"[CACHE] Cache miss for {key[:16]}...")
            return None

        logger.info(f"[CACHE] Remote cache hit for {key[:16]}..., downloading")
        tmp_dir = self._temp_dir(key)
        try:
            self.blob_store.download(key, tmp_dir)
            self._commit(tmp_dir, key)
        finally:
            shutil.rmtree(tmp_dir, ignore_errors=True)

        return self._load_local(key, embedding_provider)

    def store(self, key: str, index: VectorIndex, source_url: str) -> Path:
        """Persist index under key, then mirror it remotely if configured.

        The local entry is written to a temporary directory and renamed into
        place. If another writer already committed a complete entry for key,
        that entry is kept. Mirror failures are logged and do not raise.

        Args:
            key: Cache key
            index: Index to persist
            source_url: Site URL recorded in the entry manifest

        Returns:
            Path of the local entry directory
        """
        tmp_dir = self._temp_dir(key)
        try:
            index.save(
                tmp_dir,
                metadata={"source_url": source_url, "created_at": datetime.now(timezone.utc).isoformat()},
            )
            self._commit(tmp_dir, key)
        finally:
            shutil.rmtree(tmp_dir, ignore_errors=True)

        entry = self.entry_dir(key)
        logger.info(f"[CACHE] Stored index for {source_url} at {entry}")

        if self.blob_store is not None:
            try:
                self.blob_store.upload(entry, key)
                logger.info(f"[CACHE] Mirrored {key[:16]}... to remote storage")
            except UpstreamProviderError as e:
                logger.warning(f"[CACHE] Remote mirror failed for {key[:16]}... (local copy kept): {e}")

        return entry

    def remove(self, key: str):
        """Delete the local entry for key, if any."""
        shutil.rmtree(self.entry_dir(key), ignore_errors=True)

    def _load_local(self, key: str, embedding_provider: EmbeddingProvider) -> VectorIndex | None:
        try:
            return VectorIndex.load(self.entry_dir(key), embedding_provider)
        except Exception as e:
            logger.warning(f"[CACHE] Discarding unreadable cache entry {key[:16]}...: {e}")
            self.remove(key)
            return None

    def _temp_dir(self, key: str) -> Path:
        return self.cache_dir / f".tmp-{key[:16]}-{uuid.uuid4().hex}"

    def _commit(self, tmp_dir: Path, key: str):
        """Atomically move a fully written temp directory into place.

        A complete entry already in place is kept and tmp_dir is left for the
        caller to discard, so readers never see a committed entry disappear.
        """
        entry = self.entry_dir(key)
        if (entry / MANIFEST_FILE).exists():
            logger.debug(f"[CACHE] Entry {key[:16]}... already committed, keeping it")
            return
        if entry.exists():
            # No manifest: leftover of an interrupted write
            shutil.rmtree(entry)
        try:
            os.replace(tmp_dir, entry)
        except OSError:
            # Another writer committed the same entry first; keep theirs
            if not (entry / MANIFEST_FILE).exists():
                raise
            logger.debug(f"[CACHE] Entry {key[:16]}... already committed by another writer")
