"""Passage embedding and the FAISS-backed vector index.

Builds a searchable index from crawled text:
- Overlapping passage chunking
- Batched embedding through an EmbeddingProvider
- FAISS vector store with checksum-verified persistence
"""

import hashlib
import json
import logging
import sys
import time
from pathlib import Path
from typing import Any

from langchain_community.vectorstores import FAISS
from tqdm import tqdm

from ..errors import ConfigurationError, EmptyContentError
from ..providers import EmbeddingProvider, ProviderEmbeddings
from .chunker import Passage, split_passages
from .config import RAGConfig

logger = logging.getLogger(__name__)

# File names inside a saved index directory
INDEX_NAME = "index"
MANIFEST_FILE = "manifest.json"


class VectorIndex:
    """Read-only nearest-neighbour index over embedded passages."""

    # Index format version for cache invalidation
    INDEX_VERSION = "1.0.0"

    def __init__(self, store: FAISS, embedding_provider: EmbeddingProvider):
        """Wrap an existing FAISS store. Use :meth:`build`, :meth:`load` or :meth:`deserialize`."""
        self._store = store
        self.embedding_provider = embedding_provider

    @classmethod
    def build(
        cls, passages: list[Passage], vectors: list[list[float]], embedding_provider: EmbeddingProvider
    ) -> "VectorIndex":
        """Build an index from passages and their precomputed vectors.

        Args:
            passages: Passages in corpus order
            vectors: One embedding per passage
            embedding_provider: Provider that produced the vectors (used for query embedding)

        Returns:
            VectorIndex answering nearest-neighbour queries from memory
        """
        if not passages:
            raise ValueError("No passages to index")
        if len(passages) != len(vectors):
            raise ValueError(f"Got {len(vectors)} vectors for {len(passages)} passages")

        store = FAISS.from_embeddings(
            text_embeddings=[(p.text, list(v)) for p, v in zip(passages, vectors)],
            embedding=ProviderEmbeddings(embedding_provider),
            metadatas=[p.to_metadata() for p in passages],
            ids=[f"passage-{p.position}" for p in passages],
        )
        return cls(store, embedding_provider)

    def __len__(self) -> int:
        return self._store.index.ntotal

    def nearest(self, query_vector: list[float], k: int) -> list[Passage]:
        """Return up to k passages closest to query_vector, nearest first."""
        if k < 1:
            return []
        documents = self._store.similarity_search_by_vector(list(query_vector), k=k)
        return [Passage.from_metadata(doc.page_content, doc.metadata) for doc in documents]

    def serialize(self) -> bytes:
        """Serialize the index (vectors and passages) to bytes."""
        return self._store.serialize_to_bytes()

    @classmethod
    def deserialize(cls, data: bytes, embedding_provider: EmbeddingProvider) -> "VectorIndex":
        """Rebuild an index from :meth:`serialize` output.

        Only call this on bytes this application produced: the payload is pickled.
        """
        store = FAISS.deserialize_from_bytes(
            data, ProviderEmbeddings(embedding_provider), allow_dangerous_deserialization=True
        )
        return cls(store, embedding_provider)

    def save(self, directory: Path, metadata: dict[str, Any] | None = None):
        """Save the index and a checksummed manifest into directory.

        Args:
            directory: Target directory (created if missing)
            metadata: Extra manifest fields (e.g. source URL)
        """
        directory = Path(directory)
        directory.mkdir(parents=True, exist_ok=True)
        self._store.save_local(str(directory), index_name=INDEX_NAME)

        manifest = {
            "version": self.INDEX_VERSION,
            "num_passages": len(self),
            "embedding_model": getattr(self.embedding_provider, "model_name", None),
            "checksum": compute_index_checksum(directory),
            **(metadata or {}),
        }
        (directory / MANIFEST_FILE).write_text(json.dumps(manifest, indent=2))
        logger.debug(f"[RAG] Index saved to {directory} (checksum: {manifest['checksum'][:16]}...)")

    @classmethod
    def load(cls, directory: Path, embedding_provider: EmbeddingProvider) -> "VectorIndex":
        """Load an index saved by :meth:`save`, verifying its checksum first.

        Raises:
            FileNotFoundError: If the manifest or index files are missing
            ValueError: If the checksum does not match (corrupt or tampered entry)
        """
        directory = Path(directory)
        manifest = read_manifest(directory)

        expected = manifest.get("checksum", "")
        actual = compute_index_checksum(directory)
        if expected != actual:
            raise ValueError(
                f"Index checksum mismatch in {directory}. "
                f"Expected: {expected[:16]}..., Got: {actual[:16]}..."
            )

        start = time.time()
        store = FAISS.load_local(
            str(directory),
            ProviderEmbeddings(embedding_provider),
            index_name=INDEX_NAME,
            allow_dangerous_deserialization=True,  # Checksum verified above
        )
        logger.info(f"[RAG] ✓ Loaded index with {store.index.ntotal} passages in {time.time() - start:.1f}s")
        return cls(store, embedding_provider)


def read_manifest(directory: Path) -> dict[str, Any]:
    """Read the manifest of a saved index directory."""
    manifest_file = Path(directory) / MANIFEST_FILE
    if not manifest_file.exists():
        raise FileNotFoundError(f"No index manifest in {directory}")
    return json.loads(manifest_file.read_text())


def compute_index_checksum(directory: Path) -> str:
    """Compute SHA256 checksum of the FAISS index files in directory.

    Args:
        directory: Saved index directory

    Returns:
        Hex-encoded SHA256 checksum of all index files
    """
    hasher = hashlib.sha256()

    # Hash index files in sorted order for consistency; the manifest itself is excluded
    for file_path in sorted(Path(directory).glob(f"{INDEX_NAME}.*")):
        if file_path.is_file():
            hasher.update(file_path.name.encode())
            hasher.update(file_path.read_bytes())

    return hasher.hexdigest()


def embed_passages(
    passages: list[Passage], embedding_provider: EmbeddingProvider, batch_size: int = 100, show_progress: bool = False
) -> list[list[float]]:
    """Embed passages in batches with a progress bar.

    Args:
        passages: Passages to embed
        embedding_provider: Provider used for every batch
        batch_size: Number of passages to embed at once
        show_progress: Show a progress bar

    Returns:
        One vector per passage, in passage order
    """
    vectors: list[list[float]] = []
    with tqdm(
        total=len(passages), desc="Embedding passages", unit="passages", disable=not show_progress, file=sys.stderr
    ) as pbar:
        for i in range(0, len(passages), batch_size):
            batch = passages[i : i + batch_size]
            vectors.extend(embedding_provider.embed_batch([p.text for p in batch]))
            pbar.update(len(batch))
    return vectors


def ingest(text: str, embedding_provider: EmbeddingProvider | None, config: RAGConfig | None = None) -> VectorIndex:
    """Split text into passages, embed them and build a vector index.

    Args:
        text: Crawled corpus
        embedding_provider: Provider used for passage and query embeddings
        config: RAG configuration (chunking and batching settings)

    Returns:
        VectorIndex over the passages

    Raises:
        ConfigurationError: If no usable embedding provider is configured (checked before any work)
        EmptyContentError: If the text yields no passages
    """
    config = config or RAGConfig()

    if embedding_provider is None or not embedding_provider.is_configured:
        raise ConfigurationError(
            "No embedding provider is configured. Set OPENAI_API_KEY or choose another EMBEDDING_BACKEND."
        )

    logger.info("[RAG] Starting ingestion...")

    passages = split_passages(text, chunk_size=config.chunk_size, chunk_overlap=config.chunk_overlap)
    if not passages:
        raise EmptyContentError("No text content to index")
    logger.info(f"[RAG] Split text into {len(passages)} passages")

    start = time.time()
    vectors = embed_passages(
        passages, embedding_provider, batch_size=config.embedding_batch_size, show_progress=config.show_progress
    )
    logger.info(f"[RAG] ✓ Embedded {len(passages)} passages in {time.time() - start:.1f}s")

    index = VectorIndex.build(passages, vectors, embedding_provider)
    logger.info("[RAG] ✓ Vector index built")
    return index
