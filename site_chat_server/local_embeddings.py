"""Local HuggingFace embedding provider.

Not imported by default to avoid pulling torch into every install:
select it with EMBEDDING_BACKEND=huggingface and install the "local" extra.
"""

import logging
import os
import time
from typing import List

import torch
from langchain_huggingface import HuggingFaceEmbeddings

logger = logging.getLogger(__name__)


class HuggingFaceEmbeddingProvider:
    """Embedding provider running a sentence-transformers model in-process."""

    def __init__(self, model_name: str = "all-MiniLM-L6-v2"):
        """Load the embedding model.

        Args:
            model_name: HuggingFace model name
        """
        # Disable tokenizers parallelism to prevent fork-related warnings under threaded servers
        os.environ.setdefault("TOKENIZERS_PARALLELISM", "false")

        self.model_name = model_name

        # Auto-detect best device (MPS for Apple Silicon, CUDA for NVIDIA, else CPU)
        if torch.backends.mps.is_available():
            device = "mps"
        elif torch.cuda.is_available():
            device = "cuda"
        else:
            device = "cpu"

        logger.info(f"[EMBEDDINGS] Loading embedding model {model_name} on {device}...")
        start = time.time()
        self._embeddings = HuggingFaceEmbeddings(
            model_name=model_name,
            model_kwargs={"device": device},
            encode_kwargs={"normalize_embeddings": True},
        )
        logger.info(f"[EMBEDDINGS] ✓ Embedding model loaded in {time.time() - start:.1f}s")

    @property
    def is_configured(self) -> bool:
        return True

    def embed(self, text: str) -> List[float]:
        return self._embeddings.embed_query(text)

    def embed_batch(self, texts: List[str]) -> List[List[float]]:
        return self._embeddings.embed_documents(texts)
