"""Embedding functions shared by the document indexer and the retrieval engine"""

import hashlib
import logging
import re
from abc import ABC, abstractmethod

import numpy as np

logger = logging.getLogger(__name__)

_TOKEN_PATTERN = re.compile(r"[a-z0-9][a-z0-9_-]*")


class Embedder(ABC):
    """Maps text to fixed-length vectors; chunks and queries must use the same instance"""

    @property
    @abstractmethod
    def dimension(self) -> int:
        """Length of every vector this embedder produces"""

    @abstractmethod
    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Embed several texts, preserving order"""

    def embed_text(self, text: str) -> list[float]:
        return self.embed_batch([text])[0]

    def close(self) -> None:
        """Release model resources"""


class FastEmbedEmbedder(Embedder):
    """Generate embeddings using local models (fastembed) with caching"""

    def __init__(
        self,
        model_name: str = "BAAI/bge-small-en-v1.5",
        cache_dir: str | None = None,
        batch_size: int = 32,
        dimension: int = 384,
        threads: int | None = None,
    ):
        # Deferred so the hashing embedder works without loading onnxruntime
        from fastembed import TextEmbedding

        self.model_name = model_name
        self.batch_size = batch_size
        self._dimension = dimension
        self.model = TextEmbedding(model_name=model_name, cache_dir=cache_dir, threads=threads)
        logger.info(f"Loaded embedding model {model_name}")

    @property
    def dimension(self) -> int:
        return self._dimension

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """
        Generate embeddings for multiple texts in batches

        Args:
            texts: List of texts to embed

        Returns:
            list[list[float]]: List of embedding vectors
        """
        if not texts:
            return []

        embeddings: list[list[float]] = []
        for i in range(0, len(texts), self.batch_size):
            batch = texts[i : i + self.batch_size]
            # fastembed returns a generator of numpy arrays
            embeddings.extend(emb.tolist() for emb in self.model.embed(batch))

        logger.debug(f"Embedded {len(texts)} texts with {self.model_name}")
        return embeddings


class HashingEmbedder(Embedder):
    """
    Deterministic bag-of-words embedder

    Hashes unigrams and bigrams into a fixed number of buckets and L2-normalises the
    counts. Needs no model download, so it backs offline runs and tests.
    """

    def __init__(self, dimension: int = 384):
        if dimension < 1:
            raise ValueError("dimension must be positive")
        self._dimension = dimension

    @property
    def dimension(self) -> int:
        return self._dimension

    def _bucket(self, feature: str) -> int:
        digest = hashlib.blake2b(feature.encode("utf-8"), digest_size=8).digest()
        return int.from_bytes(digest, "big") % self._dimension

    def _embed(self, text: str) -> list[float]:
        tokens = _TOKEN_PATTERN.findall(text.lower())
        features = tokens + [f"{a} {b}" for a, b in zip(tokens, tokens[1:])]

        vector = np.zeros(self._dimension, dtype=np.float64)
        for feature in features:
            vector[self._bucket(feature)] += 1.0

        norm = np.linalg.norm(vector)
        if norm > 0:
            vector /= norm
        return vector.tolist()

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        return [self._embed(text) for text in texts]


def create_embedder(
    backend: str,
    model_name: str = "BAAI/bge-small-en-v1.5",
    cache_dir: str | None = None,
    batch_size: int = 32,
    dimension: int = 384,
) -> Embedder:
    """Build the embedder named by the configuration"""
    if backend == "hashing":
        return HashingEmbedder(dimension=dimension)
    if backend == "fastembed":
        return FastEmbedEmbedder(
            model_name=model_name,
            cache_dir=cache_dir,
            batch_size=batch_size,
            dimension=dimension,
        )
    raise ValueError(f"Unknown embedding backend: {backend}")
