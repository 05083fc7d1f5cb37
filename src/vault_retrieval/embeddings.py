"""
Embedding provider for vector-based semantic search.

Wraps a local sentence-transformers model or the Google GenAI embedding API
behind a lazily initialised, single-text ``embed`` call that always returns
an L2-normalised float32 vector of the configured dimensionality.
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections import OrderedDict
from typing import Any, Callable, Protocol

import numpy as np

from .config import (
    ENV_CACHE_SIZE,
    ENV_EMBEDDING_BACKEND,
    ENV_EMBEDDING_DIM,
    ENV_EMBEDDING_MODEL,
    env_int,
)
from .errors import EmbeddingError, ModelUnavailableError

logger = logging.getLogger(__name__)

BACKEND_LOCAL = "local"
BACKEND_GENAI = "genai"

_DEFAULT_MODELS = {
    BACKEND_LOCAL: "sentence-transformers/all-MiniLM-L6-v2",
    BACKEND_GENAI: "gemini-embedding-001",
}
_INSTALL_HINTS = {
    BACKEND_LOCAL: "sentence-transformers (pip install 'vault-retrieval[local]')",
    BACKEND_GENAI: "google-genai (pip install google-genai)",
}
_DEFAULT_DIM = 384
_DEFAULT_CACHE_SIZE = 500

# Roughly 512 tokens for MiniLM-class tokenizers.
MAX_EMBED_CHARS = 2000


class EmbeddingModel(Protocol):
    """A loaded model that turns one text into a vector (or token matrix)."""

    def encode(self, text: str) -> Any:
        """Return a 1-D embedding or a 2-D per-token matrix."""


class SentenceTransformerModel:
    """Local sentence-transformers model."""

    def __init__(self, model_name: str) -> None:
        from sentence_transformers import SentenceTransformer

        self.model_name = model_name
        self._model = SentenceTransformer(model_name)

    def encode(self, text: str) -> np.ndarray:
        return self._model.encode([text], convert_to_numpy=True)[0]


class GenAIEmbeddingModel:
    """Google GenAI embedding endpoint."""

    def __init__(
        self,
        model_name: str,
        dim: int,
        *,
        api_key: str | None = None,
        client: Any | None = None,
    ) -> None:
        self.model_name = model_name
        self.dim = dim
        if client is not None:
            self._client = client
        else:
            from google.genai import Client as GenAIClient

            resolved_key = api_key or os.getenv("GOOGLE_API_KEY")
            if resolved_key is None:
                raise ValueError(
                    "GOOGLE_API_KEY not found. "
                    "Provide api_key or set the environment variable."
                )
            self._client = GenAIClient(api_key=resolved_key)

    def encode(self, text: str) -> list[float]:
        result = self._client.models.embed_content(
            model=self.model_name,
            contents=[text],
            config={
                "task_type": "SEMANTIC_SIMILARITY",
                "output_dimensionality": self.dim,
            },
        )
        return list(result.embeddings[0].values)


def load_embedding_model(backend: str, model_name: str, dim: int) -> EmbeddingModel:
    """Instantiate the model for *backend*. Blocking; may download weights."""
    if backend == BACKEND_LOCAL:
        return SentenceTransformerModel(model_name)
    if backend == BACKEND_GENAI:
        return GenAIEmbeddingModel(model_name, dim)
    raise ValueError(f"Unsupported embedding backend: {backend!r}")


class EmbeddingCache:
    """Bounded text -> vector cache with insertion-order (FIFO) eviction.

    Reads do not refresh an entry's position: once full, the oldest
    inserted key is dropped regardless of how recently it was read.
    """

    def __init__(self, capacity: int = _DEFAULT_CACHE_SIZE) -> None:
        if capacity < 1:
            raise ValueError("Embedding cache capacity must be at least 1")
        self.capacity = capacity
        self._entries: OrderedDict[str, np.ndarray] = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def get(self, key: str) -> np.ndarray | None:
        return self._entries.get(key)

    def put(self, key: str, value: np.ndarray) -> None:
        if key in self._entries:
            self._entries[key] = value
            return
        if len(self._entries) >= self.capacity:
            self._entries.popitem(last=False)
        self._entries[key] = value

    def clear(self) -> None:
        self._entries.clear()


class EmbeddingProvider:
    """Lazily load an embedding model once and embed single texts."""

    def __init__(
        self,
        *,
        backend: str | None = None,
        model: str | None = None,
        dim: int | None = None,
        cache_size: int | None = None,
        model_loader: Callable[[], EmbeddingModel] | None = None,
    ) -> None:
        self.backend = backend or os.getenv(ENV_EMBEDDING_BACKEND, BACKEND_LOCAL)
        if self.backend not in _DEFAULT_MODELS:
            raise ValueError(f"Unsupported embedding backend: {self.backend!r}")
        self.model = model or os.getenv(
            ENV_EMBEDDING_MODEL, _DEFAULT_MODELS[self.backend]
        )
        self.dim = dim or env_int(ENV_EMBEDDING_DIM, _DEFAULT_DIM)
        self.cache = EmbeddingCache(cache_size or env_int(ENV_CACHE_SIZE, _DEFAULT_CACHE_SIZE))

        self._model_loader = model_loader or (
            lambda: load_embedding_model(self.backend, self.model, self.dim)
        )
        self._model: EmbeddingModel | None = None
        self._init_task: asyncio.Task[None] | None = None

    def is_ready(self) -> bool:
        """True once a model load has completed successfully."""
        return self._model is not None

    async def initialize(self) -> None:
        """Load the model; concurrent callers share one in-flight load."""
        if self._model is not None:
            return
        task = self._init_task
        if task is not None and (
            task.done() or task.get_loop() is not asyncio.get_running_loop()
        ):
            # Left behind by a cancelled load or a loop that has since closed.
            task = self._init_task = None
        if task is None:
            task = self._init_task = asyncio.create_task(self._load())
        await asyncio.shield(task)

    async def _load(self) -> None:
        logger.info("Loading embedding model %s (%s backend)", self.model, self.backend)
        try:
            model = await asyncio.to_thread(self._model_loader)
        except ImportError as exc:
            logger.error("Embedding backend %s is not installed: %s", self.backend, exc)
            raise ModelUnavailableError(
                f"Semantic search with the {self.backend!r} backend requires "
                f"{_INSTALL_HINTS[self.backend]}. Reason: {exc}"
            ) from exc
        except Exception as exc:
            logger.error("Failed to load embedding model %s: %s", self.model, exc)
            raise EmbeddingError(
                f"Failed to load embedding model {self.model!r}: {exc}"
            ) from exc
        else:
            self._model = model
            logger.info("Embedding model %s ready", self.model)
        finally:
            if self._model is None:
                self._init_task = None

    async def _loaded_model(self) -> EmbeddingModel:
        await self.initialize()
        if self._model is None:
            raise EmbeddingError(f"Embedding model {self.model!r} is not loaded")
        return self._model

    async def embed(self, text: str) -> np.ndarray:
        """Embed *text*, truncated to the character budget."""
        model = await self._loaded_model()
        truncated = text[:MAX_EMBED_CHARS]
        try:
            raw = await asyncio.to_thread(model.encode, truncated)
        except Exception as exc:
            raise EmbeddingError(f"Embedding failed: {exc}") from exc
        return self._pool_and_normalize(raw)

    async def embed_cached(self, text: str) -> np.ndarray:
        """Cached wrapper around :meth:`embed`, keyed by the untruncated text."""
        existing = self.cache.get(text)
        if existing is not None:
            return existing
        embedding = await self.embed(text)
        self.cache.put(text, embedding)
        return embedding

    def _pool_and_normalize(self, raw: Any) -> np.ndarray:
        vector = np.asarray(raw, dtype=np.float32)
        if vector.ndim == 2:
            # Per-token output: mean-pool over the token axis.
            vector = vector.mean(axis=0)
        if vector.ndim != 1 or vector.shape[0] != self.dim:
            raise EmbeddingError(
                f"Expected a {self.dim}-dimensional embedding, got shape {vector.shape}"
            )
        norm = float(np.linalg.norm(vector))
        if norm > 0 and not np.isclose(norm, 1.0, atol=1e-5):
            vector = vector / norm
        return vector.astype(np.float32, copy=False)
