from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest

from vault_retrieval.codec import content_hash
from vault_retrieval.documents import DocumentInfo
from vault_retrieval.embeddings import EmbeddingProvider
from vault_retrieval.engine import RetrievalEngine
from vault_retrieval.storage import DuckDBStorage

DIM = 384


class FakeModel:
    """Deterministic stand-in for a sentence embedding model."""

    def __init__(self, dim: int = DIM) -> None:
        self.dim = dim
        self.calls: list[str] = []

    def encode(self, text: str) -> np.ndarray:
        self.calls.append(text)
        seed = int(content_hash(text)[:8], 16)
        return np.random.default_rng(seed).normal(size=self.dim).astype(np.float32)


class FakeLoader:
    """Counts loads and hands out a single shared FakeModel."""

    def __init__(self, model: FakeModel | None = None) -> None:
        self.model = model or FakeModel()
        self.calls = 0

    def __call__(self) -> FakeModel:
        self.calls += 1
        return self.model


class InMemoryDocuments:
    """Host document store backed by a dict of path -> text."""

    def __init__(self, docs: dict[str, str] | None = None) -> None:
        self.docs: dict[str, str] = dict(docs or {})
        self.unreadable: set[str] = set()
        self.sizes: dict[str, int] = {}

    def list_documents(self) -> list[DocumentInfo]:
        return [
            DocumentInfo(
                path=path,
                size_bytes=self.sizes.get(path, len(text.encode("utf-8"))),
            )
            for path, text in sorted(self.docs.items())
        ]

    def read_text(self, path: str) -> str:
        if path in self.unreadable:
            raise OSError(f"Permission denied: {path}")
        if path not in self.docs:
            raise FileNotFoundError(f"No such file: {path}")
        return self.docs[path]


def unit_vector(*weights: float, dim: int = DIM) -> np.ndarray:
    vector = np.zeros(dim, dtype=np.float32)
    vector[: len(weights)] = weights
    norm = np.linalg.norm(vector)
    return vector / norm if norm else vector


@pytest.fixture
def fake_loader() -> FakeLoader:
    return FakeLoader()


@pytest.fixture
def provider(fake_loader: FakeLoader) -> EmbeddingProvider:
    return EmbeddingProvider(backend="local", dim=DIM, model_loader=fake_loader)


@pytest.fixture
def storage(tmp_path: Path):
    store = DuckDBStorage(str(tmp_path / "embeddings.duckdb"))
    yield store
    store.close()


@pytest.fixture
def documents() -> InMemoryDocuments:
    return InMemoryDocuments(
        {
            "projects/Roadmap.md": "Quarterly roadmap for the search project.",
            "people/Ada Lovelace.md": "Ada Lovelace wrote the first program.",
            "daily/2024-01-15.md": "Worked on the roadmap today.",
        }
    )


@pytest.fixture
def engine(
    documents: InMemoryDocuments,
    storage: DuckDBStorage,
    provider: EmbeddingProvider,
) -> RetrievalEngine:
    return RetrievalEngine(documents=documents, storage=storage, provider=provider)
