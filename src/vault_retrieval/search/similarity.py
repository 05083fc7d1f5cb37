"""
Cosine-similarity search over stored document and entity embeddings.
"""

from __future__ import annotations

import logging
from typing import Callable, Collection, Iterable, Sequence

import numpy as np

from ..models import ScoredCandidate, display_name_for
from ..storage import EmbeddingStore

logger = logging.getLogger(__name__)

SCORE_DECIMALS = 3


def cosine_similarity(a: np.ndarray | Sequence[float], b: np.ndarray | Sequence[float]) -> float:
    """Return the cosine of the angle between *a* and *b*, or 0.0 for zero vectors."""
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    if va.shape != vb.shape:
        raise ValueError(f"Vector dimensions don't match: {va.shape} vs {vb.shape}")
    denom = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if denom == 0.0:
        return 0.0
    return float(np.dot(va, vb) / denom)


def rank_by_similarity(
    query: np.ndarray,
    candidates: Iterable[tuple[str, np.ndarray]],
    *,
    limit: int,
    exclude: Collection[str] | None = None,
    display_name: Callable[[str], str] = display_name_for,
) -> list[ScoredCandidate]:
    """Score every candidate against *query* and return the top *limit*."""
    if limit <= 0:
        return []
    scored: list[ScoredCandidate] = []
    for identifier, vector in candidates:
        if exclude is not None and identifier in exclude:
            continue
        score = round(cosine_similarity(query, vector), SCORE_DECIMALS)
        scored.append(
            ScoredCandidate(
                identifier=identifier,
                display_name=display_name(identifier),
                score=score,
            )
        )
    scored.sort(key=lambda candidate: -candidate.score)
    return scored[:limit]


class SimilaritySearch:
    """Brute-force similarity over the document table and an entity snapshot."""

    def __init__(self, document_store: EmbeddingStore, entity_store: EmbeddingStore) -> None:
        self.document_store = document_store
        self.entity_store = entity_store
        self._entity_vectors: dict[str, np.ndarray] = {}

    def search_by_query_vector(
        self,
        vector: np.ndarray,
        limit: int,
        exclude: Collection[str] | None = None,
    ) -> list[ScoredCandidate]:
        records = self.document_store.get_all()
        return rank_by_similarity(
            vector,
            ((record.identifier, record.vector) for record in records),
            limit=limit,
            exclude=exclude,
        )

    def find_similar_to_document(
        self,
        identifier: str,
        limit: int,
        exclude: Collection[str] | None = None,
    ) -> list[ScoredCandidate]:
        source = self.document_store.get_vector(identifier)
        if source is None:
            return []
        excluded = set(exclude or ())
        excluded.add(identifier)
        return self.search_by_query_vector(source, limit, excluded)

    def load_entity_embeddings_to_memory(self) -> int:
        """Snapshot the entity table into memory; call again after a rebuild."""
        records = self.entity_store.get_all()
        self._entity_vectors = {record.identifier: record.vector for record in records}
        if records:
            logger.info("Loaded %d entity embeddings into memory", len(records))
        return len(records)

    @property
    def entity_vectors(self) -> dict[str, np.ndarray]:
        return self._entity_vectors

    def find_similar_entities(
        self,
        vector: np.ndarray,
        limit: int,
        exclude: Collection[str] | None = None,
    ) -> list[ScoredCandidate]:
        """Rank the in-memory entity snapshot against *vector*."""
        return rank_by_similarity(
            vector,
            self._entity_vectors.items(),
            limit=limit,
            exclude=exclude,
            display_name=lambda name: name,
        )
