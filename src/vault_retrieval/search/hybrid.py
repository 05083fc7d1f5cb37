"""
Hybrid search: keyword results fused with semantic results via RRF.

When the embedding model is not loaded the semantic side is driven by a
pseudo-query vector, the normalised mean of the stored embeddings of the
top keyword hits, so no model load is paid at query time.
"""

from __future__ import annotations

import logging
from typing import Sequence

import numpy as np

from ..embeddings import EmbeddingProvider
from ..models import ScoredCandidate, SearchResult, display_name_for
from ..storage import EmbeddingStore
from .ranker import RankedDocument, demote_periodic, rank_documents, reciprocal_rank_fusion
from .similarity import SimilaritySearch

logger = logging.getLogger(__name__)

PSEUDO_QUERY_POOL = 5
EXCLUDED_KEYWORD_HEAD = 3


class HybridSearcher:
    """Merge a keyword-ranked list with semantic candidates."""

    def __init__(
        self,
        *,
        provider: EmbeddingProvider,
        similarity: SimilaritySearch,
        document_store: EmbeddingStore,
    ) -> None:
        self.provider = provider
        self.similarity = similarity
        self.document_store = document_store

    async def search(
        self,
        keyword_results: Sequence[SearchResult],
        query: str,
        limit: int = 10,
    ) -> list[SearchResult]:
        """Return fused results; never raises, degrading to keyword order."""
        fallback = list(keyword_results[:limit])
        try:
            if not self.document_store.available or self.document_store.count() == 0:
                return fallback

            semantic = await self._semantic_candidates(keyword_results, query, limit)
            if semantic is None:
                return fallback
            return self._fuse(keyword_results, semantic, limit)
        except Exception as exc:
            logger.warning("Hybrid search degraded to keyword results: %s", exc)
            return fallback

    async def _semantic_candidates(
        self,
        keyword_results: Sequence[SearchResult],
        query: str,
        limit: int,
    ) -> list[ScoredCandidate] | None:
        candidate_limit = limit * 2
        if self.provider.is_ready():
            query_vector = await self.provider.embed(query)
            return self.similarity.search_by_query_vector(query_vector, candidate_limit)

        keyword_paths = [result.path for result in keyword_results]
        pseudo_query = self.pseudo_query_vector(keyword_paths)
        if pseudo_query is None:
            return None
        # Top keyword hits already rank well; keep them out of the semantic list.
        excluded = set(keyword_paths[:EXCLUDED_KEYWORD_HEAD])
        return self.similarity.search_by_query_vector(pseudo_query, candidate_limit, excluded)

    def pseudo_query_vector(self, paths: Sequence[str]) -> np.ndarray | None:
        """Average and L2-normalise the stored vectors of the first few *paths*."""
        vectors: list[np.ndarray] = []
        for path in paths[:PSEUDO_QUERY_POOL]:
            vector = self.document_store.get_vector(path)
            if vector is not None:
                vectors.append(vector)
        if not vectors:
            return None

        mean = np.mean(np.stack(vectors), axis=0)
        norm = float(np.linalg.norm(mean))
        if norm > 0:
            mean = mean / norm
        return mean.astype(np.float32)

    @staticmethod
    def _fuse(
        keyword_results: Sequence[SearchResult],
        semantic_results: Sequence[ScoredCandidate],
        limit: int,
    ) -> list[SearchResult]:
        keyword_paths = [result.path for result in keyword_results]
        semantic_paths = [candidate.identifier for candidate in semantic_results]
        fused = demote_periodic(reciprocal_rank_fusion(keyword_paths, semantic_paths))

        keyword_by_path: dict[str, SearchResult] = {}
        for result in keyword_results:
            keyword_by_path.setdefault(result.path, result)
        semantic_by_path: dict[str, ScoredCandidate] = {}
        for candidate in semantic_results:
            semantic_by_path.setdefault(candidate.identifier, candidate)

        documents: list[RankedDocument] = []
        for path in dict.fromkeys(keyword_paths + semantic_paths):
            keyword = keyword_by_path.get(path)
            semantic = semantic_by_path.get(path)
            title = (
                (keyword.title if keyword is not None else "")
                or (semantic.display_name if semantic is not None else "")
                or display_name_for(path)
            )
            documents.append(
                RankedDocument(
                    path=path,
                    title=title,
                    snippet=keyword.snippet if keyword is not None else "",
                    fused_score=fused.get(path, 0.0),
                )
            )
        return rank_documents(documents, limit=limit)
