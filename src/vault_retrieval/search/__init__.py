"""Search helpers for embedded corpora."""

from .hybrid import HybridSearcher
from .keyword import KeywordSearch, TermMatchKeywordSearch, query_terms
from .ranker import (
    RankedDocument,
    demote_periodic,
    is_periodic_note,
    rank_documents,
    reciprocal_rank_fusion,
)
from .similarity import SimilaritySearch, cosine_similarity, rank_by_similarity

__all__ = [
    "HybridSearcher",
    "KeywordSearch",
    "TermMatchKeywordSearch",
    "query_terms",
    "RankedDocument",
    "demote_periodic",
    "is_periodic_note",
    "rank_documents",
    "reciprocal_rank_fusion",
    "SimilaritySearch",
    "cosine_similarity",
    "rank_by_similarity",
]
