"""
Ranking helpers for fusing keyword and semantic result lists.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Mapping, Sequence

from ..models import SearchResult

RRF_K = 60
PERIODIC_PENALTY = 0.3

PERIODIC_FOLDERS = frozenset({"periodicals", "daily", "journal"})
_DATE_PREFIX_RE = re.compile(r"^\d{4}-\d{2}-\d{2}")
_PERIOD_NAME_RE = re.compile(r"^\d{4}-\d{2}$|^\d{4}-W\d{2}$|^\d{4}-Q[1-4]$")

# Keeps normalisation finite when every fused score is zero.
_MIN_NORMALIZER = 0.001


def reciprocal_rank_fusion(*ranked_lists: Sequence[str]) -> dict[str, float]:
    """Sum ``1 / (k + rank + 1)`` per identifier across *ranked_lists*."""
    scores: dict[str, float] = {}
    for ranked in ranked_lists:
        for rank, identifier in enumerate(ranked):
            scores[identifier] = scores.get(identifier, 0.0) + 1.0 / (RRF_K + rank + 1)
    return scores


def is_periodic_note(path: str) -> bool:
    """True for daily/weekly/etc. notes, by file name or containing folder."""
    segments = path.split("/")
    basename = segments[-1]
    if basename.endswith(".md"):
        basename = basename[: -len(".md")]
    if _DATE_PREFIX_RE.match(basename) or _PERIOD_NAME_RE.match(basename):
        return True
    return any(segment.lower() in PERIODIC_FOLDERS for segment in segments[:-1])


def demote_periodic(scores: Mapping[str, float]) -> dict[str, float]:
    """Return a copy of *scores* with periodic notes scaled by the penalty."""
    return {
        identifier: score * PERIODIC_PENALTY if is_periodic_note(identifier) else score
        for identifier, score in scores.items()
    }


@dataclass(frozen=True)
class RankedDocument:
    """Merged retrieval candidate for a document."""

    path: str
    title: str
    snippet: str
    fused_score: float

    def to_result(self, normalizer: float) -> SearchResult:
        return SearchResult(
            path=self.path,
            title=self.title,
            snippet=self.snippet,
            score=self.fused_score / normalizer,
        )


def rank_documents(
    documents: Iterable[RankedDocument], *, limit: int
) -> list[SearchResult]:
    """Sort by fused score, scale so the best score is 1.0, and apply limit.

    The sort is stable, so equal scores keep their input order.
    """
    ordered = sorted(documents, key=lambda doc: -doc.fused_score)
    normalizer = max([doc.fused_score for doc in ordered] + [_MIN_NORMALIZER])
    return [doc.to_result(normalizer) for doc in ordered[: max(limit, 0)]]
