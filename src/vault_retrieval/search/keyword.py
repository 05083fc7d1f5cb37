"""
Term-match keyword ranking over a document store.

A small stand-in for a full-text index, used by the CLI to feed hybrid
search. Any object with a compatible ``search`` method can take its place.
"""

from __future__ import annotations

import logging
import re
from typing import Protocol

from ..documents import DocumentStore, should_index_path
from ..models import SearchResult, display_name_for
from .ranker import is_periodic_note

logger = logging.getLogger(__name__)

SNIPPET_RADIUS = 80


class KeywordSearch(Protocol):
    def search(self, query: str, limit: int = 10) -> list[SearchResult]:
        """Return results already ranked best-first."""


def query_terms(query: str, max_terms: int = 8) -> list[str]:
    terms = re.findall(r"[a-zA-Z0-9_]{3,}", query.lower())
    unique_terms: list[str] = []
    for term in terms:
        if term not in unique_terms:
            unique_terms.append(term)
        if len(unique_terms) >= max_terms:
            break
    if unique_terms:
        return unique_terms
    fallback = query.strip().lower()
    return [fallback] if fallback else []


def _snippet(content: str, lowered: str, term: str) -> str:
    index = lowered.find(term)
    if index < 0:
        return content[: SNIPPET_RADIUS * 2].strip()
    start = max(index - SNIPPET_RADIUS, 0)
    end = min(index + len(term) + SNIPPET_RADIUS, len(content))
    prefix = "..." if start > 0 else ""
    suffix = "..." if end < len(content) else ""
    return f"{prefix}{content[start:end].strip()}{suffix}"


class TermMatchKeywordSearch:
    """Rank documents by distinct query terms matched, then total occurrences."""

    def __init__(self, documents: DocumentStore) -> None:
        self.documents = documents

    def search(self, query: str, limit: int = 10) -> list[SearchResult]:
        terms = query_terms(query)
        if not terms:
            return []

        scored: list[tuple[int, int, str, SearchResult]] = []
        for doc in self.documents.list_documents():
            if not should_index_path(doc.path):
                continue
            try:
                content = self.documents.read_text(doc.path)
            except (OSError, ValueError) as exc:
                logger.debug("Skipping unreadable document %s: %s", doc.path, exc)
                continue
            lowered = content.lower()
            matched = [term for term in terms if term in lowered]
            if not matched:
                continue
            occurrences = sum(lowered.count(term) for term in matched)
            scored.append(
                (
                    len(matched),
                    occurrences,
                    doc.path,
                    SearchResult(
                        path=doc.path,
                        title=display_name_for(doc.path),
                        snippet=_snippet(content, lowered, matched[0]),
                    ),
                )
            )

        scored.sort(key=lambda item: (-item[0], -item[1], item[2]))
        ranked = [item[3] for item in scored]
        # Periodic notes go last, as full-text ranking does for the host.
        regular = [result for result in ranked if not is_periodic_note(result.path)]
        periodic = [result for result in ranked if is_periodic_note(result.path)]
        return (regular + periodic)[:limit]
