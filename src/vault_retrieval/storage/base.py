"""
Storage interfaces and data models for embedding persistence.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

import numpy as np


NAMESPACE_DOCUMENTS = "documents"
NAMESPACE_ENTITIES = "entities"


@dataclass(frozen=True)
class EmbeddingRow:
    """A raw persisted row; ``embedding`` holds the encoded vector BLOB."""

    identifier: str
    embedding: bytes
    content_hash: str
    model: str
    updated_at: int


@dataclass(frozen=True)
class EmbeddingRecord:
    """A decoded embedding for one document path or entity name."""

    identifier: str
    vector: np.ndarray
    content_hash: str
    model: str
    updated_at: int


class EmbeddingTable(Protocol):
    """Key-value persistence for one embedding namespace."""

    def get(self, identifier: str) -> EmbeddingRow | None:
        """Return the row for *identifier* if present."""

    def get_all(self) -> list[EmbeddingRow]:
        """Return every row in the namespace."""

    def upsert(self, row: EmbeddingRow) -> None:
        """Insert a row or overwrite the existing row for its identifier."""

    def delete(self, identifier: str) -> None:
        """Delete the row for *identifier*; missing rows are ignored."""

    def count(self) -> int:
        """Return the number of rows."""

    def hashes(self) -> dict[str, tuple[str, str]]:
        """Return ``identifier -> (content_hash, model)`` without reading vectors."""
