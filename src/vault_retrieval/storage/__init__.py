"""Storage backends for embedding persistence."""

from .base import (
    NAMESPACE_DOCUMENTS,
    NAMESPACE_ENTITIES,
    EmbeddingRecord,
    EmbeddingRow,
    EmbeddingTable,
)
from .duckdb import DuckDBEmbeddingTable, DuckDBStorage
from .store import EmbeddingStore

__all__ = [
    "NAMESPACE_DOCUMENTS",
    "NAMESPACE_ENTITIES",
    "EmbeddingRecord",
    "EmbeddingRow",
    "EmbeddingTable",
    "DuckDBEmbeddingTable",
    "DuckDBStorage",
    "EmbeddingStore",
]
