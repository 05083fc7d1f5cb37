"""
vault-retrieval - semantic and hybrid search over a note vault.

Maintains an incremental embedding index of documents and entity
descriptions in DuckDB, answers cosine-similarity queries against it, and
fuses semantic hits with a keyword-ranked list via reciprocal rank fusion.

Example usage:
    >>> from vault_retrieval import RetrievalEngine, FileSystemDocumentStore, DuckDBStorage
    >>> engine = RetrievalEngine(
    ...     documents=FileSystemDocumentStore("~/vault"),
    ...     storage=DuckDBStorage("~/.vault_retrieval/embeddings.duckdb"),
    ... )
    >>> progress = await engine.build_embeddings_index()
    >>> results = await engine.hybrid_search(keyword_results, "project roadmap", 10)
"""

from .codec import content_hash, decode_vector, encode_vector
from .documents import DocumentInfo, DocumentStore, FileSystemDocumentStore
from .embeddings import EmbeddingCache, EmbeddingProvider
from .engine import RetrievalEngine
from .errors import (
    EmbeddingError,
    ModelUnavailableError,
    RetrievalError,
    StoreUnavailableError,
)
from .models import BuildProgress, EntityDescriptor, ScoredCandidate, SearchResult
from .storage import DuckDBStorage, EmbeddingRecord, EmbeddingStore

__all__ = [
    # Engine
    "RetrievalEngine",
    # Embeddings
    "EmbeddingProvider",
    "EmbeddingCache",
    "content_hash",
    "encode_vector",
    "decode_vector",
    # Storage
    "DuckDBStorage",
    "EmbeddingRecord",
    "EmbeddingStore",
    # Documents
    "DocumentInfo",
    "DocumentStore",
    "FileSystemDocumentStore",
    # Models
    "BuildProgress",
    "EntityDescriptor",
    "ScoredCandidate",
    "SearchResult",
    # Errors
    "RetrievalError",
    "ModelUnavailableError",
    "EmbeddingError",
    "StoreUnavailableError",
]
