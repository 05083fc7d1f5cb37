"""Index maintenance for document and entity embeddings."""

from .pipeline import IndexBuilder, ProgressCallback

__all__ = [
    "IndexBuilder",
    "ProgressCallback",
]
