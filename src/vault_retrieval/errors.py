"""
Error taxonomy for the retrieval engine.
"""

from __future__ import annotations


class RetrievalError(Exception):
    """Base class for retrieval engine failures."""


class ModelUnavailableError(RetrievalError):
    """The embedding backend could not be imported (missing runtime dependency)."""


class EmbeddingError(RetrievalError):
    """The embedding model failed to load or to produce a usable vector."""


class StoreUnavailableError(RetrievalError):
    """No persistence backend is configured for an embedding namespace."""
