"""
Retrieval engine facade.

Owns the embedding provider (and its cache), both embedding stores and the
in-memory entity snapshot for one vault. Several engines can coexist; none
of this state is module-global.

A query issued while a full build is running may see a mix of refreshed
and stale document vectors.
"""

from __future__ import annotations

import asyncio
from typing import Collection, Iterable, Mapping, Sequence

from .documents import DocumentStore
from .embeddings import EmbeddingProvider
from .indexing import IndexBuilder, ProgressCallback
from .models import BuildProgress, EntityDescriptor, ScoredCandidate, SearchResult
from .search import HybridSearcher, SimilaritySearch
from .storage import (
    NAMESPACE_DOCUMENTS,
    NAMESPACE_ENTITIES,
    DuckDBStorage,
    EmbeddingStore,
)


class RetrievalEngine:
    """Build, query and fuse the semantic index of a document collection."""

    def __init__(
        self,
        *,
        documents: DocumentStore,
        storage: DuckDBStorage | None,
        provider: EmbeddingProvider | None = None,
        max_file_size: int | None = None,
    ) -> None:
        self.documents = documents
        self.storage = storage
        self.provider = provider or EmbeddingProvider()
        self.document_store = EmbeddingStore(
            storage.documents if storage is not None else None,
            namespace=NAMESPACE_DOCUMENTS,
        )
        self.entity_store = EmbeddingStore(
            storage.entities if storage is not None else None,
            namespace=NAMESPACE_ENTITIES,
        )
        self.builder = IndexBuilder(
            provider=self.provider,
            documents=documents,
            document_store=self.document_store,
            entity_store=self.entity_store,
            max_file_size=max_file_size,
        )
        self.similarity = SimilaritySearch(self.document_store, self.entity_store)
        self.hybrid = HybridSearcher(
            provider=self.provider,
            similarity=self.similarity,
            document_store=self.document_store,
        )

    # Model lifecycle

    async def initialize_embeddings(self) -> None:
        await self.provider.initialize()

    def is_embeddings_ready(self) -> bool:
        return self.provider.is_ready()

    # Index maintenance

    async def build_embeddings_index(
        self,
        on_progress: ProgressCallback | None = None,
        *,
        cancel: asyncio.Event | None = None,
    ) -> BuildProgress:
        return await self.builder.build_embeddings_index(on_progress, cancel=cancel)

    async def update_document_embedding(self, path: str) -> bool:
        return await self.builder.update_document_embedding(path)

    def remove_document_embedding(self, path: str) -> None:
        self.builder.remove_document_embedding(path)

    async def build_entity_embeddings_index(
        self,
        entities: Mapping[str, EntityDescriptor] | Iterable[EntityDescriptor],
        on_progress: ProgressCallback | None = None,
        *,
        cancel: asyncio.Event | None = None,
    ) -> int:
        return await self.builder.build_entity_embeddings_index(
            entities, on_progress, cancel=cancel
        )

    def load_entity_embeddings_to_memory(self) -> int:
        return self.similarity.load_entity_embeddings_to_memory()

    # Queries

    async def semantic_search(self, query: str, limit: int = 10) -> list[ScoredCandidate]:
        self.document_store.ensure_available()
        query_vector = await self.provider.embed(query)
        return self.similarity.search_by_query_vector(query_vector, limit)

    def find_semantically_similar(
        self,
        path: str,
        limit: int = 10,
        exclude: Collection[str] | None = None,
    ) -> list[ScoredCandidate]:
        return self.similarity.find_similar_to_document(path, limit, exclude)

    async def find_similar_entities(self, query: str, limit: int = 10) -> list[ScoredCandidate]:
        """Rank entities from the in-memory snapshot against *query*."""
        query_vector = await self.provider.embed_cached(query)
        return self.similarity.find_similar_entities(query_vector, limit)

    async def hybrid_search(
        self,
        keyword_results: Sequence[SearchResult],
        query: str,
        limit: int = 10,
    ) -> list[SearchResult]:
        return await self.hybrid.search(keyword_results, query, limit)

    # State

    def has_embeddings_index(self) -> bool:
        return self.get_embeddings_count() > 0

    def get_embeddings_count(self) -> int:
        if not self.document_store.available:
            return 0
        return self.document_store.count()

    def has_entity_embeddings_index(self) -> bool:
        return len(self.similarity.entity_vectors) > 0

    def get_entity_embeddings_count(self) -> int:
        if not self.entity_store.available:
            return 0
        return self.entity_store.count()
