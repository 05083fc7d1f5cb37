"""
Embedding index builds: full, incremental and entity namespaces.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import Callable, Iterable, Mapping

from ..codec import content_hash
from ..config import ENV_MAX_FILE_SIZE, env_int
from ..documents import DocumentStore, should_index_path
from ..embeddings import EmbeddingProvider
from ..models import BuildProgress, EntityDescriptor
from ..storage import EmbeddingStore

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[BuildProgress], None]

DEFAULT_MAX_FILE_SIZE = 5 * 1024 * 1024
ENTITY_EXCERPT_CHARS = 500


class IndexBuilder:
    """Compute and persist embeddings, skipping content whose hash is unchanged."""

    def __init__(
        self,
        *,
        provider: EmbeddingProvider,
        documents: DocumentStore,
        document_store: EmbeddingStore,
        entity_store: EmbeddingStore,
        max_file_size: int | None = None,
    ) -> None:
        self.provider = provider
        self.documents = documents
        self.document_store = document_store
        self.entity_store = entity_store
        self.max_file_size = max_file_size or env_int(
            ENV_MAX_FILE_SIZE, DEFAULT_MAX_FILE_SIZE
        )

    async def build_embeddings_index(
        self,
        on_progress: ProgressCallback | None = None,
        *,
        cancel: asyncio.Event | None = None,
    ) -> BuildProgress:
        """Embed every document whose content or model changed; drop vanished ones."""
        self.document_store.ensure_available()
        await self.provider.initialize()

        listed = [doc for doc in self.documents.list_documents() if should_index_path(doc.path)]
        existing = self.document_store.load_all_stamps()
        progress = BuildProgress(total=len(listed))

        for doc in listed:
            if cancel is not None and cancel.is_set():
                progress.cancelled = True
                break
            progress.current += 1

            try:
                if doc.size_bytes > self.max_file_size:
                    logger.info("Skipping %s: %d bytes exceeds size limit", doc.path, doc.size_bytes)
                    progress.skipped += 1
                else:
                    content = await asyncio.to_thread(self.documents.read_text, doc.path)
                    digest = content_hash(content)
                    if existing.get(doc.path) == (digest, self.provider.model):
                        progress.skipped += 1
                    else:
                        vector = await self.provider.embed(content)
                        self.document_store.put(
                            doc.path,
                            vector,
                            content_hash=digest,
                            model=self.provider.model,
                        )
            except Exception as exc:
                logger.warning("Failed to embed %s: %s", doc.path, exc)
                progress.skipped += 1

            _report(on_progress, progress)

        if progress.cancelled:
            logger.info(
                "Embedding build cancelled after %d of %d documents",
                progress.current,
                progress.total,
            )
            return progress

        deleted = _delete_missing(
            self.document_store,
            existing,
            {doc.path for doc in listed},
        )
        logger.info(
            "Semantic index: indexed %d documents, skipped %d, removed %d",
            progress.indexed,
            progress.skipped,
            deleted,
        )
        return progress

    async def update_document_embedding(self, path: str) -> bool:
        """Re-embed one document if its content changed. Returns True on write.

        Does nothing until the model has been loaded by a build or an explicit
        initialisation, so save events never trigger a model download.
        """
        self.document_store.ensure_available()
        if not self.provider.is_ready() or not should_index_path(path):
            return False

        try:
            content = await asyncio.to_thread(self.documents.read_text, path)
            size_bytes = len(content.encode("utf-8"))
            if size_bytes > self.max_file_size:
                logger.info("Skipping %s: %d bytes exceeds size limit", path, size_bytes)
                return False
            digest = content_hash(content)
            if self.document_store.load_stamp(path) == (digest, self.provider.model):
                return False
            vector = await self.provider.embed(content)
            self.document_store.put(
                path, vector, content_hash=digest, model=self.provider.model
            )
        except Exception as exc:
            logger.warning("Failed to update embedding for %s: %s", path, exc)
            return False
        return True

    def remove_document_embedding(self, path: str) -> None:
        self.document_store.delete(path)

    async def build_entity_embeddings_index(
        self,
        entities: Mapping[str, EntityDescriptor] | Iterable[EntityDescriptor],
        on_progress: ProgressCallback | None = None,
        *,
        cancel: asyncio.Event | None = None,
    ) -> int:
        """Embed changed entity descriptions. Returns the number written."""
        self.entity_store.ensure_available()
        await self.provider.initialize()

        by_name = _entities_by_name(entities)
        existing = self.entity_store.load_all_stamps()
        progress = BuildProgress(total=len(by_name))
        updated = 0

        for name, entity in by_name.items():
            if cancel is not None and cancel.is_set():
                progress.cancelled = True
                break
            progress.current += 1

            try:
                text = await self.entity_embedding_text(entity)
                digest = content_hash(text)
                if existing.get(name) == (digest, self.provider.model):
                    progress.skipped += 1
                else:
                    vector = await self.provider.embed_cached(text)
                    self.entity_store.put(
                        name, vector, content_hash=digest, model=self.provider.model
                    )
                    updated += 1
            except Exception as exc:
                logger.warning("Failed to embed entity %s: %s", name, exc)
                progress.skipped += 1

            _report(on_progress, progress)

        if not progress.cancelled:
            _delete_missing(self.entity_store, existing, set(by_name))
        logger.info(
            "Entity embeddings: %d updated, %d unchanged",
            updated,
            progress.total - updated,
        )
        return updated

    async def entity_embedding_text(self, entity: EntityDescriptor) -> str:
        """Build the text embedded for *entity*.

        The name appears twice to pull the vector toward the entity itself.
        """
        parts = [entity.name, entity.name]
        if entity.aliases:
            parts.append(" ".join(entity.aliases))
        parts.append(entity.category)
        if entity.path:
            try:
                content = await asyncio.to_thread(self.documents.read_text, entity.path)
            except (OSError, ValueError) as exc:
                logger.debug("No backing document for entity %s: %s", entity.name, exc)
            else:
                parts.append(content[:ENTITY_EXCERPT_CHARS])
        return " ".join(parts)


def _entities_by_name(
    entities: Mapping[str, EntityDescriptor] | Iterable[EntityDescriptor],
) -> dict[str, EntityDescriptor]:
    if isinstance(entities, Mapping):
        return dict(entities)
    return {entity.name: entity for entity in entities}


def _delete_missing(
    store: EmbeddingStore,
    existing: Mapping[str, object],
    current: set[str],
) -> int:
    deleted = 0
    for identifier in existing:
        if identifier not in current:
            store.delete(identifier)
            deleted += 1
    return deleted


def _report(on_progress: ProgressCallback | None, progress: BuildProgress) -> None:
    if on_progress is not None:
        on_progress(replace(progress))
