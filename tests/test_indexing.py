"""Tests for full, incremental and entity index builds."""

from __future__ import annotations

import asyncio
from pathlib import Path

import numpy as np
import pytest

from vault_retrieval.documents import FileSystemDocumentStore
from vault_retrieval.embeddings import EmbeddingProvider
from vault_retrieval.engine import RetrievalEngine
from vault_retrieval.errors import StoreUnavailableError
from vault_retrieval.models import BuildProgress, EntityDescriptor
from vault_retrieval.storage import DuckDBStorage

from conftest import DIM, FakeLoader, InMemoryDocuments


@pytest.mark.asyncio
async def test_second_build_skips_unchanged_documents(
    engine: RetrievalEngine, fake_loader: FakeLoader
) -> None:
    first = await engine.build_embeddings_index()
    calls_after_first = len(fake_loader.model.calls)

    second = await engine.build_embeddings_index()

    assert first.total == 3
    assert first.skipped == 0
    assert calls_after_first == 3
    assert len(fake_loader.model.calls) == calls_after_first
    assert second.skipped == second.total == 3
    assert engine.get_embeddings_count() == 3


@pytest.mark.asyncio
async def test_changed_document_is_reembedded(
    engine: RetrievalEngine,
    documents: InMemoryDocuments,
    fake_loader: FakeLoader,
) -> None:
    await engine.build_embeddings_index()
    before = engine.document_store.get_vector("projects/Roadmap.md")
    documents.docs["projects/Roadmap.md"] = "A completely different roadmap."

    progress = await engine.build_embeddings_index()

    after = engine.document_store.get_vector("projects/Roadmap.md")
    assert progress.skipped == 2
    assert fake_loader.model.calls[-1] == "A completely different roadmap."
    assert not np.array_equal(before, after)


@pytest.mark.asyncio
async def test_build_deletes_vanished_documents(
    engine: RetrievalEngine, documents: InMemoryDocuments
) -> None:
    await engine.build_embeddings_index()
    del documents.docs["people/Ada Lovelace.md"]

    await engine.build_embeddings_index()

    assert engine.document_store.get("people/Ada Lovelace.md") is None
    assert engine.get_embeddings_count() == 2


@pytest.mark.asyncio
async def test_per_document_failures_do_not_abort_build(
    engine: RetrievalEngine, documents: InMemoryDocuments
) -> None:
    documents.unreadable.add("people/Ada Lovelace.md")
    documents.docs["huge.md"] = "big"
    documents.sizes["huge.md"] = 6 * 1024 * 1024

    progress = await engine.build_embeddings_index()

    assert progress.total == 4
    assert progress.current == 4
    assert progress.skipped == 2
    assert progress.indexed == 2
    assert engine.document_store.get("huge.md") is None


@pytest.mark.asyncio
async def test_build_reports_progress_after_each_document(engine: RetrievalEngine) -> None:
    reports: list[BuildProgress] = []

    await engine.build_embeddings_index(reports.append)

    assert [report.current for report in reports] == [1, 2, 3]
    assert all(report.total == 3 for report in reports)


@pytest.mark.asyncio
async def test_excluded_directories_are_not_indexed(
    storage: DuckDBStorage, provider
) -> None:
    docs = InMemoryDocuments(
        {"notes/a.md": "kept", ".obsidian/workspace.md": "ignored", "templates/t.md": "ignored"}
    )
    engine = RetrievalEngine(documents=docs, storage=storage, provider=provider)

    progress = await engine.build_embeddings_index()

    assert progress.total == 1
    assert engine.document_store.load_all_hashes().keys() == {"notes/a.md"}


@pytest.mark.asyncio
async def test_cancelled_build_stops_and_keeps_existing_records(
    engine: RetrievalEngine, documents: InMemoryDocuments
) -> None:
    await engine.build_embeddings_index()
    del documents.docs["daily/2024-01-15.md"]
    cancel = asyncio.Event()

    def cancel_after_first(progress: BuildProgress) -> None:
        cancel.set()

    progress = await engine.build_embeddings_index(cancel_after_first, cancel=cancel)

    assert progress.cancelled
    assert progress.current == 1
    assert engine.document_store.get("daily/2024-01-15.md") is not None


@pytest.mark.asyncio
async def test_build_without_store_raises(documents: InMemoryDocuments, provider) -> None:
    engine = RetrievalEngine(documents=documents, storage=None, provider=provider)

    with pytest.raises(StoreUnavailableError):
        await engine.build_embeddings_index()
    assert engine.get_embeddings_count() == 0
    assert not engine.has_embeddings_index()


@pytest.mark.asyncio
async def test_model_change_reembeds_every_record(
    documents: InMemoryDocuments, storage: DuckDBStorage, fake_loader: FakeLoader
) -> None:
    def engine_for(model: str) -> RetrievalEngine:
        provider = EmbeddingProvider(
            backend="local", model=model, dim=DIM, model_loader=fake_loader
        )
        return RetrievalEngine(documents=documents, storage=storage, provider=provider)

    await engine_for("model-a").build_embeddings_index()
    rebuilt = engine_for("model-b")
    progress = await rebuilt.build_embeddings_index()

    assert progress.skipped == 0
    assert len(fake_loader.model.calls) == 6
    assert {record.model for record in rebuilt.document_store.get_all()} == {"model-b"}
    assert await rebuilt.build_embeddings_index() == BuildProgress(total=3, current=3, skipped=3)


# ---------------------------------------------------------------------------
# Incremental updates
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_update_is_noop_until_model_loaded(
    engine: RetrievalEngine, fake_loader: FakeLoader
) -> None:
    assert await engine.update_document_embedding("projects/Roadmap.md") is False
    assert fake_loader.calls == 0
    assert engine.get_embeddings_count() == 0


@pytest.mark.asyncio
async def test_update_writes_only_when_content_changes(
    engine: RetrievalEngine, documents: InMemoryDocuments
) -> None:
    await engine.initialize_embeddings()

    assert await engine.update_document_embedding("projects/Roadmap.md") is True
    assert await engine.update_document_embedding("projects/Roadmap.md") is False

    documents.docs["projects/Roadmap.md"] = "Edited roadmap."
    assert await engine.update_document_embedding("projects/Roadmap.md") is True


@pytest.mark.asyncio
async def test_update_swallows_read_failure(engine: RetrievalEngine) -> None:
    await engine.initialize_embeddings()

    assert await engine.update_document_embedding("missing.md") is False


@pytest.mark.asyncio
async def test_update_respects_size_limit(
    documents: InMemoryDocuments, storage: DuckDBStorage, provider, fake_loader: FakeLoader
) -> None:
    engine = RetrievalEngine(
        documents=documents, storage=storage, provider=provider, max_file_size=64
    )
    await engine.initialize_embeddings()
    documents.docs["big.md"] = "x" * 65

    assert await engine.update_document_embedding("big.md") is False
    assert await engine.update_document_embedding("projects/Roadmap.md") is True
    assert engine.document_store.get("big.md") is None
    assert fake_loader.model.calls == ["Quarterly roadmap for the search project."]


@pytest.mark.asyncio
async def test_update_reembeds_record_from_another_model(
    documents: InMemoryDocuments, storage: DuckDBStorage, fake_loader: FakeLoader
) -> None:
    old = EmbeddingProvider(backend="local", model="model-a", dim=DIM, model_loader=fake_loader)
    new = EmbeddingProvider(backend="local", model="model-b", dim=DIM, model_loader=fake_loader)
    await RetrievalEngine(documents=documents, storage=storage, provider=old).build_embeddings_index()
    engine = RetrievalEngine(documents=documents, storage=storage, provider=new)
    await engine.initialize_embeddings()

    assert await engine.update_document_embedding("projects/Roadmap.md") is True
    assert engine.document_store.load_stamp("projects/Roadmap.md")[1] == "model-b"


@pytest.mark.asyncio
async def test_remove_document_embedding(engine: RetrievalEngine) -> None:
    await engine.build_embeddings_index()

    engine.remove_document_embedding("projects/Roadmap.md")

    assert engine.document_store.get("projects/Roadmap.md") is None


# ---------------------------------------------------------------------------
# Entity embeddings
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_entity_text_repeats_name_and_includes_excerpt(engine: RetrievalEngine) -> None:
    entity = EntityDescriptor(
        name="Ada Lovelace",
        path="people/Ada Lovelace.md",
        category="people",
        aliases=["Ada", "Countess of Lovelace"],
    )

    text = await engine.builder.entity_embedding_text(entity)

    assert text == (
        "Ada Lovelace Ada Lovelace Ada Countess of Lovelace people "
        "Ada Lovelace wrote the first program."
    )


@pytest.mark.asyncio
async def test_entity_text_tolerates_missing_backing_document(engine: RetrievalEngine) -> None:
    entity = EntityDescriptor(name="Ghost", path="nowhere.md", category="misc")

    assert await engine.builder.entity_embedding_text(entity) == "Ghost Ghost misc"


@pytest.mark.asyncio
async def test_entity_build_skips_unchanged_and_removes_stale(
    engine: RetrievalEngine, fake_loader: FakeLoader
) -> None:
    entities = [
        EntityDescriptor(name="Ada Lovelace", path="people/Ada Lovelace.md", category="people"),
        EntityDescriptor(name="Roadmap", path="projects/Roadmap.md", category="projects"),
    ]

    assert await engine.build_entity_embeddings_index(entities) == 2
    assert await engine.build_entity_embeddings_index(entities) == 0
    assert len(fake_loader.model.calls) == 2

    assert await engine.build_entity_embeddings_index({"Roadmap": entities[1]}) == 0
    assert engine.get_entity_embeddings_count() == 1
    assert engine.entity_store.get("Ada Lovelace") is None


@pytest.mark.asyncio
async def test_entity_build_reembeds_after_model_change(
    documents: InMemoryDocuments, storage: DuckDBStorage, fake_loader: FakeLoader
) -> None:
    entities = [EntityDescriptor(name="Roadmap", path="projects/Roadmap.md", category="projects")]
    old = EmbeddingProvider(backend="local", model="model-a", dim=DIM, model_loader=fake_loader)
    new = EmbeddingProvider(backend="local", model="model-b", dim=DIM, model_loader=fake_loader)

    await RetrievalEngine(
        documents=documents, storage=storage, provider=old
    ).build_entity_embeddings_index(entities)
    engine = RetrievalEngine(documents=documents, storage=storage, provider=new)

    assert await engine.build_entity_embeddings_index(entities) == 1
    assert engine.entity_store.get("Roadmap").model == "model-b"


@pytest.mark.asyncio
async def test_entity_map_requires_explicit_reload(engine: RetrievalEngine) -> None:
    entities = [EntityDescriptor(name="Roadmap", path="projects/Roadmap.md", category="projects")]
    await engine.build_entity_embeddings_index(entities)

    assert not engine.has_entity_embeddings_index()
    assert engine.load_entity_embeddings_to_memory() == 1
    assert engine.has_entity_embeddings_index()

    hits = await engine.find_similar_entities("Roadmap", limit=1)
    assert hits[0].identifier == "Roadmap"
    assert hits[0].display_name == "Roadmap"


# ---------------------------------------------------------------------------
# Filesystem document store
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_filesystem_vault_build(tmp_path: Path, storage: DuckDBStorage, provider) -> None:
    vault = tmp_path / "vault"
    (vault / "projects").mkdir(parents=True)
    (vault / ".trash").mkdir()
    (vault / "projects" / "Roadmap.md").write_text("Roadmap notes")
    (vault / ".trash" / "old.md").write_text("deleted")
    (vault / "image.png").write_bytes(b"\x89PNG")

    engine = RetrievalEngine(
        documents=FileSystemDocumentStore(str(vault)),
        storage=storage,
        provider=provider,
    )
    progress = await engine.build_embeddings_index()

    assert progress.total == 1
    assert engine.document_store.load_all_hashes().keys() == {"projects/Roadmap.md"}
    vector = engine.document_store.get_vector("projects/Roadmap.md")
    assert vector is not None and vector.shape == (DIM,)


def test_filesystem_store_rejects_missing_folder(tmp_path: Path) -> None:
    with pytest.raises(ValueError, match="No such directory"):
        FileSystemDocumentStore(str(tmp_path / "absent"))
