import asyncio
import json
import logging
from pathlib import Path
from typing import Annotated

from pydantic import TypeAdapter, ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TextColumn
from rich.table import Table
from typer import BadParameter, Option, Typer

from .config import resolve_db_path
from .documents import FileSystemDocumentStore
from .engine import RetrievalEngine
from .models import BuildProgress, EntityDescriptor, ScoredCandidate, SearchResult
from .search import TermMatchKeywordSearch
from .storage import DuckDBStorage

app = Typer(help="Semantic and hybrid search over a folder of markdown notes.")
console = Console()

_ENTITY_LIST = TypeAdapter(list[EntityDescriptor])


@app.callback()
def configure(
    verbose: Annotated[
        bool,
        Option("--verbose", "-v", help="Log progress details."),
    ] = False,
) -> None:
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _open_engine(folder: str, db_path: str | None) -> RetrievalEngine:
    try:
        documents = FileSystemDocumentStore(folder)
    except ValueError as exc:
        raise BadParameter(str(exc), param_hint="--folder") from exc
    storage = DuckDBStorage(resolve_db_path(db_path))
    return RetrievalEngine(documents=documents, storage=storage)


def _close(engine: RetrievalEngine) -> None:
    if engine.storage is not None:
        engine.storage.close()


async def _run_build(engine: RetrievalEngine) -> BuildProgress:
    with Progress(
        TextColumn("[bold blue]Embedding notes"),
        BarColumn(),
        MofNCompleteColumn(),
        TextColumn("skipped {task.fields[skipped]}"),
        console=console,
    ) as bar:
        task_id = bar.add_task("embed", total=None, skipped=0)

        def on_progress(progress: BuildProgress) -> None:
            bar.update(
                task_id,
                total=progress.total,
                completed=progress.current,
                skipped=progress.skipped,
            )

        return await engine.build_embeddings_index(on_progress)


@app.command()
def index(
    folder: Annotated[str, Option("--folder", "-f", help="Vault folder to index.")] = ".",
    db_path: Annotated[
        str | None, Option("--db-path", help="Embedding database path.")
    ] = None,
) -> None:
    """Build or refresh the document embedding index."""
    engine = _open_engine(folder, db_path)
    try:
        result = asyncio.run(_run_build(engine))
        console.print(
            f"[bold green]Indexed {result.indexed}[/] of {result.total} notes "
            f"({result.skipped} unchanged or skipped). "
            f"{engine.get_embeddings_count()} embeddings stored."
        )
    finally:
        _close(engine)


@app.command()
def entities(
    file: Annotated[
        Path, Option("--file", help="JSON list of {name, path, category, aliases}.")
    ],
    folder: Annotated[str, Option("--folder", "-f", help="Vault folder.")] = ".",
    db_path: Annotated[
        str | None, Option("--db-path", help="Embedding database path.")
    ] = None,
) -> None:
    """Build or refresh the entity embedding index."""
    try:
        descriptors = _ENTITY_LIST.validate_python(json.loads(file.read_text()))
    except (OSError, json.JSONDecodeError, ValidationError) as exc:
        raise BadParameter(f"Invalid entity file: {exc}", param_hint="--file") from exc

    engine = _open_engine(folder, db_path)
    try:
        updated = asyncio.run(engine.build_entity_embeddings_index(descriptors))
        console.print(
            f"[bold green]{updated} entity embeddings updated[/], "
            f"{engine.get_entity_embeddings_count()} stored."
        )
    finally:
        _close(engine)


@app.command()
def search(
    query: Annotated[str, Option("--query", "-q", help="Search query.")],
    folder: Annotated[str, Option("--folder", "-f", help="Vault folder.")] = ".",
    limit: Annotated[int, Option("--limit", "-n", help="Maximum results.")] = 10,
    load_model: Annotated[
        bool,
        Option(
            "--load-model",
            help="Load the embedding model to embed the query instead of "
            "using the keyword hits as a pseudo-query.",
        ),
    ] = False,
    db_path: Annotated[
        str | None, Option("--db-path", help="Embedding database path.")
    ] = None,
) -> None:
    """Keyword search fused with semantic search."""
    engine = _open_engine(folder, db_path)
    try:
        keyword_results = TermMatchKeywordSearch(engine.documents).search(query, limit * 2)

        async def _search() -> list[SearchResult]:
            if load_model:
                await engine.initialize_embeddings()
            return await engine.hybrid_search(keyword_results, query, limit)

        results = asyncio.run(_search())
    finally:
        _close(engine)

    if not results:
        console.print("[yellow]No matches found[/]")
        return
    table = Table(title=f"Results for {query!r}")
    table.add_column("Score", justify="right")
    table.add_column("Note")
    table.add_column("Snippet", overflow="fold")
    for result in results:
        score = f"{result.score:.3f}" if result.score is not None else "-"
        table.add_row(score, result.path, result.snippet)
    console.print(table)


@app.command()
def similar(
    path: Annotated[str, Option("--path", "-p", help="Note path relative to the vault.")],
    folder: Annotated[str, Option("--folder", "-f", help="Vault folder.")] = ".",
    limit: Annotated[int, Option("--limit", "-n", help="Maximum results.")] = 10,
    db_path: Annotated[
        str | None, Option("--db-path", help="Embedding database path.")
    ] = None,
) -> None:
    """List notes semantically similar to an indexed note."""
    engine = _open_engine(folder, db_path)
    try:
        hits = engine.find_semantically_similar(path, limit)
    finally:
        _close(engine)
    _print_candidates(hits, title=f"Similar to {path}")


@app.command()
def status(
    db_path: Annotated[
        str | None, Option("--db-path", help="Embedding database path.")
    ] = None,
) -> None:
    """Show how many document and entity embeddings are stored."""
    storage = DuckDBStorage(resolve_db_path(db_path))
    try:
        console.print(f"Document embeddings: {storage.documents.count()}")
        console.print(f"Entity embeddings:   {storage.entities.count()}")
    finally:
        storage.close()


def _print_candidates(hits: list[ScoredCandidate], *, title: str) -> None:
    if not hits:
        console.print("[yellow]No similar notes found[/]")
        return
    table = Table(title=title)
    table.add_column("Score", justify="right")
    table.add_column("Note")
    for hit in hits:
        table.add_row(f"{hit.score:.3f}", hit.identifier)
    console.print(table)
