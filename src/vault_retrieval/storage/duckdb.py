"""
DuckDB storage backend for embedding persistence.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import duckdb

from ..config import IN_MEMORY_DB
from .base import NAMESPACE_DOCUMENTS, NAMESPACE_ENTITIES, EmbeddingRow


_TABLES = {
    NAMESPACE_DOCUMENTS: "note_embeddings",
    NAMESPACE_ENTITIES: "entity_embeddings",
}


class DuckDBEmbeddingTable:
    """One embedding namespace backed by a DuckDB table."""

    def __init__(self, conn: duckdb.DuckDBPyConnection, table_name: str) -> None:
        self._conn = conn
        self.table_name = table_name

    def get(self, identifier: str) -> EmbeddingRow | None:
        row = self._conn.execute(
            f"""
            SELECT identifier, embedding, content_hash, model, updated_at
            FROM {self.table_name}
            WHERE identifier = ?
            LIMIT 1
            """,
            [identifier],
        ).fetchone()
        if row is None:
            return None
        return self._row_to_embedding_row(row)

    def get_all(self) -> list[EmbeddingRow]:
        rows = self._conn.execute(
            f"""
            SELECT identifier, embedding, content_hash, model, updated_at
            FROM {self.table_name}
            ORDER BY identifier
            """
        ).fetchall()
        return [self._row_to_embedding_row(row) for row in rows]

    def upsert(self, row: EmbeddingRow) -> None:
        self._conn.execute(
            f"""
            INSERT INTO {self.table_name} (
                identifier, embedding, content_hash, model, updated_at
            )
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(identifier) DO UPDATE SET
                embedding = excluded.embedding,
                content_hash = excluded.content_hash,
                model = excluded.model,
                updated_at = excluded.updated_at
            """,
            [
                row.identifier,
                row.embedding,
                row.content_hash,
                row.model,
                row.updated_at,
            ],
        )

    def delete(self, identifier: str) -> None:
        self._conn.execute(
            f"DELETE FROM {self.table_name} WHERE identifier = ?",
            [identifier],
        )

    def count(self) -> int:
        row = self._conn.execute(f"SELECT COUNT(*) FROM {self.table_name}").fetchone()
        return int(row[0]) if row else 0

    def hashes(self) -> dict[str, tuple[str, str]]:
        rows = self._conn.execute(
            f"SELECT identifier, content_hash, model FROM {self.table_name}"
        ).fetchall()
        return {str(row[0]): (str(row[1]), str(row[2])) for row in rows}

    @staticmethod
    def _row_to_embedding_row(row: tuple[Any, ...]) -> EmbeddingRow:
        return EmbeddingRow(
            identifier=str(row[0]),
            embedding=bytes(row[1]),
            content_hash=str(row[2]),
            model=str(row[3]),
            updated_at=int(row[4]),
        )


class DuckDBStorage:
    """DuckDB-backed persistence for document and entity embeddings."""

    def __init__(
        self,
        db_path: str,
        *,
        read_only: bool = False,
        initialize: bool = True,
    ) -> None:
        if db_path == IN_MEMORY_DB:
            self.db_path = db_path
        else:
            self.db_path = str(Path(db_path).expanduser().resolve())
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self.read_only = read_only
        self._conn = duckdb.connect(self.db_path, read_only=read_only)
        if initialize and not read_only:
            self.initialize()
        self.documents = DuckDBEmbeddingTable(self._conn, _TABLES[NAMESPACE_DOCUMENTS])
        self.entities = DuckDBEmbeddingTable(self._conn, _TABLES[NAMESPACE_ENTITIES])

    def close(self) -> None:
        """Close the underlying DuckDB connection."""
        self._conn.close()

    def initialize(self) -> None:
        for table_name in _TABLES.values():
            self._conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {table_name} (
                    identifier VARCHAR PRIMARY KEY,
                    embedding BLOB NOT NULL,
                    content_hash VARCHAR NOT NULL,
                    model VARCHAR NOT NULL,
                    updated_at BIGINT NOT NULL
                );
                """
            )

    def table(self, namespace: str) -> DuckDBEmbeddingTable:
        """Return the table for *namespace* (``documents`` or ``entities``)."""
        if namespace == NAMESPACE_DOCUMENTS:
            return self.documents
        if namespace == NAMESPACE_ENTITIES:
            return self.entities
        raise ValueError(f"Unknown embedding namespace: {namespace!r}")
