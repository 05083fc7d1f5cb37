"""
Typed embedding store over a persistence table.
"""

from __future__ import annotations

import time

import numpy as np

from ..codec import decode_vector, encode_vector
from ..errors import StoreUnavailableError
from .base import EmbeddingRecord, EmbeddingRow, EmbeddingTable


def now_millis() -> int:
    return int(time.time() * 1000)


class EmbeddingStore:
    """Encode/decode vectors around an :class:`EmbeddingTable`.

    Persistence errors propagate unchanged. When no table is configured
    every operation raises :class:`StoreUnavailableError`.
    """

    def __init__(self, table: EmbeddingTable | None, *, namespace: str) -> None:
        self._table = table
        self.namespace = namespace

    @property
    def available(self) -> bool:
        return self._table is not None

    def _require_table(self) -> EmbeddingTable:
        if self._table is None:
            raise StoreUnavailableError(
                f"Embedding store for {self.namespace!r} is not initialized"
            )
        return self._table

    def ensure_available(self) -> None:
        self._require_table()

    def get(self, identifier: str) -> EmbeddingRecord | None:
        row = self._require_table().get(identifier)
        if row is None:
            return None
        return self._to_record(row)

    def get_vector(self, identifier: str) -> np.ndarray | None:
        record = self.get(identifier)
        return record.vector if record is not None else None

    def get_all(self) -> list[EmbeddingRecord]:
        return [self._to_record(row) for row in self._require_table().get_all()]

    def upsert(self, record: EmbeddingRecord) -> None:
        self._require_table().upsert(
            EmbeddingRow(
                identifier=record.identifier,
                embedding=encode_vector(record.vector),
                content_hash=record.content_hash,
                model=record.model,
                updated_at=record.updated_at,
            )
        )

    def put(
        self,
        identifier: str,
        vector: np.ndarray,
        *,
        content_hash: str,
        model: str,
    ) -> None:
        """Upsert a freshly computed vector stamped with the current time."""
        self.upsert(
            EmbeddingRecord(
                identifier=identifier,
                vector=vector,
                content_hash=content_hash,
                model=model,
                updated_at=now_millis(),
            )
        )

    def delete(self, identifier: str) -> None:
        self._require_table().delete(identifier)

    def count(self) -> int:
        return self._require_table().count()

    def load_hash(self, identifier: str) -> str | None:
        row = self._require_table().get(identifier)
        return row.content_hash if row is not None else None

    def load_stamp(self, identifier: str) -> tuple[str, str] | None:
        """Return ``(content_hash, model)`` for *identifier*, if stored."""
        row = self._require_table().get(identifier)
        return (row.content_hash, row.model) if row is not None else None

    def load_all_hashes(self) -> dict[str, str]:
        return {
            identifier: content_hash
            for identifier, (content_hash, _model) in self._require_table().hashes().items()
        }

    def load_all_stamps(self) -> dict[str, tuple[str, str]]:
        """Return ``identifier -> (content_hash, model)`` for change detection."""
        return self._require_table().hashes()

    @staticmethod
    def _to_record(row: EmbeddingRow) -> EmbeddingRecord:
        return EmbeddingRecord(
            identifier=row.identifier,
            vector=decode_vector(row.embedding),
            content_hash=row.content_hash,
            model=row.model,
            updated_at=row.updated_at,
        )
