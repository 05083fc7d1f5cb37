"""
Configuration helpers for the embedding database and model backends.
"""

from __future__ import annotations

import os
from pathlib import Path


DEFAULT_DB_PATH = "~/.vault_retrieval/embeddings.duckdb"
ENV_DB_PATH = "VAULT_RETRIEVAL_DB_PATH"

ENV_EMBEDDING_BACKEND = "VAULT_RETRIEVAL_EMBEDDING_BACKEND"
ENV_EMBEDDING_MODEL = "VAULT_RETRIEVAL_EMBEDDING_MODEL"
ENV_EMBEDDING_DIM = "VAULT_RETRIEVAL_EMBEDDING_DIM"
ENV_CACHE_SIZE = "VAULT_RETRIEVAL_CACHE_SIZE"
ENV_MAX_FILE_SIZE = "VAULT_RETRIEVAL_MAX_FILE_SIZE"

IN_MEMORY_DB = ":memory:"


def resolve_db_path(override_path: str | None = None) -> str:
    """
    Resolve the DuckDB path from CLI override, env var, or default.

    Precedence:
    1) explicit override_path
    2) VAULT_RETRIEVAL_DB_PATH
    3) default path
    """
    raw_path = override_path or os.getenv(ENV_DB_PATH) or DEFAULT_DB_PATH
    if raw_path == IN_MEMORY_DB:
        return raw_path
    resolved = Path(raw_path).expanduser().resolve()
    resolved.parent.mkdir(parents=True, exist_ok=True)
    return str(resolved)


def env_int(name: str, default: int) -> int:
    """Read an integer setting from the environment, falling back to *default*."""
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc
