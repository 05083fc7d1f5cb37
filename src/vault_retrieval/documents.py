"""
Host document store: enumerates markdown documents under a vault root.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol


EXCLUDED_DIRS = frozenset(
    {
        ".obsidian",
        ".trash",
        ".git",
        "node_modules",
        "templates",
        ".claude",
        ".flywheel",
    }
)
SUPPORTED_EXTENSIONS = frozenset({".md"})


@dataclass(frozen=True)
class DocumentInfo:
    """A document path (relative, ``/``-separated) and its size in bytes."""

    path: str
    size_bytes: int


class DocumentStore(Protocol):
    """Read-only view of the host's documents."""

    def list_documents(self) -> list[DocumentInfo]:
        """Enumerate every eligible document."""

    def read_text(self, path: str) -> str:
        """Return the text content of *path*."""


def should_index_path(path: str) -> bool:
    """Return False when any segment of *path* is an excluded directory."""
    return not any(part in EXCLUDED_DIRS for part in path.split("/"))


class FileSystemDocumentStore:
    """Markdown files under a root folder."""

    def __init__(self, root: str) -> None:
        self.root = str(Path(root).expanduser().resolve())
        if not os.path.isdir(self.root):
            raise ValueError(f"No such directory: {self.root}")

    def list_documents(self) -> list[DocumentInfo]:
        documents: list[DocumentInfo] = []
        for current_root, dirnames, filenames in os.walk(self.root):
            dirnames[:] = [name for name in dirnames if name not in EXCLUDED_DIRS]
            for filename in filenames:
                if Path(filename).suffix.lower() not in SUPPORTED_EXTENSIONS:
                    continue
                full_path = Path(current_root) / filename
                relative_path = full_path.relative_to(self.root).as_posix()
                documents.append(
                    DocumentInfo(path=relative_path, size_bytes=full_path.stat().st_size)
                )
        documents.sort(key=lambda doc: doc.path)
        return documents

    def read_text(self, path: str) -> str:
        full_path = Path(self.root) / path
        if not full_path.is_file():
            raise FileNotFoundError(f"No such file: {path}")
        return full_path.read_text(encoding="utf-8")
