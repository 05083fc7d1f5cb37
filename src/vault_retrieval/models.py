"""
Value types shared by the indexing and search layers.
"""

from __future__ import annotations

from dataclasses import dataclass

from pydantic import BaseModel, Field


@dataclass(frozen=True)
class ScoredCandidate:
    """A similarity hit produced at query time."""

    identifier: str
    display_name: str
    score: float


@dataclass(frozen=True)
class SearchResult:
    """A keyword-ranked (or fused) document result."""

    path: str
    title: str
    snippet: str = ""
    score: float | None = None


@dataclass
class BuildProgress:
    """Running tally reported to progress callbacks during index builds."""

    total: int
    current: int = 0
    skipped: int = 0
    cancelled: bool = False

    @property
    def indexed(self) -> int:
        return self.current - self.skipped


class EntityDescriptor(BaseModel):
    """An entity whose description is embedded into the entity namespace."""

    name: str = Field(description="Canonical entity name, used as the identifier")
    path: str = Field(default="", description="Path of the entity's backing document")
    category: str = Field(default="", description="Entity category label")
    aliases: list[str] = Field(default_factory=list, description="Alternative names")


def display_name_for(path: str) -> str:
    """Return the basename of *path* without its markdown extension."""
    basename = path.rsplit("/", 1)[-1]
    if basename.endswith(".md"):
        basename = basename[: -len(".md")]
    return basename or path
