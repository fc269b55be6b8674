"""Domain models for RepoScribe.

Plain dataclasses shared between the index builder, retrieval engine and the
run orchestrator. Serialization helpers mirror the persisted JSON layout of
the embedding index.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal

RunMode = Literal["draft", "final"]
RUN_MODES: tuple[str, ...] = ("draft", "final")

INDEX_VERSION = 1


@dataclass(frozen=True)
class RepositorySnapshot:
    """Identity of a repository tree at one point in time."""

    root: Path
    repo_hash: str
    latest_mtime_ns: int

    @property
    def latest_mtime(self) -> float:
        return self.latest_mtime_ns / 1_000_000_000


@dataclass(frozen=True)
class Chunk:
    """Byte-addressed slice of a repository file."""

    id: str
    rel: str
    start: int
    end: int
    sha1: str
    text: str
    lang: str | None = None

    def to_dict(self, vector: list[float] | None = None) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "rel": self.rel,
            "start": self.start,
            "end": self.end,
            "lang": self.lang,
            "sha1": self.sha1,
        }
        if vector is not None:
            data["v"] = vector
        return data


@dataclass(frozen=True)
class IndexedChunk:
    """Chunk entry as persisted in the index (text is not stored)."""

    id: str
    rel: str
    start: int
    end: int
    sha1: str
    vector: list[float]
    lang: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "IndexedChunk":
        return cls(
            id=str(data["id"]),
            rel=str(data["rel"]),
            start=int(data["start"]),
            end=int(data["end"]),
            sha1=str(data.get("sha1", "")),
            vector=[float(x) for x in data.get("v") or []],
            lang=data.get("lang"),
        )


@dataclass
class EmbedIndex:
    """Flat per-repository embedding index."""

    repo_hash: str
    model: str
    dim: int
    chunks: list[IndexedChunk] = field(default_factory=list)
    stats: dict[str, int] = field(default_factory=dict)
    version: int = INDEX_VERSION

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "EmbedIndex":
        return cls(
            version=int(data.get("version", INDEX_VERSION)),
            repo_hash=str(data.get("repoHash", "")),
            model=str(data.get("model", "")),
            dim=int(data.get("dim", 0)),
            chunks=[IndexedChunk.from_dict(c) for c in data.get("chunks") or []],
            stats={k: int(v) for k, v in (data.get("stats") or {}).items()},
        )


@dataclass(frozen=True)
class IndexStats:
    """Summary returned by an index build (fresh or reused)."""

    files: int
    chunks: int
    bytes: int
    dim: int
    index_path: Path
    rebuilt: bool


@dataclass(frozen=True)
class RetrievedPassage:
    """Passage returned by a retrieval call; never persisted."""

    id: str
    rel: str
    body: str


@dataclass(frozen=True)
class CacheEntry:
    """Completed run result keyed by (repo_hash, mode)."""

    mode: str
    repo_hash: str
    result: dict[str, Any]
    mtime_ns: int
    created_at: float
