"""Similarity retrieval over a persisted embedding index.

Scores every chunk against the query vector, picks a file-diverse top-k and
re-reads the chunk bytes from the live repository under a shared character
budget.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import numpy as np
from loguru import logger

from reposcribe.core.config.indexing_config import IndexingConfig
from reposcribe.core.constants import EXT_FENCE
from reposcribe.core.models import EmbedIndex, IndexedChunk, RetrievedPassage
from reposcribe.interfaces.embedding_provider import EmbeddingProvider
from reposcribe.utils.fs import read_json


def cosine(a: list[float], b: list[float]) -> float:
    """Cosine similarity; 0 for empty vectors, length mismatch or zero norms."""
    if not a or len(a) != len(b):
        return 0.0
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    denom = float(np.linalg.norm(va) * np.linalg.norm(vb))
    return float(va @ vb) / denom if denom else 0.0


def score_chunks(query: list[float], chunks: list[IndexedChunk]) -> np.ndarray:
    """Vectorized cosine of the query against every chunk vector.

    Chunks whose vector length differs from the query score 0.
    """
    scores = np.zeros(len(chunks), dtype=np.float64)
    if not query or not chunks:
        return scores
    q = np.asarray(query, dtype=np.float64)
    q_norm = float(np.linalg.norm(q))
    if q_norm == 0.0:
        return scores

    rows = [i for i, c in enumerate(chunks) if len(c.vector) == len(q)]
    if not rows:
        return scores
    matrix = np.asarray([chunks[i].vector for i in rows], dtype=np.float64)
    norms = np.linalg.norm(matrix, axis=1) * q_norm
    dots = matrix @ q
    with np.errstate(divide="ignore", invalid="ignore"):
        sims = np.where(norms > 0, dots / np.where(norms > 0, norms, 1.0), 0.0)
    scores[rows] = sims
    return scores


def select_diverse(rels: list[str], scores: np.ndarray, k: int) -> list[int]:
    """Pick up to k indices: one per file by score first, then fill by score."""
    if k <= 0:
        return []
    # Stable descending order keeps index order among equal scores
    order = np.argsort(-scores, kind="stable").tolist()
    picked: list[int] = []
    seen_rel: set[str] = set()
    for i in order:
        if len(picked) >= k:
            break
        if rels[i] in seen_rel:
            continue
        picked.append(i)
        seen_rel.add(rels[i])
    chosen = set(picked)
    for i in order:
        if len(picked) >= k:
            break
        if i not in chosen:
            picked.append(i)
            chosen.add(i)
    return picked


def fence_wrap(rel: str, body: str) -> str:
    tag = EXT_FENCE.get(Path(rel).suffix.lower(), "")
    if tag:
        return f"# {rel}\n\n```{tag}\n{body}\n```"
    return f"# {rel}\n\n{body}"


def read_chunk_text(root: Path, rel: str, start: int, end: int) -> str:
    """Read bytes [start, end) of a live file, decoding with replacement."""
    try:
        with open(root / rel, "rb") as fh:
            fh.seek(start)
            raw = fh.read(max(0, end - start))
    except OSError as e:
        logger.debug(f"Skipping unreadable passage {rel}: {e}")
        return ""
    return raw.decode("utf-8", errors="replace")


class RetrievalEngine:
    """Retrieve grounded passages from a repository's embedding index."""

    def __init__(self, config: IndexingConfig, embedding_provider: EmbeddingProvider):
        self._config = config
        self._embedding_provider = embedding_provider

    def load_index(self, repo_hash: str) -> EmbedIndex | None:
        """Load the persisted index; None when absent or unreadable."""
        data = read_json(self._config.index_path_for(repo_hash))
        if not isinstance(data, dict):
            return None
        try:
            return EmbedIndex.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            logger.debug(f"Unreadable index for {repo_hash}: {e}")
            return None

    async def retrieve(
        self,
        repo_hash: str,
        query: str,
        k: int = 6,
        max_chars: int = 1200,
        repo_root: Path | None = None,
    ) -> list[RetrievedPassage]:
        """Return at most k passages whose bodies total at most max_chars.

        Args:
            repo_hash: Snapshot hash naming the index
            query: Natural-language query
            k: Maximum number of passages
            max_chars: Shared character budget across passage bodies
            repo_root: Root used to re-read chunk bytes (defaults to cwd)
        """
        index = await asyncio.to_thread(self.load_index, repo_hash)
        if index is None or not index.chunks:
            return []

        embedded = await self._embedding_provider.embed([query])
        query_vec = embedded[0] if embedded else []

        scores = score_chunks(query_vec, index.chunks)
        picked = select_diverse([c.rel for c in index.chunks], scores, k)
        root = (repo_root or Path.cwd()).resolve()

        return await asyncio.to_thread(
            self._assemble, [index.chunks[i] for i in picked], root, max_chars
        )

    def _assemble(
        self, chunks: list[IndexedChunk], root: Path, max_chars: int
    ) -> list[RetrievedPassage]:
        budget = max_chars
        out: list[RetrievedPassage] = []
        for chunk in chunks:
            if budget <= 0:
                break
            body = read_chunk_text(root, chunk.rel, chunk.start, chunk.end)
            if not body:
                continue
            take = body[: max(0, budget)]
            if not take.strip():
                continue
            out.append(
                RetrievedPassage(
                    id=chunk.id, rel=chunk.rel, body=fence_wrap(chunk.rel, take)
                )
            )
            budget -= len(take)
        return out
