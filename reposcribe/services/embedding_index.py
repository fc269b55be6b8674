"""Embedding index builder.

# FILE_CONTEXT: Produces the flat per-repository index that retrieval reads
# ROLE: select files -> chunk -> embed -> persist atomically -> optional mirror
# CONSTRAINT: One JSON file per repo hash, rebuilt wholesale, never patched
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from loguru import logger

from reposcribe.core.config.indexing_config import IndexingConfig
from reposcribe.core.exceptions import ProviderError
from reposcribe.core.models import INDEX_VERSION, Chunk, EmbedIndex, IndexStats
from reposcribe.interfaces.embedding_provider import EmbeddingProvider
from reposcribe.interfaces.vector_sink import VectorSink
from reposcribe.services.chunker import chunk_file
from reposcribe.services.file_selection import SelectedFiles, select_files
from reposcribe.services.snapshot import latest_mtime_ns
from reposcribe.utils.fs import atomic_write_json, read_json

MIRROR_BATCH_SIZE = 100


@dataclass
class _IndexSlot:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0


class EmbeddingIndexBuilder:
    """Builds and persists embedding indexes for repositories."""

    def __init__(
        self,
        config: IndexingConfig,
        embedding_provider: EmbeddingProvider,
        vector_sink: VectorSink | None = None,
    ):
        """Initialize the index builder.

        Args:
            config: Indexing configuration (caps, chunk geometry, index dir)
            embedding_provider: Provider used for chunk vectors
            vector_sink: Optional external mirror, failures there are never fatal
        """
        self._config = config
        self._embedding_provider = embedding_provider
        self._vector_sink = vector_sink

        # Serialize builds of the same index within this process
        self._index_slots: dict[str, _IndexSlot] = {}

    @property
    def embedding_provider(self) -> EmbeddingProvider:
        return self._embedding_provider

    def index_path_for(self, repo_hash: str) -> Path:
        return self._config.index_path_for(repo_hash)

    def in_flight_hashes(self) -> list[str]:
        """Repo hashes with a build running or waiting."""
        return list(self._index_slots)

    @asynccontextmanager
    async def _index_slot(self, repo_hash: str) -> AsyncIterator[None]:
        """Mutual exclusion per index file; the entry is dropped when unused.

        # CONSTRAINT: asyncio.Lock() must be created in event loop context
        """
        slot = self._index_slots.get(repo_hash)
        if slot is None:
            slot = self._index_slots[repo_hash] = _IndexSlot()
        slot.users += 1
        try:
            async with slot.lock:
                yield
        finally:
            slot.users -= 1
            if slot.users == 0 and self._index_slots.get(repo_hash) is slot:
                del self._index_slots[repo_hash]

    async def build_index(
        self, repo_root: Path, repo_hash: str, force: bool = False
    ) -> IndexStats:
        """Build the index for a repository unless a fresh one exists.

        Args:
            repo_root: Repository root directory
            repo_hash: Snapshot hash naming the index file
            force: Rebuild even when the existing index is fresh

        Returns:
            IndexStats for the reused or rebuilt index

        Raises:
            ProviderError: If embedding fails or returns malformed vectors
        """
        repo_root = repo_root.resolve()
        index_path = self.index_path_for(repo_hash)

        async with self._index_slot(repo_hash):
            if not force:
                existing = await asyncio.to_thread(
                    self._load_if_fresh, index_path, repo_root
                )
                if existing is not None:
                    logger.debug(f"Reusing fresh index {index_path}")
                    return IndexStats(
                        files=existing.stats.get("files", 0),
                        chunks=existing.stats.get("chunks", len(existing.chunks)),
                        bytes=existing.stats.get("bytes", 0),
                        dim=existing.dim,
                        index_path=index_path,
                        rebuilt=False,
                    )

            return await self._rebuild(repo_root, repo_hash, index_path)

    def _load_if_fresh(self, index_path: Path, repo_root: Path) -> EmbedIndex | None:
        try:
            index_mtime = index_path.stat().st_mtime_ns
        except FileNotFoundError:
            return None
        data = read_json(index_path)
        if not isinstance(data, dict):
            return None
        try:
            index = EmbedIndex.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            logger.debug(f"Discarding malformed index {index_path}: {e}")
            return None
        if not index.chunks:
            return None
        if index_mtime < latest_mtime_ns(repo_root):
            logger.debug(f"Index {index_path} is older than the repository tree")
            return None
        return index

    async def _rebuild(
        self, repo_root: Path, repo_hash: str, index_path: Path
    ) -> IndexStats:
        cfg = self._config
        selected: SelectedFiles = await asyncio.to_thread(
            select_files,
            repo_root,
            cfg.max_file_bytes,
            cfg.max_repo_bytes,
            cfg.respect_gitignore,
        )
        chunks: list[Chunk] = await asyncio.to_thread(
            self._chunk_all, selected.files, repo_root
        )
        logger.debug(
            f"Selected {len(selected.files)} files ({selected.bytes} bytes), "
            f"{len(chunks)} chunks for {repo_root}"
        )

        vectors = await self._embed_chunks(chunks)
        dim = len(vectors[0]) if vectors else 0

        index_doc: dict[str, Any] = {
            "version": INDEX_VERSION,
            "repoHash": repo_hash,
            "model": f"{self._embedding_provider.name}:{self._embedding_provider.model}",
            "dim": dim,
            "chunks": [c.to_dict(v) for c, v in zip(chunks, vectors)],
            "stats": {
                "files": len(selected.files),
                "chunks": len(chunks),
                "bytes": selected.bytes,
            },
        }
        await asyncio.to_thread(atomic_write_json, index_path, index_doc)
        logger.info(
            f"Built index {index_path.name}: {len(selected.files)} files, "
            f"{len(chunks)} chunks, dim={dim}"
        )

        if self._vector_sink is not None and chunks:
            await self._mirror(repo_hash, chunks, vectors)

        return IndexStats(
            files=len(selected.files),
            chunks=len(chunks),
            bytes=selected.bytes,
            dim=dim,
            index_path=index_path,
            rebuilt=True,
        )

    def _chunk_all(self, files: list[Path], repo_root: Path) -> list[Chunk]:
        cfg = self._config
        out: list[Chunk] = []
        for path in files:
            out.extend(
                chunk_file(
                    path,
                    repo_root,
                    target=cfg.target_chars,
                    overlap=cfg.overlap_chars,
                    lookahead=cfg.soft_lookahead_chars,
                    max_file_bytes=cfg.max_file_bytes,
                )
            )
        return out

    async def _embed_chunks(self, chunks: list[Chunk]) -> list[list[float]]:
        """Embed chunk texts batch by batch, validating every response."""
        if not chunks:
            return []
        batch_size = max(1, self._embedding_provider.batch_size)
        vectors: list[list[float]] = []
        dim: int | None = None
        for i in range(0, len(chunks), batch_size):
            texts = [c.text for c in chunks[i : i + batch_size]]
            batch = await self._embedding_provider.embed(texts)
            if len(batch) != len(texts):
                raise ProviderError(
                    f"Embedding count mismatch: sent {len(texts)}, got {len(batch)}"
                )
            for vec in batch:
                if not vec:
                    raise ProviderError("Embedding provider returned an empty vector")
                if dim is None:
                    dim = len(vec)
                elif len(vec) != dim:
                    raise ProviderError(
                        f"Embedding dimension mismatch: expected {dim}, got {len(vec)}"
                    )
                vectors.append([float(x) for x in vec])
        return vectors

    async def _mirror(
        self, repo_hash: str, chunks: list[Chunk], vectors: list[list[float]]
    ) -> None:
        """Copy the index into the vector sink; failures are logged and dropped."""
        assert self._vector_sink is not None
        try:
            collection = await self._vector_sink.ensure_collection(repo_hash)
            for i in range(0, len(chunks), MIRROR_BATCH_SIZE):
                batch = chunks[i : i + MIRROR_BATCH_SIZE]
                await self._vector_sink.add(
                    collection,
                    ids=[c.id for c in batch],
                    embeddings=vectors[i : i + MIRROR_BATCH_SIZE],
                    documents=[f"# {c.rel}\n\n{c.text}" for c in batch],
                    metadatas=[
                        {"rel": c.rel, "start": c.start, "end": c.end, "lang": c.lang}
                        for c in batch
                    ],
                )
        except Exception as e:
            logger.debug(f"Vector mirror failed for {repo_hash}: {e}")
