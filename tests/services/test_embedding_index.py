"""Tests for building and reusing embedding indexes."""

import asyncio
import json
import os
from pathlib import Path

import pytest

from reposcribe.core.exceptions import ProviderError
from reposcribe.services.embedding_index import EmbeddingIndexBuilder
from reposcribe.services.snapshot import compute_snapshot
from tests.fixtures.fake_providers import FakeEmbeddingProvider, RecordingVectorSink


def _bump(path: Path, seconds: int = 3600) -> None:
    st = path.stat()
    os.utime(path, ns=(st.st_atime_ns, st.st_mtime_ns + seconds * 1_000_000_000))


@pytest.fixture
def docs_repo(tmp_path: Path) -> Path:
    root = tmp_path / "docs_repo"
    root.mkdir()
    (root / "guide.md").write_text("# Guide\n\n" + "Install the service and run it.\n" * 120)
    (root / "app.py").write_text("def main():\n    return 'ok'\n")
    (root / ".env").write_text("API_SECRET=do-not-embed-me\n")
    return root


def _builder(config, provider, sink=None) -> EmbeddingIndexBuilder:
    return EmbeddingIndexBuilder(config.indexing, provider, sink)


class TestBuildIndex:
    """Index creation, freshness reuse and forced rebuilds."""

    @pytest.mark.asyncio
    async def test_build_persists_index_outside_repo(self, config, docs_repo, fake_embeddings):
        repo_hash = compute_snapshot(docs_repo).repo_hash
        stats = await _builder(config, fake_embeddings).build_index(docs_repo, repo_hash)

        assert stats.rebuilt is True
        assert stats.files == 2
        assert stats.chunks > 2
        assert stats.dim == 64
        assert stats.index_path == config.indexing.index_path_for(repo_hash)
        assert docs_repo not in stats.index_path.parents

        data = json.loads(stats.index_path.read_text())
        assert data["repoHash"] == repo_hash
        assert data["model"] == "fake:bow-64"
        assert len(data["chunks"]) == stats.chunks
        assert all(len(c["v"]) == 64 for c in data["chunks"])
        assert "text" not in data["chunks"][0]

    @pytest.mark.asyncio
    async def test_env_files_are_never_embedded(self, config, docs_repo, fake_embeddings):
        repo_hash = compute_snapshot(docs_repo).repo_hash
        await _builder(config, fake_embeddings).build_index(docs_repo, repo_hash)
        sent = [t for batch in fake_embeddings.calls for t in batch]
        assert sent
        assert not any("do-not-embed-me" in t for t in sent)

    @pytest.mark.asyncio
    async def test_fresh_index_is_reused(self, config, docs_repo, fake_embeddings):
        builder = _builder(config, fake_embeddings)
        repo_hash = compute_snapshot(docs_repo).repo_hash
        first = await builder.build_index(docs_repo, repo_hash)
        calls = len(fake_embeddings.calls)

        second = await builder.build_index(docs_repo, repo_hash)
        assert second.rebuilt is False
        assert second.chunks == first.chunks
        assert len(fake_embeddings.calls) == calls

    @pytest.mark.asyncio
    async def test_force_rebuilds(self, config, docs_repo, fake_embeddings):
        builder = _builder(config, fake_embeddings)
        repo_hash = compute_snapshot(docs_repo).repo_hash
        await builder.build_index(docs_repo, repo_hash)
        calls = len(fake_embeddings.calls)

        stats = await builder.build_index(docs_repo, repo_hash, force=True)
        assert stats.rebuilt is True
        assert len(fake_embeddings.calls) > calls

    @pytest.mark.asyncio
    async def test_stale_index_is_rebuilt(self, config, docs_repo, fake_embeddings):
        """A file newer than the index file invalidates it."""
        builder = _builder(config, fake_embeddings)
        repo_hash = compute_snapshot(docs_repo).repo_hash
        await builder.build_index(docs_repo, repo_hash)

        _bump(docs_repo / "app.py")
        stats = await builder.build_index(docs_repo, repo_hash)
        assert stats.rebuilt is True

    @pytest.mark.asyncio
    async def test_batches_follow_provider_batch_size(self, config, docs_repo):
        provider = FakeEmbeddingProvider(batch_size=2)
        repo_hash = compute_snapshot(docs_repo).repo_hash
        stats = await _builder(config, provider).build_index(docs_repo, repo_hash)
        assert all(len(batch) <= 2 for batch in provider.calls)
        assert sum(len(batch) for batch in provider.calls) == stats.chunks


class TestBuildSerialization:
    """Concurrent builds of one index share a lock that is released afterwards."""

    @pytest.mark.asyncio
    async def test_concurrent_builds_rebuild_once(self, config, docs_repo, fake_embeddings):
        builder = _builder(config, fake_embeddings)
        repo_hash = compute_snapshot(docs_repo).repo_hash

        first, second = await asyncio.gather(
            builder.build_index(docs_repo, repo_hash),
            builder.build_index(docs_repo, repo_hash),
        )

        assert sorted([first.rebuilt, second.rebuilt]) == [False, True]
        assert builder.in_flight_hashes() == []

    @pytest.mark.asyncio
    async def test_lock_entries_do_not_accumulate(self, config, docs_repo, fake_embeddings):
        builder = _builder(config, fake_embeddings)
        await builder.build_index(docs_repo, "hash-one")
        await builder.build_index(docs_repo, "hash-two")
        assert builder.in_flight_hashes() == []

    @pytest.mark.asyncio
    async def test_lock_entry_released_after_failure(self, config, docs_repo, fake_embeddings):
        fake_embeddings.override = lambda texts: []
        builder = _builder(config, fake_embeddings)
        with pytest.raises(ProviderError):
            await builder.build_index(docs_repo, "hash-broken")
        assert builder.in_flight_hashes() == []


class TestMalformedEmbeddings:
    @pytest.mark.asyncio
    async def test_count_mismatch_raises_and_writes_nothing(self, config, docs_repo, fake_embeddings):
        fake_embeddings.override = lambda texts: [[1.0, 0.0]] * (len(texts) - 1)
        repo_hash = compute_snapshot(docs_repo).repo_hash
        with pytest.raises(ProviderError, match="count mismatch"):
            await _builder(config, fake_embeddings).build_index(docs_repo, repo_hash)
        assert not config.indexing.index_path_for(repo_hash).exists()

    @pytest.mark.asyncio
    async def test_dimension_mismatch_raises(self, config, docs_repo, fake_embeddings):
        fake_embeddings.override = lambda texts: [[1.0] * (i + 1) for i in range(len(texts))]
        repo_hash = compute_snapshot(docs_repo).repo_hash
        with pytest.raises(ProviderError, match="dimension mismatch"):
            await _builder(config, fake_embeddings).build_index(docs_repo, repo_hash)


class TestVectorMirror:
    @pytest.mark.asyncio
    async def test_mirror_receives_every_chunk(self, config, docs_repo, fake_embeddings):
        sink = RecordingVectorSink()
        repo_hash = compute_snapshot(docs_repo).repo_hash
        stats = await _builder(config, fake_embeddings, sink).build_index(docs_repo, repo_hash)

        assert sink.collections == [repo_hash]
        docs = [d for batch in sink.batches for d in batch["documents"]]
        assert len(docs) == stats.chunks
        assert all(d.startswith("# ") for d in docs)

    @pytest.mark.asyncio
    async def test_mirror_failure_is_not_fatal(self, config, docs_repo, fake_embeddings):
        sink = RecordingVectorSink(fail=True)
        repo_hash = compute_snapshot(docs_repo).repo_hash
        stats = await _builder(config, fake_embeddings, sink).build_index(docs_repo, repo_hash)
        assert stats.rebuilt is True
        assert stats.index_path.exists()
