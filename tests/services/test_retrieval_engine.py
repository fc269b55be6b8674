"""Tests for similarity retrieval over a persisted index."""

from pathlib import Path

import numpy as np
import pytest

from reposcribe.services.embedding_index import EmbeddingIndexBuilder
from reposcribe.services.retrieval_service import (
    RetrievalEngine,
    cosine,
    select_diverse,
)
from reposcribe.services.snapshot import compute_snapshot


def _payload(passage) -> str:
    """Passage body without the file header line."""
    header = f"# {passage.rel}\n\n"
    assert passage.body.startswith(header)
    return passage.body[len(header) :]


@pytest.fixture
def notes_repo(tmp_path: Path) -> Path:
    root = tmp_path / "notes"
    root.mkdir()
    (root / "deploy.txt").write_text("deploy docker container kubernetes\n" * 200)
    (root / "billing.txt").write_text("invoice payment billing currency\n" * 40)
    (root / "auth.txt").write_text("login password session token\n" * 40)
    return root


async def _indexed(config, repo: Path, provider) -> tuple[RetrievalEngine, str]:
    repo_hash = compute_snapshot(repo).repo_hash
    await EmbeddingIndexBuilder(config.indexing, provider).build_index(repo, repo_hash)
    return RetrievalEngine(config.indexing, provider), repo_hash


class TestRetrieve:
    @pytest.mark.asyncio
    async def test_missing_index_returns_empty(self, config, fake_embeddings, tmp_path):
        engine = RetrievalEngine(config.indexing, fake_embeddings)
        assert await engine.retrieve("deadbeef0000", "anything", repo_root=tmp_path) == []
        assert fake_embeddings.calls == []

    @pytest.mark.asyncio
    async def test_respects_k_and_character_budget(self, config, notes_repo, fake_embeddings):
        engine, repo_hash = await _indexed(config, notes_repo, fake_embeddings)
        passages = await engine.retrieve(
            repo_hash, "docker deploy", k=2, max_chars=500, repo_root=notes_repo
        )
        assert 0 < len(passages) <= 2
        assert sum(len(_payload(p)) for p in passages) <= 500

    @pytest.mark.asyncio
    async def test_prefers_one_passage_per_file(self, config, notes_repo, fake_embeddings):
        """deploy.txt holds most chunks, yet k=3 covers all three files."""
        engine, repo_hash = await _indexed(config, notes_repo, fake_embeddings)
        passages = await engine.retrieve(
            repo_hash, "docker deploy", k=3, max_chars=10_000, repo_root=notes_repo
        )
        assert sorted(p.rel for p in passages) == ["auth.txt", "billing.txt", "deploy.txt"]
        assert passages[0].rel == "deploy.txt"

    @pytest.mark.asyncio
    async def test_passages_reread_live_bytes(self, config, notes_repo, fake_embeddings):
        engine, repo_hash = await _indexed(config, notes_repo, fake_embeddings)
        (passage,) = await engine.retrieve(
            repo_hash, "invoice payment", k=1, max_chars=10_000, repo_root=notes_repo
        )
        assert passage.rel == "billing.txt"
        assert _payload(passage) in (notes_repo / "billing.txt").read_text()

    @pytest.mark.asyncio
    async def test_code_passages_are_fenced(self, config, tmp_path, fake_embeddings):
        repo = tmp_path / "code"
        repo.mkdir()
        (repo / "main.py").write_text("def handler(event):\n    return event\n")
        engine, repo_hash = await _indexed(config, repo, fake_embeddings)
        (passage,) = await engine.retrieve(repo_hash, "handler", k=1, repo_root=repo)
        assert passage.body.startswith("# main.py\n\n```py")
        assert passage.body.endswith("\n```")


def test_cosine_edge_cases():
    assert cosine([], []) == 0.0
    assert cosine([1.0, 0.0], [1.0]) == 0.0
    assert cosine([0.0, 0.0], [1.0, 1.0]) == 0.0
    assert cosine([1.0, 0.0], [2.0, 0.0]) == pytest.approx(1.0)


def test_select_diverse_fills_after_one_per_file():
    rels = ["a", "a", "a", "b"]
    scores = np.array([0.9, 0.8, 0.7, 0.1])
    assert select_diverse(rels, scores, 3) == [0, 3, 1]
    assert select_diverse(rels, scores, 0) == []
