"""Shared fixtures for RepoScribe tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from reposcribe.core.config.config import Config
from reposcribe.core.config.indexing_config import IndexingConfig
from reposcribe.core.config.run_config import RunConfig
from tests.fixtures.fake_providers import (
    FakeEmbeddingProvider,
    FakeLLMProvider,
    RecordingVectorSink,
)


@pytest.fixture
def state_dir(tmp_path: Path) -> Path:
    """Tool state lives beside, never inside, the analyzed repository."""
    d = tmp_path / "state"
    d.mkdir()
    return d


@pytest.fixture
def config(state_dir: Path) -> Config:
    return Config(
        indexing=IndexingConfig(index_dir=state_dir / "indexes"),
        run=RunConfig(artifacts_dir=state_dir / "artifacts", timeout_seconds=30),
    )


@pytest.fixture
def repo(tmp_path: Path) -> Path:
    """Small TypeScript repository with a secret-bearing .env file."""
    root = tmp_path / "repo"
    root.mkdir()
    lines = [f"export const value{i} = {i};" for i in range(50)]
    (root / "a.ts").write_text("\n".join(lines) + "\n", encoding="utf-8")
    (root / ".env").write_text(
        "API_SECRET=Zm9vYmFyYmF6cXV4cXV1eGNvcmdlZ3JhdWx0Z2FycGx5d2FsZG8=\n",
        encoding="utf-8",
    )
    return root


@pytest.fixture
def fake_embeddings() -> FakeEmbeddingProvider:
    return FakeEmbeddingProvider()


@pytest.fixture
def fake_llm() -> FakeLLMProvider:
    return FakeLLMProvider()


@pytest.fixture
def vector_sink() -> RecordingVectorSink:
    return RecordingVectorSink()
