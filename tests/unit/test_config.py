"""Tests for configuration loading and validation."""

import argparse
from pathlib import Path

import pytest
from pydantic import ValidationError

from reposcribe.core.config.config import Config
from reposcribe.core.config.indexing_config import IndexingConfig
from reposcribe.core.config.llm_config import LLMConfig
from reposcribe.core.config.run_config import RunConfig


class TestIndexingConfig:
    def test_defaults(self):
        config = IndexingConfig()
        assert config.target_chars == 1200
        assert config.overlap_chars == 200
        assert config.respect_gitignore is True

    def test_overlap_must_be_smaller_than_target(self):
        with pytest.raises(ValidationError):
            IndexingConfig(target_chars=200, overlap_chars=200)

    def test_index_path_for(self, tmp_path: Path):
        config = IndexingConfig(index_dir=tmp_path)
        assert config.index_path_for("abc123") == tmp_path / "abc123.json"

    def test_invalid_numeric_env_ignored(self, monkeypatch):
        """Unparseable values fall back to defaults."""
        monkeypatch.setenv("REPOSCRIBE_INDEXING__TARGET_CHARS", "lots")
        assert "target_chars" not in IndexingConfig.load_from_env()


class TestConfigLoad:
    def _parser(self) -> argparse.ArgumentParser:
        parser = argparse.ArgumentParser()
        Config.add_cli_arguments(parser)
        return parser

    def test_environment_overrides_defaults(self, monkeypatch):
        monkeypatch.setenv("REPOSCRIBE_INDEXING__TARGET_CHARS", "800")
        monkeypatch.setenv("REPOSCRIBE_RUN__TIMEOUT_SECONDS", "12.5")
        config = Config.load()
        assert config.indexing.target_chars == 800
        assert config.run.timeout_seconds == 12.5

    def test_cli_overrides_environment(self, monkeypatch, tmp_path: Path):
        monkeypatch.setenv("REPOSCRIBE_INDEXING__TARGET_CHARS", "800")
        monkeypatch.setenv("REPOSCRIBE_LLM__MODEL", "env-model")
        args = self._parser().parse_args(
            ["--chunk-chars", "900", "--llm-model", "cli-model", "--artifacts-dir", str(tmp_path)]
        )
        config = Config.load(args)
        assert config.indexing.target_chars == 900
        assert config.llm.model == "cli-model"
        assert config.run.artifacts_dir == tmp_path

    def test_overlap_flag_allows_small_chunks(self):
        args = self._parser().parse_args(["--chunk-chars", "100", "--overlap-chars", "20"])
        config = Config.load(args)
        assert config.indexing.target_chars == 100
        assert config.indexing.overlap_chars == 20

    def test_llm_key_from_openai_env(self, monkeypatch):
        monkeypatch.delenv("REPOSCRIBE_LLM__API_KEY", raising=False)
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        config = Config.load()
        assert config.llm.is_configured()
        assert "sk-test" not in repr(config.llm)


def test_llm_not_configured_without_key():
    assert not LLMConfig().is_configured()


def test_run_timeout_must_be_positive():
    with pytest.raises(ValidationError):
        RunConfig(timeout_seconds=0)
