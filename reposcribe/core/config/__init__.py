"""Configuration models for RepoScribe."""

from reposcribe.core.config.config import Config
from reposcribe.core.config.embedding_config import EmbeddingConfig
from reposcribe.core.config.indexing_config import IndexingConfig
from reposcribe.core.config.llm_config import LLMConfig
from reposcribe.core.config.run_config import RunConfig

__all__ = ["Config", "EmbeddingConfig", "IndexingConfig", "LLMConfig", "RunConfig"]
