"""Top-level configuration for RepoScribe.

Sections are merged with precedence: defaults < environment < CLI arguments.
"""

import argparse
from typing import Any

from pydantic import BaseModel, Field

from reposcribe.core.config.embedding_config import EmbeddingConfig
from reposcribe.core.config.indexing_config import IndexingConfig
from reposcribe.core.config.llm_config import LLMConfig
from reposcribe.core.config.run_config import RunConfig

_SECTIONS: dict[str, type[BaseModel]] = {
    "indexing": IndexingConfig,
    "embedding": EmbeddingConfig,
    "llm": LLMConfig,
    "run": RunConfig,
}


class Config(BaseModel):
    """Aggregated RepoScribe configuration."""

    indexing: IndexingConfig = Field(default_factory=IndexingConfig)
    embedding: EmbeddingConfig = Field(default_factory=EmbeddingConfig)
    llm: LLMConfig = Field(default_factory=LLMConfig)
    run: RunConfig = Field(default_factory=RunConfig)

    @classmethod
    def load(cls, args: Any | None = None) -> "Config":
        """Build a configuration from environment variables and CLI arguments."""
        data: dict[str, dict[str, Any]] = {}
        for name, section in _SECTIONS.items():
            values = section.load_from_env()  # type: ignore[attr-defined]
            if args is not None:
                values.update(section.extract_cli_overrides(args))  # type: ignore[attr-defined]
            data[name] = values
        return cls(**data)

    @classmethod
    def add_cli_arguments(cls, parser: argparse.ArgumentParser) -> None:
        """Register every section's CLI arguments on a parser."""
        for section in _SECTIONS.values():
            section.add_cli_arguments(parser)  # type: ignore[attr-defined]
