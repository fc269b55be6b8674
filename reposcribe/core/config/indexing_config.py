"""Indexing configuration for RepoScribe.

Controls file selection caps, chunk geometry and where embedding indexes
are persisted.
"""

import argparse
import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

DEFAULT_STATE_DIR = Path.home() / ".reposcribe"


class IndexingConfig(BaseModel):
    """Embedding index configuration.

    Configuration can be provided via:
    - Environment variables (REPOSCRIBE_INDEXING__*)
    - CLI arguments
    - Default values
    """

    index_dir: Path = Field(
        default=DEFAULT_STATE_DIR / "indexes",
        description="Directory holding one <repo_hash>.json index per repository",
    )

    target_chars: int = Field(
        default=1200, gt=0, description="Target characters per chunk"
    )
    overlap_chars: int = Field(
        default=200, ge=0, description="Characters carried into the next chunk"
    )
    soft_lookahead_chars: int = Field(
        default=200,
        ge=0,
        description="How far past the target a newline may extend a chunk",
    )

    max_file_bytes: int = Field(
        default=512 * 1024, gt=0, description="Per-file size cap for indexing"
    )
    max_repo_bytes: int = Field(
        default=20 * 1024 * 1024,
        gt=0,
        description="Cumulative byte budget across all selected files",
    )

    respect_gitignore: bool = Field(
        default=True, description="Skip paths matched by the root .gitignore"
    )

    @field_validator("index_dir")
    def validate_index_dir(cls, v: Path | str) -> Path:
        """Convert string paths to Path objects."""
        return Path(v).expanduser()

    @model_validator(mode="after")
    def validate_overlap(self) -> "IndexingConfig":
        if self.overlap_chars >= self.target_chars:
            raise ValueError(
                f"overlap_chars ({self.overlap_chars}) must be smaller than "
                f"target_chars ({self.target_chars})"
            )
        return self

    def index_path_for(self, repo_hash: str) -> Path:
        """Return the index file location for a repository hash."""
        return self.index_dir / f"{repo_hash}.json"

    @classmethod
    def add_cli_arguments(cls, parser: argparse.ArgumentParser) -> None:
        """Add indexing-related CLI arguments."""
        parser.add_argument(
            "--index-dir",
            type=Path,
            help="Directory for embedding indexes (default: ~/.reposcribe/indexes)",
        )
        parser.add_argument(
            "--chunk-chars",
            type=int,
            help="Target characters per chunk",
        )
        parser.add_argument(
            "--overlap-chars",
            type=int,
            help="Characters carried into the next chunk (must be below --chunk-chars)",
        )

    @classmethod
    def load_from_env(cls) -> dict[str, Any]:
        """Load indexing config from environment variables."""
        config: dict[str, Any] = {}
        if index_dir := os.getenv("REPOSCRIBE_INDEXING__INDEX_DIR"):
            config["index_dir"] = Path(index_dir)
        for field_name in (
            "target_chars",
            "overlap_chars",
            "soft_lookahead_chars",
            "max_file_bytes",
            "max_repo_bytes",
        ):
            raw = os.getenv(f"REPOSCRIBE_INDEXING__{field_name.upper()}")
            if raw is None:
                continue
            try:
                config[field_name] = int(raw)
            except ValueError:
                # Invalid numeric values are ignored, defaults apply
                pass
        if (gitignore := os.getenv("REPOSCRIBE_INDEXING__RESPECT_GITIGNORE")) is not None:
            config["respect_gitignore"] = gitignore.strip().lower() in ("1", "true", "yes", "on")
        return config

    @classmethod
    def extract_cli_overrides(cls, args: Any) -> dict[str, Any]:
        """Extract indexing config from CLI arguments."""
        overrides: dict[str, Any] = {}
        if getattr(args, "index_dir", None):
            overrides["index_dir"] = args.index_dir
        if getattr(args, "chunk_chars", None):
            overrides["target_chars"] = args.chunk_chars
        if getattr(args, "overlap_chars", None) is not None:
            overrides["overlap_chars"] = args.overlap_chars
        return overrides

    def __repr__(self) -> str:
        return (
            f"IndexingConfig(index_dir={self.index_dir}, target_chars={self.target_chars}, "
            f"overlap_chars={self.overlap_chars})"
        )
