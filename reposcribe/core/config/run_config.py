"""Run orchestration configuration for RepoScribe."""

import argparse
import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator

from reposcribe.core.config.indexing_config import DEFAULT_STATE_DIR


class RunConfig(BaseModel):
    """Timeout, replay buffer and retention limits for pipeline runs."""

    timeout_seconds: float = Field(
        default=90.0, gt=0, description="Per-attempt pipeline timeout"
    )
    replay_depth: int = Field(
        default=50, gt=0, description="Progress events buffered for late subscribers"
    )
    artifacts_dir: Path = Field(
        default=DEFAULT_STATE_DIR / "artifacts",
        description="Base directory for per-repository artifacts",
    )

    # Retention for process-wide maps
    cache_max_entries: int = Field(
        default=256, gt=0, description="LRU bound on cached run results"
    )
    run_ttl_seconds: float = Field(
        default=3600.0, gt=0, description="How long closed run records stay replayable"
    )
    max_run_records: int = Field(
        default=1024, gt=0, description="Upper bound on retained run records"
    )

    @field_validator("artifacts_dir")
    def validate_artifacts_dir(cls, v: Path | str) -> Path:
        return Path(v).expanduser()

    @classmethod
    def add_cli_arguments(cls, parser: argparse.ArgumentParser) -> None:
        """Add run-related CLI arguments."""
        parser.add_argument(
            "--timeout",
            type=float,
            help="Pipeline timeout in seconds (default: 90)",
        )
        parser.add_argument(
            "--artifacts-dir",
            type=Path,
            help="Artifact output directory (default: ~/.reposcribe/artifacts)",
        )

    @classmethod
    def load_from_env(cls) -> dict[str, Any]:
        """Load run config from environment variables."""
        config: dict[str, Any] = {}
        if timeout := os.getenv("REPOSCRIBE_RUN__TIMEOUT_SECONDS"):
            try:
                config["timeout_seconds"] = float(timeout)
            except ValueError:
                pass
        if artifacts := os.getenv("REPOSCRIBE_RUN__ARTIFACTS_DIR"):
            config["artifacts_dir"] = Path(artifacts)
        for field_name in ("replay_depth", "cache_max_entries", "max_run_records"):
            raw = os.getenv(f"REPOSCRIBE_RUN__{field_name.upper()}")
            if raw is None:
                continue
            try:
                config[field_name] = int(raw)
            except ValueError:
                pass
        if ttl := os.getenv("REPOSCRIBE_RUN__RUN_TTL_SECONDS"):
            try:
                config["run_ttl_seconds"] = float(ttl)
            except ValueError:
                pass
        return config

    @classmethod
    def extract_cli_overrides(cls, args: Any) -> dict[str, Any]:
        """Extract run config from CLI arguments."""
        overrides: dict[str, Any] = {}
        if getattr(args, "timeout", None):
            overrides["timeout_seconds"] = args.timeout
        if getattr(args, "artifacts_dir", None):
            overrides["artifacts_dir"] = args.artifacts_dir
        return overrides

    def __repr__(self) -> str:
        return (
            f"RunConfig(timeout_seconds={self.timeout_seconds}, "
            f"replay_depth={self.replay_depth}, artifacts_dir={self.artifacts_dir})"
        )
