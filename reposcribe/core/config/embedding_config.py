"""Embedding provider configuration for RepoScribe."""

import argparse
import os
from typing import Any, Literal

from pydantic import BaseModel, Field, SecretStr, field_validator


class EmbeddingConfig(BaseModel):
    """Embedding provider and optional vector-store mirror settings.

    Configuration can be provided via:
    - Environment variables (REPOSCRIBE_EMBEDDING__*, legacy OPENAI_API_KEY /
      OPENAI_BASE_URL)
    - CLI arguments
    - Default values
    """

    provider: Literal["openai"] = Field(
        default="openai", description="Embedding provider to use"
    )
    model: str = Field(
        default="text-embedding-3-small", description="Embedding model name"
    )
    base_url: str = Field(
        default="https://api.openai.com/v1",
        description="OpenAI-compatible API base URL",
    )
    api_key: SecretStr | None = Field(default=None, description="Provider API key")
    batch_size: int = Field(
        default=64, gt=0, le=2048, description="Texts per embeddings request"
    )
    timeout_seconds: float = Field(
        default=60.0, gt=0, description="Per-request timeout"
    )

    backend: Literal["local", "chroma"] = Field(
        default="local",
        description="local: JSON index only; chroma: also mirror into Chroma",
    )
    chroma_host: str = Field(default="localhost", description="Chroma server host")
    chroma_port: int = Field(default=8000, description="Chroma server port")

    @field_validator("base_url")
    def validate_base_url(cls, v: str) -> str:
        """Strip trailing slashes so request paths join cleanly."""
        return v.rstrip("/")

    def is_configured(self) -> bool:
        """Check if an API key is available for the provider."""
        return self.api_key is not None and bool(self.api_key.get_secret_value())

    @classmethod
    def add_cli_arguments(cls, parser: argparse.ArgumentParser) -> None:
        """Add embedding-related CLI arguments."""
        parser.add_argument(
            "--embedding-model",
            help="Embedding model name",
        )
        parser.add_argument(
            "--embedding-backend",
            choices=["local", "chroma"],
            help="Index backend (chroma also mirrors vectors to a Chroma server)",
        )

    @classmethod
    def load_from_env(cls) -> dict[str, Any]:
        """Load embedding config from environment variables."""
        config: dict[str, Any] = {}
        # Support both namespaced and legacy env var names
        if api_key := (
            os.getenv("REPOSCRIBE_EMBEDDING__API_KEY") or os.getenv("OPENAI_API_KEY")
        ):
            config["api_key"] = api_key
        if base_url := (
            os.getenv("REPOSCRIBE_EMBEDDING__BASE_URL") or os.getenv("OPENAI_BASE_URL")
        ):
            config["base_url"] = base_url
        if model := os.getenv("REPOSCRIBE_EMBEDDING__MODEL"):
            config["model"] = model
        if backend := os.getenv("REPOSCRIBE_EMBEDDING__BACKEND"):
            config["backend"] = backend
        if host := os.getenv("REPOSCRIBE_EMBEDDING__CHROMA_HOST"):
            config["chroma_host"] = host
        if port := os.getenv("REPOSCRIBE_EMBEDDING__CHROMA_PORT"):
            try:
                config["chroma_port"] = int(port)
            except ValueError:
                pass
        if batch := os.getenv("REPOSCRIBE_EMBEDDING__BATCH_SIZE"):
            try:
                config["batch_size"] = int(batch)
            except ValueError:
                pass
        return config

    @classmethod
    def extract_cli_overrides(cls, args: Any) -> dict[str, Any]:
        """Extract embedding config from CLI arguments."""
        overrides: dict[str, Any] = {}
        if getattr(args, "embedding_model", None):
            overrides["model"] = args.embedding_model
        if getattr(args, "embedding_backend", None):
            overrides["backend"] = args.embedding_backend
        return overrides

    def __repr__(self) -> str:
        """String representation hiding the API key."""
        return (
            f"EmbeddingConfig(provider={self.provider}, model={self.model}, "
            f"backend={self.backend}, api_key={'***' if self.is_configured() else None})"
        )
