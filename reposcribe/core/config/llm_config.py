"""LLM configuration for grounded section rewriting."""

import argparse
import os
from typing import Any

from pydantic import BaseModel, Field, SecretStr, field_validator


class LLMConfig(BaseModel):
    """Chat-completion provider settings and section rewrite limits."""

    model: str = Field(default="gpt-4o-mini", description="Chat model name")
    base_url: str = Field(
        default="https://api.openai.com/v1",
        description="OpenAI-compatible API base URL",
    )
    api_key: SecretStr | None = Field(default=None, description="Provider API key")
    timeout_seconds: float = Field(default=30.0, gt=0)
    temperature: float = Field(default=0.2, ge=0.0, le=2.0)

    section_char_cap: int = Field(
        default=1200, gt=0, description="Hard cap on characters per README section"
    )
    retrieval_k: int = Field(
        default=6, gt=0, description="Passages retrieved per section rewrite"
    )
    retrieval_max_chars: int = Field(
        default=1200, gt=0, description="Shared character budget for retrieved passages"
    )

    @field_validator("base_url")
    def validate_base_url(cls, v: str) -> str:
        return v.rstrip("/")

    def is_configured(self) -> bool:
        return self.api_key is not None and bool(self.api_key.get_secret_value())

    @classmethod
    def add_cli_arguments(cls, parser: argparse.ArgumentParser) -> None:
        """Add LLM-related CLI arguments."""
        parser.add_argument(
            "--llm-model",
            help="Chat model used to rewrite sections when --use-llm is set",
        )

    @classmethod
    def load_from_env(cls) -> dict[str, Any]:
        """Load LLM config from environment variables."""
        config: dict[str, Any] = {}
        if api_key := (
            os.getenv("REPOSCRIBE_LLM__API_KEY") or os.getenv("OPENAI_API_KEY")
        ):
            config["api_key"] = api_key
        if base_url := (
            os.getenv("REPOSCRIBE_LLM__BASE_URL") or os.getenv("OPENAI_BASE_URL")
        ):
            config["base_url"] = base_url
        if model := os.getenv("REPOSCRIBE_LLM__MODEL"):
            config["model"] = model
        if cap := os.getenv("REPOSCRIBE_LLM__SECTION_CHAR_CAP"):
            try:
                config["section_char_cap"] = int(cap)
            except ValueError:
                pass
        return config

    @classmethod
    def extract_cli_overrides(cls, args: Any) -> dict[str, Any]:
        overrides: dict[str, Any] = {}
        if getattr(args, "llm_model", None):
            overrides["model"] = args.llm_model
        return overrides
