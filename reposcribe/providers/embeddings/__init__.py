"""Embedding providers for RepoScribe."""

from .openai_provider import OpenAIEmbeddingProvider

__all__ = ["OpenAIEmbeddingProvider"]
