"""LLM providers for RepoScribe section rewriting."""

from .openai_llm_provider import OpenAILLMProvider

__all__ = ["OpenAILLMProvider"]
