"""Providers package for RepoScribe - concrete implementations of abstract interfaces.

Use lazy import to avoid importing heavy backends during package import.
"""

__all__ = [
    "ChromaVectorSink",
    "OpenAIEmbeddingProvider",
    "OpenAILLMProvider",
]


def __getattr__(name: str):
    if name == "ChromaVectorSink":
        from .vectorstore import ChromaVectorSink  # lazy

        return ChromaVectorSink
    if name == "OpenAIEmbeddingProvider":
        from .embeddings import OpenAIEmbeddingProvider  # lazy

        return OpenAIEmbeddingProvider
    if name == "OpenAILLMProvider":
        from .llm import OpenAILLMProvider  # lazy

        return OpenAILLMProvider
    raise AttributeError(name)
