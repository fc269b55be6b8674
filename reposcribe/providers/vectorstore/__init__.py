"""Vector store mirrors for RepoScribe indexes."""

from .chroma_sink import ChromaVectorSink

__all__ = ["ChromaVectorSink"]
