"""README generation pipeline: a fixed DAG of analysis and writing nodes."""

from reposcribe.pipeline.context import PipelineContext
from reposcribe.pipeline.graph import CompiledPipeline, PipelineGraph, PipelineObserver
from reposcribe.pipeline.nodes import build_readme_graph
from reposcribe.pipeline.rewrite import SectionRewriter

__all__ = [
    "CompiledPipeline",
    "PipelineContext",
    "PipelineGraph",
    "PipelineObserver",
    "SectionRewriter",
    "build_readme_graph",
]
