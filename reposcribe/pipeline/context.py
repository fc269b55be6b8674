"""Side-channel passed to every pipeline node alongside the state."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING

from reposcribe.analyzers import Analyzers
from reposcribe.core.config.llm_config import LLMConfig

if TYPE_CHECKING:
    from reposcribe.interfaces.artifact_sink import ArtifactSink
    from reposcribe.pipeline.graph import CompiledPipeline
    from reposcribe.pipeline.rewrite import SectionRewriter
    from reposcribe.services.embedding_index import EmbeddingIndexBuilder
    from reposcribe.services.retrieval_service import RetrievalEngine


@dataclass(frozen=True)
class PipelineContext:
    """Services and flags for one pipeline invocation.

    Never part of the merged state; nodes receive it as a separate argument.
    """

    analyzers: Analyzers = field(default_factory=Analyzers)
    llm: LLMConfig = field(default_factory=LLMConfig)
    index_builder: EmbeddingIndexBuilder | None = None
    retrieval: RetrievalEngine | None = None
    rewriter: SectionRewriter | None = None
    artifact_sink: ArtifactSink | None = None
    use_llm: bool = False
    mode: str = "draft"
    graph: CompiledPipeline | None = None
    depth: int = 0

    def for_subproject(self) -> "PipelineContext":
        """Context for a nested run over one sub-project root."""
        return replace(self, depth=self.depth + 1, use_llm=False)
