"""Run orchestration: snapshot identity, caching, per-root queueing and retry.

# FILE_CONTEXT: Entry point for draft/final README runs
# ROLE: Turns (repo_root, mode) into one cached, serialized, retried pipeline
#       execution whose progress is published on a ProgressBus
# CONSTRAINT: At most one pipeline execution in flight per repository root
# CONSTRAINT: done/error are published while the root lock is still held
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from loguru import logger

from reposcribe.analyzers import Analyzers
from reposcribe.core.config.config import Config
from reposcribe.core.exceptions import TransientIOError, ValidationError, is_transient
from reposcribe.core.models import RUN_MODES, CacheEntry, RepositorySnapshot
from reposcribe.interfaces.artifact_sink import ArtifactSink
from reposcribe.interfaces.embedding_provider import EmbeddingProvider
from reposcribe.interfaces.llm_provider import LLMProvider
from reposcribe.interfaces.vector_sink import VectorSink
from reposcribe.pipeline.context import PipelineContext
from reposcribe.pipeline.graph import CompiledPipeline
from reposcribe.pipeline.nodes import build_readme_graph
from reposcribe.pipeline.rewrite import SectionRewriter
from reposcribe.services.artifact_sink import FileArtifactSink
from reposcribe.services.embedding_index import EmbeddingIndexBuilder
from reposcribe.services.progress_bus import (
    CACHED_HIT,
    DONE,
    ERROR,
    NODE_END,
    NODE_START,
    ProgressBus,
    ProgressEvent,
    RunRecord,
    RunRegistry,
)
from reposcribe.services.result_cache import ResultCache
from reposcribe.services.retrieval_service import RetrievalEngine
from reposcribe.services.snapshot import compute_snapshot

MAX_ATTEMPTS = 2


class _BusObserver:
    """Forwards node lifecycle callbacks to a run's progress bus."""

    def __init__(self, bus: ProgressBus):
        self._bus = bus

    def on_node_start(self, name: str) -> None:
        self._bus.publish(NODE_START, node=name)

    def on_node_end(self, name: str) -> None:
        self._bus.publish(NODE_END, node=name)


@dataclass
class _RootSlot:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0


def _validate_root(repo_root: str | Path) -> Path:
    root = Path(repo_root).expanduser()
    if not root.exists():
        raise ValidationError(f"Repository root does not exist: {root}")
    if not root.is_dir():
        raise ValidationError(f"Repository root is not a directory: {root}")
    return root.resolve()


def _validate_mode(mode: str) -> str:
    if mode not in RUN_MODES:
        raise ValidationError(f"Unknown run mode {mode!r}; expected one of {RUN_MODES}")
    return mode


class RunOrchestrator:
    """Executes README pipeline runs with caching and single-flight per root."""

    def __init__(
        self,
        graph: CompiledPipeline,
        context: PipelineContext,
        artifact_sink: ArtifactSink,
        cache: ResultCache | None = None,
        registry: RunRegistry | None = None,
        timeout_seconds: float = 90.0,
    ):
        """Initialize the orchestrator.

        Args:
            graph: Compiled README pipeline
            context: Base pipeline context; mode and use_llm are set per run
            artifact_sink: Sink whose directory_for() names a run's artifacts
            cache: Result cache keyed by (repo_hash, mode)
            registry: Owner of run records and their progress buses
            timeout_seconds: Timeout for each pipeline attempt
        """
        self._graph = graph
        self._context = replace(context, graph=graph, artifact_sink=artifact_sink)
        self._artifact_sink = artifact_sink
        self._cache = cache if cache is not None else ResultCache()
        self._registry = registry if registry is not None else RunRegistry()
        self._timeout = timeout_seconds
        self._root_slots: dict[str, _RootSlot] = {}

    @property
    def cache(self) -> ResultCache:
        return self._cache

    @property
    def registry(self) -> RunRegistry:
        return self._registry

    def in_flight_roots(self) -> list[str]:
        """Roots that currently hold or wait on a single-flight lock."""
        return list(self._root_slots)

    # --- public API -----------------------------------------------------------

    def launch(
        self,
        repo_root: str | Path,
        mode: str,
        force: bool = False,
        use_llm: bool = False,
    ) -> tuple[str, asyncio.Task[dict[str, Any]]]:
        """Validate inputs and schedule a run; return its id and task.

        Callers that want to stream progress subscribe with the returned id
        before awaiting the task.

        Raises:
            ValidationError: If the root is missing or not a directory, or
                the mode is unknown
        """
        mode = _validate_mode(mode)
        root = _validate_root(repo_root)
        record = self._registry.create()
        task = asyncio.create_task(self._run(record, root, mode, force, use_llm))
        return record.run_id, task

    async def start_run(
        self,
        repo_root: str | Path,
        mode: str,
        force: bool = False,
        use_llm: bool = False,
    ) -> dict[str, Any]:
        """Run the pipeline for a repository (or serve it from cache).

        Returns:
            ``{"run_id": ..., **result}`` with the draft or final payload
        """
        _, task = self.launch(repo_root, mode, force=force, use_llm=use_llm)
        return await task

    async def start_draft(
        self, repo_root: str | Path, force: bool = False, use_llm: bool = False
    ) -> dict[str, Any]:
        return await self.start_run(repo_root, "draft", force=force, use_llm=use_llm)

    async def start_final(
        self, repo_root: str | Path, force: bool = False, use_llm: bool = False
    ) -> dict[str, Any]:
        return await self.start_run(repo_root, "final", force=force, use_llm=use_llm)

    async def get_progress(self, run_id: str) -> AsyncIterator[ProgressEvent]:
        """Replay and follow a run's progress events."""
        record = self._registry.get(run_id)
        if record is None:
            yield {"type": ERROR, "run_id": run_id, "t": time.time(), "message": "unknown runId"}
            return
        async for event in record.bus.subscribe():
            yield event

    # --- internals ------------------------------------------------------------

    @asynccontextmanager
    async def _root_slot(self, key: str) -> AsyncIterator[None]:
        """FIFO mutual exclusion per root; the entry is dropped when unused."""
        slot = self._root_slots.get(key)
        if slot is None:
            slot = self._root_slots[key] = _RootSlot()
        slot.users += 1
        try:
            async with slot.lock:
                yield
        finally:
            slot.users -= 1
            if slot.users == 0 and self._root_slots.get(key) is slot:
                del self._root_slots[key]

    async def _run(
        self,
        record: RunRecord,
        root: Path,
        mode: str,
        force: bool,
        use_llm: bool,
    ) -> dict[str, Any]:
        bus = record.bus
        try:
            try:
                snapshot = await asyncio.to_thread(compute_snapshot, root)
            except OSError as e:
                bus.publish(ERROR, message=str(e))
                raise

            if not force:
                entry = self._cache.get(snapshot.repo_hash, mode)
                if entry is not None:
                    logger.debug(f"Cache hit for {snapshot.repo_hash}/{mode}")
                    bus.publish(CACHED_HIT, scope=mode)
                    bus.publish(DONE, result=entry.result)
                    return {"run_id": record.run_id, **entry.result}

            async with self._root_slot(str(root)):
                try:
                    state = await self._execute(snapshot, mode, use_llm, bus)
                    result = self._build_result(mode, snapshot, state)
                except Exception as e:
                    logger.error(f"Run {record.run_id} for {root} failed: {e}")
                    bus.publish(ERROR, message=str(e))
                    raise

                self._cache.put(
                    CacheEntry(
                        mode=mode,
                        repo_hash=snapshot.repo_hash,
                        result=result,
                        mtime_ns=snapshot.latest_mtime_ns,
                        created_at=time.time(),
                    )
                )
                bus.publish(DONE, result=result)
                logger.info(f"Run {record.run_id} ({mode}) completed for {root}")
            return {"run_id": record.run_id, **result}
        finally:
            self._registry.close(record)

    async def _execute(
        self,
        snapshot: RepositorySnapshot,
        mode: str,
        use_llm: bool,
        bus: ProgressBus,
    ) -> dict[str, Any]:
        """Invoke the pipeline with a timeout; retry once on transient failure."""
        context = replace(self._context, mode=mode, use_llm=use_llm, depth=0)
        if use_llm and context.rewriter is None:
            logger.warning("LLM rewrite requested but no LLM provider is configured")
        initial = {"repo_root": str(snapshot.root), "repo_hash": snapshot.repo_hash}
        observer = _BusObserver(bus)

        attempt = 0
        while True:
            attempt += 1
            try:
                return await asyncio.wait_for(
                    self._graph.invoke(initial, context, observer), timeout=self._timeout
                )
            except TimeoutError as e:
                failure: Exception = TransientIOError(f"timeout after {self._timeout:g}s")
                failure.__cause__ = e
            except Exception as e:
                failure = e
            if attempt < MAX_ATTEMPTS and is_transient(failure):
                logger.warning(f"Transient pipeline failure, retrying once: {failure}")
                continue
            raise failure

    def _build_result(
        self, mode: str, snapshot: RepositorySnapshot, state: dict[str, Any]
    ) -> dict[str, Any]:
        artifacts_dir = str(self._artifact_sink.directory_for(snapshot.repo_hash))
        if mode == "final":
            return {
                "markdown": (state.get("final") or {}).get("markdown", ""),
                "artifacts_dir": artifacts_dir,
            }
        return {
            "sections": list(state.get("sections") or []),
            "markdown_preview": state.get("draft_markdown", ""),
            "decisions": dict(state.get("decisions") or {}),
            "artifacts_dir": artifacts_dir,
        }


def create_orchestrator(
    config: Config,
    embedding_provider: EmbeddingProvider | None = None,
    llm_provider: LLMProvider | None = None,
    vector_sink: VectorSink | None = None,
    analyzers: Analyzers | None = None,
    artifact_sink: ArtifactSink | None = None,
) -> RunOrchestrator:
    """Wire an orchestrator from configuration.

    Default providers are built from config; pass collaborators to override.
    """
    if embedding_provider is None:
        from reposcribe.providers.embeddings import OpenAIEmbeddingProvider

        embedding_provider = OpenAIEmbeddingProvider.from_config(config.embedding)
    if llm_provider is None:
        from reposcribe.providers.llm import OpenAILLMProvider

        llm_provider = OpenAILLMProvider.from_config(config.llm)
    if vector_sink is None and config.embedding.backend == "chroma":
        from reposcribe.providers.vectorstore import ChromaVectorSink

        vector_sink = ChromaVectorSink.from_config(config.embedding)

    context = PipelineContext(
        analyzers=analyzers or Analyzers(),
        llm=config.llm,
        index_builder=EmbeddingIndexBuilder(config.indexing, embedding_provider, vector_sink),
        retrieval=RetrievalEngine(config.indexing, embedding_provider),
        rewriter=SectionRewriter(llm_provider, config.llm),
    )
    return RunOrchestrator(
        graph=build_readme_graph(),
        context=context,
        artifact_sink=artifact_sink or FileArtifactSink(config.run.artifacts_dir),
        cache=ResultCache(config.run.cache_max_entries),
        registry=RunRegistry(
            ttl_seconds=config.run.run_ttl_seconds,
            max_records=config.run.max_run_records,
            replay_depth=config.run.replay_depth,
        ),
        timeout_seconds=config.run.timeout_seconds,
    )
