"""DAG executor for the README pipeline.

Nodes are ``async (state, ctx) -> partial_update`` callables. The coordinator
hands every node a read-only snapshot of the merged state and merges the
returned updates into a fresh dict (shallow, last writer wins per field).
Progress is reported through an explicit observer argument, never through the
state itself.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Mapping
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Protocol

from loguru import logger

from reposcribe.core.exceptions import GraphDefinitionError, NodeExecutionError

if TYPE_CHECKING:
    from reposcribe.pipeline.context import PipelineContext

PipelineState = dict[str, Any]
NodeFn = Callable[[Mapping[str, Any], "PipelineContext"], Awaitable[dict[str, Any]]]


class PipelineObserver(Protocol):
    def on_node_start(self, name: str) -> None: ...

    def on_node_end(self, name: str) -> None: ...


class PipelineGraph:
    """Mutable graph definition; call :meth:`compile` to get a runnable."""

    def __init__(self) -> None:
        self._nodes: dict[str, NodeFn] = {}
        self._edges: list[tuple[str, str]] = []

    def add_node(self, name: str, fn: NodeFn) -> "PipelineGraph":
        if name in self._nodes:
            raise GraphDefinitionError(f"Duplicate node: {name}")
        self._nodes[name] = fn
        return self

    def add_edge(self, src: str, dst: str) -> "PipelineGraph":
        for name in (src, dst):
            if name not in self._nodes:
                raise GraphDefinitionError(f"Unknown node in edge {src}->{dst}: {name}")
        if (src, dst) not in self._edges:
            self._edges.append((src, dst))
        return self

    def compile(self) -> "CompiledPipeline":
        """Validate single source, single sink and acyclicity."""
        if not self._nodes:
            raise GraphDefinitionError("Graph has no nodes")

        deps: dict[str, set[str]] = {name: set() for name in self._nodes}
        children: dict[str, list[str]] = {name: [] for name in self._nodes}
        for src, dst in self._edges:
            deps[dst].add(src)
            children[src].append(dst)

        sources = [n for n, d in deps.items() if not d]
        sinks = [n for n, c in children.items() if not c]
        if len(sources) != 1:
            raise GraphDefinitionError(f"Expected exactly one source node, found {sources}")
        if len(sinks) != 1:
            raise GraphDefinitionError(f"Expected exactly one sink node, found {sinks}")

        # Kahn's algorithm
        indegree = {n: len(d) for n, d in deps.items()}
        ready = list(sources)
        order: list[str] = []
        while ready:
            node = ready.pop(0)
            order.append(node)
            for child in children[node]:
                indegree[child] -= 1
                if indegree[child] == 0:
                    ready.append(child)
        if len(order) != len(self._nodes):
            cyclic = sorted(n for n, d in indegree.items() if d > 0)
            raise GraphDefinitionError(f"Graph contains a cycle through {cyclic}")

        return CompiledPipeline(
            nodes=dict(self._nodes),
            deps={n: frozenset(d) for n, d in deps.items()},
            order=order,
        )


class CompiledPipeline:
    """Validated, immutable pipeline ready to run."""

    def __init__(
        self,
        nodes: dict[str, NodeFn],
        deps: dict[str, frozenset[str]],
        order: list[str],
    ):
        self._nodes = nodes
        self._deps = deps
        self._order = order

    @property
    def order(self) -> list[str]:
        """Topological order of node names."""
        return list(self._order)

    def dependencies_of(self, name: str) -> frozenset[str]:
        return self._deps[name]

    async def invoke(
        self,
        initial_state: Mapping[str, Any],
        context: "PipelineContext",
        observer: PipelineObserver | None = None,
    ) -> PipelineState:
        """Run every node once in dependency order.

        Nodes whose dependencies are satisfied run concurrently. The first
        node failure cancels the remaining tasks and surfaces as
        NodeExecutionError; no partial state is returned.
        """
        state: PipelineState = dict(initial_state)
        done: set[str] = set()
        running: dict[asyncio.Task[dict[str, Any]], str] = {}

        def start_ready() -> None:
            scheduled = set(running.values())
            for name in self._order:
                if name in done or name in scheduled:
                    continue
                if self._deps[name] <= done:
                    running[asyncio.create_task(self._run_node(name, state, context, observer))] = name

        try:
            start_ready()
            while running:
                finished, _ = await asyncio.wait(running, return_when=asyncio.FIRST_COMPLETED)
                for task in finished:
                    name = running.pop(task)
                    update = task.result()
                    if update:
                        state = {**state, **update}
                    done.add(name)
                start_ready()
        finally:
            pending = [t for t in running if not t.done()]
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

        return state

    async def _run_node(
        self,
        name: str,
        state: PipelineState,
        context: "PipelineContext",
        observer: PipelineObserver | None,
    ) -> dict[str, Any]:
        if observer is not None:
            observer.on_node_start(name)
        logger.debug(f"Pipeline node {name} started (depth={context.depth})")
        try:
            update = await self._nodes[name](MappingProxyType(state), context)
        except asyncio.CancelledError:
            raise
        except NodeExecutionError:
            raise
        except Exception as e:
            raise NodeExecutionError(name, e) from e
        if update is not None and not isinstance(update, dict):
            raise NodeExecutionError(
                name, TypeError(f"node returned {type(update).__name__}, expected dict")
            )
        logger.debug(f"Pipeline node {name} finished")
        if observer is not None:
            observer.on_node_end(name)
        return update or {}
