"""Nodes of the README pipeline and the fixed graph that wires them.

Every node is ``async (state, ctx) -> partial_update``. Analyzer calls and
other filesystem work run in worker threads so the mid-tier nodes overlap.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from loguru import logger

from reposcribe.analyzers import Analyzer, run_analyzer
from reposcribe.analyzers.common import as_list, uniq
from reposcribe.core.exceptions import ValidationError
from reposcribe.pipeline.context import PipelineContext
from reposcribe.pipeline.graph import CompiledPipeline, PipelineGraph
from reposcribe.pipeline.sections import (
    build_decisions,
    build_sections,
    compose_final,
    render_draft,
)
from reposcribe.pipeline.subprojects import (
    MONOREPO_SECTION_ID,
    MONOREPO_SECTION_TITLE,
    discover_subprojects,
    render_monorepo_overview,
    summarize_subproject,
)
from reposcribe.services.snapshot import compute_snapshot

# State fields forwarded to analyzers as keyword arguments
_SIGNAL_FIELDS = (
    "manifest",
    "lang_profile",
    "stack",
    "deps",
    "routes",
    "architecture",
)

# Blobs persisted next to the generated READMEs
ARTIFACT_FIELDS = (
    "manifest",
    "lang_profile",
    "stack",
    "deps",
    "routes",
    "architecture",
    "tests",
    "config",
    "ci",
    "docs",
    "security",
    "subprojects",
)


def _root(state: Mapping[str, Any]) -> Path:
    return Path(state["repo_root"])


async def _analyze(fn: Analyzer, state: Mapping[str, Any]) -> dict[str, Any]:
    fields = {k: state[k] for k in _SIGNAL_FIELDS if state.get(k) is not None}
    return await asyncio.to_thread(run_analyzer, fn, _root(state), **fields)


async def ingest_node(state: Mapping[str, Any], ctx: PipelineContext) -> dict[str, Any]:
    root = Path(state["repo_root"]).expanduser().resolve()
    if not root.is_dir():
        raise ValidationError(f"Repository root is not a directory: {root}")
    repo_hash = state.get("repo_hash")
    if not repo_hash:
        repo_hash = (await asyncio.to_thread(compute_snapshot, root)).repo_hash
    manifest = await asyncio.to_thread(run_analyzer, ctx.analyzers.manifest, root)
    return {"repo_root": str(root), "repo_hash": repo_hash, "manifest": manifest}


async def scan_node(state: Mapping[str, Any], ctx: PipelineContext) -> dict[str, Any]:
    lang_profile, stack = await asyncio.gather(
        _analyze(ctx.analyzers.languages, state),
        _analyze(ctx.analyzers.stack, state),
    )
    return {"lang_profile": lang_profile, "stack": stack}


async def deps_node(state: Mapping[str, Any], ctx: PipelineContext) -> dict[str, Any]:
    return {"deps": await _analyze(ctx.analyzers.deps, state)}


async def routes_node(state: Mapping[str, Any], ctx: PipelineContext) -> dict[str, Any]:
    return {"routes": await _analyze(ctx.analyzers.routes, state)}


async def architecture_node(state: Mapping[str, Any], ctx: PipelineContext) -> dict[str, Any]:
    return {"architecture": await _analyze(ctx.analyzers.architecture, state)}


async def tests_node(state: Mapping[str, Any], ctx: PipelineContext) -> dict[str, Any]:
    return {"tests": await _analyze(ctx.analyzers.tests, state)}


async def config_node(state: Mapping[str, Any], ctx: PipelineContext) -> dict[str, Any]:
    return {"config": await _analyze(ctx.analyzers.config, state)}


async def ci_node(state: Mapping[str, Any], ctx: PipelineContext) -> dict[str, Any]:
    return {"ci": await _analyze(ctx.analyzers.ci, state)}


async def docs_node(state: Mapping[str, Any], ctx: PipelineContext) -> dict[str, Any]:
    return {"docs": await _analyze(ctx.analyzers.docs, state)}


async def security_node(state: Mapping[str, Any], ctx: PipelineContext) -> dict[str, Any]:
    return {"security": await _analyze(ctx.analyzers.security, state)}


def _uniq_list(value: Any) -> list[Any]:
    return uniq(as_list(value))


async def merge_signals_node(state: Mapping[str, Any], ctx: PipelineContext) -> dict[str, Any]:
    """Normalize list-shaped signals and derive counts and status flags."""
    routes_in = dict(state.get("routes") or {})
    items = [
        {"method": "", "path": r} if isinstance(r, str) else dict(r)
        for r in as_list(routes_in.get("items"))
    ]
    routes = {**routes_in, "items": items, "count": len(items)}

    tests_in = dict(state.get("tests") or {})
    test_files = (tests_in.get("locations") or {}).get("test_files")
    if test_files is None:
        test_files = len(as_list(tests_in.get("files")))
    tests = {
        **tests_in,
        "frameworks": _uniq_list(tests_in.get("frameworks")),
        "locations": {**(tests_in.get("locations") or {}), "test_files": test_files},
    }

    ci_in = dict(state.get("ci") or {})
    providers, ci_files = _uniq_list(ci_in.get("providers")), _uniq_list(ci_in.get("files"))
    ci = {
        **ci_in,
        "providers": providers,
        "files": ci_files,
        "status": {**(ci_in.get("status") or {}), "has_ci": bool(providers or ci_files)},
    }

    docs_in = dict(state.get("docs") or {})
    index_in = docs_in.get("index") or {}
    docs = {
        **docs_in,
        "index": {
            **index_in,
            "docs_dirs": _uniq_list(index_in.get("docs_dirs")),
            "site_generators": _uniq_list(index_in.get("site_generators")),
        },
        "topics": docs_in.get("topics") if isinstance(docs_in.get("topics"), dict) else {},
    }

    sec_in = dict(state.get("security") or {})
    policies_in = sec_in.get("policies") or {}
    security = {
        **sec_in,
        "status": {
            **(sec_in.get("status") or {}),
            "risk_score": int((sec_in.get("status") or {}).get("risk_score") or 0),
        },
        "env": {**(sec_in.get("env") or {}), "files": _uniq_list((sec_in.get("env") or {}).get("files"))},
        "libs": {"security": _uniq_list((sec_in.get("libs") or {}).get("security"))},
        "policies": {
            "cors_wildcard": _uniq_list(policies_in.get("cors_wildcard")),
            "debug_true": _uniq_list(policies_in.get("debug_true")),
        },
        "sensitive_files": _uniq_list(sec_in.get("sensitive_files")),
    }

    cfg_in = dict(state.get("config") or {})
    config = {
        **cfg_in,
        **{
            key: _uniq_list(cfg_in.get(key))
            for key in ("bundlers", "builders", "linters", "formatters", "css_tools")
        },
    }

    return {
        "routes": routes,
        "tests": tests,
        "ci": ci,
        "docs": docs,
        "security": security,
        "config": config,
    }


async def aggregate_subprojects_node(
    state: Mapping[str, Any], ctx: PipelineContext
) -> dict[str, Any]:
    """Run the pipeline once per sub-project and build the overview section.

    Skipped inside sub-runs. The root project reuses the current state.
    """
    if ctx.depth > 0:
        return {}
    root = _root(state)
    subs = await asyncio.to_thread(discover_subprojects, root)
    if len(subs) <= 1:
        return {"subprojects": [], "overview_sections": []}
    if ctx.graph is None:
        logger.debug("No compiled graph in context; skipping sub-project runs")
        return {"subprojects": [], "overview_sections": []}

    sub_ctx = ctx.for_subproject()
    summaries: list[dict[str, Any]] = []
    for sub in subs:
        if sub.root == root:
            sub_state: Mapping[str, Any] = state
        else:
            sub_state = await ctx.graph.invoke({"repo_root": str(sub.root)}, sub_ctx)
        summaries.append(summarize_subproject(sub, dict(sub_state)))
    logger.debug(f"Aggregated {len(summaries)} sub-projects under {root}")

    overview = {
        "id": MONOREPO_SECTION_ID,
        "title": MONOREPO_SECTION_TITLE,
        "body": render_monorepo_overview(summaries),
    }
    return {"subprojects": summaries, "overview_sections": [overview]}


async def write_sections_node(state: Mapping[str, Any], ctx: PipelineContext) -> dict[str, Any]:
    sections = build_sections(state, ctx.llm.section_char_cap)

    if ctx.use_llm and ctx.rewriter is not None:
        root, repo_hash = _root(state), state["repo_hash"]
        if ctx.index_builder is not None:
            await ctx.index_builder.build_index(root, repo_hash, force=False)
        sections = await ctx.rewriter.rewrite_sections(sections, repo_hash, root, ctx.retrieval)

    sections = [*as_list(state.get("overview_sections")), *sections]
    decisions = build_decisions(sections)
    return {
        "sections": sections,
        "decisions": decisions,
        "draft_markdown": render_draft(sections),
    }


async def finalize_node(state: Mapping[str, Any], ctx: PipelineContext) -> dict[str, Any]:
    final = await asyncio.to_thread(
        compose_final, _root(state), list(state.get("sections") or []), state.get("decisions") or {}
    )
    return {"final": final}


async def emit_artifacts_node(state: Mapping[str, Any], ctx: PipelineContext) -> dict[str, Any]:
    if ctx.depth > 0 or ctx.artifact_sink is None:
        return {}
    blobs = {name: state.get(name) for name in ARTIFACT_FIELDS if state.get(name) is not None}
    blobs["draft"] = {"sections": state.get("sections"), "decisions": state.get("decisions")}
    directory = await asyncio.to_thread(
        ctx.artifact_sink.persist,
        state["repo_hash"],
        blobs,
        state.get("draft_markdown"),
        (state.get("final") or {}).get("markdown"),
    )
    return {"artifacts_dir": str(directory)}


README_NODES = {
    "Ingest": ingest_node,
    "Scan": scan_node,
    "Deps": deps_node,
    "Routes": routes_node,
    "Architecture": architecture_node,
    "Tests": tests_node,
    "Config": config_node,
    "CI": ci_node,
    "Docs": docs_node,
    "Security": security_node,
    "MergeSignals": merge_signals_node,
    "AggregateSubprojects": aggregate_subprojects_node,
    "WriteSections": write_sections_node,
    "Finalize": finalize_node,
    "EmitArtifacts": emit_artifacts_node,
}

SIGNAL_NODES = ("Tests", "Config", "CI", "Docs", "Security")


def build_readme_graph() -> CompiledPipeline:
    """Assemble and compile the fixed README DAG."""
    graph = PipelineGraph()
    for name, fn in README_NODES.items():
        graph.add_node(name, fn)

    for src, dst in (
        ("Ingest", "Scan"),
        ("Scan", "Deps"),
        ("Deps", "Routes"),
        ("Routes", "Architecture"),
    ):
        graph.add_edge(src, dst)
    for name in SIGNAL_NODES:
        graph.add_edge("Architecture", name)
        graph.add_edge(name, "MergeSignals")
    for src, dst in (
        ("MergeSignals", "AggregateSubprojects"),
        ("AggregateSubprojects", "WriteSections"),
        ("WriteSections", "Finalize"),
        ("Finalize", "EmitArtifacts"),
    ):
        graph.add_edge(src, dst)
    return graph.compile()
