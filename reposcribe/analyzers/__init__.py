"""Default heuristic analyzers.

Each analyzer is a plain callable ``(repo_root, **prior_fields) -> dict``.
Prior pipeline fields (``manifest``, ``stack``, ``deps`` ...) are passed as
keyword arguments; analyzers ignore the ones they do not use.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from reposcribe.analyzers.architecture import summarize_architecture
from reposcribe.analyzers.dependencies import summarize_dependencies
from reposcribe.analyzers.manifest import list_files
from reposcribe.analyzers.routes import summarize_routes
from reposcribe.analyzers.signals import (
    summarize_ci,
    summarize_config,
    summarize_docs,
    summarize_security,
    summarize_tests,
)
from reposcribe.analyzers.stack import detect_stack, scan_languages

Analyzer = Callable[..., dict[str, Any]]


@dataclass(frozen=True)
class Analyzers:
    """Swappable analyzer collaborators used by the pipeline nodes."""

    manifest: Analyzer = list_files
    languages: Analyzer = scan_languages
    stack: Analyzer = detect_stack
    deps: Analyzer = summarize_dependencies
    routes: Analyzer = summarize_routes
    architecture: Analyzer = summarize_architecture
    tests: Analyzer = summarize_tests
    config: Analyzer = summarize_config
    ci: Analyzer = summarize_ci
    docs: Analyzer = summarize_docs
    security: Analyzer = summarize_security


def default_analyzers() -> Analyzers:
    return Analyzers()


def run_analyzer(fn: Analyzer, repo_root: Path, **fields: Any) -> dict[str, Any]:
    """Call an analyzer and normalize a missing result to an empty dict."""
    return fn(repo_root, **fields) or {}


__all__ = ["Analyzer", "Analyzers", "default_analyzers", "run_analyzer"]
