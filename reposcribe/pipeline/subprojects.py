"""Sub-project discovery and the monorepo overview section."""

from __future__ import annotations

import json
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from loguru import logger

from reposcribe.core.constants import SKIP_DIRS

PROJECT_MARKERS = ("package.json", "pyproject.toml", "go.mod", "Cargo.toml")
WORKSPACE_DIRS = ("apps", "packages", "services", "examples")

MONOREPO_SECTION_ID = "monorepo_overview"
MONOREPO_SECTION_TITLE = "Monorepo Overview"


@dataclass(frozen=True)
class Subproject:
    name: str
    root: Path


def _project_name(directory: Path) -> str:
    """Best-effort project name from the first manifest that declares one."""
    pkg = directory / "package.json"
    if pkg.is_file():
        try:
            name = json.loads(pkg.read_text(encoding="utf-8")).get("name")
            if isinstance(name, str) and name:
                return name
        except (OSError, ValueError, AttributeError) as e:
            logger.debug(f"Unreadable package.json in {directory}: {e}")
    pyproject = directory / "pyproject.toml"
    if pyproject.is_file():
        try:
            data = tomllib.loads(pyproject.read_text(encoding="utf-8"))
            name = (data.get("project") or {}).get("name") or (
                (data.get("tool") or {}).get("poetry") or {}
            ).get("name")
            if isinstance(name, str) and name:
                return name
        except (OSError, tomllib.TOMLDecodeError) as e:
            logger.debug(f"Unreadable pyproject.toml in {directory}: {e}")
    return directory.name


def _is_project(directory: Path) -> bool:
    return any((directory / marker).is_file() for marker in PROJECT_MARKERS)


def _child_dirs(base: Path) -> list[Path]:
    try:
        return sorted(p for p in base.iterdir() if p.is_dir() and not p.is_symlink())
    except OSError as e:
        logger.debug(f"Cannot list {base}: {e}")
        return []


def discover_subprojects(repo_root: Path) -> list[Subproject]:
    """Find project roots at the top level, in workspace dirs and in the root.

    Results are de-duplicated by root, keeping first-seen order.
    """
    found: dict[Path, Subproject] = {}

    def consider(directory: Path) -> None:
        if directory not in found and _is_project(directory):
            found[directory] = Subproject(_project_name(directory), directory)

    consider(repo_root)
    for workspace in WORKSPACE_DIRS:
        base = repo_root / workspace
        if base.is_dir():
            for child in _child_dirs(base):
                consider(child)
    for child in _child_dirs(repo_root):
        if child.name in SKIP_DIRS or child.name in WORKSPACE_DIRS:
            continue
        consider(child)

    return list(found.values())


def summarize_subproject(sub: Subproject, state: dict[str, Any]) -> dict[str, Any]:
    """Fold a nested run's state into the overview row for one sub-project."""
    stack = [h["stack"] for h in (state.get("stack") or {}).get("hits", [])]
    languages = (state.get("lang_profile") or {}).get("languages", {})
    routes = state.get("routes") or {}
    routes_count = routes.get("count", len(routes.get("items", [])))
    return {
        "name": sub.name,
        "root": str(sub.root),
        "stack": stack,
        "languages": dict(languages),
        "routes_count": routes_count,
    }


def render_monorepo_overview(summaries: list[dict[str, Any]]) -> str:
    lines = [
        "| App | Stack | Languages | Routes |",
        "| --- | ----- | --------- | ------ |",
    ]
    for s in summaries:
        langs = ", ".join(
            f"{lang}:{count}"
            for lang, count in sorted(s["languages"].items(), key=lambda kv: -kv[1])
        )
        lines.append(f"| {s['name']} | {', '.join(s['stack'])} | {langs} | {s['routes_count']} |")
    lines += ["", "Each sub-project is analyzed separately; see its own README for details."]
    return "\n".join(lines)
