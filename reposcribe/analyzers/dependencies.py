"""Dependency summary across common package manifests."""

from __future__ import annotations

import re
import tomllib
from pathlib import Path
from typing import Any

from loguru import logger

from reposcribe.analyzers.common import manifest_paths, read_json_file, read_text

# Dev dependencies that are really build/test tooling
_TOOL_NAMES = frozenset(
    {
        "typescript", "eslint", "prettier", "jest", "vitest", "webpack", "vite",
        "babel", "rollup", "esbuild", "pytest", "ruff", "mypy", "black", "flake8",
        "tox", "nox", "phpunit", "mocha",
    }
)  # fmt: skip

_REQ_NAME = re.compile(r"^\s*([A-Za-z0-9][A-Za-z0-9._-]*)")


class _Summary:
    def __init__(self) -> None:
        self.runtime: list[str] = []
        self.dev: list[str] = []
        self.tools: list[str] = []
        self.pkg_managers: list[str] = []
        self.scripts: dict[str, str] = {}
        self.notes: list[str] = []

    @staticmethod
    def _push(target: list[str], *items: str) -> None:
        for item in items:
            if item and item not in target:
                target.append(item)

    def add_runtime(self, *names: str) -> None:
        self._push(self.runtime, *names)

    def add_dev(self, *names: str) -> None:
        self._push(self.dev, *names)
        self._push(self.tools, *(n for n in names if n.split("/")[-1] in _TOOL_NAMES))

    def add_manager(self, name: str) -> None:
        self._push(self.pkg_managers, name)

    def to_dict(self) -> dict[str, Any]:
        return {
            "runtime": sorted(self.runtime),
            "dev": sorted(self.dev),
            "tools": sorted(self.tools),
            "pkg_managers": sorted(self.pkg_managers),
            "scripts": self.scripts,
            "notes": self.notes,
        }


def _load_toml(root: Path, rel: str) -> dict[str, Any] | None:
    text = read_text(root, rel)
    if text is None:
        return None
    try:
        return tomllib.loads(text)
    except tomllib.TOMLDecodeError as e:
        logger.debug(f"Invalid TOML in {rel}: {e}")
        return None


def _requirement_name(spec: str) -> str | None:
    m = _REQ_NAME.match(spec)
    return m.group(1).lower() if m else None


def _from_package_json(root: Path, files: set[str], out: _Summary) -> None:
    pkg = read_json_file(root, "package.json") if "package.json" in files else None
    if not isinstance(pkg, dict):
        return
    out.add_runtime(*(pkg.get("dependencies") or {}).keys())
    out.add_dev(*(pkg.get("devDependencies") or {}).keys())
    scripts = pkg.get("scripts")
    if isinstance(scripts, dict):
        out.scripts.update({k: str(v) for k, v in scripts.items()})
    if "pnpm-lock.yaml" in files:
        out.add_manager("pnpm")
    elif "yarn.lock" in files:
        out.add_manager("yarn")
    else:
        out.add_manager("npm")


def _from_python(root: Path, files: set[str], out: _Summary) -> None:
    if "requirements.txt" in files:
        text = read_text(root, "requirements.txt") or ""
        for line in text.splitlines():
            line = line.split("#", 1)[0].strip()
            if not line or line.startswith("-"):
                continue
            if name := _requirement_name(line):
                out.add_runtime(name)
        out.add_manager("pip")

    if "pyproject.toml" not in files:
        return
    data = _load_toml(root, "pyproject.toml")
    if not data:
        return
    project = data.get("project") or {}
    for spec in project.get("dependencies") or []:
        if name := _requirement_name(str(spec)):
            out.add_runtime(name)
    for extra in (project.get("optional-dependencies") or {}).values():
        for spec in extra:
            if name := _requirement_name(str(spec)):
                out.add_dev(name)
    for group in (data.get("dependency-groups") or {}).values():
        for spec in group:
            if isinstance(spec, str) and (name := _requirement_name(spec)):
                out.add_dev(name)
    scripts = project.get("scripts")
    if isinstance(scripts, dict):
        out.scripts.update({k: str(v) for k, v in scripts.items()})

    tool = data.get("tool") or {}
    if "poetry" in tool:
        out.add_manager("poetry")
        poetry_deps = tool["poetry"].get("dependencies") or {}
        out.add_runtime(*(k.lower() for k in poetry_deps if k.lower() != "python"))
    elif "uv.lock" in files:
        out.add_manager("uv")
    elif "requirements.txt" not in files:
        out.add_manager("pip")


def _from_go_mod(root: Path, files: set[str], out: _Summary) -> None:
    if "go.mod" not in files:
        return
    text = read_text(root, "go.mod") or ""
    in_block = False
    for raw in text.splitlines():
        line = raw.strip()
        if line.startswith("require ("):
            in_block = True
            continue
        if in_block and line == ")":
            in_block = False
            continue
        if in_block and line and not line.startswith("//"):
            out.add_runtime(line.split()[0])
        elif line.startswith("require ") and "(" not in line:
            out.add_runtime(line.split()[1])
    out.add_manager("go")


def _from_cargo(root: Path, files: set[str], out: _Summary) -> None:
    if "Cargo.toml" not in files:
        return
    data = _load_toml(root, "Cargo.toml") or {}
    out.add_runtime(*(data.get("dependencies") or {}).keys())
    out.add_dev(*(data.get("dev-dependencies") or {}).keys())
    out.add_manager("cargo")


def _from_gemfile(root: Path, files: set[str], out: _Summary) -> None:
    if "Gemfile" not in files:
        return
    text = read_text(root, "Gemfile") or ""
    out.add_runtime(*re.findall(r"""^\s*gem\s+['"]([^'"]+)['"]""", text, re.M))
    out.add_manager("bundler")


def _from_composer(root: Path, files: set[str], out: _Summary) -> None:
    composer = read_json_file(root, "composer.json") if "composer.json" in files else None
    if not isinstance(composer, dict):
        return
    out.add_runtime(*(k for k in (composer.get("require") or {}) if k != "php"))
    out.add_dev(*(composer.get("require-dev") or {}).keys())
    out.add_manager("composer")


def summarize_dependencies(
    repo_root: Path, manifest: dict[str, Any] | None = None, **_: Any
) -> dict[str, Any]:
    """Merge runtime/dev dependencies, package managers and scripts."""
    files = set(manifest_paths(manifest))
    out = _Summary()
    for collect in (
        _from_package_json,
        _from_composer,
        _from_python,
        _from_go_mod,
        _from_cargo,
        _from_gemfile,
    ):
        collect(repo_root, files, out)
    return out.to_dict()
