"""Language profile and framework stack detection."""

from __future__ import annotations

import re
from pathlib import Path, PurePosixPath
from typing import Any

from reposcribe.analyzers.common import (
    confidence,
    manifest_paths,
    read_json_file,
    read_text,
)
from reposcribe.core.constants import EXT_TO_LANGUAGE

_SPECIAL_BASENAMES = {
    "Dockerfile": "Docker",
    "Makefile": "Make",
    "CMakeLists.txt": "CMake",
}


def detect_language(rel: str) -> str | None:
    base = PurePosixPath(rel).name
    if base in _SPECIAL_BASENAMES:
        return _SPECIAL_BASENAMES[base]
    return EXT_TO_LANGUAGE.get(PurePosixPath(base).suffix.lower())


def _count_lines(root: Path, rel: str) -> int:
    text = read_text(root, rel)
    if not text:
        return 0
    return text.count("\n") + (0 if text.endswith("\n") else 1)


def scan_languages(
    repo_root: Path, manifest: dict[str, Any] | None = None, **_: Any
) -> dict[str, Any]:
    """Count files and lines of code per language."""
    by_language: dict[str, dict[str, int]] = {}
    totals = {"files": 0, "loc": 0}
    for rel in manifest_paths(manifest):
        lang = detect_language(rel)
        if lang is None:
            continue
        loc = _count_lines(repo_root, rel)
        entry = by_language.setdefault(lang, {"files": 0, "loc": 0})
        entry["files"] += 1
        entry["loc"] += loc
        totals["files"] += 1
        totals["loc"] += loc

    ranked = sorted(by_language.items(), key=lambda kv: (-kv[1]["loc"], kv[0]))
    return {
        "by_language": dict(ranked),
        "languages": {lang: stats["files"] for lang, stats in ranked},
        "totals": totals,
    }


def _deps_of(pkg: Any) -> dict[str, Any]:
    if not isinstance(pkg, dict):
        return {}
    deps: dict[str, Any] = {}
    for key in ("dependencies", "devDependencies"):
        section = pkg.get(key)
        if isinstance(section, dict):
            deps.update(section)
    return deps


def _scripts_of(pkg: Any) -> dict[str, str]:
    if not isinstance(pkg, dict) or not isinstance(pkg.get("scripts"), dict):
        return {}
    return {k: str(v) for k, v in pkg["scripts"].items()}


def detect_stack(
    repo_root: Path, manifest: dict[str, Any] | None = None, **_: Any
) -> dict[str, Any]:
    """Score well-known frameworks from manifests and marker files.

    Hits below a score of 3 are dropped. Next.js suppresses React, NestJS
    suppresses Node.js and Django suppresses Flask.
    """
    files = set(manifest_paths(manifest))
    pkg = read_json_file(repo_root, "package.json") if "package.json" in files else None
    composer = (
        read_json_file(repo_root, "composer.json") if "composer.json" in files else None
    )
    py_text = "\n".join(
        t
        for t in (
            read_text(repo_root, name)
            for name in ("requirements.txt", "pyproject.toml")
            if name in files
        )
        if t
    )
    deps = _deps_of(pkg)
    scripts = _scripts_of(pkg)

    def any_prefix(*prefixes: str) -> bool:
        return any(f.startswith(prefixes) for f in files)

    hits: list[dict[str, Any]] = []

    def add(stack: str, checks: list[tuple[bool, int, str]]) -> None:
        score = sum(points for ok, points, _ in checks if ok)
        reasons = [reason for ok, _, reason in checks if ok]
        hits.append(
            {
                "stack": stack,
                "root": ".",
                "score": score,
                "reasons": reasons,
                "confidence": confidence(score),
            }
        )

    require = composer.get("require", {}) if isinstance(composer, dict) else {}
    add(
        "Laravel",
        [
            ("laravel/framework" in require, 3, "composer: laravel/framework"),
            ("artisan" in files, 2, "file: artisan"),
            (any_prefix("app/", "routes/", "config/"), 1, "dirs: app|routes|config"),
        ],
    )
    add(
        "Next.js",
        [
            ("next" in deps, 3, "package.json: next"),
            (
                bool({"next.config.js", "next.config.ts", "next.config.mjs"} & files)
                or any_prefix("pages/", "app/"),
                2,
                "next.config|pages|app",
            ),
            (any("next" in scripts.get(s, "") for s in ("dev", "build", "start")), 1, "scripts: next"),
        ],
    )
    add(
        "React",
        [
            ("react" in deps and "next" not in deps, 3, "package.json: react"),
            (
                bool({"vite.config.ts", "vite.config.js"} & files) or "react-scripts" in deps,
                1,
                "tooling: vite|react-scripts",
            ),
            (
                bool({"public/index.html", "src/App.tsx", "src/App.jsx"} & files),
                1,
                "files: src/App.*, public/index.html",
            ),
        ],
    )
    add(
        "NestJS",
        [
            ("@nestjs/core" in deps or "@nestjs/common" in deps, 3, "package.json: @nestjs/*"),
            ({"src/main.ts", "src/app.module.ts"} <= files, 2, "files: src/main.ts, src/app.module.ts"),
            (any(re.search(r"nest\s+(start|build)", v) for v in scripts.values()), 1, "scripts: nest"),
        ],
    )
    add(
        "Angular",
        [
            ("@angular/core" in deps, 3, "package.json: @angular/core"),
            ("angular.json" in files, 2, "angular.json"),
        ],
    )
    add(
        "Vue",
        [
            ("vue" in deps, 3, "package.json: vue"),
            (bool({"vite.config.ts", "vite.config.js", "vue.config.js"} & files), 1, "tooling: vite|vue.config"),
            ("src/App.vue" in files, 1, "files: src/App.vue"),
        ],
    )
    add(
        "Express",
        [
            ("express" in deps, 3, "package.json: express"),
        ],
    )
    add(
        "Node.js",
        [
            (pkg is not None, 2, "package.json"),
            (bool({"index.js", "server.js", "src/index.ts", "src/index.js"} & files), 1, "entry: index/server"),
            ("start" in scripts, 1, "scripts: start"),
        ],
    )
    add(
        "Django",
        [
            (bool(re.search(r"(?im)^\s*[\"']?django\b", py_text)), 3, "python: django"),
            ("manage.py" in files, 2, "file: manage.py"),
            (any(f.endswith("settings.py") for f in files), 1, "file: settings.py"),
        ],
    )
    add(
        "Flask",
        [
            (bool(re.search(r"(?im)^\s*[\"']?flask\b", py_text)), 3, "python: flask"),
            (bool({"app.py", "wsgi.py"} & files), 1, "file: app.py|wsgi.py"),
        ],
    )
    add(
        "FastAPI",
        [
            (bool(re.search(r"(?im)^\s*[\"']?fastapi\b", py_text)), 3, "python: fastapi"),
            (bool({"main.py", "app/main.py"} & files), 1, "file: main.py"),
        ],
    )
    add(
        "Flutter",
        [
            ("pubspec.yaml" in files, 3, "pubspec.yaml"),
            (any_prefix("lib/") and any(f.endswith(".dart") for f in files), 1, "lib/*.dart"),
        ],
    )
    add(
        "Go",
        [("go.mod" in files, 3, "go.mod")],
    )
    add(
        "Rust",
        [("Cargo.toml" in files, 3, "Cargo.toml")],
    )

    filtered = [h for h in hits if h["score"] >= 3]
    names = {h["stack"] for h in filtered}
    suppressed = {
        "React": "Next.js",
        "Node.js": "NestJS",
        "Flask": "Django",
    }
    result = [
        h for h in filtered if suppressed.get(h["stack"]) not in names
    ]
    result.sort(key=lambda h: (-h["score"], h["stack"]))
    return {"hits": result, "frameworks": [h["stack"] for h in result]}
