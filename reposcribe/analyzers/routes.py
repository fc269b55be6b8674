"""HTTP route extraction for common web frameworks (regex based)."""

from __future__ import annotations

import re
from collections.abc import Callable
from pathlib import Path
from typing import Any

from reposcribe.analyzers.common import manifest_paths, read_text

RouteEntry = dict[str, Any]

_EXPRESS = re.compile(
    r"\b(app|router)\.(get|post|put|patch|delete|options|head|all)\s*\(\s*(['\"`])([^'\"`]+)\3"
)
_NEST_CONTROLLER = re.compile(r"@Controller\s*\(\s*(['\"`])([^'\"`]+)\1")
_NEST_METHOD = re.compile(
    r"@(Get|Post|Put|Patch|Delete|Options|Head|All)\s*\(\s*(?:(['\"`])([^'\"`]+)\2)?"
)
_DJANGO = re.compile(r"\b(path|re_path|url)\s*\(\s*(['\"])([^'\"]+)\2\s*,")
_FLASK = re.compile(
    r"@(?:[A-Za-z_][A-Za-z0-9_]*\.)?route\(\s*(['\"])([^'\"]+)\1([^)]*)\)"
)
_FASTAPI = re.compile(
    r"@[A-Za-z_][A-Za-z0-9_]*\.(get|post|put|patch|delete|options|head)\(\s*(['\"])([^'\"]*)\2"
)
_LARAVEL = re.compile(
    r"\bRoute::(get|post|put|patch|delete|options|any|match)\s*\(\s*(['\"])([^'\"]+)\2"
)


def _slash(path: str) -> str:
    return path if path.startswith("/") else f"/{path}"


def _verb(raw: str) -> str:
    verb = raw.upper()
    return "ANY" if verb in ("ALL", "MATCH") else verb


def parse_express(rel: str, src: str) -> list[RouteEntry]:
    return [
        {"framework": "express", "method": _verb(m.group(2)), "path": m.group(4), "file": rel, "line": i}
        for i, line in enumerate(src.splitlines(), 1)
        for m in _EXPRESS.finditer(line)
    ]


def parse_nest(rel: str, src: str) -> list[RouteEntry]:
    ctrl = _NEST_CONTROLLER.search(src)
    prefix = _slash(ctrl.group(2)) if ctrl else ""
    out: list[RouteEntry] = []
    for i, line in enumerate(src.splitlines(), 1):
        for m in _NEST_METHOD.finditer(line):
            seg = _slash(m.group(3)) if m.group(3) else ""
            out.append(
                {"framework": "nest", "method": _verb(m.group(1)), "path": (prefix + seg) or "/", "file": rel, "line": i}
            )
    return out


def parse_django(rel: str, src: str) -> list[RouteEntry]:
    return [
        {
            "framework": "django",
            "method": "ANY",
            "path": _slash(m.group(3)).removesuffix("$"),
            "file": rel,
            "line": i,
        }
        for i, line in enumerate(src.splitlines(), 1)
        for m in _DJANGO.finditer(line)
    ]


def parse_flask(rel: str, src: str) -> list[RouteEntry]:
    out: list[RouteEntry] = []
    for i, line in enumerate(src.splitlines(), 1):
        for m in _FLASK.finditer(line):
            methods: list[str] = []
            if mm := re.search(r"methods\s*=\s*[\[(]([^\])]+)[\])]", m.group(3) or ""):
                methods = [
                    s.strip().strip("'\"").upper()
                    for s in mm.group(1).split(",")
                    if s.strip().strip("'\"")
                ]
            for verb in methods or ["GET"]:
                out.append(
                    {"framework": "flask", "method": verb, "path": _slash(m.group(2)), "file": rel, "line": i}
                )
    return out


def parse_fastapi(rel: str, src: str) -> list[RouteEntry]:
    return [
        {"framework": "fastapi", "method": m.group(1).upper(), "path": _slash(m.group(3)), "file": rel, "line": i}
        for i, line in enumerate(src.splitlines(), 1)
        for m in _FASTAPI.finditer(line)
    ]


def parse_laravel(rel: str, src: str) -> list[RouteEntry]:
    return [
        {"framework": "laravel", "method": _verb(m.group(1)), "path": _slash(m.group(3)), "file": rel, "line": i}
        for i, line in enumerate(src.splitlines(), 1)
        for m in _LARAVEL.finditer(line)
    ]


# framework -> (file predicate, parser)
_PARSERS: dict[str, tuple[Callable[[str], bool], Callable[[str, str], list[RouteEntry]]]] = {
    "express": (lambda rel: rel.endswith((".js", ".ts", ".mjs", ".cjs")), parse_express),
    "nest": (lambda rel: rel.endswith(".ts"), parse_nest),
    "django": (lambda rel: rel.endswith("urls.py"), parse_django),
    "flask": (lambda rel: rel.endswith(".py"), parse_flask),
    "fastapi": (lambda rel: rel.endswith(".py"), parse_fastapi),
    "laravel": (lambda rel: rel.endswith(".php"), parse_laravel),
}

_STACK_TO_FRAMEWORK = {
    "express": "express",
    "node.js": "express",
    "nestjs": "nest",
    "django": "django",
    "flask": "flask",
    "fastapi": "fastapi",
    "laravel": "laravel",
}


def summarize_routes(
    repo_root: Path,
    manifest: dict[str, Any] | None = None,
    stack: dict[str, Any] | None = None,
    **_: Any,
) -> dict[str, Any]:
    """Extract routes with the parsers of the detected frameworks.

    Without any detected framework every parser is tried.
    """
    detected = {
        _STACK_TO_FRAMEWORK[name]
        for name in (h["stack"].lower() for h in (stack or {}).get("hits", []))
        if name in _STACK_TO_FRAMEWORK
    }
    frameworks = detected or set(_PARSERS)

    routes: list[RouteEntry] = []
    for rel in manifest_paths(manifest):
        wanted = [fw for fw in sorted(frameworks) if _PARSERS[fw][0](rel)]
        if not wanted:
            continue
        src = read_text(repo_root, rel)
        if not src:
            continue
        for fw in wanted:
            routes.extend(_PARSERS[fw][1](rel, src))

    routes.sort(key=lambda r: (r["file"], r["line"], r["method"]))
    return {"items": routes, "frameworks_detected": sorted(detected)}
