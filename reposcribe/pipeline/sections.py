"""Deterministic README sections and final markdown composition.

# FILE_CONTEXT: Pure functions over merged pipeline signals; no I/O except
# reading project metadata for the title and badges.
"""

from __future__ import annotations

import json
import re
import tomllib
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any
from urllib.parse import quote

from loguru import logger

from reposcribe.analyzers.common import as_list, uniq
from reposcribe.services.redactor import redact

Section = dict[str, str]

CANONICAL_ORDER = (
    "Monorepo Overview",
    "Overview",
    "Tech Stack",
    "Features",
    "Architecture",
    "Getting Started",
    "Routes",
    "Configuration",
    "Testing",
    "CI",
    "Documentation",
    "Security",
    "Contributing",
    "License",
)

_BANNED = re.compile(r"\b(probably|guess)\b", re.I)


def section_id(title: str) -> str:
    return re.sub(r"[^a-z0-9]+", "_", title.lower()).strip("_")


def cap(text: str, limit: int) -> str:
    return (text or "").strip()[: max(0, limit)].strip()


def _sentence(text: str, limit: int) -> str:
    return re.sub(r"\s+", " ", cap(text, limit)).strip()


def _top(items: Iterable[Any], n: int) -> list[str]:
    return [str(i) for i in uniq(items)][:n]


def _languages_ranked(lang_profile: Mapping[str, Any] | None) -> list[str]:
    langs = (lang_profile or {}).get("languages", {})
    return [k for k, _ in sorted(langs.items(), key=lambda kv: -kv[1])]


def _frameworks(stack: Mapping[str, Any] | None) -> list[str]:
    return as_list((stack or {}).get("frameworks"))


def _overview(state: Mapping[str, Any], limit: int) -> str:
    fw = _frameworks(state.get("stack"))
    langs = _languages_ranked(state.get("lang_profile"))
    features = as_list((state.get("architecture") or {}).get("features"))[:3]
    lines: list[str] = []
    if fw and langs:
        tech = f"It uses {', '.join(_top(fw, 3))} with {', '.join(_top(langs, 3))} as primary language(s)."
    elif fw:
        tech = f"It uses {', '.join(_top(fw, 3))}."
    elif langs:
        tech = f"Primary language(s): {', '.join(_top(langs, 3))}."
    else:
        tech = ""
    if tech:
        lines.append(_sentence(tech, limit))
    if features:
        lines.append(_sentence(f"Core capabilities include {', '.join(features)}.", limit))
    return cap(" ".join(lines), limit)


def _tech_stack(state: Mapping[str, Any]) -> str:
    langs = _languages_ranked(state.get("lang_profile"))
    fw = _frameworks(state.get("stack"))
    managers = as_list((state.get("deps") or {}).get("pkg_managers"))
    bits = []
    if langs:
        bits.append(f"- Languages: {', '.join(_top(langs, 6))}")
    if fw:
        bits.append(f"- Frameworks: {', '.join(_top(fw, 6))}")
    if managers:
        bits.append(f"- Package managers: {', '.join(_top(managers, 3))}")
    return "\n".join(bits)


def _architecture(arch: Mapping[str, Any] | None, limit: int) -> str:
    arch = arch or {}
    names = [c.get("name") if isinstance(c, dict) else c for c in as_list(arch.get("components"))]
    parts = []
    if arch.get("summary"):
        parts.append(_sentence(arch["summary"], limit))
    if names := _top(names, 8):
        parts.append(f"Key components: {', '.join(names)}.")
    if entry := _top(as_list(arch.get("entrypoints")), 4):
        parts.append(f"Entrypoints: {', '.join(f'`{e}`' for e in entry)}.")
    return " ".join(parts)


def _getting_started(deps: Mapping[str, Any] | None) -> str:
    deps = deps or {}
    managers = set(as_list(deps.get("pkg_managers")))
    scripts = deps.get("scripts") or {}
    install, run = "npm ci", "npm run {}"
    for mgr, inst, runner in (
        ("pnpm", "pnpm i", "pnpm {}"),
        ("yarn", "yarn", "yarn {}"),
        ("npm", "npm ci", "npm run {}"),
        ("poetry", "poetry install", "poetry run {}"),
        ("uv", "uv sync", "uv run {}"),
        ("pip", "pip install -r requirements.txt", "python -m {}"),
        ("composer", "composer install", "composer {}"),
        ("go", "go mod download", "go run ."),
        ("cargo", "cargo build", "cargo run"),
        ("bundler", "bundle install", "bundle exec {}"),
    ):
        if mgr in managers:
            install, run = inst, runner
            break
    start = next((s for s in ("dev", "start", "serve") if s in scripts), None)
    start_cmd = run.format(start) if start else "# add your start command"
    if "{}" not in run and not start:
        start_cmd = run
    return "\n".join(["```bash", install, start_cmd, "```"])


def _routes(routes: Mapping[str, Any] | None, limit: int) -> str:
    routes = routes or {}
    items = as_list(routes.get("items"))
    count = routes.get("count") or len(items)
    if not count:
        return ""
    preview = _top(
        (" ".join(p for p in (r.get("method", ""), r.get("path", "")) if p) for r in items), 8
    )
    lines = [f"Detected {count} route(s)."]
    if preview:
        lines.append("Examples:\n- " + "\n- ".join(f"`{p}`" for p in preview))
    return cap("\n".join(lines), limit)


def _configuration(cfg: Mapping[str, Any] | None) -> str:
    cfg = cfg or {}
    bits = [
        f"{label}: {', '.join(as_list(cfg.get(key)))}."
        for key, label in (
            ("bundlers", "Bundler"),
            ("builders", "Build tooling"),
            ("linters", "Linter"),
            ("formatters", "Formatter"),
            ("css_tools", "CSS tooling"),
        )
        if as_list(cfg.get(key))
    ]
    ts = cfg.get("ts") or {}
    if ts.get("enabled"):
        bits.append(
            f"TypeScript enabled (target={ts.get('target') or '?'}, "
            f"module={ts.get('module') or '?'}, strict={str(bool(ts.get('strict'))).lower()})."
        )
    if examples := as_list(cfg.get("env_examples")):
        bits.append(f"Copy {', '.join(f'`{e}`' for e in examples)} to configure the environment.")
    return " ".join(bits)


def _testing(tests: Mapping[str, Any] | None, deps: Mapping[str, Any] | None) -> str:
    tests = tests or {}
    scripts = (deps or {}).get("scripts") or {}
    fw = as_list(tests.get("frameworks"))
    run = scripts.get("test") or scripts.get("test:unit") or scripts.get("test:e2e")
    coverage = tests.get("coverage") or {}
    parts = []
    if fw:
        parts.append(f"Testing with {', '.join(_top(fw, 4))}.")
    if count := (tests.get("locations") or {}).get("test_files"):
        parts.append(f"{count} test file(s) found.")
    if run:
        parts.append(f"Run tests with `{run}`.")
    if coverage.get("source"):
        pct = coverage.get("lines_pct")
        parts.append(
            f"Coverage from {coverage['source']}" + (f", lines {pct}%." if pct is not None else ".")
        )
    return " ".join(parts)


def _ci(ci: Mapping[str, Any] | None) -> str:
    ci = ci or {}
    providers, files = as_list(ci.get("providers")), as_list(ci.get("files"))
    parts = []
    if providers:
        parts.append(f"CI providers: {', '.join(_top(providers, 4))}.")
    if files:
        parts.append(f"Workflows: {', '.join(f'`{f}`' for f in _top(files, 6))}.")
    return " ".join(parts)


def _documentation(docs: Mapping[str, Any] | None) -> str:
    docs = docs or {}
    index = docs.get("index") or {}
    topics = [k for k, v in (docs.get("topics") or {}).items() if (v or {}).get("present")]
    parts = []
    if index.get("root_readme"):
        parts.append(f"Root README at `{index['root_readme']}`.")
    if dirs := as_list(index.get("docs_dirs")):
        parts.append(f"Docs directories: {', '.join(dirs)}.")
    if gens := as_list(index.get("site_generators")):
        parts.append(f"Site generators: {', '.join(gens)}.")
    if topics:
        parts.append(f"Covered topics: {', '.join(_top(topics, 6))}.")
    return " ".join(parts)


def _security(sec: Mapping[str, Any] | None) -> str:
    if not sec:
        return ""
    status = sec.get("status") or {}
    policies = sec.get("policies") or {}
    parts = [f"Risk score {int(status.get('risk_score', 0))}/100."]
    if libs := as_list((sec.get("libs") or {}).get("security")):
        parts.append(f"Security tooling: {', '.join(_top(libs, 8))}.")
    if as_list((sec.get("env") or {}).get("files")):
        parts.append("Env files present; keep them out of version control.")
    if as_list(sec.get("sensitive_files")):
        parts.append("Sensitive key/cert files detected.")
    if cors := as_list(policies.get("cors_wildcard")):
        parts.append(f"CORS wildcard configured in {len(cors)} file(s).")
    if debug := as_list(policies.get("debug_true")):
        parts.append(f"Debug mode enabled in {len(debug)} file(s).")
    return " ".join(parts)


def build_sections(state: Mapping[str, Any], char_cap: int) -> list[Section]:
    """Deterministic section bodies from merged signals, each capped."""
    arch = state.get("architecture") or {}
    docs_topics = (state.get("docs") or {}).get("topics") or {}
    features = as_list(arch.get("features"))

    bodies: dict[str, str] = {
        "Overview": _overview(state, char_cap),
        "Tech Stack": _tech_stack(state),
        "Features": f"Key features: {', '.join(_top(features, 8))}." if features else "",
        "Architecture": _architecture(arch, char_cap),
        "Getting Started": _getting_started(state.get("deps")),
        "Routes": _routes(state.get("routes"), char_cap),
        "Configuration": _configuration(state.get("config")),
        "Testing": _testing(state.get("tests"), state.get("deps")),
        "CI": _ci(state.get("ci")),
        "Documentation": _documentation(state.get("docs")),
        "Security": _security(state.get("security")),
        "Contributing": "See `CONTRIBUTING.md`."
        if (docs_topics.get("contributing") or {}).get("present")
        else "",
        "License": "See `LICENSE`." if (docs_topics.get("license") or {}).get("present") else "",
    }

    sections: list[Section] = []
    for title in CANONICAL_ORDER:
        body = bodies.get(title, "")
        if _BANNED.search(body):
            body = _BANNED.sub("", body)
        body = cap(body, char_cap)
        if body:
            sections.append({"id": section_id(title), "title": title, "body": body})
    return sections


def build_decisions(sections: list[Section]) -> dict[str, Any]:
    return {
        "prefer_badges": True,
        "add_toc": len(sections) >= 3,
        "removed_sections": [],
    }


def render_draft(sections: list[Section]) -> str:
    parts = [f"## {s['title']}\n\n{s['body']}" for s in sections]
    return "\n\n".join(parts).strip() + "\n"


# --- final composition -------------------------------------------------------


def _read_json(path: Path) -> dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return {}
    except (OSError, ValueError) as e:
        logger.debug(f"Ignoring unreadable {path.name}: {e}")
        return {}
    return data if isinstance(data, dict) else {}


def project_meta(repo_root: Path) -> dict[str, Any]:
    """Title, version and license from package.json, then pyproject.toml."""
    pkg = _read_json(repo_root / "package.json")
    if pkg.get("name"):
        return {
            "name": pkg.get("name"),
            "version": pkg.get("version"),
            "license": pkg.get("license") if isinstance(pkg.get("license"), str) else None,
            "description": pkg.get("description"),
        }
    pyproject = repo_root / "pyproject.toml"
    if pyproject.is_file():
        try:
            data = tomllib.loads(pyproject.read_text(encoding="utf-8"))
        except (OSError, tomllib.TOMLDecodeError) as e:
            logger.debug(f"Ignoring unreadable pyproject.toml: {e}")
            data = {}
        project = data.get("project") or (data.get("tool") or {}).get("poetry") or {}
        if project.get("name"):
            lic = project.get("license")
            if isinstance(lic, dict):
                lic = lic.get("text")
            return {
                "name": project.get("name"),
                "version": project.get("version"),
                "license": lic if isinstance(lic, str) else None,
                "description": project.get("description"),
            }
    return {"name": repo_root.name, "version": None, "license": None, "description": None}


def github_anchor(title: str) -> str:
    anchor = re.sub(r"[`~!@#$%^&*()+={}\[\]|\\:;\"'<>,.?/]", "", title.lower())
    anchor = re.sub(r"\s+", "-", anchor)
    return re.sub(r"-+", "-", anchor).strip("-")


def make_badges(meta: Mapping[str, Any]) -> str:
    badges = []
    if meta.get("license"):
        badges.append(
            f"![license](https://img.shields.io/badge/license-{quote(str(meta['license']), safe='')}-informational)"
        )
    if meta.get("version"):
        badges.append(
            f"![version](https://img.shields.io/badge/version-{quote(str(meta['version']), safe='')}-blue)"
        )
    return " ".join(badges)


def make_toc(titles: list[str]) -> str:
    return "\n".join(f"- [{t}](#{github_anchor(t)})" for t in titles)


def dedupe_lines(text: str) -> str:
    """Drop repeated non-blank lines outside fenced code blocks."""
    seen: set[str] = set()
    out: list[str] = []
    in_fence = False
    for line in text.split("\n"):
        key = line.strip()
        if key.startswith("```"):
            in_fence = not in_fence
            out.append(line)
            continue
        if in_fence or key == "" or key.startswith("|") or key not in seen:
            out.append(line)
        if key and not in_fence:
            seen.add(key)
    return "\n".join(out)


def compose_final(
    repo_root: Path,
    sections: list[Section],
    decisions: Mapping[str, Any],
) -> dict[str, Any]:
    """Compose the final README markdown in canonical section order."""
    meta = project_meta(repo_root)
    title = str(meta.get("name") or repo_root.name or "Project").strip().lstrip("#").strip()

    rank = {t: i for i, t in enumerate(CANONICAL_ORDER)}
    ordered = sorted(
        (s for s in sections if s.get("body", "").strip()),
        key=lambda s: rank.get(s["title"], len(rank)),
    )
    outline = [s["title"] for s in ordered]

    parts = [f"# {title}"]
    if meta.get("description"):
        parts.append(f"\n{str(meta['description']).strip()}")
    if decisions.get("prefer_badges") and (badges := make_badges(meta)):
        parts.append(f"\n{badges}")
    if decisions.get("add_toc") and len(outline) > 2:
        parts.append(f"\n## Table of Contents\n\n{make_toc(outline)}")
    for s in ordered:
        parts.append(f"\n## {s['title']}\n\n{s['body'].strip()}")

    markdown = re.sub(r"\n{3,}", "\n\n", "\n".join(parts))
    markdown = redact(dedupe_lines(markdown)).strip() + "\n"
    return {"title": title, "outline": outline, "markdown": markdown}
