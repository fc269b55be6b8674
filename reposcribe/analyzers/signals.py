"""Repository signals: tests, configuration, CI, docs and security posture."""

from __future__ import annotations

import re
from pathlib import Path, PurePosixPath
from typing import Any

from reposcribe.analyzers.common import manifest_paths, read_json_file, read_text

_TEXT_SUFFIXES = frozenset(
    {".js", ".ts", ".jsx", ".tsx", ".mjs", ".cjs", ".py", ".rb", ".go", ".rs",
     ".php", ".java", ".kt", ".json", ".yml", ".yaml", ".toml", ".ini", ".cfg",
     ".env", ".properties", ".sh"}
)  # fmt: skip


def _is_test_file(rel: str) -> bool:
    p = PurePosixPath(rel)
    name = p.name
    return (
        bool(re.search(r"\.(test|spec)\.[jt]sx?$", name))
        or name.startswith("test_") and name.endswith(".py")
        or name.endswith("_test.py")
        or name.endswith("_test.go")
        or any(part in ("tests", "__tests__", "spec") for part in p.parts[:-1])
    )


def summarize_tests(
    repo_root: Path,
    manifest: dict[str, Any] | None = None,
    deps: dict[str, Any] | None = None,
    **_: Any,
) -> dict[str, Any]:
    files = manifest_paths(manifest)
    names = set(files)
    dep_names = set((deps or {}).get("runtime", [])) | set((deps or {}).get("dev", []))
    frameworks: list[str] = []
    markers = {
        "pytest": {"pytest.ini", "conftest.py", "tests/conftest.py"},
        "Jest": {"jest.config.js", "jest.config.ts"},
        "Vitest": {"vitest.config.ts", "vitest.config.js"},
        "Mocha": {".mocharc.json", ".mocharc.yml"},
        "PHPUnit": {"phpunit.xml", "phpunit.xml.dist"},
        "Cypress": {"cypress.config.ts", "cypress.config.js"},
        "Playwright": {"playwright.config.ts", "playwright.config.js"},
    }
    for fw, marker_files in markers.items():
        if marker_files & names or fw.lower() in dep_names:
            frameworks.append(fw)
    if any(f.endswith("_test.go") for f in files):
        frameworks.append("go test")

    test_files = [f for f in files if _is_test_file(f)]
    coverage = None
    summary = read_json_file(repo_root, "coverage/coverage-summary.json")
    if isinstance(summary, dict) and isinstance(summary.get("total"), dict):
        lines = summary["total"].get("lines", {})
        coverage = {"source": "coverage-summary.json", "lines_pct": lines.get("pct")}

    return {
        "frameworks": frameworks,
        "files": test_files,
        "locations": {"test_files": len(test_files)},
        "coverage": coverage,
    }


def summarize_config(
    repo_root: Path, manifest: dict[str, Any] | None = None, **_: Any
) -> dict[str, Any]:
    names = set(manifest_paths(manifest))

    def present(mapping: dict[str, tuple[str, ...]]) -> list[str]:
        return [tool for tool, candidates in mapping.items() if any(c in names for c in candidates)]

    ts_cfg = read_json_file(repo_root, "tsconfig.json") if "tsconfig.json" in names else None
    ts = None
    if "tsconfig.json" in names:
        opts = (ts_cfg or {}).get("compilerOptions", {}) if isinstance(ts_cfg, dict) else {}
        ts = {
            "enabled": True,
            "target": opts.get("target"),
            "module": opts.get("module"),
            "strict": bool(opts.get("strict", False)),
        }

    return {
        "bundlers": present(
            {
                "Vite": ("vite.config.ts", "vite.config.js"),
                "Webpack": ("webpack.config.js", "webpack.config.ts"),
                "Rollup": ("rollup.config.js", "rollup.config.mjs"),
            }
        ),
        "builders": present(
            {
                "Docker": ("Dockerfile",),
                "Docker Compose": ("docker-compose.yml", "docker-compose.yaml", "compose.yaml"),
                "Make": ("Makefile",),
            }
        ),
        "linters": present(
            {
                "ESLint": (".eslintrc", ".eslintrc.js", ".eslintrc.json", "eslint.config.js", "eslint.config.mjs"),
                "Ruff": ("ruff.toml", ".ruff.toml"),
                "Flake8": (".flake8",),
            }
        ),
        "formatters": present(
            {
                "Prettier": (".prettierrc", ".prettierrc.json", "prettier.config.js"),
                "EditorConfig": (".editorconfig",),
            }
        ),
        "css_tools": present(
            {
                "Tailwind CSS": ("tailwind.config.js", "tailwind.config.ts"),
                "PostCSS": ("postcss.config.js", "postcss.config.cjs"),
            }
        ),
        "ts": ts,
        "env_examples": sorted(n for n in names if PurePosixPath(n).name == ".env.example"),
    }


_CI_PROVIDERS: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("GitHub Actions", re.compile(r"^\.github/workflows/[^/]+\.ya?ml$")),
    ("GitLab CI", re.compile(r"^\.gitlab-ci\.ya?ml$")),
    ("CircleCI", re.compile(r"^\.circleci/config\.ya?ml$")),
    ("Travis CI", re.compile(r"^\.travis\.ya?ml$")),
    ("Azure Pipelines", re.compile(r"^azure-pipelines\.ya?ml$")),
    ("Jenkins", re.compile(r"(^|/)Jenkinsfile$")),
)


def summarize_ci(
    repo_root: Path, manifest: dict[str, Any] | None = None, **_: Any
) -> dict[str, Any]:
    providers: list[str] = []
    files: list[str] = []
    for rel in manifest_paths(manifest):
        for provider, pattern in _CI_PROVIDERS:
            if pattern.search(rel):
                files.append(rel)
                if provider not in providers:
                    providers.append(provider)
    return {"providers": providers, "files": files}


_DOC_TOPICS = {
    "license": re.compile(r"^(LICENSE|LICENCE|COPYING)(\.[a-z]+)?$", re.I),
    "contributing": re.compile(r"^CONTRIBUTING(\.[a-z]+)?$", re.I),
    "changelog": re.compile(r"^(CHANGELOG|HISTORY)(\.[a-z]+)?$", re.I),
    "security": re.compile(r"^SECURITY(\.[a-z]+)?$", re.I),
    "code_of_conduct": re.compile(r"^CODE_OF_CONDUCT(\.[a-z]+)?$", re.I),
}


def summarize_docs(
    repo_root: Path, manifest: dict[str, Any] | None = None, **_: Any
) -> dict[str, Any]:
    files = manifest_paths(manifest)
    root_files = [f for f in files if "/" not in f]
    root_readme = next((f for f in root_files if f.lower().startswith("readme")), None)
    docs_dirs = sorted({f.split("/", 1)[0] for f in files if f.split("/", 1)[0] in ("docs", "doc", "documentation") and "/" in f})
    generators = [
        name
        for name, marker in (
            ("MkDocs", "mkdocs.yml"),
            ("Sphinx", "docs/conf.py"),
            ("Docusaurus", "docusaurus.config.js"),
            ("VitePress", "docs/.vitepress/config.ts"),
        )
        if marker in files
    ]
    topics = {
        topic: {"present": any(pattern.match(f) for f in root_files)}
        for topic, pattern in _DOC_TOPICS.items()
    }
    return {
        "index": {"root_readme": root_readme, "docs_dirs": docs_dirs, "site_generators": generators},
        "topics": topics,
    }


_SECRET_PATTERNS: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("Private Key Block", re.compile(r"-----BEGIN [A-Z ]*PRIVATE KEY-----")),
    ("AWS Access Key", re.compile(r"\b(?:AKIA|ASIA)[0-9A-Z]{16}\b")),
    ("GitHub Token", re.compile(r"\bghp_[A-Za-z0-9]{20,}\b")),
    ("Slack Token", re.compile(r"\bxox[baprs]-[A-Za-z0-9-]{10,}\b")),
    ("OpenAI Key", re.compile(r"\bsk-[A-Za-z0-9_\-]{16,}\b")),
)
_HIGH_RISK = frozenset({"Private Key Block", "AWS Access Key", "GitHub Token", "Slack Token"})
_CORS_WILDCARD = re.compile(
    r"Access-Control-Allow-Origin['\"]?\s*[:,=]\s*['\"]\*['\"]|origin\s*[:=]\s*['\"]\*['\"]|CORS_ALLOW_ALL_ORIGINS\s*=\s*True",
    re.I,
)
_DEBUG_TRUE = re.compile(r"^\s*DEBUG\s*[=:]\s*['\"]?(true|1|yes)['\"]?\s*$", re.I | re.M)
_SECURITY_LIBS = ("helmet", "cors", "csurf", "bcrypt", "bcryptjs", "argon2", "passport",
                  "jsonwebtoken", "pyjwt", "authlib", "cryptography", "django-axes")  # fmt: skip


def _is_env_file(name: str) -> bool:
    return name == ".env" or (name.startswith(".env.") and name != ".env.example")


def summarize_security(
    repo_root: Path,
    manifest: dict[str, Any] | None = None,
    deps: dict[str, Any] | None = None,
    **_: Any,
) -> dict[str, Any]:
    """Scan for secret shapes, risky policies and sensitive files.

    The risk score is additive and capped at 100.
    """
    files = manifest_paths(manifest)
    env_files = sorted(f for f in files if _is_env_file(PurePosixPath(f).name))
    sensitive = sorted(
        f
        for f in files
        if re.search(r"\.(pem|key|p12|jks|keystore|pfx)$", f, re.I)
        or re.match(r"^id_(rsa|dsa|ecdsa|ed25519)$", PurePosixPath(f).name)
    )

    gitignore = read_text(repo_root, ".gitignore") or ""
    gitignore_protects_env = bool(re.search(r"^\s*(\*?\.env\*?|\.env\..+)\s*$", gitignore, re.M))

    secret_counts: dict[tuple[str, str], int] = {}
    cors: list[str] = []
    debug: list[str] = []
    for rel in files:
        p = PurePosixPath(rel)
        if p.suffix.lower() not in _TEXT_SUFFIXES and not _is_env_file(p.name):
            continue
        text = read_text(repo_root, rel)
        if not text:
            continue
        if _CORS_WILDCARD.search(text):
            cors.append(rel)
        if _DEBUG_TRUE.search(text):
            debug.append(rel)
        for category, pattern in _SECRET_PATTERNS:
            if n := len(pattern.findall(text)):
                secret_counts[(category, rel)] = secret_counts.get((category, rel), 0) + n

    dep_names = set((deps or {}).get("runtime", [])) | set((deps or {}).get("dev", []))
    libs = sorted(lib for lib in _SECURITY_LIBS if lib in dep_names)

    score = 0
    notes: list[str] = []
    if sensitive:
        score += 50
        notes.append("Key/certificate file present")
    if any(category in _HIGH_RISK for category, _ in secret_counts):
        score += 30
        notes.append("High-risk secret patterns detected")
    if env_files and not gitignore_protects_env:
        score += 20
        notes.append(".env present and not ignored")
    if cors:
        score += 15
        notes.append("CORS wildcard detected")
    if debug:
        score += 10
        notes.append("DEBUG=true detected")

    return {
        "env": {"files": env_files, "gitignore_protects_env": gitignore_protects_env},
        "sensitive_files": sensitive,
        "secret_matches": [
            {"category": c, "path": p, "count": n} for (c, p), n in sorted(secret_counts.items())
        ],
        "policies": {"cors_wildcard": sorted(cors), "debug_true": sorted(debug)},
        "libs": {"security": libs},
        "status": {"risk_score": min(score, 100), "notes": notes},
    }
