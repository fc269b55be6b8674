"""Coarse architecture summary: components, entrypoints and config files."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from reposcribe.analyzers.common import confidence, manifest_paths

_BACKEND_STACKS = ("Laravel", "Django", "Flask", "FastAPI", "NestJS", "Express", "Node.js")
_FRONTEND_STACKS = ("Next.js", "React", "Vue", "Angular")

_ENTRYPOINTS = (
    "manage.py",
    "app.py",
    "main.py",
    "wsgi.py",
    "asgi.py",
    "index.js",
    "server.js",
    "src/main.ts",
    "src/index.ts",
    "src/index.js",
    "main.go",
    "cmd/main.go",
    "src/main.rs",
    "artisan",
    "public/index.php",
)
_CONFIG_FILES = (
    "package.json",
    "pyproject.toml",
    "setup.cfg",
    "tsconfig.json",
    "docker-compose.yml",
    "docker-compose.yaml",
    "Dockerfile",
    "Makefile",
    "go.mod",
    "Cargo.toml",
    ".env.example",
)

# feature label -> dependency names that imply it
_FEATURE_DEPS: dict[str, tuple[str, ...]] = {
    "Authentication": ("passport", "jsonwebtoken", "next-auth", "pyjwt", "authlib",
                       "django-allauth", "laravel/sanctum", "laravel/passport"),
    "Database access": ("prisma", "@prisma/client", "typeorm", "sequelize", "mongoose",
                        "sqlalchemy", "psycopg2", "psycopg", "gorm.io/gorm", "diesel"),
    "Background jobs": ("bull", "bullmq", "celery", "rq", "dramatiq"),
    "Caching": ("redis", "ioredis", "memcached"),
    "GraphQL API": ("graphql", "@apollo/server", "apollo-server", "graphene", "strawberry-graphql"),
    "Realtime messaging": ("socket.io", "ws", "channels"),
}  # fmt: skip


def _features(files: set[str], deps: dict[str, Any], routes: dict[str, Any]) -> list[str]:
    names = set(deps.get("runtime", [])) | set(deps.get("dev", []))
    out: list[str] = []
    if routes.get("items"):
        out.append("HTTP API")
    out.extend(label for label, hints in _FEATURE_DEPS.items() if names & set(hints))
    if "Dockerfile" in files:
        out.append("Containerized deployment")
    return out


def summarize_architecture(
    repo_root: Path,
    manifest: dict[str, Any] | None = None,
    stack: dict[str, Any] | None = None,
    lang_profile: dict[str, Any] | None = None,
    deps: dict[str, Any] | None = None,
    routes: dict[str, Any] | None = None,
    **_: Any,
) -> dict[str, Any]:
    files = set(manifest_paths(manifest))
    stacks = [h["stack"] for h in (stack or {}).get("hits", [])]
    components: list[dict[str, Any]] = []
    score = 0

    def top_dirs(*names: str) -> list[str]:
        return [n for n in names if any(f.startswith(f"{n}/") for f in files)]

    backend = [s for s in stacks if s in _BACKEND_STACKS]
    backend_dirs = top_dirs("app", "src", "server", "api", "backend")
    if backend or any(e in files for e in _ENTRYPOINTS):
        components.append(
            {
                "name": "Backend",
                "path": f"{backend_dirs[0]}/" if backend_dirs else ".",
                "tech": backend[:2],
                "evidence": backend_dirs,
            }
        )
        score += 3

    frontend = [s for s in stacks if s in _FRONTEND_STACKS]
    if frontend:
        fe_dirs = top_dirs("web", "frontend", "client", "src", "pages", "app")
        components.append(
            {
                "name": "Frontend",
                "path": f"{fe_dirs[0]}/" if fe_dirs else ".",
                "tech": frontend[:2],
                "evidence": fe_dirs,
            }
        )
        score += 2

    for name, dirs in (
        ("Database", top_dirs("migrations", "prisma", "db", "database")),
        ("Infrastructure", top_dirs("infra", "deploy", "k8s", "helm", "terraform")),
        ("Tests", top_dirs("tests", "test", "__tests__", "spec")),
        ("Documentation", top_dirs("docs", "doc")),
    ):
        if dirs:
            components.append({"name": name, "path": f"{dirs[0]}/", "tech": [], "evidence": dirs})
            score += 1

    features = _features(files, deps or {}, routes or {})

    languages = list((lang_profile or {}).get("languages", {}).keys())
    summary_bits = []
    if components:
        summary_bits.append(
            "The repository is organized into " + ", ".join(c["name"].lower() for c in components) + "."
        )
    if languages:
        summary_bits.append(f"Primary language: {languages[0]}.")

    return {
        "components": components,
        "entrypoints": [e for e in _ENTRYPOINTS if e in files],
        "config_files": [c for c in _CONFIG_FILES if c in files],
        "features": features,
        "summary": " ".join(summary_bits),
        "confidence": confidence(score),
    }
