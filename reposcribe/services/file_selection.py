"""Select repository files worth embedding.

Walks the tree in sorted order, prunes tool/vendor directories, honors the
.gitignore rules and applies per-file and cumulative byte caps.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path

from loguru import logger

from reposcribe.core.constants import SKIP_DIRS
from reposcribe.utils.ignore_engine import IgnoreEngine, build_ignore_engine

ALLOW_EXT: frozenset[str] = frozenset(
    {
        # code
        ".ts", ".tsx", ".js", ".jsx", ".mjs", ".cjs", ".py", ".rb", ".go",
        ".rs", ".java", ".kt", ".kts", ".c", ".h", ".cpp", ".hpp", ".cc",
        ".hh", ".cs", ".php", ".sh", ".ps1", ".sql",
        # configs
        ".json", ".jsonc", ".yml", ".yaml", ".toml", ".ini", ".properties",
        # docs
        ".md", ".mdx", ".rst", ".txt",
    }
)  # fmt: skip

# Matched against the uppercase stem (README.md, LICENSE, ...)
DOC_ALLOW: frozenset[str] = frozenset(
    {"README", "CHANGELOG", "LICENSE", "CONTRIBUTING", "SECURITY"}
)
BASENAME_ALLOW: frozenset[str] = frozenset({"Dockerfile", "Makefile", ".env.example"})

_SKIP_FILE_PATTERNS = (
    re.compile(r"\.lock$"),
    re.compile(
        r"(^|/)(package-lock\.json|pnpm-lock\.yaml|yarn\.lock|composer\.lock"
        r"|Cargo\.lock|poetry\.lock|uv\.lock)$"
    ),
    re.compile(
        r"\.(png|jpg|jpeg|gif|webp|ico|bmp|tiff|psd|ai|sketch|pdf|zip|tar|gz|bz2"
        r"|7z|rar|wasm|woff2?|ttf|otf|mp4|mp3|mov|avi)$",
        re.I,
    ),
)


@dataclass
class SelectedFiles:
    """Files accepted for indexing, in walk order."""

    files: list[Path] = field(default_factory=list)
    bytes: int = 0


def is_env_file(name: str) -> bool:
    """True for dotenv files holding live values (.env, .env.local, ...)."""
    return name == ".env" or (name.startswith(".env.") and name != ".env.example")


def is_allowed_file(path: Path) -> bool:
    name = path.name
    if is_env_file(name):
        return False
    posix = path.as_posix()
    if any(p.search(posix) for p in _SKIP_FILE_PATTERNS):
        return False
    if name in BASENAME_ALLOW:
        return True
    suffix = path.suffix.lower()
    if suffix in ALLOW_EXT:
        return True
    stem = name[: -len(path.suffix)] if path.suffix else name
    return stem.upper() in DOC_ALLOW


def select_files(
    root: Path,
    max_file_bytes: int,
    max_repo_bytes: int,
    respect_gitignore: bool = True,
) -> SelectedFiles:
    """Collect indexable files under root. Blocking.

    Files that are empty or larger than ``max_file_bytes`` are dropped.
    Selection stops at the first file that would push the running total past
    ``max_repo_bytes``.
    """
    root = root.resolve()
    engine: IgnoreEngine | None = (
        build_ignore_engine(root, skip_dirs=SKIP_DIRS) if respect_gitignore else None
    )
    selected = SelectedFiles()

    for dirpath, dirnames, filenames in os.walk(root, topdown=True):
        dpath = Path(dirpath)
        kept = []
        for d in sorted(dirnames):
            if d in SKIP_DIRS:
                continue
            if engine is not None and engine.is_ignored(dpath / d, is_dir=True):
                continue
            kept.append(d)
        dirnames[:] = kept

        for name in sorted(filenames):
            path = dpath / name
            if not is_allowed_file(path):
                continue
            if engine is not None and engine.is_ignored(path):
                continue
            try:
                st = path.stat()
            except OSError as e:
                logger.debug(f"Skipping unreadable file {path}: {e}")
                continue
            if st.st_size == 0 or st.st_size > max_file_bytes:
                continue
            if selected.bytes + st.st_size > max_repo_bytes:
                logger.debug(
                    f"Repository byte budget reached at {path} "
                    f"({selected.bytes} + {st.st_size} > {max_repo_bytes})"
                )
                return selected
            selected.files.append(path)
            selected.bytes += st.st_size

    return selected
