"""IgnoreEngine: .gitignore-aware exclusion with gitwildmatch semantics.

Every .gitignore in the tree (outside the always-skipped directories) is
rewritten to root-relative patterns and compiled into one `pathspec` spec,
parents before children so nested rules override their ancestors.
"""

from __future__ import annotations

import os
from collections.abc import Iterable, Iterator
from pathlib import Path

from loguru import logger
from pathspec import PathSpec
from pathspec.patterns.gitwildmatch import GitWildMatchPattern


class IgnoreEngine:
    """Answers whether a path under ``root`` is excluded."""

    def __init__(self, root: Path, spec: PathSpec | None):
        self.root = root.resolve()
        self._spec = spec

    def is_ignored(self, path: Path, is_dir: bool = False) -> bool:
        if self._spec is None:
            return False
        try:
            rel = path.resolve().relative_to(self.root).as_posix()
        except ValueError:
            # Outside the root (e.g. a symlink target)
            return False
        if self._spec.match_file(rel):
            return True
        return is_dir and self._spec.match_file(f"{rel}/")


def build_ignore_engine(
    root: Path,
    skip_dirs: Iterable[str] = (),
    extra_patterns: Iterable[str] | None = None,
) -> IgnoreEngine:
    """Build an IgnoreEngine for the given root.

    Args:
        root: Repository root
        skip_dirs: Directory names never descended into while collecting rules
        extra_patterns: Additional gitwildmatch patterns enforced regardless of
            .gitignore content
    """
    root = root.resolve()
    patterns = list(extra_patterns or ())
    patterns.extend(_gitignore_patterns(root, frozenset(skip_dirs)))
    if not patterns:
        return IgnoreEngine(root, None)
    logger.debug(f"Compiled {len(patterns)} ignore patterns under {root}")
    return IgnoreEngine(root, PathSpec.from_lines(GitWildMatchPattern, patterns))


def _gitignore_patterns(root: Path, skip_dirs: frozenset[str]) -> Iterator[str]:
    for dirpath, dirnames, _ in os.walk(root, topdown=True):
        dirnames[:] = sorted(d for d in dirnames if d not in skip_dirs)
        here = Path(dirpath)
        ignore_file = here / ".gitignore"
        if not ignore_file.is_file():
            continue
        try:
            text = ignore_file.read_text(encoding="utf-8", errors="ignore")
        except OSError as e:
            logger.debug(f"Unreadable {ignore_file}: {e}")
            continue
        prefix = here.relative_to(root).as_posix()
        for raw in text.splitlines():
            rule = raw.strip()
            if rule and not rule.startswith("#"):
                yield from rebase_rule(rule, "" if prefix == "." else prefix)


def rebase_rule(rule: str, prefix: str) -> list[str]:
    """Rewrite one .gitignore rule found in directory ``prefix`` for the root.

    ``prefix`` is the directory's root-relative POSIX path, empty at the root.
    Negation (``!``), anchoring (leading ``/``) and directory-only (trailing
    ``/``) forms are preserved; unanchored rules also match at any depth below
    their directory.
    """
    negate = rule.startswith("!")
    body = rule[1:] if negate else rule
    dir_only = body.endswith("/")
    body = body.rstrip("/")
    anchored = body.startswith("/")
    body = body.lstrip("/")
    if not body:
        return []

    base = f"{prefix}/" if prefix else ""
    if anchored:
        # A leading slash keeps a root rule anchored in gitwildmatch
        candidates = [f"/{body}"] if not prefix else [f"{base}{body}"]
    elif prefix:
        candidates = [f"{base}{body}", f"{base}**/{body}"]
    else:
        candidates = [body, f"**/{body}"]

    suffix = "/**" if dir_only else ""
    mark = "!" if negate else ""
    return [f"{mark}{c}{suffix}" for c in candidates]


__all__ = ["IgnoreEngine", "build_ignore_engine", "rebase_rule"]
