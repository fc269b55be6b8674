"""Repository snapshot identity.

A snapshot is the pair (resolved root, latest modification time across the
tree). Its hash changes whenever any contained file's mtime advances.
"""

from __future__ import annotations

import hashlib
import os
from pathlib import Path

from loguru import logger

from reposcribe.core.constants import SKIP_DIRS
from reposcribe.core.models import RepositorySnapshot


def latest_mtime_ns(root: Path) -> int:
    """Return the newest st_mtime_ns among entries under root (0 when empty)."""
    latest = 0
    stack = [root]
    while stack:
        current = stack.pop()
        try:
            with os.scandir(current) as entries:
                for entry in entries:
                    if entry.name in SKIP_DIRS:
                        continue
                    try:
                        st = entry.stat(follow_symlinks=False)
                    except OSError as e:
                        logger.debug(f"Skipping unreadable entry {entry.path}: {e}")
                        continue
                    if st.st_mtime_ns > latest:
                        latest = st.st_mtime_ns
                    if entry.is_dir(follow_symlinks=False):
                        stack.append(Path(entry.path))
        except OSError as e:
            logger.debug(f"Skipping unreadable directory {current}: {e}")
    return latest


def repo_hash_for(root: Path, mtime_ns: int) -> str:
    return hashlib.sha1(f"{root}{mtime_ns}".encode()).hexdigest()[:12]


def compute_snapshot(root: Path) -> RepositorySnapshot:
    """Walk the tree once and derive the snapshot identity. Blocking."""
    resolved = root.resolve()
    mtime_ns = latest_mtime_ns(resolved)
    snapshot = RepositorySnapshot(
        root=resolved,
        repo_hash=repo_hash_for(resolved, mtime_ns),
        latest_mtime_ns=mtime_ns,
    )
    logger.debug(
        f"Snapshot {snapshot.repo_hash} for {resolved} (latest mtime {mtime_ns})"
    )
    return snapshot
