"""Repository manifest: every non-ignored regular file with its size."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from loguru import logger

from reposcribe.core.constants import SKIP_DIRS
from reposcribe.utils.ignore_engine import build_ignore_engine

MAX_MANIFEST_FILE_BYTES = 5 * 1024 * 1024


def list_files(repo_root: Path, **_: Any) -> dict[str, Any]:
    """Walk the tree honoring .gitignore; symlinks are recorded as ignored."""
    root = repo_root.resolve()
    engine = build_ignore_engine(root, skip_dirs=SKIP_DIRS)
    files: list[dict[str, Any]] = []
    ignored: list[dict[str, str]] = []
    skipped = 0
    total_bytes = 0

    for dirpath, dirnames, filenames in os.walk(root, topdown=True):
        dpath = Path(dirpath)
        kept = []
        for d in sorted(dirnames):
            full = dpath / d
            rel = full.relative_to(root).as_posix()
            if d in SKIP_DIRS or engine.is_ignored(full, is_dir=True):
                ignored.append({"path": f"{rel}/", "reason": "excluded"})
            elif full.is_symlink():
                ignored.append({"path": rel, "reason": "symlink"})
            else:
                kept.append(d)
        dirnames[:] = kept

        for name in sorted(filenames):
            full = dpath / name
            rel = full.relative_to(root).as_posix()
            if full.is_symlink():
                ignored.append({"path": rel, "reason": "symlink"})
                continue
            if engine.is_ignored(full):
                continue
            try:
                size = full.stat().st_size
            except OSError as e:
                logger.debug(f"Manifest skipping {rel}: {e}")
                continue
            if size > MAX_MANIFEST_FILE_BYTES:
                skipped += 1
                continue
            files.append({"path": rel, "size": size})
            total_bytes += size

    files.sort(key=lambda f: f["path"])
    return {
        "files": files,
        "totals": {"files": len(files), "bytes": total_bytes, "skipped": skipped},
        "ignored": ignored,
    }
