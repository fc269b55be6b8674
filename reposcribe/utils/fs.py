"""Filesystem helpers: hashing, POSIX relative paths and atomic JSON writes."""

from __future__ import annotations

import hashlib
import json
import os
import tempfile
from pathlib import Path
from typing import Any

from loguru import logger


def sha1_hex(data: str | bytes) -> str:
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.sha1(data).hexdigest()


def to_posix_rel(path: Path, root: Path) -> str:
    """Return `path` relative to `root` using forward slashes."""
    return path.relative_to(root).as_posix()


def atomic_write_text(path: Path, text: str) -> None:
    """Write text via a temp file in the same directory, then rename over `path`.

    Readers observe either the previous content or the complete new content.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent)
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(text)
        os.replace(tmp_name, path)
    except BaseException:
        # Leave no stray temp file behind; the original error propagates
        Path(tmp_name).unlink(missing_ok=True)
        raise


def atomic_write_json(path: Path, obj: Any, indent: int | None = None) -> None:
    # Paths and other non-JSON scalars are stored as strings
    atomic_write_text(
        path, json.dumps(obj, indent=indent, ensure_ascii=False, default=str)
    )


def read_json(path: Path) -> Any | None:
    """Read a JSON file, returning None when it is missing or corrupt."""
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return None
    except (OSError, ValueError) as e:
        logger.debug(f"Ignoring unreadable JSON at {path}: {e}")
        return None
