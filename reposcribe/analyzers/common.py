"""Helpers shared by the default analyzers."""

from __future__ import annotations

import json
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from loguru import logger

MAX_ANALYZED_BYTES = 1024 * 1024


def manifest_paths(manifest: dict[str, Any] | None) -> list[str]:
    if not manifest:
        return []
    return [entry["path"] for entry in manifest.get("files", [])]


def read_text(root: Path, rel: str, limit: int = MAX_ANALYZED_BYTES) -> str | None:
    """Best-effort UTF-8 read of a repository file."""
    path = root / rel
    try:
        if path.stat().st_size > limit:
            return None
        return path.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        logger.debug(f"Analyzer could not read {path}: {e}")
        return None


def read_json_file(root: Path, rel: str) -> Any | None:
    text = read_text(root, rel)
    if text is None:
        return None
    try:
        return json.loads(text)
    except ValueError:
        logger.debug(f"Analyzer found invalid JSON in {rel}")
        return None


def uniq(items: Iterable[Any]) -> list[Any]:
    """Order-preserving de-duplication that drops falsy values."""
    seen: set[Any] = set()
    out: list[Any] = []
    for item in items:
        if not item or item in seen:
            continue
        seen.add(item)
        out.append(item)
    return out


def as_list(value: Any) -> list[Any]:
    if isinstance(value, list):
        return value
    if value is None:
        return []
    return [value]


def confidence(score: int) -> str:
    if score >= 6:
        return "high"
    if score >= 3:
        return "medium"
    return "low"
