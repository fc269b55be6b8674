"""Filesystem artifact sink."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from loguru import logger

from reposcribe.interfaces.artifact_sink import ArtifactSink
from reposcribe.utils.fs import atomic_write_json, atomic_write_text

DRAFT_FILENAME = "README.DRAFT.md"
FINAL_FILENAME = "README.md"


class FileArtifactSink(ArtifactSink):
    """Writes ``<base_dir>/<repo_hash>/<name>.json`` plus README files.

    Every file is replaced atomically, so re-running a pipeline for the same
    snapshot leaves identical artifacts.
    """

    def __init__(self, base_dir: Path):
        self._base_dir = Path(base_dir).expanduser()

    def directory_for(self, repo_hash: str) -> Path:
        return self._base_dir / repo_hash

    def persist(
        self,
        repo_hash: str,
        blobs: dict[str, Any],
        draft_text: str | None = None,
        final_text: str | None = None,
    ) -> Path:
        out_dir = self.directory_for(repo_hash)
        out_dir.mkdir(parents=True, exist_ok=True)
        for name, obj in blobs.items():
            atomic_write_json(out_dir / f"{name}.json", obj, indent=2)
        if draft_text is not None:
            atomic_write_text(out_dir / DRAFT_FILENAME, draft_text)
        if final_text is not None:
            atomic_write_text(out_dir / FINAL_FILENAME, final_text)
        logger.debug(f"Persisted {len(blobs)} artifacts to {out_dir}")
        return out_dir
