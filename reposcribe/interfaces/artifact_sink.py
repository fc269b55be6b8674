"""Artifact sink interface."""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any


class ArtifactSink(ABC):
    """Persists run outputs per repository hash.

    Every write overwrites the previous artifact of the same name, so
    persisting twice leaves the same files behind.
    """

    @abstractmethod
    def directory_for(self, repo_hash: str) -> Path:
        """Directory holding the artifacts of one repository hash."""

    @abstractmethod
    def persist(
        self,
        repo_hash: str,
        blobs: dict[str, Any],
        draft_text: str | None = None,
        final_text: str | None = None,
    ) -> Path:
        """Write JSON blobs and optional README texts; return the directory."""
