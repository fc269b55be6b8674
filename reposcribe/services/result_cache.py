"""LRU cache of completed run results keyed by (repo_hash, mode)."""

from __future__ import annotations

from collections import OrderedDict

from reposcribe.core.models import CacheEntry


class ResultCache:
    """Bounded LRU of CacheEntry objects.

    Entries are written only after a fully successful run. A key embeds the
    repo hash, so a result can never be stored under another snapshot's key.
    """

    def __init__(self, max_entries: int = 256):
        self._max_entries = max(1, max_entries)
        self._entries: OrderedDict[tuple[str, str], CacheEntry] = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, repo_hash: str, mode: str) -> CacheEntry | None:
        key = (repo_hash, mode)
        entry = self._entries.get(key)
        if entry is not None:
            self._entries.move_to_end(key)
        return entry

    def put(self, entry: CacheEntry) -> None:
        key = (entry.repo_hash, entry.mode)
        self._entries[key] = entry
        self._entries.move_to_end(key)
        while len(self._entries) > self._max_entries:
            self._entries.popitem(last=False)

    def clear(self) -> None:
        self._entries.clear()
