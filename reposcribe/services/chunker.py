"""Fence-aware text chunking with byte-accurate offsets.

Chunks target a fixed character size, prefer to end just past a newline and
never cut through a fenced code block. Offsets are UTF-8 byte positions into
the original file so a chunk can be re-read from disk later.
"""

from __future__ import annotations

import re
import uuid
from bisect import bisect_right
from dataclasses import dataclass
from pathlib import Path

from loguru import logger

from reposcribe.core.constants import EXT_LANG
from reposcribe.core.models import Chunk
from reposcribe.utils.fs import sha1_hex, to_posix_rel

FENCE = "```"
_WS = frozenset(" \t\n\r")
_CONTROL_BYTES = re.compile(rb"[\x00-\x08\x0B\x0C\x0E-\x1F]")
TEXT_SAMPLE_BYTES = 2048


@dataclass(frozen=True)
class Slice:
    """Character span [start, end) of a source string."""

    start: int
    end: int
    text: str


@dataclass(frozen=True)
class Fence:
    start: int
    end: int


def locate_fences(src: str) -> list[Fence]:
    """Pair fence markers in order; an unpaired final marker runs to EOF."""
    fences: list[Fence] = []
    opened: int | None = None
    for m in re.finditer(re.escape(FENCE), src):
        if opened is None:
            opened = m.start()
        else:
            fences.append(Fence(opened, m.end()))
            opened = None
    if opened is not None:
        fences.append(Fence(opened, len(src)))
    return fences


def _fence_strictly_containing(
    fences: list[Fence], starts: list[int], idx: int
) -> Fence | None:
    # Fences are disjoint and sorted, so only the last one opening before idx can hold it
    i = bisect_right(starts, idx - 1) - 1
    if i >= 0 and fences[i].start < idx < fences[i].end:
        return fences[i]
    return None


def find_soft_boundary(src: str, idx: int, lookahead: int) -> int:
    n = len(src)
    if idx >= n:
        return n
    upto = min(idx + lookahead, n)
    nl = src.find("\n", idx)
    return nl + 1 if nl != -1 and nl <= upto else idx


def trim_edges(src: str, start: int, end: int) -> tuple[int, int]:
    while start < end and src[start] in _WS:
        start += 1
    while end > start and src[end - 1] in _WS:
        end -= 1
    return start, end


def split_text(
    src: str, target: int, overlap: int, lookahead: int = 200
) -> list[Slice]:
    """Split text into overlapping, trimmed slices that keep fences whole.

    Every returned slice starts and ends outside any fenced block, so each
    one holds only complete fences.
    """
    n = len(src)
    if n == 0:
        return []

    fences = locate_fences(src)
    fence_starts = [f.start for f in fences]
    slices: list[Slice] = []

    pos = 0
    while pos < n:
        inside = _fence_strictly_containing(fences, fence_starts, pos)
        if inside is not None:
            pos = inside.end
            if pos >= n:
                break

        end = min(pos + target, n)
        end = min(find_soft_boundary(src, end, lookahead), n)

        fence = _fence_strictly_containing(fences, fence_starts, end)
        if fence is not None:
            end = fence.end

        s2, e2 = trim_edges(src, pos, end)
        if e2 <= s2:
            pos = min(pos + max(1, target), n)
            continue

        slices.append(Slice(s2, e2, src[s2:e2]))

        if end >= n:
            break

        nxt = max(e2 - overlap, s2 + 1)
        if nxt <= pos:
            break
        pos = nxt

    return slices


def is_mostly_text(raw: bytes) -> bool:
    """Reject content whose leading sample is more than 1% control bytes."""
    if not raw:
        return False
    sample = raw[:TEXT_SAMPLE_BYTES]
    ctrl = len(_CONTROL_BYTES.findall(sample))
    return ctrl * 100 <= len(sample)


def language_for(path: Path) -> str | None:
    return EXT_LANG.get(path.suffix.lower())


def chunk_text(
    text: str,
    rel: str,
    target: int,
    overlap: int,
    lookahead: int = 200,
    lang: str | None = None,
) -> list[Chunk]:
    """Chunk decoded text, converting character offsets to UTF-8 byte offsets."""
    chunks: list[Chunk] = []
    prev_char = 0
    prev_byte = 0
    for s in split_text(text, target, overlap, lookahead):
        # Slice starts strictly increase, so offsets accumulate from the previous start
        start_b = prev_byte + len(text[prev_char : s.start].encode("utf-8"))
        end_b = start_b + len(s.text.encode("utf-8"))
        prev_char, prev_byte = s.start, start_b
        chunks.append(
            Chunk(
                id=str(uuid.uuid4()),
                rel=rel,
                start=start_b,
                end=end_b,
                sha1=sha1_hex(s.text),
                text=s.text,
                lang=lang,
            )
        )
    return chunks


def chunk_file(
    path: Path,
    root: Path,
    target: int,
    overlap: int,
    lookahead: int = 200,
    max_file_bytes: int | None = None,
) -> list[Chunk]:
    """Read and chunk one file. Blocking.

    Returns an empty list for unreadable, oversized, binary-looking or
    non-UTF-8 files.
    """
    try:
        raw = path.read_bytes()
    except OSError as e:
        logger.debug(f"Skipping unreadable file {path}: {e}")
        return []
    if max_file_bytes is not None and len(raw) > max_file_bytes:
        return []
    if not is_mostly_text(raw):
        logger.debug(f"Skipping binary-looking file {path}")
        return []
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError:
        logger.debug(f"Skipping non-UTF-8 file {path}")
        return []

    return chunk_text(
        text,
        rel=to_posix_rel(path, root),
        target=target,
        overlap=overlap,
        lookahead=lookahead,
        lang=language_for(path),
    )
