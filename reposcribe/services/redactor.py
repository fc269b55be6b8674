"""Secret and path scrubbing for text leaving the retrieval layer.

`redact` is pure and idempotent: applying it to its own output returns the
same text.
"""

from __future__ import annotations

import re

_PEM_BLOCK = re.compile(
    r"-----BEGIN [A-Z ]+ PRIVATE KEY-----[\s\S]*?-----END [A-Z ]+ PRIVATE KEY-----"
)
_TOKENS = (
    re.compile(r"\bsk-[A-Za-z0-9_\-]{16,}\b"),
    re.compile(r"\bghp_[A-Za-z0-9]{20,}\b"),
    re.compile(r"\bxox[baprs]-[A-Za-z0-9-]{10,}\b"),
)
_AWS_KEY = re.compile(r"\b(?:AKIA|ASIA)[0-9A-Z]{16}\b")
_LONG_B64 = re.compile(r"\b[A-Za-z0-9+/=]{32,}\b")
# A path may not continue a word, URL, relative path or an already-collapsed path
_ABS_PATH = re.compile(r"(?<![\w./:…])(?:[A-Za-z]:\\|/)[^\s)]+")
_ENV_ASSIGNMENT = re.compile(r"^([A-Z0-9_]{3,})=(.+)$", re.M)

ELLIPSIS = "…"


def _mask_path(match: re.Match[str]) -> str:
    tail = match.group(0).replace("\\", "/").split("/")[-1]
    return f"{ELLIPSIS}/{tail}"


def redact(text: str) -> str:
    """Replace private keys, tokens, long opaque strings, absolute paths and
    env-style assignments with placeholders."""
    t = _PEM_BLOCK.sub("[redacted private key]", text)
    for pattern in _TOKENS:
        t = pattern.sub("[redacted-token]", t)
    t = _AWS_KEY.sub("[redacted-aws-key]", t)
    t = _LONG_B64.sub("[redacted]", t)
    t = _ABS_PATH.sub(_mask_path, t)
    t = _ENV_ASSIGNMENT.sub(r"\1=[redacted]", t)
    return t
