"""Exception hierarchy for RepoScribe.

# FILE_CONTEXT: Error taxonomy shared by the orchestrator, pipeline and retrieval
# ROLE: Distinguishes fatal failures from failures worth one whole-run retry
"""

from __future__ import annotations

import errno
import re

# Errno values treated as transient resource pressure
_TRANSIENT_ERRNOS = frozenset(
    {errno.EBUSY, errno.EAGAIN, errno.EMFILE, errno.ENFILE, errno.EIO}
)
_TRANSIENT_MESSAGE = re.compile(r"EBUSY|EAGAIN|EMFILE|ENFILE|EIO|timeout", re.I)


class RepoScribeError(Exception):
    """Base class for all RepoScribe errors."""


class ValidationError(RepoScribeError):
    """Invalid run input (missing repository root, unknown mode)."""


class TransientIOError(RepoScribeError):
    """I/O failure that may succeed when the whole run is retried."""


class ProviderError(RepoScribeError):
    """Embedding or LLM provider call failed or returned a malformed response."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class NodeExecutionError(RepoScribeError):
    """A pipeline node raised; the whole invocation was aborted."""

    def __init__(self, node: str, cause: BaseException):
        super().__init__(f"{node}: {cause}")
        self.node = node
        self.cause = cause


class GraphDefinitionError(RepoScribeError):
    """Pipeline graph failed structural validation at compile time."""


class ProgressClosedError(RepoScribeError):
    """An event was published after the run's terminal event."""


def is_transient(exc: BaseException) -> bool:
    """Return True when a failed run should be retried once.

    Node failures are classified transient along with timeouts and
    resource-pressure errno values.
    """
    if isinstance(exc, (TransientIOError, NodeExecutionError, TimeoutError)):
        return True
    if isinstance(exc, OSError) and exc.errno in _TRANSIENT_ERRNOS:
        return True
    return bool(_TRANSIENT_MESSAGE.search(str(exc)))
