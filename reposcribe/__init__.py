"""RepoScribe - retrieval-grounded README generation for source repositories."""

from reposcribe.version import __version__

__all__ = ["__version__"]
