"""Version information for RepoScribe."""

__version__ = "0.3.0"
