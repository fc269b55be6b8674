"""Command-line interface for RepoScribe."""
