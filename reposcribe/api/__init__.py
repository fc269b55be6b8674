"""Outer surfaces of RepoScribe."""
