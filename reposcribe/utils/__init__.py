"""Utility helpers for RepoScribe."""
