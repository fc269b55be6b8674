"""Core types, exceptions and configuration for RepoScribe."""
