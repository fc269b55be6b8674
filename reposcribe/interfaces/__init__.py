"""Abstract interfaces implemented by RepoScribe providers and sinks."""
