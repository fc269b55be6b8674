"""Subcommand implementations for the RepoScribe CLI."""

from reposcribe.api.cli.commands.index import index_command
from reposcribe.api.cli.commands.query import query_command
from reposcribe.api.cli.commands.run import run_command

__all__: list[str] = ["index_command", "query_command", "run_command"]
