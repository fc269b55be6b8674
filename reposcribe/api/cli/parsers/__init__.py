"""Argument parsers for the RepoScribe subcommands."""

from reposcribe.api.cli.parsers.index_parser import add_index_subparser
from reposcribe.api.cli.parsers.query_parser import add_query_subparser
from reposcribe.api.cli.parsers.run_parser import add_run_subparser

__all__: list[str] = ["add_index_subparser", "add_query_subparser", "add_run_subparser"]
