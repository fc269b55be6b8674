"""Run command argument parser for RepoScribe CLI."""

import argparse
from pathlib import Path
from typing import Any, cast

from reposcribe.core.config.config import Config


def add_run_subparser(subparsers: Any) -> argparse.ArgumentParser:
    parser = subparsers.add_parser(
        "run",
        help="Generate a README draft (or final README) for a repository",
        description=(
            "Analyze a repository, stream pipeline progress and print the "
            "draft sections or the final README markdown."
        ),
    )

    parser.add_argument(
        "path",
        nargs="?",
        type=Path,
        default=Path("."),
        help="Repository root (default: current directory)",
    )
    parser.add_argument(
        "--final",
        action="store_true",
        help="Produce the final README instead of the draft",
    )
    parser.add_argument(
        "--force",
        action="store_true",
        help="Ignore cached results and re-run the pipeline",
    )
    parser.add_argument(
        "--use-llm",
        action="store_true",
        help="Rewrite sections with an LLM grounded by retrieved passages",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the result payload as JSON",
    )

    Config.add_cli_arguments(parser)
    return cast(argparse.ArgumentParser, parser)


__all__: list[str] = ["add_run_subparser"]
