"""Query command argument parser for RepoScribe CLI."""

import argparse
from pathlib import Path
from typing import Any, cast

from reposcribe.core.config.config import Config


def add_query_subparser(subparsers: Any) -> argparse.ArgumentParser:
    parser = subparsers.add_parser(
        "query",
        help="Retrieve indexed passages relevant to a query",
        description="Embed a query and print the best matching repository passages.",
    )

    parser.add_argument("path", type=Path, help="Repository root")
    parser.add_argument("query", help="Natural-language query")
    parser.add_argument(
        "-k",
        type=int,
        default=6,
        help="Maximum number of passages (default: 6)",
    )
    parser.add_argument(
        "--max-chars",
        type=int,
        default=1200,
        help="Shared character budget across passages (default: 1200)",
    )

    Config.add_cli_arguments(parser)
    return cast(argparse.ArgumentParser, parser)


__all__: list[str] = ["add_query_subparser"]
