"""Index command argument parser for RepoScribe CLI."""

import argparse
from pathlib import Path
from typing import Any, cast

from reposcribe.core.config.config import Config


def add_index_subparser(subparsers: Any) -> argparse.ArgumentParser:
    parser = subparsers.add_parser(
        "index",
        help="Build the embedding index for a repository",
        description=(
            "Select text files, chunk them and store their embeddings in the "
            "per-repository index used for retrieval."
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
        "--force",
        action="store_true",
        help="Rebuild even when the existing index is fresh",
    )

    Config.add_cli_arguments(parser)
    return cast(argparse.ArgumentParser, parser)


__all__: list[str] = ["add_index_subparser"]
