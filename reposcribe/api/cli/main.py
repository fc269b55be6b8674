"""RepoScribe command-line entry point."""

from __future__ import annotations

import argparse
import asyncio
import sys

from loguru import logger
from pydantic import ValidationError as PydanticValidationError
from rich.console import Console
from rich.markup import escape

from reposcribe.api.cli.parsers import (
    add_index_subparser,
    add_query_subparser,
    add_run_subparser,
)
from reposcribe.core.config.config import Config
from reposcribe.core.exceptions import RepoScribeError
from reposcribe.version import __version__


def setup_logging(verbose: bool = False) -> None:
    """Route loguru to stderr at WARNING, or DEBUG when verbose."""
    logger.remove()
    logger.add(
        sys.stderr,
        level="DEBUG" if verbose else "WARNING",
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}",
    )


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="reposcribe",
        description="Retrieval-grounded README generation for source repositories",
    )
    parser.add_argument("--version", action="version", version=f"reposcribe {__version__}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)
    add_run_subparser(subparsers)
    add_index_subparser(subparsers)
    add_query_subparser(subparsers)
    return parser


async def _dispatch(args: argparse.Namespace, config: Config) -> None:
    if args.command == "run":
        from reposcribe.api.cli.commands.run import run_command

        await run_command(args, config)
    elif args.command == "index":
        from reposcribe.api.cli.commands.index import index_command

        await index_command(args, config)
    elif args.command == "query":
        from reposcribe.api.cli.commands.query import query_command

        await query_command(args, config)


def main(argv: list[str] | None = None) -> int:
    parser = create_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    try:
        config = Config.load(args)
        asyncio.run(_dispatch(args, config))
    except (RepoScribeError, PydanticValidationError) as e:
        Console(stderr=True).print(f"[red]Error:[/red] {escape(str(e))}", soft_wrap=True)
        return 1
    except KeyboardInterrupt:
        return 130
    return 0


if __name__ == "__main__":
    sys.exit(main())
