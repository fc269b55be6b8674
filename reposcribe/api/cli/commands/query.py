"""Query command: print retrieved passages for a query."""

from __future__ import annotations

import argparse
import asyncio

from rich.console import Console
from rich.markdown import Markdown
from rich.rule import Rule

from reposcribe.core.config.config import Config
from reposcribe.core.exceptions import ValidationError
from reposcribe.providers.embeddings import OpenAIEmbeddingProvider
from reposcribe.services.retrieval_service import RetrievalEngine
from reposcribe.services.snapshot import compute_snapshot


async def query_command(args: argparse.Namespace, config: Config) -> None:
    console = Console()
    root = args.path.expanduser().resolve()
    if not root.is_dir():
        raise ValidationError(f"Repository root is not a directory: {root}")

    engine = RetrievalEngine(
        config.indexing, OpenAIEmbeddingProvider.from_config(config.embedding)
    )
    snapshot = await asyncio.to_thread(compute_snapshot, root)
    passages = await engine.retrieve(
        snapshot.repo_hash, args.query, k=args.k, max_chars=args.max_chars, repo_root=root
    )
    if not passages:
        console.print(
            "[yellow]No passages found.[/yellow] Build the index first with "
            "`reposcribe index`; editing files changes the repository hash."
        )
        return
    for passage in passages:
        console.print(Rule(passage.rel))
        console.print(Markdown(passage.body))
