"""Index command: build the embedding index for a repository."""

from __future__ import annotations

import argparse
import asyncio

from rich.console import Console
from rich.table import Table

from reposcribe.core.config.config import Config
from reposcribe.core.exceptions import ValidationError
from reposcribe.providers.embeddings import OpenAIEmbeddingProvider
from reposcribe.services.embedding_index import EmbeddingIndexBuilder
from reposcribe.services.snapshot import compute_snapshot


async def index_command(args: argparse.Namespace, config: Config) -> None:
    console = Console()
    root = args.path.expanduser().resolve()
    if not root.is_dir():
        raise ValidationError(f"Repository root is not a directory: {root}")

    vector_sink = None
    if config.embedding.backend == "chroma":
        from reposcribe.providers.vectorstore import ChromaVectorSink

        vector_sink = ChromaVectorSink.from_config(config.embedding)

    builder = EmbeddingIndexBuilder(
        config.indexing,
        OpenAIEmbeddingProvider.from_config(config.embedding),
        vector_sink,
    )
    snapshot = await asyncio.to_thread(compute_snapshot, root)
    with console.status(f"Indexing {root}"):
        stats = await builder.build_index(root, snapshot.repo_hash, force=args.force)

    table = Table(title=f"Index {snapshot.repo_hash}", show_header=False)
    table.add_row("files", str(stats.files))
    table.add_row("chunks", str(stats.chunks))
    table.add_row("bytes", str(stats.bytes))
    table.add_row("dim", str(stats.dim))
    table.add_row("rebuilt", "yes" if stats.rebuilt else "no (fresh)")
    table.add_row("path", str(stats.index_path))
    console.print(table)
