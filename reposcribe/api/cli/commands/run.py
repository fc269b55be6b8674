"""Run command: execute a draft or final README run and stream its progress."""

from __future__ import annotations

import argparse
import json

from rich.console import Console
from rich.markdown import Markdown

from reposcribe.core.config.config import Config
from reposcribe.services.progress_bus import CACHED_HIT, NODE_END, NODE_START
from reposcribe.services.run_orchestrator import create_orchestrator


async def run_command(args: argparse.Namespace, config: Config) -> None:
    console = Console(stderr=True)
    out = Console()
    orchestrator = create_orchestrator(config)
    mode = "final" if args.final else "draft"

    run_id, task = orchestrator.launch(
        args.path, mode, force=args.force, use_llm=args.use_llm
    )
    console.print(f"[dim]run {run_id} ({mode})[/dim]")

    with console.status(f"Analyzing {args.path}") as status:
        async for event in orchestrator.get_progress(run_id):
            if event["type"] == NODE_START:
                status.update(f"Running {event['node']}")
            elif event["type"] == NODE_END:
                console.print(f"[green]✓[/green] {event['node']}")
            elif event["type"] == CACHED_HIT:
                console.print(f"[cyan]cached[/cyan] {event['scope']} result reused")

    # Errors propagate to main, which prints the message
    result = await task

    if args.json:
        out.print_json(json.dumps(result, default=str))
        return
    if mode == "final":
        out.print(Markdown(result["markdown"]))
    else:
        out.print(Markdown(result["markdown_preview"]))
    console.print(f"[dim]artifacts: {result['artifacts_dir']}[/dim]")
