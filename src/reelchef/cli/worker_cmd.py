"""reelchef worker command."""

from __future__ import annotations

import asyncio
from pathlib import Path

import typer

from reelchef.cli.output import configure_logging, error, output_json
from reelchef.core.config import get_config
from reelchef.core.context import build_context
from reelchef.core.exceptions import ReelChefError
from reelchef.jobs.worker import WorkerPool


async def _run(pool: WorkerPool, once: bool) -> bool:
    try:
        if once:
            return await pool.run_once()
        await pool.run()
        return True
    finally:
        await pool.ctx.aclose()


def register(app: typer.Typer) -> None:
    @app.command("worker")
    def worker(
        workers: int = typer.Option(None, "--workers", "-w", min=1, help="Concurrent worker loops"),
        once: bool = typer.Option(False, "--once", help="Process at most one task and exit"),
        verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
        db: str = typer.Option(None, "--db", help="Database path override"),
    ) -> None:
        """Run the worker pool until interrupted (Ctrl-C or SIGTERM)."""
        configure_logging(verbose)
        config = get_config(db_path=Path(db) if db else None)
        try:
            context = build_context(config)
        except ReelChefError as e:
            error(str(e))
            raise typer.Exit(1)

        pool = WorkerPool(context, workers=workers)
        processed = asyncio.run(_run(pool, once))
        if once:
            output_json({"processed": processed})
