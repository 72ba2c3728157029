"""reelchef tasks command."""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path

import typer

from reelchef.cli.output import error, output_json
from reelchef.core.config import get_config
from reelchef.core.exceptions import ReelChefError
from reelchef.db.repository import Repository
from reelchef.jobs.store import TaskStore
from reelchef.jobs.tasks import TaskState
from reelchef.utils.timeutil import utc_now


def register(app: typer.Typer) -> None:
    @app.command("tasks")
    def tasks_cmd(
        state: TaskState = typer.Option(None, "--state", help="Only tasks in this state"),
        limit: int = typer.Option(50, "--limit", help="Max tasks to list"),
        purge_days: int = typer.Option(
            None, "--purge-days", min=0, help="First delete done tasks older than N days"
        ),
        db: str = typer.Option(None, "--db", help="Database path override"),
    ) -> None:
        """List queued, running and finished tasks."""
        config = get_config(db_path=Path(db) if db else None)
        repo = Repository(config.db_path)
        store = TaskStore(repo.conn)

        try:
            result: dict = {}
            if purge_days is not None:
                result["purged"] = store.purge_finished(utc_now() - timedelta(days=purge_days))
            tasks = store.list_tasks(state=state, limit=limit)
            result.update({
                "counts": store.counts(),
                "tasks": [t.model_dump(mode="json") for t in tasks],
                "total": len(tasks),
            })
            output_json(result)
        except ReelChefError as e:
            error(str(e))
            raise typer.Exit(1)
        finally:
            repo.close()
