"""reelchef submit / transcribe / extract commands: put work on the queue."""

from __future__ import annotations

from pathlib import Path

import typer

from reelchef.cli.output import error, output_json
from reelchef.core.config import get_config
from reelchef.core.exceptions import ReelChefError
from reelchef.db.repository import Repository
from reelchef.jobs.store import TaskStore
from reelchef.jobs.tasks import DuplicateSkipped, TaskSpec


def _enqueue(spec: TaskSpec, store: TaskStore) -> dict:
    outcome = store.enqueue_spec(spec)
    if isinstance(outcome, DuplicateSkipped):
        return {"status": "duplicate_skipped", "uniq_key": outcome.uniq_key}
    return {"status": "queued", "task_id": outcome, "uniq_key": spec.uniq_key}


def register(app: typer.Typer) -> None:
    @app.command("submit")
    def submit(
        url: str = typer.Argument(..., help="Reel URL, e.g. https://www.instagram.com/reel/<id>/"),
        db: str = typer.Option(None, "--db", help="Database path override"),
    ) -> None:
        """Queue a reel for download, transcription and recipe extraction."""
        config = get_config(db_path=Path(db) if db else None)
        try:
            spec = TaskSpec.fetch(url, config.source_url_pattern)
        except ReelChefError as e:
            error(str(e))
            raise typer.Exit(1)

        repo = Repository(config.db_path)
        try:
            result = _enqueue(spec, TaskStore(repo.conn))
        except ReelChefError as e:
            error(str(e))
            raise typer.Exit(1)
        finally:
            repo.close()
        result["source_id"] = spec.payload.source_id
        output_json(result)

    @app.command("transcribe")
    def transcribe(
        video_id: int = typer.Argument(..., help="Stored video id"),
        db: str = typer.Option(None, "--db", help="Database path override"),
    ) -> None:
        """Queue a new transcription (and extraction) for a stored video."""
        _requeue_stage(video_id, db, TaskSpec.transcribe)

    @app.command("extract")
    def extract(
        video_id: int = typer.Argument(..., help="Stored video id"),
        db: str = typer.Option(None, "--db", help="Database path override"),
    ) -> None:
        """Queue recipe extraction for a stored video."""
        _requeue_stage(video_id, db, TaskSpec.extract)


def _requeue_stage(video_id: int, db: str | None, make_spec) -> None:
    config = get_config(db_path=Path(db) if db else None)
    repo = Repository(config.db_path)
    try:
        video = repo.get_video(video_id)
        result = _enqueue(make_spec(video.id), TaskStore(repo.conn))
    except ReelChefError as e:
        error(str(e))
        raise typer.Exit(1)
    finally:
        repo.close()
    output_json(result)
