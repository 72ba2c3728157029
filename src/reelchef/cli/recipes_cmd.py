"""reelchef recipes command."""

from __future__ import annotations

from pathlib import Path

import typer

from reelchef.cli.output import output_json
from reelchef.core.config import get_config
from reelchef.db.repository import Repository


def register(app: typer.Typer) -> None:
    @app.command("recipes")
    def recipes_cmd(
        video_id: int = typer.Option(None, "--video-id", help="Only recipes from this video"),
        limit: int = typer.Option(100, "--limit", help="Max recipes to list"),
        pretty: bool = typer.Option(False, "--pretty", help="Indented JSON"),
        db: str = typer.Option(None, "--db", help="Database path override"),
    ) -> None:
        """List extracted recipes."""
        config = get_config(db_path=Path(db) if db else None)
        repo = Repository(config.db_path)

        try:
            recipes = repo.get_recipes(video_id=video_id, limit=limit)
            output_json({
                "recipes": [r.model_dump(mode="json") for r in recipes],
                "total": len(recipes),
            }, pretty=pretty)
        finally:
            repo.close()
