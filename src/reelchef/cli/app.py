"""Typer root app: wires all subcommands together."""

from __future__ import annotations

import json

import typer

from reelchef import __version__

app = typer.Typer(
    name="reelchef",
    help="reelchef: turn cooking reels into structured recipes.",
    add_completion=False,
    no_args_is_help=True,
)


@app.command("version")
def version_cmd() -> None:
    """Print version info as JSON."""
    print(json.dumps({"version": __version__, "package": "reelchef"}))


# --- Register direct commands ---

from reelchef.cli.submit import register as register_submit  # noqa: E402
from reelchef.cli.worker_cmd import register as register_worker  # noqa: E402
from reelchef.cli.tasks_cmd import register as register_tasks  # noqa: E402
from reelchef.cli.recipes_cmd import register as register_recipes  # noqa: E402
from reelchef.cli.config_cmd import config_app  # noqa: E402

register_submit(app)
register_worker(app)
register_tasks(app)
register_recipes(app)
app.add_typer(config_app, name="config", help="Show/set configuration")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
