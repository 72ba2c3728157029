"""reelchef config command: show/set configuration."""

from __future__ import annotations

import typer
from pydantic import ValidationError

from reelchef.cli.output import error, output_json, output_text
from reelchef.core.config import FILE_KEYS, ReelChefConfig, _load_config_file, get_config, save_config

config_app = typer.Typer()

_SECRET_KEYS = ("whisper_key", "completion_api_key")


@config_app.command("show")
def config_show() -> None:
    """Show the effective configuration."""
    config = get_config()
    data = config.model_dump(mode="json")
    for key in _SECRET_KEYS:
        data[key] = "***" if data.get(key) else "(not set)"
    output_json(data, pretty=True)


@config_app.command("path")
def config_path() -> None:
    """Show path to the database file."""
    config = get_config()
    output_text(str(config.db_path))


@config_app.command("set")
def config_set(
    key: str = typer.Argument(..., help=f"One of: {', '.join(FILE_KEYS)}"),
    value: str = typer.Argument(..., help="New value"),
) -> None:
    """Persist a setting to ~/.config/reelchef/config.json."""
    if key not in FILE_KEYS:
        error(f"Unknown or non-persistable key {key!r}. Choose from: {', '.join(FILE_KEYS)}")
        raise typer.Exit(1)

    try:
        ReelChefConfig(**{key: value})
    except ValidationError as e:
        error(f"Invalid value for {key}: {e.errors()[0]['msg']}")
        raise typer.Exit(1)

    data = _load_config_file()
    data[key] = value
    path = save_config(data)
    output_json({"status": "saved", "key": key, "path": str(path)})
