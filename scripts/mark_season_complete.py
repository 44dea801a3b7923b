#!/usr/bin/env python3
"""Flag season rankings as complete."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Annotated

import typer

ROOT_DIR = Path(__file__).resolve().parents[1]
SRC_DIR = ROOT_DIR / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from domain.errors import SeasonNotFoundError
from recalculate_seasons import DEFAULT_CONFIG_PATH, DEFAULT_DB_URL, build_service, configure_logging

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    help="Mark seasons complete.",
)


@app.command()
def mark_season_complete(
    season_ids: Annotated[list[int], typer.Argument(help="Season ranking ids to close.")],
    db_url: Annotated[
        str,
        typer.Option("--db-url", help="Database URL. Defaults to the local wrestling_ratings postgres instance."),
    ] = DEFAULT_DB_URL,
    config_path: Annotated[
        Path,
        typer.Option("--config", help="Rating system TOML config file."),
    ] = DEFAULT_CONFIG_PATH,
    log_level: Annotated[
        str,
        typer.Option("--log-level", help="Python logging level."),
    ] = "WARNING",
) -> None:
    """Set the one-way complete flag on each season."""
    configure_logging(log_level)
    service = build_service(db_url=db_url, config_path=config_path)

    missing: list[int] = []
    for season_id in season_ids:
        try:
            service.mark_season_complete(season_id)
        except SeasonNotFoundError as exc:
            missing.append(season_id)
            typer.echo(str(exc), err=True)
            continue
        typer.echo(f"completed season_ranking_id={season_id}")

    if missing:
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
