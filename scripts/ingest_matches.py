#!/usr/bin/env python3
"""Ingest JSON-lines match observations into the season ledger."""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Annotated

import typer

ROOT_DIR = Path(__file__).resolve().parents[1]
SRC_DIR = ROOT_DIR / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from domain.ledger import IngestStatus
from domain.ratings.common import MatchObservation
from recalculate_seasons import DEFAULT_CONFIG_PATH, DEFAULT_DB_URL, build_service, configure_logging

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    help="Match ingestion jobs.",
)


@app.command()
def ingest_matches(
    input_path: Annotated[
        Path,
        typer.Argument(help="JSON-lines file with one observation per line ('-' for stdin)."),
    ],
    db_url: Annotated[
        str,
        typer.Option("--db-url", help="Database URL. Defaults to the local wrestling_ratings postgres instance."),
    ] = DEFAULT_DB_URL,
    config_path: Annotated[
        Path,
        typer.Option("--config", help="Rating system TOML config file."),
    ] = DEFAULT_CONFIG_PATH,
    continue_on_error: Annotated[
        bool,
        typer.Option("--continue-on-error", help="Skip malformed lines instead of stopping."),
    ] = False,
    log_level: Annotated[
        str,
        typer.Option("--log-level", help="Python logging level."),
    ] = "WARNING",
) -> None:
    """Feed every observation through the ledger in file order."""
    configure_logging(log_level)
    service = build_service(db_url=db_url, config_path=config_path)

    stream = sys.stdin if str(input_path) == "-" else input_path.open(encoding="utf-8")
    ingested = duplicates = replayed = 0
    failures: list[str] = []
    try:
        for line_number, line in enumerate(stream, start=1):
            if not line.strip():
                continue
            try:
                observation = MatchObservation.from_mapping(json.loads(line))
            except ValueError as exc:
                message = f"line {line_number}: {exc}"
                failures.append(message)
                typer.echo(message, err=True)
                if not continue_on_error:
                    raise typer.Exit(code=1) from exc
                continue

            result = service.ingest_match(observation)
            if result.status is IngestStatus.DUPLICATE:
                duplicates += 1
            else:
                ingested += 1
                replayed += int(result.replayed)

            if line_number % 10_000 == 0:
                typer.echo(f"processed_lines={line_number}")
    finally:
        if stream is not sys.stdin:
            stream.close()

    typer.echo(
        "completed "
        f"ingested={ingested} "
        f"duplicates={duplicates} "
        f"replayed={replayed} "
        f"failed={len(failures)}"
    )
    if failures:
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
