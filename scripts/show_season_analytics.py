#!/usr/bin/env python3
"""Show derived analytics and the audit trail for one season ranking."""

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
    help="Show season analytics.",
)


@app.command()
def show_season_analytics(
    season_id: Annotated[int, typer.Argument(help="Season ranking id.")],
    db_url: Annotated[
        str,
        typer.Option("--db-url", help="Database URL. Defaults to the local wrestling_ratings postgres instance."),
    ] = DEFAULT_DB_URL,
    config_path: Annotated[
        Path,
        typer.Option("--config", help="Rating system TOML config file."),
    ] = DEFAULT_CONFIG_PATH,
    audit: Annotated[
        bool,
        typer.Option("--audit/--no-audit", help="Also print every ledger entry."),
    ] = False,
    log_level: Annotated[
        str,
        typer.Option("--log-level", help="Python logging level."),
    ] = "WARNING",
) -> None:
    """Print a season's record, schedule strength and quality counters."""
    configure_logging(log_level)
    service = build_service(db_url=db_url, config_path=config_path)

    try:
        analytics = service.get_season_analytics(season_id)
        trail = service.get_audit_trail(season_id)
    except SeasonNotFoundError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1) from exc

    typer.echo(
        f"season_ranking_id={trail.season_ranking_id} athlete_id={trail.athlete_id} "
        f"year={trail.year} weight_class={trail.weight_class} state={trail.state.value}"
    )
    typer.echo(
        f"record={analytics.wins}-{analytics.losses} "
        f"win_percentage={analytics.win_percentage:.3f} "
        f"elo={trail.current.elo:.2f} "
        f"glicko={trail.current.glicko_rating:.2f}±{trail.current.glicko_rd:.2f}"
    )
    typer.echo(
        f"strength_of_schedule={analytics.strength_of_schedule:.2f} "
        f"latest={analytics.strength_of_schedule_latest:.2f} "
        f"glicko={analytics.glicko_strength_of_schedule:.2f} "
        f"strength_of_record={analytics.strength_of_record:.2f}"
    )
    typer.echo(
        f"quality_wins={analytics.quality_wins} quality_losses={analytics.quality_losses} "
        f"upset_wins={analytics.upset_wins} upset_losses={analytics.upset_losses} "
        f"unique_opponents={analytics.unique_opponents_faced}"
    )
    typer.echo(
        f"matches_per_opponent={analytics.average_matches_per_opponent:.2f} "
        f"most_frequent_opponent={analytics.most_frequent_opponent_id} "
        f"x{analytics.most_frequent_opponent_matches}"
    )

    if not audit:
        return
    names = service.athlete_names(sorted({entry.opponent_id for entry in trail.entries}))
    typer.echo("")
    typer.echo(f"{'id':>6}  {'date':10}  {'opponent':24}  {'result':6}  {'type':15}  {'elo':>17}  {'opp elo':>17}")
    for entry in trail.entries:
        typer.echo(
            f"{entry.ranking_match_id:>6}  "
            f"{entry.match_date.isoformat():10}  "
            f"{names.get(entry.opponent_id, str(entry.opponent_id)):24}  "
            f"{entry.match_result:6}  "
            f"{entry.result_type:15}  "
            f"{entry.elo_before:8.2f}>{entry.elo_after:8.2f}  "
            f"{entry.opponent_elo_at_time:8.2f}>{entry.opponent_elo_after:8.2f}"
        )


if __name__ == "__main__":
    app()
