"""Schema bootstrap for the ratings tables."""

from __future__ import annotations

from sqlalchemy import inspect
from sqlalchemy.engine import Engine

from models import Athlete, RankingMatch, SeasonRanking

_TABLES_IN_DEPENDENCY_ORDER = (Athlete, SeasonRanking, RankingMatch)


def ensure_ratings_schema(engine: Engine) -> None:
    """Create athletes/season_rankings/ranking_matches tables and indexes if needed."""
    with engine.begin() as connection:
        existing_tables = set(inspect(connection).get_table_names())
        for model in _TABLES_IN_DEPENDENCY_ORDER:
            if model.__tablename__ in existing_tables:
                continue
            model.__table__.create(bind=connection, checkfirst=True)


__all__ = ["ensure_ratings_schema"]
