"""Persistence helpers for season rankings using SQLAlchemy."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import date, datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from domain.ratings.common import RatingState, SeasonKey
from models import SeasonRanking

_ANALYTICS_COLUMNS = (
    "strength_of_schedule",
    "strength_of_schedule_at_time",
    "strength_of_schedule_latest",
    "glicko_strength_of_schedule",
    "glicko_strength_of_schedule_at_time",
    "glicko_strength_of_schedule_latest",
    "strength_of_record",
    "glicko_strength_of_record",
    "average_opponent_elo",
    "average_opponent_glicko",
    "toughest_opponent_elo",
    "weakest_opponent_elo",
    "unique_opponents_faced",
    "quality_wins",
    "quality_losses",
    "upset_wins",
    "upset_losses",
)


class SeasonRankingRepository:
    """Season ranking reads/writes. Stateless; every call takes the caller's session."""

    def get(self, session: Session, season_ranking_id: int, *, for_update: bool = False) -> SeasonRanking | None:
        statement = select(SeasonRanking).where(SeasonRanking.id == season_ranking_id)
        if for_update:
            statement = statement.with_for_update()
        return session.execute(statement).scalar_one_or_none()

    def find_by_key(self, session: Session, key: SeasonKey, *, for_update: bool = False) -> SeasonRanking | None:
        statement = select(SeasonRanking).where(
            SeasonRanking.athlete_id == key.athlete_id,
            SeasonRanking.year == key.year,
            SeasonRanking.weight_class == key.weight_class,
            SeasonRanking.team == key.team,
            SeasonRanking.tournament_id == key.tournament_id,
        )
        if for_update:
            statement = statement.with_for_update()
        return session.execute(statement).scalar_one_or_none()

    def create(self, session: Session, key: SeasonKey, seed: RatingState) -> SeasonRanking:
        """Insert an empty season seeded with the given starting ratings."""
        season = SeasonRanking(
            athlete_id=key.athlete_id,
            year=key.year,
            weight_class=key.weight_class,
            team=key.team,
            tournament_id=key.tournament_id,
            wins=0,
            losses=0,
            total_matches=0,
            win_percentage=0.0,
            initial_elo=seed.elo,
            initial_glicko_rating=seed.glicko_rating,
            initial_glicko_rd=seed.glicko_rd,
            initial_glicko_volatility=seed.glicko_volatility,
            current_elo=seed.elo,
            current_glicko_rating=seed.glicko_rating,
            current_glicko_rd=seed.glicko_rd,
            current_glicko_volatility=seed.glicko_volatility,
            unique_opponents_faced=0,
            quality_wins=0,
            quality_losses=0,
            upset_wins=0,
            upset_losses=0,
            season_complete=False,
        )
        session.add(season)
        session.flush()
        return season

    def latest_for_athlete(
        self,
        session: Session,
        athlete_id: int,
        *,
        before: date | None = None,
    ) -> SeasonRanking | None:
        """Most recently active season with at least one match."""
        statement = select(SeasonRanking).where(
            SeasonRanking.athlete_id == athlete_id,
            SeasonRanking.total_matches > 0,
            SeasonRanking.last_match_date.is_not(None),
        )
        if before is not None:
            statement = statement.where(SeasonRanking.last_match_date < before)
        statement = statement.order_by(
            SeasonRanking.last_match_date.desc(),
            SeasonRanking.id.desc(),
        ).limit(1)
        return session.execute(statement).scalar_one_or_none()

    def list_ids(self, session: Session) -> list[int]:
        return list(session.scalars(select(SeasonRanking.id).order_by(SeasonRanking.id)))

    def key_for(self, session: Session, season_ranking_id: int) -> SeasonKey | None:
        row = session.execute(
            select(
                SeasonRanking.athlete_id,
                SeasonRanking.year,
                SeasonRanking.weight_class,
                SeasonRanking.team,
                SeasonRanking.tournament_id,
            ).where(SeasonRanking.id == season_ranking_id)
        ).one_or_none()
        if row is None:
            return None
        return SeasonKey(
            athlete_id=row.athlete_id,
            year=row.year,
            weight_class=row.weight_class,
            team=row.team,
            tournament_id=row.tournament_id,
        )

    def update_analytics(
        self,
        session: Session,
        season: SeasonRanking,
        fields: Mapping[str, Any],
        *,
        updated_at: datetime,
    ) -> None:
        unknown = sorted(set(fields) - set(_ANALYTICS_COLUMNS))
        if unknown:
            raise ValueError(f"Unknown season analytics columns: {unknown}")
        for column, value in fields.items():
            setattr(season, column, value)
        season.analytics_updated_at = updated_at
        session.flush()


__all__ = ["SeasonRankingRepository"]
