"""Persistence helpers for the append-only ranking match ledger."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import date, datetime
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from domain.ratings.common import RatingState
from models import RankingMatch


class RankingMatchRepository:
    """Ledger reads/writes. Stateless; every call takes the caller's session."""

    def find_by_hash(self, session: Session, match_hash: str) -> RankingMatch | None:
        return session.execute(
            select(RankingMatch).where(RankingMatch.match_hash == match_hash)
        ).scalar_one_or_none()

    def add(self, session: Session, row: Mapping[str, Any]) -> RankingMatch:
        """Insert one ledger row and flush so the ingestion sequence id is assigned."""
        match = RankingMatch(**row)
        session.add(match)
        session.flush()
        return match

    def list_for_season(self, session: Session, season_ranking_id: int) -> Sequence[RankingMatch]:
        """Ledger rows in replay order: match date, then ingestion sequence."""
        statement = (
            select(RankingMatch)
            .where(RankingMatch.season_ranking_id == season_ranking_id)
            .order_by(RankingMatch.match_date.asc(), RankingMatch.id.asc())
        )
        return list(session.scalars(statement))

    def latest_for_athlete_before(self, session: Session, athlete_id: int, before: date) -> RankingMatch | None:
        """The athlete's last ledger row dated strictly before ``before``, across all seasons."""
        statement = (
            select(RankingMatch)
            .where(RankingMatch.athlete_id == athlete_id, RankingMatch.match_date < before)
            .order_by(RankingMatch.match_date.desc(), RankingMatch.id.desc())
            .limit(1)
        )
        return session.execute(statement).scalar_one_or_none()

    def opponent_ids_for_season(self, session: Session, season_ranking_id: int) -> list[int]:
        statement = (
            select(RankingMatch.opponent_id)
            .where(RankingMatch.season_ranking_id == season_ranking_id)
            .distinct()
            .order_by(RankingMatch.opponent_id)
        )
        return list(session.scalars(statement))

    def lock_for_season(self, session: Session, season_ranking_id: int) -> None:
        """Row-lock a season's ledger in id order before rewriting it."""
        session.execute(
            select(RankingMatch.id)
            .where(RankingMatch.season_ranking_id == season_ranking_id)
            .order_by(RankingMatch.id)
            .with_for_update()
        )

    def refresh_opponent_current(
        self,
        session: Session,
        *,
        opponent_id: int,
        state: RatingState,
        refreshed_at: datetime,
        season_ranking_id: int | None = None,
    ) -> int:
        """Overwrite the latest-known opponent rating on every row facing ``opponent_id``.

        Target rows are locked in id order first, so concurrent refreshes and
        season rewrites always acquire ledger row locks in the same order.
        """
        target = select(RankingMatch.id).where(RankingMatch.opponent_id == opponent_id)
        if season_ranking_id is not None:
            target = target.where(RankingMatch.season_ranking_id == season_ranking_id)
        ids = list(session.scalars(target.order_by(RankingMatch.id).with_for_update()))
        if not ids:
            return 0

        statement = (
            update(RankingMatch)
            .where(RankingMatch.id.in_(ids))
            .values(
                opponent_current_elo=state.elo,
                opponent_current_glicko=state.glicko_rating,
                opponent_current_glicko_rd=state.glicko_rd,
                opponent_current_refreshed_at=refreshed_at,
            )
            .execution_options(synchronize_session="fetch")
        )
        result = session.execute(statement)
        return int(result.rowcount or 0)


__all__ = ["RankingMatchRepository"]
