"""Repository contracts the ledger, aggregator, and orchestrator depend on."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import date, datetime
from typing import Any, Protocol, runtime_checkable

from sqlalchemy.orm import Session

from domain.ratings.common import RatingState, SeasonKey
from models import RankingMatch, SeasonRanking


@runtime_checkable
class SeasonRankingStore(Protocol):
    """Season ranking persistence."""

    def get(self, session: Session, season_ranking_id: int, *, for_update: bool = False) -> SeasonRanking | None: ...

    def find_by_key(self, session: Session, key: SeasonKey, *, for_update: bool = False) -> SeasonRanking | None: ...

    def create(self, session: Session, key: SeasonKey, seed: RatingState) -> SeasonRanking: ...

    def latest_for_athlete(
        self,
        session: Session,
        athlete_id: int,
        *,
        before: date | None = None,
    ) -> SeasonRanking | None: ...

    def list_ids(self, session: Session) -> list[int]: ...

    def key_for(self, session: Session, season_ranking_id: int) -> SeasonKey | None: ...

    def update_analytics(
        self,
        session: Session,
        season: SeasonRanking,
        fields: Mapping[str, Any],
        *,
        updated_at: datetime,
    ) -> None: ...


@runtime_checkable
class RankingMatchStore(Protocol):
    """Append-only ledger persistence."""

    def find_by_hash(self, session: Session, match_hash: str) -> RankingMatch | None: ...

    def add(self, session: Session, row: Mapping[str, Any]) -> RankingMatch: ...

    def list_for_season(self, session: Session, season_ranking_id: int) -> Sequence[RankingMatch]: ...

    def latest_for_athlete_before(self, session: Session, athlete_id: int, before: date) -> RankingMatch | None: ...

    def opponent_ids_for_season(self, session: Session, season_ranking_id: int) -> list[int]: ...

    def lock_for_season(self, session: Session, season_ranking_id: int) -> None: ...

    def refresh_opponent_current(
        self,
        session: Session,
        *,
        opponent_id: int,
        state: RatingState,
        refreshed_at: datetime,
        season_ranking_id: int | None = None,
    ) -> int: ...


__all__ = ["RankingMatchStore", "SeasonRankingStore"]
