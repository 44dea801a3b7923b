"""Facade exposed to the controller layer."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import date

from sqlalchemy.orm import Session, sessionmaker

from domain.analytics import AnalyticsAggregator, SeasonAnalytics, SeasonComparison
from domain.errors import SeasonNotFoundError
from domain.ledger import (
    IngestResult,
    MatchLedger,
    season_current_state,
    season_seed_state,
    season_state,
)
from domain.locks import SeasonLockRegistry
from domain.pipeline import RecalculationOrchestrator, RecalculationSummary
from domain.ratings.common import MatchObservation, RatingState, SeasonState
from domain.ratings.config import RatingSystemConfig, default_rating_system_config
from models import RankingMatch, SeasonRanking
from repositories.athlete_repository import AthleteRepository
from repositories.ranking_match_repository import RankingMatchRepository
from repositories.season_ranking_repository import SeasonRankingRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuditEntry:
    """One ledger row as both sides saw it."""

    ranking_match_id: int
    match_date: date
    opponent_id: int
    match_result: str
    result_type: str
    tournament_type: str
    k_factor: float
    expected_score: float
    elo_before: float
    elo_after: float
    elo_change: float
    glicko_rating_before: float
    glicko_rating_after: float
    glicko_rating_change: float
    glicko_rd_before: float
    glicko_rd_after: float
    opponent_elo_at_time: float
    opponent_elo_after: float
    opponent_elo_change: float
    opponent_glicko_at_time: float
    opponent_glicko_after: float
    opponent_glicko_change: float
    opponent_current_elo: float | None
    wins_before: int
    losses_before: int
    wins_after: int
    losses_after: int

    @classmethod
    def from_row(cls, row: RankingMatch) -> AuditEntry:
        return cls(
            ranking_match_id=row.id,
            match_date=row.match_date,
            opponent_id=row.opponent_id,
            match_result=row.match_result,
            result_type=row.result_type,
            tournament_type=row.tournament_type,
            k_factor=row.k_factor,
            expected_score=row.expected_score,
            elo_before=row.elo_before,
            elo_after=row.elo_after,
            elo_change=row.elo_change,
            glicko_rating_before=row.glicko_rating_before,
            glicko_rating_after=row.glicko_rating_after,
            glicko_rating_change=row.glicko_rating_change,
            glicko_rd_before=row.glicko_rd_before,
            glicko_rd_after=row.glicko_rd_after,
            opponent_elo_at_time=row.opponent_elo_at_time,
            opponent_elo_after=row.opponent_elo_after,
            opponent_elo_change=row.opponent_elo_after - row.opponent_elo_at_time,
            opponent_glicko_at_time=row.opponent_glicko_at_time,
            opponent_glicko_after=row.opponent_glicko_after,
            opponent_glicko_change=row.opponent_glicko_after - row.opponent_glicko_at_time,
            opponent_current_elo=row.opponent_current_elo,
            wins_before=row.wins_before,
            losses_before=row.losses_before,
            wins_after=row.wins_after,
            losses_after=row.losses_after,
        )


@dataclass(frozen=True)
class AuditTrail:
    season_ranking_id: int
    athlete_id: int
    year: int
    weight_class: str
    state: SeasonState
    seed: RatingState
    current: RatingState
    entries: tuple[AuditEntry, ...]


class SeasonAnalyticsService:
    """Wires the ledger, aggregator and orchestrator over one session factory."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        config: RatingSystemConfig | None = None,
        *,
        max_workers: int | None = None,
    ) -> None:
        self._config = config or default_rating_system_config()
        self._session_factory = session_factory
        self._seasons = SeasonRankingRepository()
        self._matches = RankingMatchRepository()
        self._athletes = AthleteRepository()
        self._ledger = MatchLedger(
            session_factory,
            self._config.create_engine(),
            seasons=self._seasons,
            matches=self._matches,
            locks=SeasonLockRegistry(),
        )
        self._aggregator = AnalyticsAggregator(
            session_factory,
            self._ledger,
            seasons=self._seasons,
            matches=self._matches,
        )
        self._orchestrator = RecalculationOrchestrator(
            session_factory,
            self._ledger,
            self._aggregator,
            max_workers=max_workers or self._config.max_workers,
            seasons=self._seasons,
        )

    @property
    def ledger(self) -> MatchLedger:
        return self._ledger

    @property
    def orchestrator(self) -> RecalculationOrchestrator:
        return self._orchestrator

    def ingest_match(self, observation: MatchObservation) -> IngestResult:
        result = self._ledger.ingest(observation)
        logger.debug(
            "ingest athlete_id=%s opponent_id=%s status=%s replayed=%s",
            observation.athlete_id,
            observation.opponent_id,
            result.status.value,
            result.replayed,
        )
        return result

    def get_season_analytics(self, season_ranking_id: int) -> SeasonAnalytics:
        return self._aggregator.refresh_and_persist(season_ranking_id)

    def get_audit_trail(self, season_ranking_id: int) -> AuditTrail:
        with self._session_factory() as session:
            season = self._seasons.get(session, season_ranking_id)
            if season is None:
                raise SeasonNotFoundError(season_ranking_id)
            rows = self._matches.list_for_season(session, season_ranking_id)
            return AuditTrail(
                season_ranking_id=season.id,
                athlete_id=season.athlete_id,
                year=season.year,
                weight_class=season.weight_class,
                state=season_state(season),
                seed=season_seed_state(season),
                current=season_current_state(season),
                entries=tuple(AuditEntry.from_row(row) for row in rows),
            )

    def compare_seasons(self, season_ranking_ids: Sequence[int]) -> SeasonComparison:
        return self._aggregator.compare_seasons(season_ranking_ids)

    def recalculate_all(
        self,
        *,
        cancel_event: threading.Event | None = None,
        echo: Callable[[str], None] | None = None,
    ) -> RecalculationSummary:
        summary = self._orchestrator.recalculate_all(cancel_event=cancel_event, echo=echo)
        if summary.failed:
            logger.warning("%s of %s seasons failed to recalculate", summary.failed, summary.total)
        return summary

    def mark_season_complete(self, season_ranking_id: int) -> None:
        self._ledger.mark_complete(season_ranking_id)

    def athlete_names(self, athlete_ids: Sequence[int]) -> dict[int, str]:
        with self._session_factory() as session:
            return self._athletes.names_by_id(session, list(athlete_ids))


__all__ = ["AuditEntry", "AuditTrail", "SeasonAnalyticsService"]
