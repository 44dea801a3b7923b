"""Strength-of-schedule, strength-of-record and quality metrics over a season ledger."""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Sequence
from dataclasses import asdict, dataclass
from datetime import UTC, datetime
from typing import Any, Final, Protocol

from sqlalchemy.orm import Session, sessionmaker

from domain.errors import SeasonNotFoundError
from domain.ledger import MatchLedger
from domain.ratings.common import MatchResult
from repositories.protocol import RankingMatchStore, SeasonRankingStore
from repositories.ranking_match_repository import RankingMatchRepository
from repositories.season_ranking_repository import SeasonRankingRepository

logger = logging.getLogger(__name__)

QUALITY_WIN_THRESHOLD: Final[float] = 1600.0
QUALITY_LOSS_THRESHOLD: Final[float] = 1400.0
RECORD_BASELINE: Final[float] = 1000.0
RECORD_SCALE: Final[float] = 2000.0
RECORD_FALLBACK: Final[float] = 1500.0


class LedgerEntry(Protocol):
    """The ranking match columns the aggregation reads."""

    opponent_id: int
    match_result: str
    elo_before: float
    opponent_elo_at_time: float
    opponent_glicko_at_time: float
    opponent_current_elo: float | None
    opponent_current_glicko: float | None


@dataclass(frozen=True)
class SeasonAnalytics:
    total_matches: int
    wins: int
    losses: int
    win_percentage: float
    strength_of_schedule: float
    strength_of_schedule_at_time: float
    strength_of_schedule_latest: float
    glicko_strength_of_schedule: float
    glicko_strength_of_schedule_at_time: float
    glicko_strength_of_schedule_latest: float
    strength_of_record: float
    glicko_strength_of_record: float
    average_opponent_elo: float
    average_opponent_glicko: float
    toughest_opponent_elo: float
    weakest_opponent_elo: float
    unique_opponents_faced: int
    average_matches_per_opponent: float
    most_frequent_opponent_id: int | None
    most_frequent_opponent_matches: int
    quality_wins: int
    quality_losses: int
    upset_wins: int
    upset_losses: int

    @classmethod
    def empty(cls) -> SeasonAnalytics:
        return cls(
            total_matches=0,
            wins=0,
            losses=0,
            win_percentage=0.0,
            strength_of_schedule=0.0,
            strength_of_schedule_at_time=0.0,
            strength_of_schedule_latest=0.0,
            glicko_strength_of_schedule=0.0,
            glicko_strength_of_schedule_at_time=0.0,
            glicko_strength_of_schedule_latest=0.0,
            strength_of_record=0.0,
            glicko_strength_of_record=0.0,
            average_opponent_elo=0.0,
            average_opponent_glicko=0.0,
            toughest_opponent_elo=0.0,
            weakest_opponent_elo=0.0,
            unique_opponents_faced=0,
            average_matches_per_opponent=0.0,
            most_frequent_opponent_id=None,
            most_frequent_opponent_matches=0,
            quality_wins=0,
            quality_losses=0,
            upset_wins=0,
            upset_losses=0,
        )

    def as_season_fields(self) -> dict[str, Any]:
        """Subset stored on season_rankings; record counts live on the ledger path."""
        fields = asdict(self)
        for name in (
            "total_matches",
            "wins",
            "losses",
            "win_percentage",
            "average_matches_per_opponent",
            "most_frequent_opponent_id",
            "most_frequent_opponent_matches",
        ):
            fields.pop(name)
        return fields


@dataclass(frozen=True)
class SeasonLedger:
    """One season's identity plus its ordered ledger, the input to comparisons."""

    season_ranking_id: int
    athlete_id: int
    matches: Sequence[LedgerEntry]


@dataclass(frozen=True)
class ScheduleExtreme:
    season_ranking_id: int
    athlete_id: int
    strength_of_schedule: float


@dataclass(frozen=True)
class SeasonComparison:
    total_seasons: int
    average_strength_of_schedule: float
    strongest_schedule: ScheduleExtreme | None
    weakest_schedule: ScheduleExtreme | None
    seasons: tuple[tuple[int, SeasonAnalytics], ...]


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values)


def strength_of_record(results: Sequence[tuple[bool, float]]) -> float:
    """Win share weighted by opponent strength, scaled to the rating range.

    Each ``(won, opponent_rating)`` pair weighs ``(opponent_rating - 1000) / 1000``.
    Returns 1500 when the weights do not sum to a positive number.
    """
    total_weight = 0.0
    weighted_wins = 0.0
    for won, opponent_rating in results:
        weight = (opponent_rating - RECORD_BASELINE) / RECORD_BASELINE
        total_weight += weight
        if won:
            weighted_wins += weight
    if total_weight <= 0.0:
        return RECORD_FALLBACK
    return (weighted_wins / total_weight) * RECORD_SCALE


def aggregate_season(matches: Sequence[LedgerEntry]) -> SeasonAnalytics:
    """Fold a season ledger into its derived metrics. Pure; never touches storage."""
    if not matches:
        return SeasonAnalytics.empty()

    wins = 0
    quality_wins = quality_losses = upset_wins = upset_losses = 0
    elo_at_time: list[float] = []
    elo_latest: list[float] = []
    glicko_at_time: list[float] = []
    glicko_latest: list[float] = []
    elo_record: list[tuple[bool, float]] = []
    glicko_record: list[tuple[bool, float]] = []
    opponents: Counter[int] = Counter()

    for match in matches:
        won = MatchResult(match.match_result) is MatchResult.WIN
        opponent_elo = match.opponent_elo_at_time
        opponent_glicko = match.opponent_glicko_at_time

        elo_at_time.append(opponent_elo)
        glicko_at_time.append(opponent_glicko)
        elo_latest.append(opponent_elo if match.opponent_current_elo is None else match.opponent_current_elo)
        glicko_latest.append(
            opponent_glicko if match.opponent_current_glicko is None else match.opponent_current_glicko
        )
        elo_record.append((won, opponent_elo))
        glicko_record.append((won, opponent_glicko))
        opponents[match.opponent_id] += 1

        if won:
            wins += 1
            if opponent_elo > QUALITY_WIN_THRESHOLD:
                quality_wins += 1
            if opponent_elo > match.elo_before:
                upset_wins += 1
        else:
            if opponent_elo < QUALITY_LOSS_THRESHOLD:
                quality_losses += 1
            if opponent_elo < match.elo_before:
                upset_losses += 1

    total = len(matches)
    # Ties go to the lowest opponent id.
    most_frequent_id, most_frequent_count = min(opponents.items(), key=lambda item: (-item[1], item[0]))
    sos_at_time = _mean(elo_at_time)
    glicko_sos_at_time = _mean(glicko_at_time)
    return SeasonAnalytics(
        total_matches=total,
        wins=wins,
        losses=total - wins,
        win_percentage=wins / total,
        strength_of_schedule=sos_at_time,
        strength_of_schedule_at_time=sos_at_time,
        strength_of_schedule_latest=_mean(elo_latest),
        glicko_strength_of_schedule=glicko_sos_at_time,
        glicko_strength_of_schedule_at_time=glicko_sos_at_time,
        glicko_strength_of_schedule_latest=_mean(glicko_latest),
        strength_of_record=strength_of_record(elo_record),
        glicko_strength_of_record=strength_of_record(glicko_record),
        average_opponent_elo=sos_at_time,
        average_opponent_glicko=glicko_sos_at_time,
        toughest_opponent_elo=max(elo_at_time),
        weakest_opponent_elo=min(elo_at_time),
        unique_opponents_faced=len(opponents),
        average_matches_per_opponent=total / len(opponents),
        most_frequent_opponent_id=most_frequent_id,
        most_frequent_opponent_matches=most_frequent_count,
        quality_wins=quality_wins,
        quality_losses=quality_losses,
        upset_wins=upset_wins,
        upset_losses=upset_losses,
    )


def compare_seasons(seasons: Sequence[SeasonLedger]) -> SeasonComparison:
    """Rank seasons by strength of schedule. Seasons without matches are listed but not ranked."""
    results: list[tuple[int, SeasonAnalytics]] = []
    strongest: ScheduleExtreme | None = None
    weakest: ScheduleExtreme | None = None
    schedules: list[float] = []

    for season in seasons:
        analytics = aggregate_season(season.matches)
        results.append((season.season_ranking_id, analytics))
        if analytics.total_matches == 0:
            continue
        sos = analytics.strength_of_schedule
        schedules.append(sos)
        extreme = ScheduleExtreme(
            season_ranking_id=season.season_ranking_id,
            athlete_id=season.athlete_id,
            strength_of_schedule=sos,
        )
        if strongest is None or sos > strongest.strength_of_schedule:
            strongest = extreme
        if weakest is None or sos < weakest.strength_of_schedule:
            weakest = extreme

    return SeasonComparison(
        total_seasons=len(results),
        average_strength_of_schedule=_mean(schedules) if schedules else 0.0,
        strongest_schedule=strongest,
        weakest_schedule=weakest,
        seasons=tuple(results),
    )


class AnalyticsAggregator:
    """Derives and persists season analytics on demand."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        ledger: MatchLedger,
        *,
        seasons: SeasonRankingStore | None = None,
        matches: RankingMatchStore | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._ledger = ledger
        self._seasons = seasons or SeasonRankingRepository()
        self._matches = matches or RankingMatchRepository()

    def refresh_and_persist(self, season_ranking_id: int) -> SeasonAnalytics:
        """Refresh latest opponent ratings, aggregate, and store the result on the season."""
        key = self._ledger.key_for(season_ranking_id)
        with self._ledger.locks.hold(key), self._session_factory() as session:
            try:
                season = self._seasons.get(session, season_ranking_id, for_update=True)
                if season is None:
                    raise SeasonNotFoundError(season_ranking_id)
                self._ledger.refresh_opponent_ratings(session, season)
                analytics = aggregate_season(self._matches.list_for_season(session, season_ranking_id))
                self._seasons.update_analytics(
                    session,
                    season,
                    analytics.as_season_fields(),
                    updated_at=datetime.now(UTC).replace(tzinfo=None),
                )
                session.commit()
            except Exception:
                session.rollback()
                raise
        logger.debug(
            "persisted analytics season_ranking_id=%s matches=%s",
            season_ranking_id,
            analytics.total_matches,
        )
        return analytics

    def compare_seasons(self, season_ranking_ids: Sequence[int]) -> SeasonComparison:
        ledgers: list[SeasonLedger] = []
        with self._session_factory() as session:
            for season_ranking_id in season_ranking_ids:
                season = self._seasons.get(session, season_ranking_id)
                if season is None:
                    raise SeasonNotFoundError(season_ranking_id)
                ledgers.append(
                    SeasonLedger(
                        season_ranking_id=season.id,
                        athlete_id=season.athlete_id,
                        matches=self._matches.list_for_season(session, season.id),
                    )
                )
        return compare_seasons(ledgers)


__all__ = [
    "QUALITY_LOSS_THRESHOLD",
    "QUALITY_WIN_THRESHOLD",
    "AnalyticsAggregator",
    "LedgerEntry",
    "ScheduleExtreme",
    "SeasonAnalytics",
    "SeasonComparison",
    "SeasonLedger",
    "aggregate_season",
    "compare_seasons",
    "strength_of_record",
]
