"""Append-only per-season match ledger with deduplication and chronological replay."""

from __future__ import annotations

import hashlib
import logging
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import UTC, date, datetime
from enum import Enum
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from domain.errors import InvalidRatingStateError, OutOfOrderIngestionError, SeasonNotFoundError
from domain.locks import SeasonLockRegistry
from domain.ratings.common import MatchObservation, MatchResult, RatingState, ResultType, ResultWeight
from domain.ratings.common import SeasonKey, SeasonState, TournamentType
from domain.ratings.engine import MatchTransition, RatingEngine
from domain.ratings.glicko2.calculator import inflate_rd
from models import RankingMatch, SeasonRanking
from repositories.protocol import RankingMatchStore, SeasonRankingStore
from repositories.ranking_match_repository import RankingMatchRepository
from repositories.season_ranking_repository import SeasonRankingRepository

logger = logging.getLogger(__name__)


class IngestStatus(str, Enum):
    INGESTED = "ingested"
    DUPLICATE = "duplicate"


@dataclass(frozen=True)
class IngestResult:
    """Outcome of one ``MatchLedger.ingest`` call."""

    status: IngestStatus
    ranking_match_id: int | None
    season_ranking_id: int | None
    replayed: bool = False


@dataclass(frozen=True)
class ReplaySummary:
    season_ranking_id: int
    replayed_matches: int
    current: RatingState


def compute_match_hash(observation: MatchObservation) -> str:
    """SHA-256 over a stable projection of the observation's identifying fields."""
    parts = (
        str(observation.athlete_id),
        str(observation.opponent_id),
        observation.match_date.isoformat(),
        observation.result_type.value,
        observation.match_result.value,
        "" if observation.weight is None else str(observation.weight),
        observation.source_url or "",
    )
    return hashlib.sha256("|".join(parts).encode("utf-8")).hexdigest()


def season_current_state(season: SeasonRanking) -> RatingState:
    return RatingState(
        elo=season.current_elo,
        glicko_rating=season.current_glicko_rating,
        glicko_rd=season.current_glicko_rd,
        glicko_volatility=season.current_glicko_volatility,
    )


def season_seed_state(season: SeasonRanking) -> RatingState:
    return RatingState(
        elo=season.initial_elo,
        glicko_rating=season.initial_glicko_rating,
        glicko_rd=season.initial_glicko_rd,
        glicko_volatility=season.initial_glicko_volatility,
    )


def season_state(season: SeasonRanking) -> SeasonState:
    if season.season_complete:
        return SeasonState.COMPLETE
    if season.total_matches > 0:
        return SeasonState.ACTIVE
    return SeasonState.EMPTY


def _utcnow() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


class MatchLedger:
    """Owns every write to season running state and the ranking match ledger.

    Each public call runs in its own session/transaction and holds the season's
    in-process lock for its whole duration. After a season write commits, the
    athlete's new rating is copied onto rows that face them in a second, short
    transaction. Ledger rows are always locked in id order.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        engine: RatingEngine | None = None,
        *,
        seasons: SeasonRankingStore | None = None,
        matches: RankingMatchStore | None = None,
        locks: SeasonLockRegistry | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._session_factory = session_factory
        self._engine = engine or RatingEngine()
        self._seasons = seasons or SeasonRankingRepository()
        self._matches = matches or RankingMatchRepository()
        self._locks = locks or SeasonLockRegistry()
        self._clock = clock

    @property
    def engine(self) -> RatingEngine:
        return self._engine

    @property
    def locks(self) -> SeasonLockRegistry:
        return self._locks

    def ingest(self, observation: MatchObservation) -> IngestResult:
        """Process one observation at most once and fold it into its season."""
        match_hash = compute_match_hash(observation)
        key = observation.season_key()

        with self._locks.hold(key):
            with self._session_factory() as session:
                existing = self._matches.find_by_hash(session, match_hash)
                if existing is not None:
                    logger.debug("duplicate match_hash=%s ranking_match_id=%s", match_hash, existing.id)
                    return IngestResult(
                        status=IngestStatus.DUPLICATE,
                        ranking_match_id=existing.id,
                        season_ranking_id=existing.season_ranking_id,
                    )

                try:
                    result = self._ingest_new(session, observation, key=key, match_hash=match_hash)
                    session.commit()
                except IntegrityError:
                    session.rollback()
                    existing = self._matches.find_by_hash(session, match_hash)
                    if existing is None:
                        raise
                    logger.debug("concurrent duplicate match_hash=%s ranking_match_id=%s", match_hash, existing.id)
                    return IngestResult(
                        status=IngestStatus.DUPLICATE,
                        ranking_match_id=existing.id,
                        season_ranking_id=existing.season_ranking_id,
                    )
                except Exception:
                    session.rollback()
                    raise
            self._publish_current(observation.athlete_id)
            return result

    def replay_season(self, season_ranking_id: int) -> ReplaySummary:
        """Rebuild every snapshot and running total of one season from its seed."""
        key = self.key_for(season_ranking_id)
        with self._locks.hold(key):
            with self._session_factory() as session:
                try:
                    season = self._load_season(session, season_ranking_id)
                    replayed = self._replay(session, season)
                    session.commit()
                except Exception:
                    session.rollback()
                    raise
                summary = ReplaySummary(
                    season_ranking_id=season_ranking_id,
                    replayed_matches=replayed,
                    current=season_current_state(season),
                )
            self._publish_current(key.athlete_id)
        logger.info("replayed season_ranking_id=%s matches=%s", season_ranking_id, replayed)
        return summary

    def mark_complete(self, season_ranking_id: int) -> None:
        """Set the one-way complete flag. Completed seasons keep accepting matches."""
        key = self.key_for(season_ranking_id)
        with self._locks.hold(key), self._session_factory() as session:
            try:
                season = self._load_season(session, season_ranking_id)
                if not season.season_complete:
                    season.season_complete = True
                    season.updated_at = self._clock()
                session.commit()
            except Exception:
                session.rollback()
                raise
        logger.info("marked season_ranking_id=%s complete", season_ranking_id)

    def refresh_opponent_ratings(self, session: Session, season: SeasonRanking) -> int:
        """Point every row of ``season`` at each opponent's latest known rating."""
        self._matches.lock_for_season(session, season.id)
        refreshed_at = self._clock()
        updated = 0
        for opponent_id in self._matches.opponent_ids_for_season(session, season.id):
            updated += self._matches.refresh_opponent_current(
                session,
                opponent_id=opponent_id,
                state=self.current_state(session, opponent_id),
                refreshed_at=refreshed_at,
                season_ranking_id=season.id,
            )
        return updated

    def current_state(self, session: Session, athlete_id: int) -> RatingState:
        """Rating from the athlete's most recently active season, else the priors."""
        latest = self._seasons.latest_for_athlete(session, athlete_id)
        if latest is None:
            return self._engine.default_state()
        return season_current_state(latest)

    def _ingest_new(
        self,
        session: Session,
        observation: MatchObservation,
        *,
        key: SeasonKey,
        match_hash: str,
    ) -> IngestResult:
        season = self._seasons.find_by_key(session, key, for_update=True)
        if season is None:
            season = self._seasons.create(session, key, self._seed_for_new_season(session, observation))
            logger.debug("created season_ranking_id=%s for %s", season.id, key)

        opponent = self._opponent_state_at(session, observation.opponent_id, observation.match_date)

        try:
            match = self._append(session, season, observation, match_hash=match_hash, opponent=opponent)
            replayed = False
        except OutOfOrderIngestionError as exc:
            logger.info("%s; replaying season", exc)
            provisional = self._transition(session, season, season_seed_state(season), observation, opponent)
            match = self._matches.add(
                session,
                _new_row(season, observation, match_hash, opponent, provisional, wins_before=0, losses_before=0),
            )
            self._replay(session, season)
            replayed = True

        return IngestResult(
            status=IngestStatus.INGESTED,
            ranking_match_id=match.id,
            season_ranking_id=season.id,
            replayed=replayed,
        )

    def _append(
        self,
        session: Session,
        season: SeasonRanking,
        observation: MatchObservation,
        *,
        match_hash: str,
        opponent: RatingState,
    ) -> RankingMatch:
        if season.last_match_date is not None and observation.match_date < season.last_match_date:
            raise OutOfOrderIngestionError(
                season_ranking_id=season.id,
                match_date=observation.match_date,
                last_match_date=season.last_match_date,
            )

        pre = self._pre_match_state(season, observation.match_date)
        transition = self._transition(session, season, pre, observation, opponent)
        row = _new_row(
            season,
            observation,
            match_hash,
            opponent,
            transition,
            wins_before=season.wins,
            losses_before=season.losses,
        )
        match = self._matches.add(session, row)
        self._advance_season(season, transition, observation.match_date, observation.match_result)
        session.flush()
        return match

    def _replay(self, session: Session, season: SeasonRanking) -> int:
        self._matches.lock_for_season(session, season.id)
        rows = self._matches.list_for_season(session, season.id)
        _reset_season(season)
        last_good_match_id: int | None = None
        for row in rows:
            result = MatchResult(row.match_result)
            weight = ResultWeight(
                result_type=ResultType(row.result_type),
                tournament_type=TournamentType(row.tournament_type),
            )
            opponent = RatingState(
                elo=row.opponent_elo_at_time,
                glicko_rating=row.opponent_glicko_at_time,
                glicko_rd=row.opponent_glicko_rd_at_time,
                glicko_volatility=row.opponent_glicko_volatility_at_time,
            )
            pre = self._pre_match_state(season, row.match_date)
            try:
                transition = self._engine.transition(pre, opponent, result, weight)
            except InvalidRatingStateError as exc:
                raise exc.with_context(
                    season_ranking_id=season.id,
                    last_good_match_id=last_good_match_id,
                ) from exc
            for column, value in _athlete_snapshot(
                transition,
                result,
                wins_before=season.wins,
                losses_before=season.losses,
            ).items():
                setattr(row, column, value)
            self._advance_season(season, transition, row.match_date, result)
            last_good_match_id = row.id
        session.flush()
        return len(rows)

    def _transition(
        self,
        session: Session,
        season: SeasonRanking,
        pre: RatingState,
        observation: MatchObservation,
        opponent: RatingState,
    ) -> MatchTransition:
        try:
            return self._engine.transition(pre, opponent, observation.match_result, observation.result_weight)
        except InvalidRatingStateError as exc:
            rows = self._matches.list_for_season(session, season.id)
            raise exc.with_context(
                season_ranking_id=season.id,
                last_good_match_id=rows[-1].id if rows else None,
            ) from exc

    def _pre_match_state(self, season: SeasonRanking, match_date: date) -> RatingState:
        current = season_current_state(season)
        if season.last_match_date is None:
            return current
        return self._inflated(current, (match_date - season.last_match_date).days)

    def _inflated(self, state: RatingState, idle_days: int) -> RatingState:
        params = self._engine.glicko2_params
        periods = max(idle_days, 0) / params.rating_period_days
        return replace(
            state,
            glicko_rd=inflate_rd(
                rd=state.glicko_rd,
                volatility=state.glicko_volatility,
                inactive_periods=periods,
                params=params,
            ),
        )

    def _seed_for_new_season(self, session: Session, observation: MatchObservation) -> RatingState:
        previous = self._seasons.latest_for_athlete(session, observation.athlete_id, before=observation.match_date)
        if previous is None or previous.last_match_date is None:
            return self._engine.default_state()
        idle_days = (observation.match_date - previous.last_match_date).days
        return self._inflated(season_current_state(previous), idle_days)

    def _opponent_state_at(self, session: Session, opponent_id: int, match_date: date) -> RatingState:
        """Opponent rating entering ``match_date``: their last ledger row before that day."""
        latest = self._matches.latest_for_athlete_before(session, opponent_id, match_date)
        if latest is None:
            return self._engine.default_state()
        state = RatingState(
            elo=latest.elo_after,
            glicko_rating=latest.glicko_rating_after,
            glicko_rd=latest.glicko_rd_after,
            glicko_volatility=latest.glicko_volatility_after,
        )
        return self._inflated(state, (match_date - latest.match_date).days)

    def _advance_season(
        self,
        season: SeasonRanking,
        transition: MatchTransition,
        match_date: date,
        result: MatchResult,
    ) -> None:
        after = transition.after
        if result is MatchResult.WIN:
            season.wins += 1
        else:
            season.losses += 1
        season.total_matches += 1
        season.win_percentage = season.wins / season.total_matches

        season.current_elo = after.elo
        season.current_glicko_rating = after.glicko_rating
        season.current_glicko_rd = after.glicko_rd
        season.current_glicko_volatility = after.glicko_volatility

        if season.first_match_date is None or match_date < season.first_match_date:
            season.first_match_date = match_date
        if season.last_match_date is None or match_date > season.last_match_date:
            season.last_match_date = match_date

        if season.peak_elo is None or after.elo > season.peak_elo:
            season.peak_elo = after.elo
            season.peak_elo_date = match_date
        if season.lowest_elo is None or after.elo < season.lowest_elo:
            season.lowest_elo = after.elo
            season.lowest_elo_date = match_date
        if season.peak_glicko_rating is None or after.glicko_rating > season.peak_glicko_rating:
            season.peak_glicko_rating = after.glicko_rating
            season.peak_glicko_date = match_date
        if season.lowest_glicko_rating is None or after.glicko_rating < season.lowest_glicko_rating:
            season.lowest_glicko_rating = after.glicko_rating
            season.lowest_glicko_date = match_date

        season.updated_at = self._clock()

    def _publish_current(self, athlete_id: int) -> None:
        """Push the athlete's new rating onto rows that face them, in a transaction of its own."""
        with self._session_factory() as session:
            try:
                updated = self._matches.refresh_opponent_current(
                    session,
                    opponent_id=athlete_id,
                    state=self.current_state(session, athlete_id),
                    refreshed_at=self._clock(),
                )
                session.commit()
            except Exception:
                session.rollback()
                raise
        if updated:
            logger.debug("refreshed opponent_current on %s rows for athlete_id=%s", updated, athlete_id)

    def _load_season(self, session: Session, season_ranking_id: int) -> SeasonRanking:
        season = self._seasons.get(session, season_ranking_id, for_update=True)
        if season is None:
            raise SeasonNotFoundError(season_ranking_id)
        return season

    def key_for(self, season_ranking_id: int) -> SeasonKey:
        with self._session_factory() as session:
            key = self._seasons.key_for(session, season_ranking_id)
        if key is None:
            raise SeasonNotFoundError(season_ranking_id)
        return key


def _reset_season(season: SeasonRanking) -> None:
    season.wins = 0
    season.losses = 0
    season.total_matches = 0
    season.win_percentage = 0.0
    season.first_match_date = None
    season.last_match_date = None
    season.current_elo = season.initial_elo
    season.current_glicko_rating = season.initial_glicko_rating
    season.current_glicko_rd = season.initial_glicko_rd
    season.current_glicko_volatility = season.initial_glicko_volatility
    season.peak_elo = None
    season.peak_elo_date = None
    season.lowest_elo = None
    season.lowest_elo_date = None
    season.peak_glicko_rating = None
    season.peak_glicko_date = None
    season.lowest_glicko_rating = None
    season.lowest_glicko_date = None


def _athlete_snapshot(
    transition: MatchTransition,
    result: MatchResult,
    *,
    wins_before: int,
    losses_before: int,
) -> dict[str, Any]:
    before = transition.before
    after = transition.after
    won = result is MatchResult.WIN
    return {
        "k_factor": transition.elo.k_factor,
        "expected_score": transition.elo.expected_score,
        "elo_before": before.elo,
        "elo_after": after.elo,
        "elo_change": after.elo - before.elo,
        "glicko_rating_before": before.glicko_rating,
        "glicko_rating_after": after.glicko_rating,
        "glicko_rating_change": after.glicko_rating - before.glicko_rating,
        "glicko_rd_before": before.glicko_rd,
        "glicko_rd_after": after.glicko_rd,
        "glicko_rd_change": after.glicko_rd - before.glicko_rd,
        "glicko_volatility_before": before.glicko_volatility,
        "glicko_volatility_after": after.glicko_volatility,
        "glicko_volatility_change": after.glicko_volatility - before.glicko_volatility,
        "wins_before": wins_before,
        "losses_before": losses_before,
        "wins_after": wins_before + (1 if won else 0),
        "losses_after": losses_before + (0 if won else 1),
        "opponent_elo_after": transition.opponent_after.elo,
        "opponent_glicko_after": transition.opponent_after.glicko_rating,
        "opponent_glicko_rd_after": transition.opponent_after.glicko_rd,
    }


def _new_row(
    season: SeasonRanking,
    observation: MatchObservation,
    match_hash: str,
    opponent: RatingState,
    transition: MatchTransition,
    *,
    wins_before: int,
    losses_before: int,
) -> dict[str, Any]:
    row: dict[str, Any] = {
        "season_ranking_id": season.id,
        "athlete_id": observation.athlete_id,
        "opponent_id": observation.opponent_id,
        "match_hash": match_hash,
        "match_date": observation.match_date,
        "match_result": observation.match_result.value,
        "result_type": observation.result_type.value,
        "tournament_type": observation.tournament_type.value,
        "weight": observation.weight,
        "source_url": observation.source_url,
        "opponent_elo_at_time": opponent.elo,
        "opponent_glicko_at_time": opponent.glicko_rating,
        "opponent_glicko_rd_at_time": opponent.glicko_rd,
        "opponent_glicko_volatility_at_time": opponent.glicko_volatility,
    }
    row.update(
        _athlete_snapshot(
            transition,
            observation.match_result,
            wins_before=wins_before,
            losses_before=losses_before,
        )
    )
    return row


__all__ = [
    "IngestResult",
    "IngestStatus",
    "MatchLedger",
    "ReplaySummary",
    "compute_match_hash",
    "season_current_state",
    "season_seed_state",
    "season_state",
]
