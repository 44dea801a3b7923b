"""Integration tests for the season ledger on SQLite."""

from __future__ import annotations

from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from datetime import date, timedelta
from typing import Any

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import Session, sessionmaker

from domain.errors import InvalidRatingStateError, SeasonNotFoundError
from domain.ledger import IngestStatus, MatchLedger
from domain.ratings.common import MatchObservation, MatchResult, ResultType, TournamentType
from domain.ratings.config import RatingSystemConfig
from domain.service import SeasonAnalyticsService
from models import RankingMatch, SeasonRanking
from repositories.ranking_match_repository import RankingMatchRepository


def _observation(
    *,
    athlete_id: int = 1,
    opponent_id: int = 2,
    day: date = date(2025, 1, 10),
    result: MatchResult = MatchResult.WIN,
    result_type: ResultType = ResultType.DECISION,
    tournament_type: TournamentType = TournamentType.LOCAL,
    weight: int = 145,
) -> MatchObservation:
    return MatchObservation(
        athlete_id=athlete_id,
        opponent_id=opponent_id,
        result_type=result_type,
        match_result=result,
        weight=weight,
        match_date=day,
        tournament_type=tournament_type,
    )


def _season(session_factory: sessionmaker[Session], season_ranking_id: int) -> SeasonRanking:
    with session_factory() as session:
        season = session.get(SeasonRanking, season_ranking_id)
        assert season is not None
        return season


def _rows(session_factory: sessionmaker[Session], season_ranking_id: int) -> list[RankingMatch]:
    with session_factory() as session:
        return list(
            session.scalars(
                select(RankingMatch)
                .where(RankingMatch.season_ranking_id == season_ranking_id)
                .order_by(RankingMatch.match_date, RankingMatch.id)
            )
        )


def test_first_ingest_creates_seeded_season(
    service: SeasonAnalyticsService,
    session_factory: sessionmaker[Session],
) -> None:
    result = service.ingest_match(_observation())

    assert result.status is IngestStatus.INGESTED
    assert result.replayed is False
    season = _season(session_factory, result.season_ranking_id)
    assert (season.year, season.weight_class) == (2025, "145 lbs")
    assert (season.wins, season.losses, season.total_matches) == (1, 0, 1)
    assert season.win_percentage == pytest.approx(1.0)
    assert season.initial_elo == pytest.approx(1500.0)
    assert season.current_elo == pytest.approx(1516.0)
    assert season.first_match_date == season.last_match_date == date(2025, 1, 10)
    assert season.peak_elo == pytest.approx(1516.0)
    assert season.peak_elo_date == date(2025, 1, 10)

    (row,) = _rows(session_factory, result.season_ranking_id)
    assert row.id == result.ranking_match_id
    assert row.elo_before == pytest.approx(1500.0)
    assert row.elo_change == pytest.approx(16.0)
    assert row.opponent_elo_at_time == pytest.approx(1500.0)
    assert row.opponent_elo_after == pytest.approx(1484.0)
    assert (row.wins_before, row.losses_before, row.wins_after, row.losses_after) == (0, 0, 1, 0)


def test_duplicate_observation_is_ingested_once(
    service: SeasonAnalyticsService,
    session_factory: sessionmaker[Session],
) -> None:
    first = service.ingest_match(_observation())
    second = service.ingest_match(_observation())

    assert first.status is IngestStatus.INGESTED
    assert second.status is IngestStatus.DUPLICATE
    assert second.ranking_match_id == first.ranking_match_id
    assert second.season_ranking_id == first.season_ranking_id
    with session_factory() as session:
        assert session.scalar(select(func.count()).select_from(RankingMatch)) == 1
    assert _season(session_factory, first.season_ranking_id).total_matches == 1


def test_out_of_order_match_triggers_replay(
    service_factory: Callable[[str], SeasonAnalyticsService],
) -> None:
    shuffled = service_factory("shuffled")
    ordered = service_factory("ordered")
    jan_10 = _observation(opponent_id=2, day=date(2025, 1, 10))
    jan_15 = _observation(opponent_id=3, day=date(2025, 1, 15), result=MatchResult.LOSS)
    jan_20 = _observation(opponent_id=4, day=date(2025, 1, 20), result_type=ResultType.FALL)

    shuffled.ingest_match(jan_10)
    shuffled.ingest_match(jan_20)
    late = shuffled.ingest_match(jan_15)
    for observation in (jan_10, jan_15, jan_20):
        ordered.ingest_match(observation)

    assert late.status is IngestStatus.INGESTED
    assert late.replayed is True

    shuffled_trail = shuffled.get_audit_trail(late.season_ranking_id)
    ordered_trail = ordered.get_audit_trail(late.season_ranking_id)
    assert [entry.match_date for entry in shuffled_trail.entries] == [
        date(2025, 1, 10),
        date(2025, 1, 15),
        date(2025, 1, 20),
    ]
    assert shuffled_trail.current.elo == pytest.approx(ordered_trail.current.elo)
    assert shuffled_trail.current.glicko_rating == pytest.approx(ordered_trail.current.glicko_rating)
    assert shuffled_trail.current.glicko_rd == pytest.approx(ordered_trail.current.glicko_rd)
    for left, right in zip(shuffled_trail.entries, ordered_trail.entries, strict=True):
        assert left.elo_before == pytest.approx(right.elo_before)
        assert left.elo_after == pytest.approx(right.elo_after)
        assert left.glicko_rd_before == pytest.approx(right.glicko_rd_before)
        assert (left.wins_after, left.losses_after) == (right.wins_after, right.losses_after)


def test_replay_reproduces_incremental_state(
    service: SeasonAnalyticsService,
    session_factory: sessionmaker[Session],
) -> None:
    season_ranking_id = None
    for day, opponent_id, result in (
        (date(2025, 1, 4), 2, MatchResult.WIN),
        (date(2025, 1, 4), 3, MatchResult.WIN),
        (date(2025, 1, 11), 4, MatchResult.LOSS),
        (date(2025, 2, 1), 5, MatchResult.WIN),
    ):
        season_ranking_id = service.ingest_match(
            _observation(day=day, opponent_id=opponent_id, result=result)
        ).season_ranking_id
    assert season_ranking_id is not None

    before = _season(session_factory, season_ranking_id)
    rows_before = _rows(session_factory, season_ranking_id)
    summary = service.ledger.replay_season(season_ranking_id)
    after = _season(session_factory, season_ranking_id)
    rows_after = _rows(session_factory, season_ranking_id)

    assert summary.replayed_matches == 4
    for column in (
        "wins",
        "losses",
        "total_matches",
        "current_elo",
        "current_glicko_rating",
        "current_glicko_rd",
        "current_glicko_volatility",
        "peak_elo",
        "lowest_elo",
        "peak_glicko_rating",
        "lowest_glicko_rating",
    ):
        assert getattr(after, column) == pytest.approx(getattr(before, column)), column
    assert after.peak_elo_date == before.peak_elo_date
    assert [row.elo_after for row in rows_after] == pytest.approx([row.elo_after for row in rows_before])


def test_replay_unknown_season_raises(service: SeasonAnalyticsService) -> None:
    with pytest.raises(SeasonNotFoundError):
        service.ledger.replay_season(999)


def test_inactivity_inflates_rd_between_matches(
    service: SeasonAnalyticsService,
    session_factory: sessionmaker[Session],
) -> None:
    first = service.ingest_match(_observation(day=date(2025, 1, 4)))
    service.ingest_match(_observation(opponent_id=3, day=date(2025, 2, 15)))

    first_row, second_row = _rows(session_factory, first.season_ranking_id)
    assert second_row.glicko_rd_before > first_row.glicko_rd_after


def test_opponent_snapshot_uses_their_earlier_ledger(
    service: SeasonAnalyticsService,
    session_factory: sessionmaker[Session],
) -> None:
    opponent_result = service.ingest_match(
        _observation(athlete_id=2, opponent_id=5, day=date(2025, 1, 3), result_type=ResultType.FALL)
    )
    (opponent_row,) = _rows(session_factory, opponent_result.season_ranking_id)

    result = service.ingest_match(_observation(athlete_id=1, opponent_id=2, day=date(2025, 1, 10)))
    (row,) = _rows(session_factory, result.season_ranking_id)

    assert row.opponent_elo_at_time == pytest.approx(opponent_row.elo_after)
    assert row.opponent_glicko_at_time == pytest.approx(opponent_row.glicko_rating_after)
    assert row.opponent_glicko_rd_at_time >= opponent_row.glicko_rd_after


def test_opponent_current_is_refreshed_when_they_compete(
    service: SeasonAnalyticsService,
    session_factory: sessionmaker[Session],
) -> None:
    athlete_result = service.ingest_match(_observation(athlete_id=1, opponent_id=2, day=date(2025, 1, 10)))
    opponent_result = service.ingest_match(
        _observation(athlete_id=2, opponent_id=6, day=date(2025, 1, 17), result_type=ResultType.MAJOR_DECISION)
    )

    (row,) = _rows(session_factory, athlete_result.season_ranking_id)
    opponent_season = _season(session_factory, opponent_result.season_ranking_id)
    assert row.opponent_current_elo == pytest.approx(opponent_season.current_elo)
    assert row.opponent_current_glicko == pytest.approx(opponent_season.current_glicko_rating)
    assert row.opponent_current_refreshed_at is not None
    assert row.opponent_elo_at_time == pytest.approx(1500.0)


def test_new_season_is_seeded_from_previous_season(
    service: SeasonAnalyticsService,
    session_factory: sessionmaker[Session],
) -> None:
    previous = service.ingest_match(_observation(day=date(2024, 2, 10), weight=138))
    current = service.ingest_match(_observation(opponent_id=3, day=date(2024, 11, 30), weight=145))

    assert previous.season_ranking_id != current.season_ranking_id
    previous_season = _season(session_factory, previous.season_ranking_id)
    current_season = _season(session_factory, current.season_ranking_id)
    assert current_season.initial_elo == pytest.approx(previous_season.current_elo)
    assert current_season.initial_glicko_rating == pytest.approx(previous_season.current_glicko_rating)
    assert current_season.initial_glicko_rd > previous_season.current_glicko_rd


def test_completed_season_still_accepts_matches(
    service: SeasonAnalyticsService,
    session_factory: sessionmaker[Session],
) -> None:
    first = service.ingest_match(_observation(day=date(2025, 1, 10)))
    service.mark_season_complete(first.season_ranking_id)
    second = service.ingest_match(_observation(opponent_id=3, day=date(2025, 1, 12)))

    assert second.season_ranking_id == first.season_ranking_id
    season = _season(session_factory, first.season_ranking_id)
    assert season.season_complete is True
    assert season.total_matches == 2


def test_corrupted_snapshot_reports_last_good_match(
    service: SeasonAnalyticsService,
    session_factory: sessionmaker[Session],
) -> None:
    first = service.ingest_match(_observation(day=date(2025, 1, 10)))
    second = service.ingest_match(_observation(opponent_id=3, day=date(2025, 1, 12)))
    with session_factory() as session:
        row = session.get(RankingMatch, second.ranking_match_id)
        assert row is not None
        row.opponent_glicko_volatility_at_time = -1.0
        session.commit()

    with pytest.raises(InvalidRatingStateError) as excinfo:
        service.ledger.replay_season(first.season_ranking_id)

    assert excinfo.value.season_ranking_id == first.season_ranking_id
    assert excinfo.value.last_good_match_id == first.ranking_match_id
    assert _season(session_factory, first.season_ranking_id).total_matches == 2


class _RecordingMatches(RankingMatchRepository):
    """Remembers which session each ledger write ran in."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, Session]] = []

    def sessions(self, kind: str) -> list[Session]:
        return [session for call, session in self.calls if call == kind]

    def add(self, session: Session, row: Any) -> RankingMatch:
        self.calls.append(("add", session))
        return super().add(session, row)

    def lock_for_season(self, session: Session, season_ranking_id: int) -> None:
        self.calls.append(("lock", session))
        super().lock_for_season(session, season_ranking_id)

    def refresh_opponent_current(self, session: Session, **kwargs: Any) -> int:
        if kwargs.get("season_ranking_id") is None:
            self.calls.append(("publish", session))
        return super().refresh_opponent_current(session, **kwargs)


def test_opponent_rating_is_published_outside_the_season_transaction(
    session_factory: sessionmaker[Session],
    config: RatingSystemConfig,
) -> None:
    matches = _RecordingMatches()
    ledger = MatchLedger(session_factory, config.create_engine(), matches=matches)

    first = ledger.ingest(_observation(day=date(2025, 1, 10)))
    assert matches.sessions("publish")[-1] is not matches.sessions("add")[-1]
    facing = ledger.ingest(_observation(athlete_id=2, opponent_id=1, day=date(2025, 1, 12), result=MatchResult.LOSS))
    assert matches.sessions("publish")[-1] is not matches.sessions("add")[-1]

    matches.calls.clear()
    summary = ledger.replay_season(first.season_ranking_id)

    (replay_session,) = matches.sessions("lock")
    (publish_session,) = matches.sessions("publish")
    assert publish_session is not replay_session
    assert summary.replayed_matches == 1
    (facing_row,) = _rows(session_factory, facing.season_ranking_id)
    assert facing_row.opponent_current_elo == pytest.approx(summary.current.elo)


def test_concurrent_ingests_into_one_season_are_serialized(
    service: SeasonAnalyticsService,
    session_factory: sessionmaker[Session],
    service_factory: Callable[[str], SeasonAnalyticsService],
) -> None:
    observations = [
        _observation(
            opponent_id=2 + offset % 7,
            day=date(2025, 1, 1) + timedelta(days=offset),
            result=MatchResult.WIN if offset % 3 else MatchResult.LOSS,
        )
        for offset in range(40)
    ]

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(service.ingest_match, reversed(observations)))

    assert all(result.status is IngestStatus.INGESTED for result in results)
    season_ids = {result.season_ranking_id for result in results}
    assert len(season_ids) == 1
    (season_id,) = season_ids

    rows = _rows(session_factory, season_id)
    assert len(rows) == 40
    for previous, current in zip(rows, rows[1:]):
        assert (current.wins_before, current.losses_before) == (previous.wins_after, previous.losses_after)
        assert current.elo_before == pytest.approx(previous.elo_after)
    season = _season(session_factory, season_id)
    assert season.total_matches == 40
    assert season.wins + season.losses == 40
    assert (season.first_match_date, season.last_match_date) == (date(2025, 1, 1), date(2025, 2, 9))

    sequential = service_factory("sequential")
    in_order = [sequential.ingest_match(observation) for observation in observations]
    expected = sequential.get_audit_trail(in_order[-1].season_ranking_id).current
    assert season.current_elo == pytest.approx(expected.elo)
    assert season.current_glicko_rating == pytest.approx(expected.glicko_rating)
    assert season.current_glicko_rd == pytest.approx(expected.glicko_rd)
