"""Unit tests for the pure season analytics fold."""

from __future__ import annotations

from dataclasses import dataclass

import pytest

from domain.analytics import SeasonAnalytics, SeasonLedger, aggregate_season, compare_seasons, strength_of_record


@dataclass
class _Entry:
    opponent_id: int
    match_result: str
    elo_before: float
    opponent_elo_at_time: float
    opponent_glicko_at_time: float
    opponent_current_elo: float | None = None
    opponent_current_glicko: float | None = None


def test_empty_season_returns_sentinel() -> None:
    analytics = aggregate_season([])

    assert analytics == SeasonAnalytics.empty()
    assert analytics.total_matches == 0
    assert analytics.strength_of_schedule == 0.0
    assert analytics.most_frequent_opponent_id is None
    assert analytics.average_matches_per_opponent == 0.0


def test_quality_and_upset_counters() -> None:
    matches = [
        _Entry(opponent_id=2, match_result="win", elo_before=1550.0, opponent_elo_at_time=1650.0, opponent_glicko_at_time=1640.0),
        _Entry(opponent_id=3, match_result="loss", elo_before=1550.0, opponent_elo_at_time=1350.0, opponent_glicko_at_time=1360.0),
        _Entry(opponent_id=4, match_result="win", elo_before=1500.0, opponent_elo_at_time=1450.0, opponent_glicko_at_time=1455.0),
        _Entry(opponent_id=5, match_result="loss", elo_before=1500.0, opponent_elo_at_time=1700.0, opponent_glicko_at_time=1690.0),
    ]

    analytics = aggregate_season(matches)

    assert analytics.quality_wins == 1
    assert analytics.quality_losses == 1
    assert analytics.upset_wins == 1
    assert analytics.upset_losses == 1
    assert (analytics.wins, analytics.losses, analytics.total_matches) == (2, 2, 4)
    assert analytics.win_percentage == pytest.approx(0.5)


def test_threshold_boundaries_are_strict() -> None:
    matches = [
        _Entry(opponent_id=2, match_result="win", elo_before=1600.0, opponent_elo_at_time=1600.0, opponent_glicko_at_time=1600.0),
        _Entry(opponent_id=3, match_result="loss", elo_before=1400.0, opponent_elo_at_time=1400.0, opponent_glicko_at_time=1400.0),
    ]

    analytics = aggregate_season(matches)

    assert analytics.quality_wins == 0
    assert analytics.quality_losses == 0
    assert analytics.upset_wins == 0
    assert analytics.upset_losses == 0


def test_schedule_strength_uses_at_time_and_latest_ratings() -> None:
    matches = [
        _Entry(
            opponent_id=2,
            match_result="win",
            elo_before=1500.0,
            opponent_elo_at_time=1600.0,
            opponent_glicko_at_time=1580.0,
            opponent_current_elo=1700.0,
            opponent_current_glicko=1690.0,
        ),
        _Entry(opponent_id=3, match_result="loss", elo_before=1510.0, opponent_elo_at_time=1400.0, opponent_glicko_at_time=1420.0),
        _Entry(opponent_id=2, match_result="win", elo_before=1520.0, opponent_elo_at_time=1620.0, opponent_glicko_at_time=1600.0),
    ]

    analytics = aggregate_season(matches)

    assert analytics.strength_of_schedule == pytest.approx((1600.0 + 1400.0 + 1620.0) / 3)
    assert analytics.strength_of_schedule_at_time == pytest.approx(analytics.strength_of_schedule)
    assert analytics.strength_of_schedule_latest == pytest.approx((1700.0 + 1400.0 + 1620.0) / 3)
    assert analytics.glicko_strength_of_schedule == pytest.approx((1580.0 + 1420.0 + 1600.0) / 3)
    assert analytics.glicko_strength_of_schedule_latest == pytest.approx((1690.0 + 1420.0 + 1600.0) / 3)
    assert analytics.toughest_opponent_elo == pytest.approx(1620.0)
    assert analytics.weakest_opponent_elo == pytest.approx(1400.0)
    assert analytics.unique_opponents_faced == 2
    assert analytics.most_frequent_opponent_id == 2
    assert analytics.most_frequent_opponent_matches == 2
    assert analytics.average_matches_per_opponent == pytest.approx(1.5)


def test_most_frequent_opponent_tie_goes_to_lowest_id() -> None:
    matches = [
        _Entry(opponent_id=7, match_result="win", elo_before=1500.0, opponent_elo_at_time=1500.0, opponent_glicko_at_time=1500.0),
        _Entry(opponent_id=4, match_result="loss", elo_before=1510.0, opponent_elo_at_time=1520.0, opponent_glicko_at_time=1520.0),
        _Entry(opponent_id=7, match_result="win", elo_before=1500.0, opponent_elo_at_time=1490.0, opponent_glicko_at_time=1490.0),
        _Entry(opponent_id=4, match_result="win", elo_before=1505.0, opponent_elo_at_time=1515.0, opponent_glicko_at_time=1515.0),
        _Entry(opponent_id=9, match_result="loss", elo_before=1512.0, opponent_elo_at_time=1600.0, opponent_glicko_at_time=1600.0),
    ]

    analytics = aggregate_season(matches)

    assert analytics.most_frequent_opponent_id == 4
    assert analytics.most_frequent_opponent_matches == 2
    assert analytics.unique_opponents_faced == 3
    assert analytics.average_matches_per_opponent == pytest.approx(5 / 3)


def test_strength_of_record_weights_by_opponent_strength() -> None:
    assert strength_of_record([(True, 1600.0), (False, 1400.0)]) == pytest.approx(0.6 / 1.0 * 2000.0)
    assert strength_of_record([(True, 1800.0)]) == pytest.approx(2000.0)
    assert strength_of_record([(False, 1800.0)]) == pytest.approx(0.0)


def test_strength_of_record_falls_back_when_weights_are_not_positive() -> None:
    assert strength_of_record([(True, 900.0), (False, 950.0)]) == pytest.approx(1500.0)
    assert strength_of_record([(True, 1000.0)]) == pytest.approx(1500.0)


def test_season_fields_cover_persisted_columns_only() -> None:
    fields = aggregate_season(
        [_Entry(opponent_id=2, match_result="win", elo_before=1500.0, opponent_elo_at_time=1500.0, opponent_glicko_at_time=1500.0)]
    ).as_season_fields()

    assert "wins" not in fields
    assert "most_frequent_opponent_id" not in fields
    assert "average_matches_per_opponent" not in fields
    assert fields["unique_opponents_faced"] == 1
    assert fields["strength_of_record"] == pytest.approx(2000.0)


def test_compare_seasons_ranks_schedules() -> None:
    soft = [_Entry(opponent_id=2, match_result="win", elo_before=1500.0, opponent_elo_at_time=1350.0, opponent_glicko_at_time=1350.0)]
    hard = [_Entry(opponent_id=3, match_result="loss", elo_before=1500.0, opponent_elo_at_time=1750.0, opponent_glicko_at_time=1750.0)]

    comparison = compare_seasons(
        [
            SeasonLedger(season_ranking_id=10, athlete_id=1, matches=soft),
            SeasonLedger(season_ranking_id=11, athlete_id=1, matches=hard),
            SeasonLedger(season_ranking_id=12, athlete_id=4, matches=[]),
        ]
    )

    assert comparison.total_seasons == 3
    assert comparison.average_strength_of_schedule == pytest.approx(1550.0)
    assert comparison.strongest_schedule is not None
    assert comparison.strongest_schedule.season_ranking_id == 11
    assert comparison.weakest_schedule is not None
    assert comparison.weakest_schedule.season_ranking_id == 10
    assert [season_id for season_id, _ in comparison.seasons] == [10, 11, 12]
