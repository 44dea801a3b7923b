"""Athlete-level Elo logic."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Final

from domain.ratings.common import MatchResult, ResultType, ResultWeight, TournamentType

DEFAULT_RESULT_TYPE_WEIGHTS: Final[Mapping[ResultType, float]] = MappingProxyType(
    {
        ResultType.DECISION: 1.0,
        ResultType.MAJOR_DECISION: 1.2,
        ResultType.TECHNICAL_FALL: 1.4,
        ResultType.FALL: 1.6,
    }
)
DEFAULT_TOURNAMENT_TYPE_WEIGHTS: Final[Mapping[TournamentType, float]] = MappingProxyType(
    {
        TournamentType.LOCAL: 1.0,
        TournamentType.DISTRICT: 1.1,
        TournamentType.REGIONAL: 1.2,
        TournamentType.STATE: 1.35,
        TournamentType.NATIONAL: 1.5,
    }
)


@dataclass(frozen=True)
class EloParameters:
    initial_elo: float = 1500.0
    k_factor: float = 32.0
    scale_factor: float = 400.0
    result_type_weights: Mapping[ResultType, float] = field(
        default_factory=lambda: DEFAULT_RESULT_TYPE_WEIGHTS
    )
    tournament_type_weights: Mapping[TournamentType, float] = field(
        default_factory=lambda: DEFAULT_TOURNAMENT_TYPE_WEIGHTS
    )

    def __post_init__(self) -> None:
        missing_results = [member.value for member in ResultType if member not in self.result_type_weights]
        if missing_results:
            raise ValueError(f"result_type_weights missing entries for {missing_results}")
        missing_tournaments = [
            member.value for member in TournamentType if member not in self.tournament_type_weights
        ]
        if missing_tournaments:
            raise ValueError(f"tournament_type_weights missing entries for {missing_tournaments}")


@dataclass(frozen=True)
class EloTransition:
    """Result of one Elo update, seen from the rated athlete."""

    expected_score: float
    actual_score: float
    k_factor: float
    pre_elo: float
    elo_delta: float
    post_elo: float
    opponent_pre_elo: float
    opponent_post_elo: float


def calculate_expected_score(rating: float, opponent_rating: float, scale_factor: float) -> float:
    """Compute the Elo expected score for one side."""
    return 1.0 / (1.0 + 10.0 ** ((opponent_rating - rating) / scale_factor))


def effective_k_factor(params: EloParameters, weight: ResultWeight) -> float:
    """Scale the base K by how decisive the result was and how much the tournament matters."""
    return (
        params.k_factor
        * params.result_type_weights[weight.result_type]
        * params.tournament_type_weights[weight.tournament_type]
    )


def update_elo(
    *,
    rating: float,
    opponent_rating: float,
    result: MatchResult,
    weight: ResultWeight,
    params: EloParameters,
) -> EloTransition:
    """Apply one match to both sides; the update is zero-sum."""
    expected = calculate_expected_score(rating, opponent_rating, params.scale_factor)
    actual = result.actual_score
    k_factor = effective_k_factor(params, weight)
    delta = k_factor * (actual - expected)
    return EloTransition(
        expected_score=expected,
        actual_score=actual,
        k_factor=k_factor,
        pre_elo=rating,
        elo_delta=delta,
        post_elo=rating + delta,
        opponent_pre_elo=opponent_rating,
        opponent_post_elo=opponent_rating - delta,
    )


__all__ = [
    "DEFAULT_RESULT_TYPE_WEIGHTS",
    "DEFAULT_TOURNAMENT_TYPE_WEIGHTS",
    "EloParameters",
    "EloTransition",
    "calculate_expected_score",
    "effective_k_factor",
    "update_elo",
]
