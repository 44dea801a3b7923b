"""Elo rating modules."""

from domain.ratings.elo.calculator import (
    DEFAULT_RESULT_TYPE_WEIGHTS,
    DEFAULT_TOURNAMENT_TYPE_WEIGHTS,
    EloParameters,
    EloTransition,
    calculate_expected_score,
    effective_k_factor,
    update_elo,
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
