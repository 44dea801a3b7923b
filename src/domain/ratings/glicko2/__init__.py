"""Glicko-2 rating modules."""

from domain.ratings.glicko2.calculator import (
    Glicko2Bout,
    Glicko2Parameters,
    Glicko2Rating,
    calculate_expected_score,
    clamp_rd,
    inflate_rd,
    rate_bout,
    rate_period,
)

__all__ = [
    "Glicko2Bout",
    "Glicko2Parameters",
    "Glicko2Rating",
    "calculate_expected_score",
    "clamp_rd",
    "inflate_rd",
    "rate_bout",
    "rate_period",
]
