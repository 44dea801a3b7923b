"""Rating-system domain modules."""

from domain.ratings.common import (
    MatchObservation,
    MatchResult,
    RatingState,
    ResultType,
    ResultWeight,
    SeasonKey,
    SeasonState,
    TournamentType,
)

__all__ = [
    "MatchObservation",
    "MatchResult",
    "RatingState",
    "ResultType",
    "ResultWeight",
    "SeasonKey",
    "SeasonState",
    "TournamentType",
]
