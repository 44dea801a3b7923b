"""Wrestling season rating domain modules."""

from domain.errors import (
    BatchPartialFailureError,
    InvalidRatingStateError,
    OutOfOrderIngestionError,
    RatingsError,
    SeasonFailure,
    SeasonNotFoundError,
)
from domain.ratings.common import MatchObservation, SeasonKey, SeasonState

__all__ = [
    "BatchPartialFailureError",
    "InvalidRatingStateError",
    "MatchObservation",
    "OutOfOrderIngestionError",
    "RatingsError",
    "SeasonFailure",
    "SeasonKey",
    "SeasonNotFoundError",
    "SeasonState",
]
