"""Error taxonomy for the ratings engine."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date


class RatingsError(Exception):
    """Base class for all ratings engine errors."""


class SeasonNotFoundError(RatingsError):
    """Raised when a caller supplies an unknown season ranking id."""

    def __init__(self, season_ranking_id: int) -> None:
        super().__init__(f"SeasonRanking with id={season_ranking_id} not found")
        self.season_ranking_id = season_ranking_id


class InvalidRatingStateError(RatingsError):
    """Corrupted numeric rating state. Never repaired automatically."""

    def __init__(
        self,
        message: str,
        *,
        season_ranking_id: int | None = None,
        last_good_match_id: int | None = None,
    ) -> None:
        super().__init__(message)
        self.season_ranking_id = season_ranking_id
        self.last_good_match_id = last_good_match_id

    def with_context(
        self,
        *,
        season_ranking_id: int | None,
        last_good_match_id: int | None,
    ) -> InvalidRatingStateError:
        """Return a copy carrying the season/ledger position where it was detected."""
        return InvalidRatingStateError(
            f"{self.args[0]} (season_ranking_id={season_ranking_id}, "
            f"last_good_match_id={last_good_match_id})",
            season_ranking_id=season_ranking_id,
            last_good_match_id=last_good_match_id,
        )


class OutOfOrderIngestionError(RatingsError):
    """A match predates the season's last processed match; the ledger replays instead."""

    def __init__(self, *, season_ranking_id: int, match_date: date, last_match_date: date) -> None:
        super().__init__(
            f"season_ranking_id={season_ranking_id} received match dated {match_date.isoformat()} "
            f"before last processed match {last_match_date.isoformat()}"
        )
        self.season_ranking_id = season_ranking_id
        self.match_date = match_date
        self.last_match_date = last_match_date


@dataclass(frozen=True)
class SeasonFailure:
    """One season that failed during a batch recalculation."""

    season_ranking_id: int
    error: str


class BatchPartialFailureError(RatingsError):
    """Wraps the per-season failures from a batch recalculation."""

    def __init__(self, failures: Sequence[SeasonFailure]) -> None:
        ids = ", ".join(str(failure.season_ranking_id) for failure in failures)
        super().__init__(f"{len(failures)} season(s) failed to recalculate: [{ids}]")
        self.failures = tuple(failures)


__all__ = [
    "BatchPartialFailureError",
    "InvalidRatingStateError",
    "OutOfOrderIngestionError",
    "RatingsError",
    "SeasonFailure",
    "SeasonNotFoundError",
]
