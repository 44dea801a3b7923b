"""Shared types for wrestling rating systems."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any


class MatchResult(str, Enum):
    """Outcome from the rated athlete's point of view."""

    WIN = "win"
    LOSS = "loss"

    @property
    def actual_score(self) -> float:
        return 1.0 if self is MatchResult.WIN else 0.0


class ResultType(str, Enum):
    """How decisively the bout was won, least to most decisive."""

    DECISION = "decision"
    MAJOR_DECISION = "major-decision"
    TECHNICAL_FALL = "technical-fall"
    FALL = "fall"


class TournamentType(str, Enum):
    """Tournament significance, least to most significant."""

    LOCAL = "local"
    DISTRICT = "district"
    REGIONAL = "regional"
    STATE = "state"
    NATIONAL = "national"


class SeasonState(str, Enum):
    """Lifecycle of one season ranking."""

    EMPTY = "empty"
    ACTIVE = "active"
    COMPLETE = "complete"


@dataclass(frozen=True)
class RatingState:
    """Both rating systems' state for one athlete at one instant."""

    elo: float
    glicko_rating: float
    glicko_rd: float
    glicko_volatility: float


@dataclass(frozen=True)
class ResultWeight:
    """Stakes of one match, used to scale the Elo K factor."""

    result_type: ResultType
    tournament_type: TournamentType


@dataclass(frozen=True)
class SeasonKey:
    """Composite identity of a season ranking."""

    athlete_id: int
    year: int
    weight_class: str
    team: str = ""
    tournament_id: int = 0


_WIRE_ALIASES = {
    "athleteId": "athlete_id",
    "opponentId": "opponent_id",
    "resultType": "result_type",
    "matchResult": "match_result",
    "matchDate": "match_date",
    "tournamentType": "tournament_type",
    "sourceUrl": "source_url",
    "weightClass": "weight_class",
    "tournamentId": "tournament_id",
}


@dataclass(frozen=True)
class MatchObservation:
    """Raw match result from the scraping collaborator, identities already resolved."""

    athlete_id: int
    opponent_id: int
    result_type: ResultType
    match_result: MatchResult
    weight: int | None
    match_date: date
    tournament_type: TournamentType = TournamentType.LOCAL
    source_url: str | None = None
    year: int | None = None
    weight_class: str | None = None
    team: str = ""
    tournament_id: int = 0

    def __post_init__(self) -> None:
        if self.athlete_id == self.opponent_id:
            raise ValueError(f"observation has identical athlete and opponent ({self.athlete_id})")
        if self.weight is not None and self.weight <= 0:
            raise ValueError(f"weight must be > 0, got {self.weight}")

    @property
    def result_weight(self) -> ResultWeight:
        return ResultWeight(result_type=self.result_type, tournament_type=self.tournament_type)

    def season_key(self) -> SeasonKey:
        if self.weight_class:
            weight_class = self.weight_class
        elif self.weight is not None:
            weight_class = f"{self.weight} lbs"
        else:
            weight_class = "unspecified"
        return SeasonKey(
            athlete_id=self.athlete_id,
            year=self.year if self.year is not None else self.match_date.year,
            weight_class=weight_class,
            team=self.team,
            tournament_id=self.tournament_id,
        )

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> MatchObservation:
        """Build an observation from camelCase wire keys or snake_case keys."""
        data = {_WIRE_ALIASES.get(key, key): value for key, value in raw.items()}
        for required in ("athlete_id", "opponent_id", "result_type", "match_result", "match_date"):
            if data.get(required) is None:
                raise ValueError(f"observation is missing required field '{required}'")

        weight = data.get("weight")
        year = data.get("year")
        return cls(
            athlete_id=int(data["athlete_id"]),
            opponent_id=int(data["opponent_id"]),
            result_type=ResultType(data["result_type"]),
            match_result=MatchResult(data["match_result"]),
            weight=None if weight is None else int(weight),
            match_date=_parse_date(data["match_date"]),
            tournament_type=TournamentType(data.get("tournament_type") or TournamentType.LOCAL.value),
            source_url=data.get("source_url"),
            year=None if year is None else int(year),
            weight_class=data.get("weight_class"),
            team=str(data.get("team") or ""),
            tournament_id=int(data.get("tournament_id") or 0),
        )


def _parse_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    try:
        return date.fromisoformat(text[:10])
    except ValueError as exc:
        raise ValueError(f"match_date must be an ISO date, got {value!r}") from exc


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
