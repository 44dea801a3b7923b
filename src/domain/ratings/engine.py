"""Stateless ELO + Glicko-2 transition for a single wrestling match."""

from __future__ import annotations

from dataclasses import dataclass, field
from math import isfinite

from domain.errors import InvalidRatingStateError
from domain.ratings.common import MatchResult, RatingState, ResultWeight
from domain.ratings.elo.calculator import EloParameters, EloTransition, update_elo
from domain.ratings.glicko2.calculator import (
    Glicko2Parameters,
    Glicko2Rating,
    calculate_expected_score,
    clamp_rd,
    rate_bout,
)


@dataclass(frozen=True)
class MatchTransition:
    """Both sides' rating state before and after one match."""

    before: RatingState
    after: RatingState
    opponent_before: RatingState
    opponent_after: RatingState
    elo: EloTransition
    glicko_expected_score: float


def validate_rating_state(state: RatingState, *, label: str) -> None:
    """Raise InvalidRatingStateError when a rating snapshot cannot be valid ledger output."""
    values = {
        "elo": state.elo,
        "glicko_rating": state.glicko_rating,
        "glicko_rd": state.glicko_rd,
        "glicko_volatility": state.glicko_volatility,
    }
    for name, value in values.items():
        if value is None or not isfinite(value):
            raise InvalidRatingStateError(f"{label}.{name} is not a finite number ({value!r})")
        if value <= 0.0:
            raise InvalidRatingStateError(f"{label}.{name} must be > 0, got {value!r}")


@dataclass(frozen=True)
class RatingEngine:
    """Pure rating transitions; holds parameters only."""

    elo_params: EloParameters = field(default_factory=EloParameters)
    glicko2_params: Glicko2Parameters = field(default_factory=Glicko2Parameters)

    def default_state(self) -> RatingState:
        """Priors for an athlete's first-ever match."""
        return RatingState(
            elo=self.elo_params.initial_elo,
            glicko_rating=self.glicko2_params.initial_rating,
            glicko_rd=clamp_rd(self.glicko2_params.initial_rd, self.glicko2_params),
            glicko_volatility=self.glicko2_params.initial_volatility,
        )

    def apply_match(
        self,
        self_rating: RatingState,
        opponent_rating: RatingState,
        result: MatchResult,
        weight: ResultWeight,
    ) -> tuple[RatingState, RatingState]:
        transition = self.transition(self_rating, opponent_rating, result, weight)
        return transition.after, transition.opponent_after

    def transition(
        self,
        self_rating: RatingState,
        opponent_rating: RatingState,
        result: MatchResult,
        weight: ResultWeight,
    ) -> MatchTransition:
        validate_rating_state(self_rating, label="athlete")
        validate_rating_state(opponent_rating, label="opponent")

        elo = update_elo(
            rating=self_rating.elo,
            opponent_rating=opponent_rating.elo,
            result=result,
            weight=weight,
            params=self.elo_params,
        )

        actual = result.actual_score
        glicko_expected = calculate_expected_score(
            rating=self_rating.glicko_rating,
            rd=self_rating.glicko_rd,
            opponent_rating=opponent_rating.glicko_rating,
            opponent_rd=opponent_rating.glicko_rd,
        )
        self_glicko = self._update_glicko(self_rating, opponent_rating, actual)
        opponent_glicko = self._update_glicko(opponent_rating, self_rating, 1.0 - actual)

        after = RatingState(elo.post_elo, *self_glicko)
        opponent_after = RatingState(elo.opponent_post_elo, *opponent_glicko)
        validate_rating_state(after, label="athlete_after")
        validate_rating_state(opponent_after, label="opponent_after")

        return MatchTransition(
            before=self_rating,
            after=after,
            opponent_before=opponent_rating,
            opponent_after=opponent_after,
            elo=elo,
            glicko_expected_score=glicko_expected,
        )

    def _update_glicko(
        self,
        rating: RatingState,
        opponent: RatingState,
        score: float,
    ) -> tuple[float, float, float]:
        rated = rate_bout(
            Glicko2Rating(rating.glicko_rating, rating.glicko_rd, rating.glicko_volatility),
            Glicko2Rating(opponent.glicko_rating, opponent.glicko_rd, opponent.glicko_volatility),
            score,
            self.glicko2_params,
        )
        return rated.rating, rated.rd, rated.volatility


__all__ = ["MatchTransition", "RatingEngine", "validate_rating_state"]
