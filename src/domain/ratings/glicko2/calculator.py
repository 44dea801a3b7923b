"""Athlete-level Glicko-2 logic.

Ratings move on the Glicko-2 internal scale (mu/phi) and are reported on the
familiar 1500-centred scale. A wrestling bout is normally rated on its own via
``rate_bout``; ``rate_period`` folds several bouts from one rating period.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from math import exp, log, pi, sqrt
from typing import Final

GLICKO2_SCALE: Final[float] = 173.7178
DEFAULT_RATING: Final[float] = 1500.0
MAX_BRACKET_STEPS: Final[int] = 1_000


@dataclass(frozen=True)
class Glicko2Parameters:
    initial_rating: float = 1500.0
    initial_rd: float = 350.0
    initial_volatility: float = 0.06
    tau: float = 0.5
    rating_period_days: float = 1.0
    min_rd: float = 30.0
    max_rd: float = 350.0
    epsilon: float = 1e-6
    max_iterations: int = 100


@dataclass(frozen=True)
class Glicko2Rating:
    rating: float
    rd: float
    volatility: float


@dataclass(frozen=True)
class Glicko2Bout:
    """One bout as seen from the rated athlete: opponent strength and the athlete's score."""

    opponent_rating: float
    opponent_rd: float
    score: float


def _mu(rating: float) -> float:
    return (rating - DEFAULT_RATING) / GLICKO2_SCALE


def _phi(rd: float) -> float:
    return rd / GLICKO2_SCALE


def _impact(phi: float) -> float:
    """Glickman's g(phi): discounts an opponent whose rating is uncertain."""
    return 1.0 / sqrt(1.0 + 3.0 * phi * phi / (pi * pi))


def _win_probability(mu: float, opponent_mu: float, opponent_phi: float) -> float:
    x = _impact(opponent_phi) * (mu - opponent_mu)
    if x >= 0.0:
        return 1.0 / (1.0 + exp(-x))
    z = exp(x)
    return z / (1.0 + z)


def calculate_expected_score(
    *,
    rating: float,
    rd: float,
    opponent_rating: float,
    opponent_rd: float,
) -> float:
    """Expected score for one side under Glicko-2. Only the opponent's RD matters."""
    return _win_probability(_mu(rating), _mu(opponent_rating), _phi(opponent_rd))


def clamp_rd(rd: float, params: Glicko2Parameters) -> float:
    return max(params.min_rd, min(rd, params.max_rd))


def inflate_rd(*, rd: float, volatility: float, inactive_periods: float, params: Glicko2Parameters) -> float:
    """Grow RD toward the ceiling for rating periods without a match."""
    if inactive_periods <= 0.0:
        return clamp_rd(rd, params)
    phi = _phi(rd)
    return clamp_rd(sqrt(phi * phi + volatility * volatility * inactive_periods) * GLICKO2_SCALE, params)


def _new_volatility(*, phi: float, sigma: float, delta: float, variance: float, params: Glicko2Parameters) -> float:
    """Illinois regula falsi for the volatility, capped at ``params.max_iterations`` steps."""
    tau = params.tau
    phi_sq = phi * phi
    delta_sq = delta * delta
    log_sigma_sq = log(sigma * sigma)

    def objective(x: float) -> float:
        ex = exp(x)
        spread = phi_sq + variance + ex
        return ex * (delta_sq - spread) / (2.0 * spread * spread) - (x - log_sigma_sq) / (tau * tau)

    low = log_sigma_sq
    if delta_sq > phi_sq + variance:
        high = log(delta_sq - phi_sq - variance)
    else:
        steps = 1
        while objective(log_sigma_sq - steps * tau) < 0.0:
            steps += 1
            if steps > MAX_BRACKET_STEPS:
                raise RuntimeError("Glicko-2 volatility solve failed to bracket root.")
        high = log_sigma_sq - steps * tau

    f_low = objective(low)
    f_high = objective(high)
    for _ in range(params.max_iterations):
        if abs(high - low) <= params.epsilon:
            break
        if f_high == f_low:
            guess = (low + high) / 2.0
        else:
            guess = low + (low - high) * f_low / (f_high - f_low)
        f_guess = objective(guess)
        if f_guess * f_high < 0.0:
            low, f_low = high, f_high
        else:
            f_low /= 2.0
        high, f_high = guess, f_guess

    return exp(low / 2.0)


def rate_period(current: Glicko2Rating, bouts: Sequence[Glicko2Bout], params: Glicko2Parameters) -> Glicko2Rating:
    """Apply every bout of one rating period to ``current``. RD is returned unclamped."""
    if not bouts:
        return current

    mu = _mu(current.rating)
    phi = _phi(current.rd)

    variance_inverse = 0.0
    improvement = 0.0
    for bout in bouts:
        opponent_phi = _phi(bout.opponent_rd)
        impact = _impact(opponent_phi)
        expected = _win_probability(mu, _mu(bout.opponent_rating), opponent_phi)
        variance_inverse += impact * impact * expected * (1.0 - expected)
        improvement += impact * (bout.score - expected)
    if variance_inverse <= 0.0:
        return current

    variance = 1.0 / variance_inverse
    sigma = _new_volatility(
        phi=phi,
        sigma=current.volatility,
        delta=variance * improvement,
        variance=variance,
        params=params,
    )
    pre_period_phi_sq = phi * phi + sigma * sigma
    new_phi = 1.0 / sqrt(1.0 / pre_period_phi_sq + variance_inverse)
    new_mu = mu + new_phi * new_phi * improvement

    return Glicko2Rating(
        rating=new_mu * GLICKO2_SCALE + DEFAULT_RATING,
        rd=new_phi * GLICKO2_SCALE,
        volatility=sigma,
    )


def rate_bout(
    current: Glicko2Rating,
    opponent: Glicko2Rating,
    score: float,
    params: Glicko2Parameters,
) -> Glicko2Rating:
    """Rate a single bout as its own period, keeping RD inside the configured band."""
    rated = rate_period(
        current,
        [Glicko2Bout(opponent_rating=opponent.rating, opponent_rd=opponent.rd, score=score)],
        params,
    )
    return Glicko2Rating(rating=rated.rating, rd=clamp_rd(rated.rd, params), volatility=rated.volatility)


__all__ = [
    "DEFAULT_RATING",
    "GLICKO2_SCALE",
    "Glicko2Bout",
    "Glicko2Parameters",
    "Glicko2Rating",
    "calculate_expected_score",
    "clamp_rd",
    "inflate_rd",
    "rate_bout",
    "rate_period",
]
