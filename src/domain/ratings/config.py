"""Load wrestling rating system definitions from TOML files."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, TypeVar

from domain.config_base import BaseSystemConfig, load_system_config, load_system_configs
from domain.ratings.common import ResultType, TournamentType
from domain.ratings.elo.calculator import (
    DEFAULT_RESULT_TYPE_WEIGHTS,
    DEFAULT_TOURNAMENT_TYPE_WEIGHTS,
    EloParameters,
)
from domain.ratings.engine import RatingEngine
from domain.ratings.glicko2.calculator import Glicko2Parameters

EnumT = TypeVar("EnumT", bound=Enum)


@dataclass(frozen=True)
class RatingSystemConfig(BaseSystemConfig):
    """Configuration for the season rating engine and its batch jobs."""

    elo: EloParameters = field(default_factory=EloParameters)
    glicko2: Glicko2Parameters = field(default_factory=Glicko2Parameters)
    max_workers: int = 4

    def create_engine(self) -> RatingEngine:
        return RatingEngine(elo_params=self.elo, glicko2_params=self.glicko2)

    def as_config_json(self) -> dict[str, Any]:
        return {
            "elo": {
                "initial_elo": self.elo.initial_elo,
                "k_factor": self.elo.k_factor,
                "scale_factor": self.elo.scale_factor,
                "result_type_weight": {
                    member.value: self.elo.result_type_weights[member] for member in ResultType
                },
                "tournament_type_weight": {
                    member.value: self.elo.tournament_type_weights[member] for member in TournamentType
                },
            },
            "glicko2": {
                "initial_rating": self.glicko2.initial_rating,
                "initial_rd": self.glicko2.initial_rd,
                "initial_volatility": self.glicko2.initial_volatility,
                "tau": self.glicko2.tau,
                "rating_period_days": self.glicko2.rating_period_days,
                "min_rd": self.glicko2.min_rd,
                "max_rd": self.glicko2.max_rd,
                "epsilon": self.glicko2.epsilon,
                "max_iterations": self.glicko2.max_iterations,
            },
            "ledger": {"max_workers": self.max_workers},
        }


def default_rating_system_config() -> RatingSystemConfig:
    """Built-in defaults, used when no config file is supplied."""
    return RatingSystemConfig(name="default", description=None, file_path=Path("<defaults>"))


def load_rating_system_config(file_path: Path) -> RatingSystemConfig:
    """Load and validate a single rating system TOML file."""
    return load_system_config(file_path, _parse_rating_system_config)


def load_rating_system_configs(config_dir: Path) -> list[RatingSystemConfig]:
    """Load and validate all rating system TOML config files in a directory."""
    return load_system_configs(
        config_dir,
        _parse_rating_system_config,
        duplicate_name_label="rating",
    )


def _parse_rating_system_config(raw: dict[str, Any], file_path: Path) -> RatingSystemConfig:
    system_raw = raw.get("system", {})
    elo_raw = raw.get("elo", {})
    glicko2_raw = raw.get("glicko2", {})
    ledger_raw = raw.get("ledger", {})

    name = str(system_raw.get("name", "")).strip()
    if not name:
        raise ValueError(f"{file_path}: [system].name is required")

    description_value = system_raw.get("description")
    description = None if description_value is None else str(description_value)

    result_type_weights = _parse_weight_table(
        file_path=file_path,
        section="elo.result_type_weight",
        raw=elo_raw.get("result_type_weight", {}),
        enum_type=ResultType,
        defaults=DEFAULT_RESULT_TYPE_WEIGHTS,
    )
    tournament_type_weights = _parse_weight_table(
        file_path=file_path,
        section="elo.tournament_type_weight",
        raw=elo_raw.get("tournament_type_weight", {}),
        enum_type=TournamentType,
        defaults=DEFAULT_TOURNAMENT_TYPE_WEIGHTS,
    )

    elo = EloParameters(
        initial_elo=float(elo_raw.get("initial_elo", 1500.0)),
        k_factor=float(elo_raw.get("k_factor", 32.0)),
        scale_factor=float(elo_raw.get("scale_factor", 400.0)),
        result_type_weights=result_type_weights,
        tournament_type_weights=tournament_type_weights,
    )
    glicko2 = Glicko2Parameters(
        initial_rating=float(glicko2_raw.get("initial_rating", 1500.0)),
        initial_rd=float(glicko2_raw.get("initial_rd", 350.0)),
        initial_volatility=float(glicko2_raw.get("initial_volatility", 0.06)),
        tau=float(glicko2_raw.get("tau", 0.5)),
        rating_period_days=float(glicko2_raw.get("rating_period_days", 1.0)),
        min_rd=float(glicko2_raw.get("min_rd", 30.0)),
        max_rd=float(glicko2_raw.get("max_rd", 350.0)),
        epsilon=float(glicko2_raw.get("epsilon", 1e-6)),
        max_iterations=int(glicko2_raw.get("max_iterations", 100)),
    )
    max_workers = int(ledger_raw.get("max_workers", 4))

    _validate_elo(file_path=file_path, parameters=elo)
    _validate_glicko2(file_path=file_path, parameters=glicko2)
    if max_workers < 1:
        raise ValueError(f"{file_path}: [ledger].max_workers must be >= 1")

    return RatingSystemConfig(
        name=name,
        description=description,
        file_path=file_path,
        elo=elo,
        glicko2=glicko2,
        max_workers=max_workers,
    )


def _parse_weight_table(
    *,
    file_path: Path,
    section: str,
    raw: Mapping[str, Any],
    enum_type: type[EnumT],
    defaults: Mapping[EnumT, float],
) -> dict[EnumT, float]:
    weights = dict(defaults)
    for key, value in raw.items():
        try:
            member = enum_type(key)
        except ValueError as exc:
            allowed = ", ".join(item.value for item in enum_type)
            raise ValueError(f"{file_path}: [{section}] unknown key '{key}' (allowed: {allowed})") from exc
        weights[member] = float(value)

    previous: float | None = None
    for member in enum_type:
        weight = weights[member]
        if weight <= 0.0:
            raise ValueError(f"{file_path}: [{section}].{member.value} must be > 0")
        # Higher-stakes entries may never move ratings less than lower-stakes ones.
        if previous is not None and weight < previous:
            raise ValueError(f"{file_path}: [{section}] weights must be non-decreasing ({member.value})")
        previous = weight
    return weights


def _validate_elo(*, file_path: Path, parameters: EloParameters) -> None:
    if parameters.initial_elo <= 0.0:
        raise ValueError(f"{file_path}: [elo].initial_elo must be > 0")
    if parameters.k_factor <= 0.0:
        raise ValueError(f"{file_path}: [elo].k_factor must be > 0")
    if parameters.scale_factor <= 0.0:
        raise ValueError(f"{file_path}: [elo].scale_factor must be > 0")


def _validate_glicko2(*, file_path: Path, parameters: Glicko2Parameters) -> None:
    if parameters.initial_rating <= 0.0:
        raise ValueError(f"{file_path}: [glicko2].initial_rating must be > 0")
    if parameters.initial_rd <= 0.0:
        raise ValueError(f"{file_path}: [glicko2].initial_rd must be > 0")
    if parameters.initial_volatility <= 0.0:
        raise ValueError(f"{file_path}: [glicko2].initial_volatility must be > 0")
    if parameters.tau <= 0.0:
        raise ValueError(f"{file_path}: [glicko2].tau must be > 0")
    if parameters.rating_period_days <= 0.0:
        raise ValueError(f"{file_path}: [glicko2].rating_period_days must be > 0")
    if parameters.min_rd <= 0.0:
        raise ValueError(f"{file_path}: [glicko2].min_rd must be > 0")
    if parameters.max_rd <= 0.0:
        raise ValueError(f"{file_path}: [glicko2].max_rd must be > 0")
    if parameters.min_rd > parameters.max_rd:
        raise ValueError(f"{file_path}: [glicko2].min_rd must be <= max_rd")
    if parameters.initial_rd < parameters.min_rd or parameters.initial_rd > parameters.max_rd:
        raise ValueError(f"{file_path}: [glicko2].initial_rd must be between min_rd and max_rd")
    if parameters.epsilon <= 0.0:
        raise ValueError(f"{file_path}: [glicko2].epsilon must be > 0")
    if parameters.max_iterations < 1:
        raise ValueError(f"{file_path}: [glicko2].max_iterations must be >= 1")


__all__ = [
    "RatingSystemConfig",
    "default_rating_system_config",
    "load_rating_system_config",
    "load_rating_system_configs",
]
