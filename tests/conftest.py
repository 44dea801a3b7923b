"""Shared fixtures: a throwaway SQLite database per test."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from pathlib import Path

import pytest
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from db import create_db_engine, create_session_factory
from domain.ratings.config import RatingSystemConfig, default_rating_system_config
from domain.service import SeasonAnalyticsService
from repositories.athlete_repository import AthleteRepository
from repositories.schema import ensure_ratings_schema

ATHLETE_NAMES = {
    1: ("Cael", "Reyes"),
    2: ("Jordan", "Burke"),
    3: ("Kyle", "Dake"),
    4: ("David", "Snyder"),
    5: ("Spencer", "Lee"),
    6: ("Aaron", "Brooks"),
    7: ("Gable", "Steveson"),
    8: ("Yianni", "Diakomihalis"),
}


def _build_database(path: Path) -> Engine:
    engine = create_db_engine(f"sqlite:///{path}")
    ensure_ratings_schema(engine)
    factory = create_session_factory(engine)
    athletes = AthleteRepository()
    with factory() as session:
        for athlete_id, (first_name, last_name) in ATHLETE_NAMES.items():
            athletes.add(session, athlete_id=athlete_id, first_name=first_name, last_name=last_name, state="UT")
        session.commit()
    return engine


@pytest.fixture
def engine(tmp_path: Path) -> Iterator[Engine]:
    engine = _build_database(tmp_path / "ratings.db")
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return create_session_factory(engine)


@pytest.fixture
def config() -> RatingSystemConfig:
    return default_rating_system_config()


@pytest.fixture
def service(session_factory: sessionmaker[Session], config: RatingSystemConfig) -> SeasonAnalyticsService:
    return SeasonAnalyticsService(session_factory, config, max_workers=1)


@pytest.fixture
def service_factory(tmp_path: Path) -> Iterator[Callable[[str], SeasonAnalyticsService]]:
    """Build independent services, each on its own database file."""
    engines: list[Engine] = []

    def build(name: str) -> SeasonAnalyticsService:
        engine = _build_database(tmp_path / f"{name}.db")
        engines.append(engine)
        return SeasonAnalyticsService(create_session_factory(engine), max_workers=1)

    yield build
    for engine in engines:
        engine.dispose()
