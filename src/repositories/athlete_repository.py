"""Persistence helpers for athlete identities."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from models import Athlete


class AthleteRepository:
    """Identity rows are owned upstream; this only records what was resolved."""

    def add(
        self,
        session: Session,
        *,
        first_name: str,
        last_name: str,
        state: str | None = None,
        athlete_id: int | None = None,
    ) -> Athlete:
        athlete = Athlete(id=athlete_id, first_name=first_name, last_name=last_name, state=state)
        session.add(athlete)
        session.flush()
        return athlete

    def names_by_id(self, session: Session, athlete_ids: list[int]) -> dict[int, str]:
        if not athlete_ids:
            return {}
        rows = session.execute(
            select(Athlete.id, Athlete.first_name, Athlete.last_name).where(Athlete.id.in_(athlete_ids))
        )
        return {row.id: f"{row.first_name} {row.last_name}" for row in rows}


__all__ = ["AthleteRepository"]
