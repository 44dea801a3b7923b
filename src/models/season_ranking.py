"""season_rankings table model."""

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from models.base import Base


class SeasonRanking(Base):
    """Season-scoped rating state for one athlete/year/weight/team/tournament tuple.

    Running totals and current ratings are a pure function of the season seed and
    the season's ``ranking_matches`` ledger. Analytics columns are only written by
    the analytics persist step.
    """

    __tablename__ = "season_rankings"
    __table_args__ = (
        UniqueConstraint(
            "athlete_id",
            "year",
            "weight_class",
            "team",
            "tournament_id",
            name="uq_season_rankings_identity",
        ),
        CheckConstraint("wins >= 0 AND losses >= 0", name="ck_season_rankings_record"),
        CheckConstraint(
            "current_glicko_rd >= 30.0 AND current_glicko_rd <= 350.0",
            name="ck_season_rankings_current_rd",
        ),
        CheckConstraint("current_glicko_volatility > 0.0", name="ck_season_rankings_current_volatility"),
        Index("idx_season_rankings_athlete", "athlete_id"),
        Index("idx_season_rankings_year", "year"),
        Index("idx_season_rankings_current_elo", "current_elo"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    athlete_id: Mapped[int] = mapped_column(ForeignKey("athletes.id"), nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    weight_class: Mapped[str] = mapped_column(String(50), nullable=False)
    team: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    # 0 means the ranking is season-wide rather than tied to one tournament.
    tournament_id: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    wins: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    losses: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_matches: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    win_percentage: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    first_match_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    last_match_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    initial_elo: Mapped[float] = mapped_column(Float, nullable=False)
    initial_glicko_rating: Mapped[float] = mapped_column(Float, nullable=False)
    initial_glicko_rd: Mapped[float] = mapped_column(Float, nullable=False)
    initial_glicko_volatility: Mapped[float] = mapped_column(Float, nullable=False)

    current_elo: Mapped[float] = mapped_column(Float, nullable=False)
    current_glicko_rating: Mapped[float] = mapped_column(Float, nullable=False)
    current_glicko_rd: Mapped[float] = mapped_column(Float, nullable=False)
    current_glicko_volatility: Mapped[float] = mapped_column(Float, nullable=False)

    peak_elo: Mapped[float | None] = mapped_column(Float, nullable=True)
    peak_elo_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    lowest_elo: Mapped[float | None] = mapped_column(Float, nullable=True)
    lowest_elo_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    peak_glicko_rating: Mapped[float | None] = mapped_column(Float, nullable=True)
    peak_glicko_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    lowest_glicko_rating: Mapped[float | None] = mapped_column(Float, nullable=True)
    lowest_glicko_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    strength_of_schedule: Mapped[float | None] = mapped_column(Float, nullable=True)
    strength_of_schedule_at_time: Mapped[float | None] = mapped_column(Float, nullable=True)
    strength_of_schedule_latest: Mapped[float | None] = mapped_column(Float, nullable=True)
    glicko_strength_of_schedule: Mapped[float | None] = mapped_column(Float, nullable=True)
    glicko_strength_of_schedule_at_time: Mapped[float | None] = mapped_column(Float, nullable=True)
    glicko_strength_of_schedule_latest: Mapped[float | None] = mapped_column(Float, nullable=True)
    strength_of_record: Mapped[float | None] = mapped_column(Float, nullable=True)
    glicko_strength_of_record: Mapped[float | None] = mapped_column(Float, nullable=True)
    average_opponent_elo: Mapped[float | None] = mapped_column(Float, nullable=True)
    average_opponent_glicko: Mapped[float | None] = mapped_column(Float, nullable=True)
    toughest_opponent_elo: Mapped[float | None] = mapped_column(Float, nullable=True)
    weakest_opponent_elo: Mapped[float | None] = mapped_column(Float, nullable=True)
    unique_opponents_faced: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    quality_wins: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    quality_losses: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    upset_wins: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    upset_losses: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    analytics_updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)

    season_complete: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False),
        nullable=False,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False),
        nullable=False,
        server_default=func.now(),
    )
