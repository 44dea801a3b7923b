"""ranking_matches table model."""

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from models.base import Base


class RankingMatch(Base):
    """One ledger entry per processed match observation.

    Everything except the ``opponent_current_*`` columns is fixed once written,
    apart from a full season replay rewriting the athlete snapshots.
    """

    __tablename__ = "ranking_matches"
    __table_args__ = (
        CheckConstraint("elo_before > 0.0 AND elo_after > 0.0", name="ck_ranking_matches_elo"),
        CheckConstraint(
            "glicko_rd_before >= 30.0 AND glicko_rd_before <= 350.0",
            name="ck_ranking_matches_rd_before",
        ),
        CheckConstraint(
            "glicko_rd_after >= 30.0 AND glicko_rd_after <= 350.0",
            name="ck_ranking_matches_rd_after",
        ),
        CheckConstraint("glicko_volatility_before > 0.0", name="ck_ranking_matches_volatility_before"),
        CheckConstraint("glicko_volatility_after > 0.0", name="ck_ranking_matches_volatility_after"),
        CheckConstraint(
            "expected_score >= 0.0 AND expected_score <= 1.0",
            name="ck_ranking_matches_expected_score",
        ),
        Index("idx_ranking_matches_season_order", "season_ranking_id", "match_date", "id"),
        Index("idx_ranking_matches_athlete", "athlete_id"),
        Index("idx_ranking_matches_opponent", "opponent_id"),
        Index("idx_ranking_matches_date", "match_date"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    season_ranking_id: Mapped[int] = mapped_column(ForeignKey("season_rankings.id"), nullable=False)
    athlete_id: Mapped[int] = mapped_column(ForeignKey("athletes.id"), nullable=False)
    opponent_id: Mapped[int] = mapped_column(ForeignKey("athletes.id"), nullable=False)
    match_hash: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    match_date: Mapped[date] = mapped_column(Date, nullable=False)
    match_result: Mapped[str] = mapped_column(
        Enum("win", "loss", name="match_result", native_enum=False),
        nullable=False,
    )
    result_type: Mapped[str] = mapped_column(
        Enum(
            "decision",
            "major-decision",
            "technical-fall",
            "fall",
            name="result_type",
            native_enum=False,
        ),
        nullable=False,
    )
    tournament_type: Mapped[str] = mapped_column(
        Enum(
            "local",
            "district",
            "regional",
            "state",
            "national",
            name="tournament_type",
            native_enum=False,
        ),
        nullable=False,
    )
    weight: Mapped[int | None] = mapped_column(Integer, nullable=True)
    source_url: Mapped[str | None] = mapped_column(Text, nullable=True)

    k_factor: Mapped[float] = mapped_column(Float, nullable=False)
    expected_score: Mapped[float] = mapped_column(Float, nullable=False)

    elo_before: Mapped[float] = mapped_column(Float, nullable=False)
    elo_after: Mapped[float] = mapped_column(Float, nullable=False)
    elo_change: Mapped[float] = mapped_column(Float, nullable=False)
    glicko_rating_before: Mapped[float] = mapped_column(Float, nullable=False)
    glicko_rating_after: Mapped[float] = mapped_column(Float, nullable=False)
    glicko_rating_change: Mapped[float] = mapped_column(Float, nullable=False)
    glicko_rd_before: Mapped[float] = mapped_column(Float, nullable=False)
    glicko_rd_after: Mapped[float] = mapped_column(Float, nullable=False)
    glicko_rd_change: Mapped[float] = mapped_column(Float, nullable=False)
    glicko_volatility_before: Mapped[float] = mapped_column(Float, nullable=False)
    glicko_volatility_after: Mapped[float] = mapped_column(Float, nullable=False)
    glicko_volatility_change: Mapped[float] = mapped_column(Float, nullable=False)
    wins_before: Mapped[int] = mapped_column(Integer, nullable=False)
    losses_before: Mapped[int] = mapped_column(Integer, nullable=False)
    wins_after: Mapped[int] = mapped_column(Integer, nullable=False)
    losses_after: Mapped[int] = mapped_column(Integer, nullable=False)

    opponent_elo_at_time: Mapped[float] = mapped_column(Float, nullable=False)
    opponent_glicko_at_time: Mapped[float] = mapped_column(Float, nullable=False)
    opponent_glicko_rd_at_time: Mapped[float] = mapped_column(Float, nullable=False)
    opponent_glicko_volatility_at_time: Mapped[float] = mapped_column(Float, nullable=False)
    opponent_elo_after: Mapped[float] = mapped_column(Float, nullable=False)
    opponent_glicko_after: Mapped[float] = mapped_column(Float, nullable=False)
    opponent_glicko_rd_after: Mapped[float] = mapped_column(Float, nullable=False)

    opponent_current_elo: Mapped[float | None] = mapped_column(Float, nullable=True)
    opponent_current_glicko: Mapped[float | None] = mapped_column(Float, nullable=True)
    opponent_current_glicko_rd: Mapped[float | None] = mapped_column(Float, nullable=True)
    opponent_current_refreshed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=False),
        nullable=True,
    )

    processed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False),
        nullable=False,
        server_default=func.now(),
    )
