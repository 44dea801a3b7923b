"""Database repository helpers."""

from repositories.athlete_repository import AthleteRepository
from repositories.protocol import RankingMatchStore, SeasonRankingStore
from repositories.ranking_match_repository import RankingMatchRepository
from repositories.schema import ensure_ratings_schema
from repositories.season_ranking_repository import SeasonRankingRepository

__all__ = [
    "AthleteRepository",
    "RankingMatchRepository",
    "RankingMatchStore",
    "SeasonRankingRepository",
    "SeasonRankingStore",
    "ensure_ratings_schema",
]
