"""ORM models."""

from models.athlete import Athlete
from models.base import Base
from models.ranking_match import RankingMatch
from models.season_ranking import SeasonRanking

__all__ = [
    "Athlete",
    "Base",
    "RankingMatch",
    "SeasonRanking",
]
