"""Batch recalculation of season ratings and analytics."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field

from sqlalchemy.orm import Session, sessionmaker

from domain.analytics import AnalyticsAggregator, SeasonAnalytics
from domain.errors import BatchPartialFailureError, SeasonFailure, SeasonNotFoundError
from domain.ledger import MatchLedger, season_state
from domain.ratings.common import SeasonState
from repositories.protocol import SeasonRankingStore
from repositories.season_ranking_repository import SeasonRankingRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SeasonRecalculation:
    """Outcome for one recalculated season."""

    season_ranking_id: int
    replayed_matches: int
    analytics: SeasonAnalytics
    state: SeasonState


@dataclass(frozen=True)
class RecalculationSummary:
    total: int
    succeeded: int
    failed: int
    cancelled: int = 0
    errors: tuple[SeasonFailure, ...] = field(default_factory=tuple)

    @property
    def ok(self) -> bool:
        return self.failed == 0

    def raise_for_failures(self) -> None:
        if self.errors:
            raise BatchPartialFailureError(self.errors)


class RecalculationOrchestrator:
    """Replays and re-aggregates seasons, isolating failures per season.

    Seasons run on a bounded thread pool. Cancellation is only observed
    between seasons; a season that has started always runs to commit or
    rollback.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        ledger: MatchLedger,
        aggregator: AnalyticsAggregator,
        *,
        max_workers: int = 4,
        seasons: SeasonRankingStore | None = None,
    ) -> None:
        if max_workers < 1:
            raise ValueError("max_workers must be >= 1")
        self._session_factory = session_factory
        self._ledger = ledger
        self._aggregator = aggregator
        self._max_workers = max_workers
        self._seasons = seasons or SeasonRankingRepository()

    def recalculate_season(self, season_ranking_id: int) -> SeasonRecalculation:
        key = self._ledger.key_for(season_ranking_id)
        with self._ledger.locks.hold(key):
            replay = self._ledger.replay_season(season_ranking_id)
            analytics = self._aggregator.refresh_and_persist(season_ranking_id)
            with self._session_factory() as session:
                season = self._seasons.get(session, season_ranking_id)
                if season is None:
                    raise SeasonNotFoundError(season_ranking_id)
                state = season_state(season)

        return SeasonRecalculation(
            season_ranking_id=season_ranking_id,
            replayed_matches=replay.replayed_matches,
            analytics=analytics,
            state=state,
        )

    def recalculate_all(
        self,
        season_ranking_ids: Sequence[int] | None = None,
        *,
        cancel_event: threading.Event | None = None,
        echo: Callable[[str], None] | None = None,
    ) -> RecalculationSummary:
        """Recalculate every season (or the given ids) and summarize the outcome."""
        if season_ranking_ids is None:
            with self._session_factory() as session:
                season_ranking_ids = self._seasons.list_ids(session)
        ids = list(season_ranking_ids)
        cancel = cancel_event or threading.Event()

        logger.info("recalculating seasons=%s max_workers=%s", len(ids), self._max_workers)
        with ThreadPoolExecutor(max_workers=self._max_workers, thread_name_prefix="recalc") as pool:
            futures = [pool.submit(self._run_one, season_ranking_id, cancel) for season_ranking_id in ids]
            outcomes = [future.result() for future in futures]

        succeeded = 0
        cancelled = 0
        failures: list[SeasonFailure] = []
        for outcome in outcomes:
            if outcome is None:
                cancelled += 1
            elif isinstance(outcome, SeasonFailure):
                failures.append(outcome)
            else:
                succeeded += 1
                if echo is not None:
                    echo(
                        f"season_ranking_id={outcome.season_ranking_id} "
                        f"state={outcome.state.value} "
                        f"replayed_matches={outcome.replayed_matches}"
                    )

        summary = RecalculationSummary(
            total=len(ids),
            succeeded=succeeded,
            failed=len(failures),
            cancelled=cancelled,
            errors=tuple(failures),
        )
        logger.info(
            "recalculation finished total=%s succeeded=%s failed=%s cancelled=%s",
            summary.total,
            summary.succeeded,
            summary.failed,
            summary.cancelled,
        )
        return summary

    def _run_one(
        self,
        season_ranking_id: int,
        cancel: threading.Event,
    ) -> SeasonRecalculation | SeasonFailure | None:
        if cancel.is_set():
            return None
        try:
            return self.recalculate_season(season_ranking_id)
        except Exception as exc:
            logger.exception("recalculation failed season_ranking_id=%s", season_ranking_id)
            return SeasonFailure(season_ranking_id=season_ranking_id, error=f"{type(exc).__name__}: {exc}")


__all__ = ["RecalculationOrchestrator", "RecalculationSummary", "SeasonRecalculation"]
