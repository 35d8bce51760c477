from __future__ import annotations

import asyncio
import logging
from typing import Optional

from state.models import ScoreHandles

from .interfaces import LedgerReader
from .outcome import OperationGuard, Outcome
from .record import AnalyzerState
from .session import SessionContext, SessionTracker


logger = logging.getLogger("analyzer.synchronizer")


class HandleSynchronizer:
    """Pulls the user's current score and anomaly-flag handles from the ledger."""

    def __init__(self, reader: LedgerReader, tracker: SessionTracker, record: AnalyzerState) -> None:
        self._reader = reader
        self._tracker = tracker
        self._record = record
        self._guard = OperationGuard("refresh")

    @property
    def busy(self) -> bool:
        return self._guard.busy

    async def refresh(
        self, contract: str, user: str, ctx: Optional[SessionContext] = None
    ) -> Outcome:
        """
        Replace the stored score handles with the ledger's current ones.

        A call made while another refresh is pending is a no-op (BUSY). On
        failure the previously known handles are kept.
        """
        if not self._guard.try_enter():
            return Outcome.BUSY
        try:
            is_stale = self._tracker.stale_check(ctx or self._tracker.capture())
            try:
                scores, anomaly = await asyncio.gather(
                    self._reader.get_health_scores(contract, user),
                    self._reader.get_anomaly_flag(contract, user),
                )
                overall, cardio, activity, sleep = scores
                handles = ScoreHandles(
                    overall=overall,
                    cardio=cardio,
                    activity=activity,
                    sleep=sleep,
                    anomaly_flag=anomaly,
                )
            except Exception as exc:
                self._record.report(
                    f"HealthAnalyzer.getHealthScores() call failed! error={exc}",
                    level=logging.WARNING,
                )
                return Outcome.FAILED

            if is_stale() or self._tracker.current_contract_address() != contract:
                logger.info("Discarding score handles fetched for %s: context changed", contract)
                return Outcome.STALE

            self._record.score_handles = handles
            return Outcome.APPLIED
        finally:
            self._guard.leave()
