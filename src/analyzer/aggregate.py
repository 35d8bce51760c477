from __future__ import annotations

import logging
from typing import Optional

from pydantic import ValidationError

from state.models import TIME_SERIES_FIELDS, TimeSeriesHandles, TransactionReceipt

from .errors import EventDecodeError, EventNotFoundError
from .interfaces import LedgerWriter, Signer
from .outcome import OperationGuard, Outcome
from .record import AnalyzerState
from .session import SessionContext, SessionTracker


logger = logging.getLogger("analyzer.aggregate")

RESULT_EVENT = "TimeSeriesStatsResult"
# Seconds added to "now" for the open-ended window of a full-history query
ALL_RECORDS_HORIZON = 1_000_000_000


def parse_time_series_event(receipt: TransactionReceipt) -> TimeSeriesHandles:
    """Decode the aggregate-result event: (user, 9 handles) -> handle bundle."""
    event = receipt.find_event(RESULT_EVENT)
    if event is None:
        raise EventNotFoundError(f"{RESULT_EVENT} event not found in transaction receipt")
    if len(event.args) != len(TIME_SERIES_FIELDS) + 1:
        raise EventDecodeError(f"Failed to parse {RESULT_EVENT} event: {len(event.args)} args")
    try:
        return TimeSeriesHandles.from_positional(list(event.args[1:]))
    except (ValidationError, ValueError) as exc:
        raise EventDecodeError(f"Failed to parse {RESULT_EVENT} event: {exc}") from exc


class AggregateQueryTrigger:
    """
    Runs the confidential time-series aggregation and captures its handles.

    The aggregation is a transaction, not a view call: its outputs are only
    available from the emitted event. The stored bundle is replaced wholesale
    on success and left untouched otherwise.
    """

    def __init__(self, writer: LedgerWriter, tracker: SessionTracker, record: AnalyzerState) -> None:
        self._writer = writer
        self._tracker = tracker
        self._record = record
        self._guard = OperationGuard("fetch_time_series")

    @property
    def busy(self) -> bool:
        return self._guard.busy

    async def fetch(
        self,
        user: str,
        start_timestamp: int,
        end_timestamp: int,
        contract: str,
        signer: Signer,
        ctx: Optional[SessionContext] = None,
    ) -> Outcome:
        if not self._guard.try_enter():
            return Outcome.BUSY
        try:
            is_stale = self._tracker.stale_check(ctx or self._tracker.capture())
            self._record.report("Fetching time series stats...")
            tx = await self._writer.get_time_series_stats(
                contract, signer, user, start_timestamp, end_timestamp
            )
            self._record.report(f"Wait for tx:{tx.hash}...")
            receipt = await tx.wait()

            if is_stale():
                self._record.report("Ignore time series stats fetch: context changed")
                return Outcome.STALE

            bundle = parse_time_series_event(receipt)
        except (EventNotFoundError, EventDecodeError) as exc:
            self._record.report(str(exc), level=logging.WARNING)
            return Outcome.FAILED
        except Exception as exc:
            self._record.report(f"getTimeSeriesStats() call failed! error={exc}", level=logging.WARNING)
            return Outcome.FAILED
        finally:
            self._guard.leave()

        self._record.time_series_handles = bundle
        self._record.report("Time series stats fetched successfully!")
        return Outcome.APPLIED
