from __future__ import annotations

import pytest

from analyzer.aggregate import RESULT_EVENT, AggregateQueryTrigger, parse_time_series_event
from analyzer.errors import EventDecodeError, EventNotFoundError
from analyzer.outcome import Outcome
from conftest import CONTRACT, OTHER_CHAIN_ID, USER, h
from state.models import EventLog, TimeSeriesHandles, TransactionReceipt


NINE = [h(f"{i:02x}") for i in range(1, 10)]


@pytest.fixture
def trigger(ledger, tracker, record) -> AggregateQueryTrigger:
    return AggregateQueryTrigger(ledger, tracker, record)


def _event(handles=NINE) -> EventLog:
    return EventLog(name=RESULT_EVENT, args=[USER, *handles])


@pytest.mark.asyncio
async def test_fetch_replaces_bundle_from_event(trigger, ledger, signer, record):
    ledger.stats_logs = [EventLog(name="Unrelated", args=[1]), _event()]
    assert await trigger.fetch(USER, 0, 2_000_000_000, CONTRACT, signer) is Outcome.APPLIED

    assert ledger.stats_calls == [(CONTRACT, USER, 0, 2_000_000_000)]
    bundle = record.time_series_handles
    assert bundle.avg_heart_rate == NINE[0]
    assert bundle.trend_heart_rate == NINE[3]
    assert bundle.volatility_sleep == NINE[8]
    assert not trigger.busy


@pytest.mark.asyncio
async def test_next_fetch_replaces_wholesale(trigger, ledger, signer, record):
    ledger.stats_logs = [_event()]
    await trigger.fetch(USER, 0, 10, CONTRACT, signer)

    newer = [h("f0")] * 9
    ledger.stats_logs = [_event(newer)]
    await trigger.fetch(USER, 0, 10, CONTRACT, signer)
    assert record.time_series_handles == TimeSeriesHandles.from_positional(newer)


@pytest.mark.asyncio
async def test_missing_event_keeps_prior_bundle(trigger, ledger, signer, record):
    ledger.stats_logs = [_event()]
    await trigger.fetch(USER, 0, 10, CONTRACT, signer)
    before = record.time_series_handles

    ledger.stats_logs = []
    assert await trigger.fetch(USER, 0, 10, CONTRACT, signer) is Outcome.FAILED
    assert record.time_series_handles == before
    assert "not found" in record.message


@pytest.mark.asyncio
async def test_malformed_event_is_a_decode_failure(trigger, ledger, signer, record):
    ledger.stats_logs = [_event(NINE[:7])]
    assert await trigger.fetch(USER, 0, 10, CONTRACT, signer) is Outcome.FAILED
    assert record.time_series_handles is None
    assert "Failed to parse" in record.message


@pytest.mark.asyncio
async def test_stale_after_inclusion_leaves_handles_untouched(trigger, ledger, connection, signer, record):
    ledger.stats_logs = [_event()]
    ledger.on_stats_wait = lambda: setattr(connection, "chain_id", OTHER_CHAIN_ID)
    assert await trigger.fetch(USER, 0, 10, CONTRACT, signer) is Outcome.STALE
    assert record.time_series_handles is None


def test_parse_errors_are_typed():
    with pytest.raises(EventNotFoundError):
        parse_time_series_event(TransactionReceipt(hash="0x1"))
    bad = TransactionReceipt(hash="0x1", logs=[_event(["0x12"] * 9)])
    with pytest.raises(EventDecodeError):
        parse_time_series_event(bad)
