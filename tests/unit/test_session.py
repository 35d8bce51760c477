from __future__ import annotations

from conftest import CHAIN_ID, CONTRACT, OTHER_CHAIN_ID, OTHER_CONTRACT, OTHER_USER, USER, FakeSigner


def test_capture_reads_live_connection(tracker):
    ctx = tracker.capture()
    assert ctx.chain_id == CHAIN_ID
    assert ctx.signer_address == USER
    assert ctx.contract_address == CONTRACT
    assert not tracker.is_stale(ctx)


def test_chain_switch_makes_context_stale(tracker, connection):
    is_stale = tracker.stale_check(tracker.capture())
    connection.chain_id = OTHER_CHAIN_ID
    assert is_stale()
    assert tracker.current_contract_address() == OTHER_CONTRACT


def test_account_switch_makes_context_stale(tracker, connection):
    is_stale = tracker.stale_check(tracker.capture())
    connection.signer = FakeSigner(OTHER_USER)
    assert is_stale()


def test_same_account_new_signer_object_is_not_stale(tracker, connection):
    is_stale = tracker.stale_check(tracker.capture())
    connection.signer = FakeSigner(USER.upper().replace("0X", "0x"))
    assert not is_stale()


def test_disconnect_makes_context_stale(tracker, connection):
    is_stale = tracker.stale_check(tracker.capture())
    connection.signer = None
    assert is_stale()


def test_predicates_pass_through(tracker, connection):
    assert tracker.chain_still_current(CHAIN_ID)
    assert not tracker.chain_still_current(OTHER_CHAIN_ID)
    assert tracker.signer_still_current(USER)
    connection.signer = None
    assert tracker.signer_still_current(None)
    assert not tracker.signer_still_current(USER)


def test_unknown_chain_has_no_contract(tracker, connection):
    connection.chain_id = 5
    assert tracker.current_contract_address() is None
