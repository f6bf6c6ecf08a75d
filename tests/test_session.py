import pytest

from vault_sync.adapters.ledger.in_memory import InMemoryLedgerReader
from vault_sync.application.services.operation_journal import OperationStatus
from vault_sync.application.session import VaultSession


@pytest.fixture
def reader():
    r = InMemoryLedgerReader()
    r.set_balance("alice", 10_000)
    r.add_deposit("alice", amount=1_000, deposit_time=500, lock_duration=3600)
    return r


@pytest.mark.anyio
async def test_deposit_flows_from_pending_to_confirmed(clock, reader):
    clock.now = 1000
    session = VaultSession(clock=clock).start("alice", reader)
    try:
        await session.poller.refresh_now()
        assert [r.key for r in session.view.records] == ["alice-0"]

        undo = []
        session.submit_deposit("tx-1", amount=2_000, lock_duration=7200, compensate=lambda: undo.append("tx-1"))
        assert session.view.records[0].is_pending
        assert session.view.balance == 8_000
        assert session.journal.status("tx-1") is OperationStatus.PENDING

        reader.add_deposit("alice", amount=2_000, deposit_time=1001, lock_duration=7200, correlation_key="tx-1")
        reader.set_balance("alice", 8_000)
        clock.advance(10)
        await session.poller.refresh_now()

        assert [r.key for r in session.view.records] == ["alice-1", "alice-0"]
        assert session.view.balance == 8_000
        assert session.journal.status("tx-1") is OperationStatus.CONFIRMED
        assert undo == []
    finally:
        session.close()


@pytest.mark.anyio
async def test_rejected_operation_compensates(clock, reader):
    session = VaultSession(clock=clock).start("alice", reader)
    try:
        undo = []
        session.submit_withdraw("w-1", deposit_id="alice-0", amount=1_000, compensate=lambda: undo.append(1))
        session.reject("w-1")
        assert undo == [1]
        assert session.journal.status("w-1") is OperationStatus.REVERTED
        assert session.view.pending_records == []
    finally:
        session.close()


@pytest.mark.anyio
async def test_account_switch_drops_pending_without_compensation(clock, reader):
    reader.set_balance("bob", 3)
    session = VaultSession(clock=clock).start("alice", reader)
    try:
        undo = []
        session.submit_deposit("tx-1", amount=5, lock_duration=60, compensate=lambda: undo.append(1))
        session.switch_account("bob", reader)
        assert len(session.store) == 0
        assert undo == []
        assert session.journal.status("tx-1") is None

        await session.poller.refresh_now()
        assert session.view.balance == 3
        assert session.view.records == []
    finally:
        session.close()


@pytest.mark.anyio
async def test_close_after_account_switch_stops_polling(clock, reader):
    session = VaultSession(clock=clock).start("alice", reader)
    session.switch_account("bob", reader)
    assert session.poller.running

    session.close()
    assert not session.poller.running


@pytest.mark.anyio
async def test_withdraw_stays_pending_until_ledger_is_read(clock, reader):
    clock.now = 1000
    session = VaultSession(clock=clock).start("alice", reader)
    try:
        session.submit_withdraw("w-1", deposit_id="alice-0", amount=1_000)
        assert session.store.has("w-1")
        assert [r.key for r in session.view.pending_records] == ["w-1"]

        clock.advance(1)
        await session.poller.refresh_now()
        assert session.store.has("w-1")
    finally:
        session.close()


def test_submit_requires_connected_account(clock):
    session = VaultSession(clock=clock)
    with pytest.raises(ValueError):
        session.submit_deposit("tx-1", amount=1, lock_duration=1)
    session.close()
