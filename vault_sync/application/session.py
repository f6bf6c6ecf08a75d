"""Session wiring for the vault view.

One ``VaultSession`` per connected wallet session: it owns the speculative
store, the confirmed-state poller, the merged view and the countdown ticker.
``switch_account`` is the full reset point (pending entries are dropped
without compensation).
"""

import time
from typing import Callable, Optional

from loguru import logger

from ..domain.models.operation import Compensation, OperationKind, OperationPayload, SpeculativeEntry
from ..domain.models.primitives import Amount
from ..infrastructure.config.app_config import VaultSyncConfig
from ..ports.ledger_reader import LedgerReaderPort
from .services.confirmed_state_poller import ConfirmedStatePoller, PollHandle
from .services.countdown_ticker import CountdownTicker
from .services.operation_journal import OperationJournal
from .services.reconciled_view import ReconciledView
from .services.speculative_store import FailureChannel, SpeculativeStore


class VaultSession:
    def __init__(
        self,
        config: Optional[VaultSyncConfig] = None,
        clock: Callable[[], float] = time.time,
        on_failure: Optional[FailureChannel] = None,
    ):
        self.config = config or VaultSyncConfig()
        self.store = SpeculativeStore(clock=clock, on_failure=on_failure)
        self.journal = OperationJournal(clock=clock)
        self._unsubscribe_journal = self.store.subscribe(self.journal.handle_store_event)
        self.poller = ConfirmedStatePoller(clock=clock, token_address=self.config.poller.token_address)
        self.view = ReconciledView(
            self.store,
            self.poller,
            clock=clock,
            grace_cycles=self.config.reconcile.grace_cycles,
            grace_cycles_by_kind=self.config.reconcile.grace_cycles_by_kind,
            clock_skew_seconds=self.config.reconcile.clock_skew_seconds,
        )
        self.ticker = CountdownTicker(self.view, tick_seconds=self.config.countdown.tick_seconds)
        self.account: Optional[str] = None
        self._handle: Optional[PollHandle] = None

    def start(self, account: Optional[str], reader: Optional[LedgerReaderPort]) -> "VaultSession":
        """Begin polling and ticking; call from a running event loop."""
        self.account = account
        self._handle = self.poller.start(account, reader, self.config.poller.interval_seconds)
        self.ticker.start()
        return self

    def switch_account(self, account: Optional[str], reader: Optional[LedgerReaderPort]) -> None:
        if account != self.account:
            logger.info(f"SESSION | account switch | {self.account} -> {account} | dropping {len(self.store)} pending")
            self.store.clear()
        self.account = account
        handle = self.poller.set_target(account, reader)
        if handle is not None:
            # The restarted run supersedes the handle from start().
            self._handle = handle

    def submit_deposit(
        self,
        correlation_key: str,
        amount: Amount,
        lock_duration: int,
        compensate: Optional[Compensation] = None,
    ) -> SpeculativeEntry:
        """Show a deposit immediately; ``correlation_key`` must be echoed by the ledger."""
        payload = OperationPayload(
            kind=OperationKind.DEPOSIT,
            account=self._require_account(),
            amount=amount,
            lock_duration=lock_duration,
            balance_delta=-amount,
        )
        return self.store.add(correlation_key, payload, compensate)

    def submit_withdraw(
        self,
        operation_id: str,
        deposit_id: str,
        amount: Amount,
        emergency: bool = False,
        compensate: Optional[Compensation] = None,
    ) -> SpeculativeEntry:
        payload = OperationPayload(
            kind=OperationKind.EMERGENCY_WITHDRAW if emergency else OperationKind.WITHDRAW,
            account=self._require_account(),
            amount=amount,
            deposit_id=deposit_id,
            balance_delta=amount,
        )
        return self.store.add(operation_id, payload, compensate)

    def reject(self, operation_id: str) -> None:
        """The submitting code learned the operation failed; undo it now."""
        self.store.revert(operation_id)

    def close(self) -> None:
        self.ticker.stop()
        if self._handle is not None:
            self._handle.stop()
            self._handle = None
        self.view.close()
        self._unsubscribe_journal()

    def _require_account(self) -> str:
        if not self.account:
            raise ValueError("No account connected")
        return self.account
