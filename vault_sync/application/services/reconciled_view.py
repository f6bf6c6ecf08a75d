import itertools
import time
from typing import Callable, Dict, List, Mapping, Optional, Set

from loguru import logger

from ...domain.models.deposit import Deposit, UnlockStatus
from ...domain.models.operation import OperationKind, OperationPayload, SpeculativeEntry
from ...domain.models.primitives import Amount
from ...domain.models.record import ReconciledRecord
from ...domain.models.snapshot import LedgerSnapshot, PollerStatus
from ...domain.unlock import unlock_for
from .confirmed_state_poller import ConfirmedStatePoller
from .speculative_store import SpeculativeStore, StoreEvent

ViewListener = Callable[[List[ReconciledRecord]], None]
UnlockListener = Callable[[Deposit], None]

DEFAULT_GRACE_CYCLES = 3
DEFAULT_CLOCK_SKEW_SECONDS = 60


class ReconciledView:
    """Merges speculative entries and the confirmed snapshot into one ordered list.

    Pending placeholders come first (newest first), then confirmed deposits
    by ``deposit_time`` descending. An entry is dropped from the store once
    its confirmed counterpart shows up, and reverted once the latest
    snapshot read from the ledger is older than its creation plus the grace
    window with still no counterpart.
    """

    def __init__(
        self,
        store: SpeculativeStore,
        poller: ConfirmedStatePoller,
        clock: Callable[[], float] = time.time,
        grace_cycles: int = DEFAULT_GRACE_CYCLES,
        grace_cycles_by_kind: Optional[Mapping[OperationKind, int]] = None,
        clock_skew_seconds: float = DEFAULT_CLOCK_SKEW_SECONDS,
    ):
        if grace_cycles < 1:
            raise ValueError("grace_cycles must be >= 1")
        self._store = store
        self._poller = poller
        self._clock = clock
        self._grace_cycles = grace_cycles
        self._grace_cycles_by_kind: Dict[OperationKind, int] = dict(grace_cycles_by_kind or {})
        self._clock_skew = clock_skew_seconds

        self._records: List[ReconciledRecord] = []
        self._balance: Amount = 0
        self._tick_time: float = clock()
        self._counting_down: Set[str] = set()
        self._seen_account: Optional[str] = None
        self._seen_deposits: Set[str] = set()
        self._newly_unlocked: List[Deposit] = []

        self._listeners: Dict[int, ViewListener] = {}
        self._unlock_listeners: Dict[int, UnlockListener] = {}
        self._handles = itertools.count(1)
        self._recomputing = False
        self._dirty = False

        self._detach = [
            store.subscribe(self._on_store_event),
            poller.subscribe(self._on_poller_status),
        ]
        self.recompute()

    # ------------------------------------------------------------------
    # Inputs
    # ------------------------------------------------------------------
    def tick(self, now: Optional[float] = None) -> List[ReconciledRecord]:
        """Countdown tick: recompute unlock status at ``now``."""
        return self.recompute(now)

    def recompute(self, now: Optional[float] = None) -> List[ReconciledRecord]:
        if self._recomputing:
            # Triggered by our own confirm/revert; picked up by the running pass.
            self._dirty = True
            return self._records

        self._tick_time = self._clock() if now is None else now
        self._recomputing = True
        try:
            self._dirty = True
            while self._dirty:
                self._dirty = False
                self._recompute_once()
        finally:
            self._recomputing = False

        unlocked, self._newly_unlocked = self._newly_unlocked, []
        for deposit in unlocked:
            self._fan_out(self._unlock_listeners, deposit)
        self._fan_out(self._listeners, list(self._records))
        return self._records

    def close(self) -> None:
        for detach in self._detach:
            detach()
        self._detach = []

    # ------------------------------------------------------------------
    # Outputs
    # ------------------------------------------------------------------
    @property
    def records(self) -> List[ReconciledRecord]:
        return list(self._records)

    @property
    def pending_records(self) -> List[ReconciledRecord]:
        return [r for r in self._records if r.is_pending]

    @property
    def confirmed_records(self) -> List[ReconciledRecord]:
        return [r for r in self._records if not r.is_pending]

    @property
    def balance(self) -> Amount:
        return self._balance

    @property
    def status(self) -> PollerStatus:
        return self._poller.status

    @property
    def tick_time(self) -> float:
        return self._tick_time

    def unlock_status(self, deposit_id: str) -> Optional[UnlockStatus]:
        for record in self._records:
            if record.deposit is not None and record.deposit.deposit_id == deposit_id:
                return record.unlock
        return None

    def has_active_countdowns(self) -> bool:
        return any(r.unlock is not None and not r.unlock.is_expired for r in self._records)

    def grace_seconds_for(self, kind: Optional[OperationKind]) -> float:
        cycles = self._grace_cycles_by_kind.get(kind, self._grace_cycles)
        return cycles * self._poller.interval_seconds

    def subscribe(self, listener: ViewListener) -> Callable[[], None]:
        return self._register(self._listeners, listener)

    def subscribe_unlocks(self, listener: UnlockListener) -> Callable[[], None]:
        """Called once per deposit when its countdown reaches zero."""
        return self._register(self._unlock_listeners, listener)

    # ------------------------------------------------------------------
    # Merge
    # ------------------------------------------------------------------
    def _recompute_once(self) -> None:
        snapshot = self._poller.snapshot
        now = self._tick_time
        self._remember_deposits(snapshot)

        pending: List[SpeculativeEntry] = []
        to_confirm: List[SpeculativeEntry] = []
        to_revert: List[SpeculativeEntry] = []
        for entry in self._store.entries():
            if self._is_confirmed(entry, snapshot):
                to_confirm.append(entry)
            elif self._grace_expired(entry, snapshot):
                to_revert.append(entry)
            else:
                pending.append(entry)

        pending.sort(key=lambda e: (e.created_at, e.id), reverse=True)
        deposits = sorted(snapshot.deposits, key=lambda d: (d.deposit_time, d.deposit_id), reverse=True)

        records = [ReconciledRecord.pending(e) for e in pending]
        for deposit in deposits:
            unlock = unlock_for(deposit, now)
            self._track_unlock(deposit, unlock)
            records.append(ReconciledRecord.confirmed(deposit, unlock))
        self._counting_down.intersection_update(d.deposit_id for d in deposits)

        self._records = records
        self._balance = snapshot.balance + sum(
            e.payload.balance_delta for e in pending if isinstance(e.payload, OperationPayload)
        )

        for entry in to_confirm:
            logger.info(f"RECONCILE | confirmed | id={entry.id} kind={_kind_name(entry)}")
            self._store.confirm(entry.id)
        for entry in to_revert:
            logger.info(
                f"RECONCILE | grace expired, reverting | id={entry.id} kind={_kind_name(entry)} "
                f"age={snapshot.fetched_at - entry.created_at:.1f}s"
            )
            self._store.revert(entry.id)

    def _is_confirmed(self, entry: SpeculativeEntry, snapshot: LedgerSnapshot) -> bool:
        payload = entry.payload
        if not snapshot.from_ledger:
            return False
        if not isinstance(payload, OperationPayload) or payload.account != snapshot.account:
            return False

        if payload.kind is OperationKind.DEPOSIT:
            return any(
                d.correlation_key == entry.id and entry.created_at <= d.deposit_time + self._clock_skew
                for d in snapshot.deposits
            )

        # Withdrawals are confirmed by the target's new state, which only a
        # snapshot taken after submission can show.
        if payload.deposit_id is None or snapshot.fetched_at <= entry.created_at:
            return False
        target = snapshot.find(payload.deposit_id)
        if target is None:
            # Absence only counts for a deposit an earlier read listed.
            return payload.deposit_id in self._seen_deposits
        if payload.kind is OperationKind.WITHDRAW:
            return target.amount == 0
        if payload.kind is OperationKind.EMERGENCY_WITHDRAW:
            return target.is_emergency
        return False

    def _grace_expired(self, entry: SpeculativeEntry, snapshot: LedgerSnapshot) -> bool:
        # Only ledger reads advance the grace clock; failed or reader-less cycles never revert.
        if not snapshot.from_ledger:
            return False
        payload = entry.payload
        if isinstance(payload, OperationPayload) and payload.account != snapshot.account:
            return False
        return snapshot.fetched_at - entry.created_at >= self.grace_seconds_for(entry.kind)

    def _remember_deposits(self, snapshot: LedgerSnapshot) -> None:
        if not snapshot.from_ledger:
            return
        if snapshot.account != self._seen_account:
            self._seen_account = snapshot.account
            self._seen_deposits = set()
        self._seen_deposits.update(d.deposit_id for d in snapshot.deposits)

    def _track_unlock(self, deposit: Deposit, unlock: UnlockStatus) -> None:
        if not unlock.is_expired:
            self._counting_down.add(deposit.deposit_id)
        elif deposit.deposit_id in self._counting_down:
            self._counting_down.discard(deposit.deposit_id)
            self._newly_unlocked.append(deposit)

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------
    def _on_store_event(self, event: StoreEvent) -> None:
        self.recompute()

    def _on_poller_status(self, status: PollerStatus) -> None:
        self.recompute()

    def _register(self, registry: Dict[int, Callable], listener: Callable) -> Callable[[], None]:
        handle = next(self._handles)
        registry[handle] = listener

        def unsubscribe() -> None:
            registry.pop(handle, None)

        return unsubscribe

    @staticmethod
    def _fan_out(registry: Dict[int, Callable], arg) -> None:
        for listener in list(registry.values()):
            try:
                listener(arg)
            except Exception as exc:
                logger.warning(f"RECONCILE | listener error | {type(exc).__name__}: {exc}")


def _kind_name(entry: SpeculativeEntry) -> str:
    return entry.kind.value if entry.kind else "OPAQUE"
