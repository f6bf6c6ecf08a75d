import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional

from .speculative_store import StoreAction, StoreEvent


class OperationStatus(Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    REVERTED = "REVERTED"


TERMINAL = {OperationStatus.CONFIRMED, OperationStatus.REVERTED}


class InvalidTransition(Exception):
    """Raised when an invalid operation state transition is attempted."""


@dataclass
class OperationRecord:
    id: str
    status: OperationStatus
    started_at: float
    last_update_at: float


class OperationJournal:
    """Tracks speculative operation lifecycle with explicit transition rules."""

    def __init__(self, clock: Callable[[], float] = time.time, history_limit: int = 100):
        if history_limit < 1:
            raise ValueError("history_limit must be >= 1")
        self._clock = clock
        self._history_limit = history_limit
        self.operations: Dict[str, OperationRecord] = {}
        self._history: List[OperationRecord] = []
        self._transitions = {
            OperationStatus.PENDING: {OperationStatus.CONFIRMED, OperationStatus.REVERTED},
        }

    def begin(self, op_id: str) -> OperationRecord:
        """Start tracking; a terminal id may be reused."""
        now = self._clock()
        current = self.operations.get(op_id)
        if current is not None and current.status is OperationStatus.PENDING:
            # Overwriting add restarts the same pending operation.
            current.started_at = now
            current.last_update_at = now
            return current
        record = OperationRecord(id=op_id, status=OperationStatus.PENDING, started_at=now, last_update_at=now)
        self.operations[op_id] = record
        return record

    def can_transition(self, op_id: str, to_state: OperationStatus) -> bool:
        record = self.operations.get(op_id)
        if not record:
            return False
        return to_state in self._transitions.get(record.status, set())

    def transition(self, op_id: str, to_state: OperationStatus) -> OperationRecord:
        if not self.can_transition(op_id, to_state):
            record = self.operations.get(op_id)
            current = record.status if record else "UNKNOWN"
            raise InvalidTransition(f"{current} -> {to_state}")

        record = self.operations[op_id]
        record.status = to_state
        record.last_update_at = self._clock()
        if to_state in TERMINAL:
            self._history.append(record)
            evicted = self._history[:-self._history_limit]
            del self._history[:-self._history_limit]
            for old in evicted:
                # Outcomes past the history window are forgotten entirely.
                if self.operations.get(old.id) is old:
                    del self.operations[old.id]
        return record

    def status(self, op_id: str) -> Optional[OperationStatus]:
        record = self.operations.get(op_id)
        return record.status if record else None

    def pending(self) -> List[OperationRecord]:
        return [r for r in self.operations.values() if r.status is OperationStatus.PENDING]

    def recent_outcomes(self) -> List[OperationRecord]:
        return list(self._history)

    def handle_store_event(self, event: StoreEvent) -> None:
        """Store listener: mirror add/confirm/revert into the journal."""
        if event.action is StoreAction.ADDED:
            self.begin(event.entry_id)
        elif event.action in (StoreAction.CONFIRMED, StoreAction.REVERTED) and event.entry is not None:
            if event.entry_id not in self.operations or self.operations[event.entry_id].status in TERMINAL:
                # Entry was added before this journal subscribed.
                self.begin(event.entry_id)
            if event.action is StoreAction.CONFIRMED:
                self.transition(event.entry_id, OperationStatus.CONFIRMED)
            else:
                self.transition(event.entry_id, OperationStatus.REVERTED)
        elif event.action is StoreAction.CLEARED:
            # Session reset: pending operations are forgotten, not resolved.
            for record in self.pending():
                del self.operations[record.id]
