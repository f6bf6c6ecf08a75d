from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

from .primitives import Amount, Timestamp

Compensation = Callable[[], None]


class OperationKind(Enum):
    DEPOSIT = "DEPOSIT"
    WITHDRAW = "WITHDRAW"
    EMERGENCY_WITHDRAW = "EMERGENCY_WITHDRAW"


@dataclass(frozen=True)
class OperationPayload:
    """What the user submitted; interpreted only by the reconciliation engine."""

    kind: OperationKind
    account: str
    amount: Amount = 0
    lock_duration: int = 0
    deposit_id: Optional[str] = None  # target of a withdraw
    balance_delta: Amount = 0  # applied to the displayed balance while pending


@dataclass(frozen=True)
class SpeculativeEntry:
    id: str
    payload: Any
    created_at: Timestamp
    compensate: Optional[Compensation] = None

    @property
    def kind(self) -> Optional[OperationKind]:
        if isinstance(self.payload, OperationPayload):
            return self.payload.kind
        return None
