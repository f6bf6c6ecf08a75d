from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .deposit import Deposit, UnlockStatus
from .operation import SpeculativeEntry


class RecordKind(Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"


@dataclass(frozen=True)
class ReconciledRecord:
    """View-model row: a confirmed deposit with its countdown, or a pending placeholder."""

    kind: RecordKind
    key: str
    deposit: Optional[Deposit] = None
    unlock: Optional[UnlockStatus] = None
    entry: Optional[SpeculativeEntry] = None

    @classmethod
    def pending(cls, entry: SpeculativeEntry) -> "ReconciledRecord":
        return cls(kind=RecordKind.PENDING, key=entry.id, entry=entry)

    @classmethod
    def confirmed(cls, deposit: Deposit, unlock: UnlockStatus) -> "ReconciledRecord":
        return cls(kind=RecordKind.CONFIRMED, key=deposit.deposit_id, deposit=deposit, unlock=unlock)

    @property
    def is_pending(self) -> bool:
        return self.kind is RecordKind.PENDING

    @property
    def sort_time(self) -> float:
        if self.entry is not None:
            return self.entry.created_at
        return float(self.deposit.deposit_time)
