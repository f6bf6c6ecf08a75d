from .primitives import Amount, Timestamp, format_units, parse_units
from .deposit import Deposit, Remaining, UnlockStatus
from .operation import OperationKind, OperationPayload, SpeculativeEntry, Compensation
from .snapshot import LedgerSnapshot, PollerStatus
from .record import ReconciledRecord, RecordKind

__all__ = [
    "Amount",
    "Timestamp",
    "format_units",
    "parse_units",
    "Deposit",
    "Remaining",
    "UnlockStatus",
    "OperationKind",
    "OperationPayload",
    "SpeculativeEntry",
    "Compensation",
    "LedgerSnapshot",
    "PollerStatus",
    "ReconciledRecord",
    "RecordKind",
]
