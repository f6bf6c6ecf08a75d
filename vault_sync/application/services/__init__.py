from .speculative_store import SpeculativeStore, StoreAction, StoreEvent
from .operation_journal import OperationJournal, OperationStatus, InvalidTransition
from .confirmed_state_poller import ConfirmedStatePoller, PollHandle
from .reconciled_view import ReconciledView
from .countdown_ticker import CountdownTicker

__all__ = [
    "SpeculativeStore",
    "StoreAction",
    "StoreEvent",
    "OperationJournal",
    "OperationStatus",
    "InvalidTransition",
    "ConfirmedStatePoller",
    "PollHandle",
    "ReconciledView",
    "CountdownTicker",
]
