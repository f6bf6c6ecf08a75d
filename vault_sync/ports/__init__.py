from .ledger_reader import LedgerReaderPort, LedgerReadError

__all__ = [
    "LedgerReaderPort",
    "LedgerReadError",
]
