from .in_memory import InMemoryLedgerReader
from .http_reader import HttpLedgerReader

__all__ = [
    "InMemoryLedgerReader",
    "HttpLedgerReader",
]
