from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

from .deposit import Deposit
from .primitives import Amount, Timestamp


@dataclass(frozen=True)
class LedgerSnapshot:
    """Confirmed state for one account, published whole by the poller.

    ``from_ledger`` is False for placeholders built by ``empty``, which were
    never read from the ledger; those neither confirm nor expire speculative
    entries.
    """

    account: Optional[str]
    balance: Amount
    deposits: Tuple[Deposit, ...]
    fetched_at: Timestamp
    from_ledger: bool = True

    @classmethod
    def empty(cls, account: Optional[str] = None, fetched_at: Timestamp = 0.0) -> "LedgerSnapshot":
        return cls(account=account, balance=0, deposits=(), fetched_at=fetched_at, from_ledger=False)

    def by_id(self) -> Dict[str, Deposit]:
        return {d.deposit_id: d for d in self.deposits}

    def find(self, deposit_id: str) -> Optional[Deposit]:
        for deposit in self.deposits:
            if deposit.deposit_id == deposit_id:
                return deposit
        return None


@dataclass(frozen=True)
class PollerStatus:
    snapshot: LedgerSnapshot
    last_error: Optional[BaseException] = field(default=None, compare=False)
    last_error_at: Optional[Timestamp] = None
    is_stale: bool = False

    @property
    def last_updated_at(self) -> Timestamp:
        return self.snapshot.fetched_at
