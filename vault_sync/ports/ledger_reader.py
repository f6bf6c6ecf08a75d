from abc import ABC, abstractmethod
from typing import Optional

from ..domain.models.deposit import Deposit
from ..domain.models.primitives import Amount


class LedgerReadError(Exception):
    """Transient failure reading the ledger; the poll cycle is treated as failed."""


class LedgerReaderPort(ABC):
    """Read-only view of the vault ledger."""

    @abstractmethod
    async def get_balance(self, account: str, token_address: Optional[str] = None) -> Amount:
        ...

    @abstractmethod
    async def get_deposit_count(self, account: str) -> int:
        ...

    @abstractmethod
    async def get_deposit(self, account: str, index: int) -> Deposit:
        ...
