import asyncio
from typing import Dict, List, Optional, Set, Tuple

from ...domain.models.deposit import Deposit
from ...domain.models.primitives import Amount
from ...ports.ledger_reader import LedgerReaderPort, LedgerReadError


class InMemoryLedgerReader(LedgerReaderPort):
    """Simple in-memory ledger for tests and demos."""

    def __init__(self, latency_seconds: float = 0.0):
        self.latency_seconds = latency_seconds
        self._balances: Dict[Tuple[str, Optional[str]], Amount] = {}
        self._deposits: Dict[str, List[Deposit]] = {}
        self._failing: Set[Tuple[str, Optional[int]]] = set()
        self.calls: List[Tuple[str, str, Optional[int]]] = []

    # ------------------------------------------------------------------
    # Seeding
    # ------------------------------------------------------------------
    def set_balance(self, account: str, amount: Amount, token_address: Optional[str] = None) -> None:
        self._balances[(account, token_address)] = amount

    def add_deposit(
        self,
        account: str,
        amount: Amount,
        deposit_time: int,
        lock_duration: int,
        correlation_key: Optional[str] = None,
    ) -> Deposit:
        deposits = self._deposits.setdefault(account, [])
        deposit = Deposit(
            deposit_id=Deposit.derive_id(account, len(deposits)),
            amount=amount,
            deposit_time=deposit_time,
            lock_duration=lock_duration,
            correlation_key=correlation_key,
        )
        deposits.append(deposit)
        return deposit

    def replace_deposit(self, account: str, index: int, **changes) -> Deposit:
        current = self._deposits[account][index]
        values = {
            "deposit_id": current.deposit_id,
            "amount": current.amount,
            "deposit_time": current.deposit_time,
            "lock_duration": current.lock_duration,
            "is_emergency": current.is_emergency,
            "correlation_key": current.correlation_key,
        }
        values.update(changes)
        updated = Deposit(**values)
        self._deposits[account][index] = updated
        return updated

    def fail(self, operation: str, index: Optional[int] = None) -> None:
        """Make ``operation`` ('balance', 'count' or 'deposit') raise LedgerReadError."""
        self._failing.add((operation, index))

    def heal(self) -> None:
        self._failing.clear()

    # ------------------------------------------------------------------
    # LedgerReaderPort
    # ------------------------------------------------------------------
    async def get_balance(self, account: str, token_address: Optional[str] = None) -> Amount:
        await self._io("balance", account)
        return self._balances.get((account, token_address), 0)

    async def get_deposit_count(self, account: str) -> int:
        await self._io("count", account)
        return len(self._deposits.get(account, []))

    async def get_deposit(self, account: str, index: int) -> Deposit:
        await self._io("deposit", account, index)
        try:
            return self._deposits[account][index]
        except (KeyError, IndexError) as exc:
            raise LedgerReadError(f"No deposit {account}#{index}") from exc

    async def _io(self, operation: str, account: str, index: Optional[int] = None) -> None:
        self.calls.append((operation, account, index))
        await asyncio.sleep(self.latency_seconds)
        if (operation, None) in self._failing or (operation, index) in self._failing:
            raise LedgerReadError(f"{operation} read failed for {account}")
