from dataclasses import dataclass
from typing import Optional

from .primitives import Amount


@dataclass(frozen=True)
class Deposit:
    """Confirmed deposit record as reported by the ledger."""

    deposit_id: str
    amount: Amount
    deposit_time: int  # seconds since epoch
    lock_duration: int  # seconds
    is_emergency: bool = False
    correlation_key: Optional[str] = None  # attached at submission, if the ledger echoes it

    @staticmethod
    def derive_id(account: str, index: int) -> str:
        return f"{account}-{index}"

    @property
    def unlock_time(self) -> int:
        return self.deposit_time + self.lock_duration


@dataclass(frozen=True)
class Remaining:
    days: int
    hours: int
    minutes: int
    seconds: int
    total_seconds: int


@dataclass(frozen=True)
class UnlockStatus:
    """Derived countdown for a deposit; recomputed on every tick."""

    remaining: Remaining
    is_expired: bool

    @property
    def days(self) -> int:
        return self.remaining.days

    @property
    def hours(self) -> int:
        return self.remaining.hours

    @property
    def minutes(self) -> int:
        return self.remaining.minutes

    @property
    def seconds(self) -> int:
        return self.remaining.seconds

    @property
    def total_seconds(self) -> int:
        return self.remaining.total_seconds
