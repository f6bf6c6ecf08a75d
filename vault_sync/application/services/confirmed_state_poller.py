import asyncio
import itertools
import time
from typing import Callable, Dict, List, Optional, Set, Tuple

from loguru import logger

from ...domain.models.deposit import Deposit
from ...domain.models.primitives import Amount
from ...domain.models.snapshot import LedgerSnapshot, PollerStatus
from ...ports.ledger_reader import LedgerReaderPort

StatusListener = Callable[[PollerStatus], None]

DEFAULT_INTERVAL_SECONDS = 10.0


class PollHandle:
    """Scoped handle for one ``start`` call; ``stop`` is idempotent."""

    def __init__(self, poller: "ConfirmedStatePoller", generation: int):
        self._poller = poller
        self._generation = generation

    @property
    def active(self) -> bool:
        return self._poller.running and self._poller._generation == self._generation

    def stop(self) -> None:
        # A superseded handle must not stop the run that replaced it.
        if self._poller._generation == self._generation:
            self._poller.stop()


class ConfirmedStatePoller:
    """Keeps the latest confirmed balance and deposit list for one account.

    Every request is tagged with the generation current when it was issued.
    ``start``/``stop``/``set_target`` bump the generation, so a response for
    a superseded account or reader is dropped instead of applied.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.time,
        token_address: Optional[str] = None,
    ):
        self._clock = clock
        self._token_address = token_address
        self._account: Optional[str] = None
        self._reader: Optional[LedgerReaderPort] = None
        self._interval = DEFAULT_INTERVAL_SECONDS
        self._generation = 0
        self._task: Optional[asyncio.Task] = None
        self._oob_tasks: Set[asyncio.Task] = set()
        self._status = PollerStatus(snapshot=LedgerSnapshot.empty())
        self._listeners: Dict[int, StatusListener] = {}
        self._handles = itertools.count(1)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def start(
        self,
        account: Optional[str],
        reader: Optional[LedgerReaderPort],
        interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
    ) -> PollHandle:
        """Begin polling; must be called from a running event loop."""
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")
        self._cancel_tasks()
        self._generation += 1
        if account != self._account:
            self._replace_status(PollerStatus(snapshot=LedgerSnapshot.empty(account)))
        self._account = account
        self._reader = reader
        self._interval = float(interval_seconds)
        self._task = asyncio.create_task(self._run(self._generation))
        logger.info(f"POLLER | start | account={account} interval={self._interval}s gen={self._generation}")
        return PollHandle(self, self._generation)

    def stop(self) -> None:
        if self._task is None and not self._oob_tasks:
            return
        self._generation += 1
        self._cancel_tasks()
        logger.info(f"POLLER | stop | account={self._account} gen={self._generation}")

    def set_target(self, account: Optional[str], reader: Optional[LedgerReaderPort]) -> Optional[PollHandle]:
        """Switch account/reader; in-flight responses for the old target are discarded.

        Returns the handle of the restarted run when polling was active,
        otherwise None.
        """
        if account == self._account and reader is self._reader:
            return None
        if self.running:
            return self.start(account, reader, self._interval)
        self._generation += 1
        self._account = account
        self._reader = reader
        self._replace_status(PollerStatus(snapshot=LedgerSnapshot.empty(account)))
        return None

    def refresh_now(self) -> asyncio.Task:
        """Run one out-of-band cycle; the periodic schedule is untouched."""
        task = asyncio.create_task(self._cycle(self._generation))
        self._oob_tasks.add(task)
        task.add_done_callback(self._oob_tasks.discard)
        return task

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def account(self) -> Optional[str]:
        return self._account

    @property
    def interval_seconds(self) -> float:
        return self._interval

    @property
    def snapshot(self) -> LedgerSnapshot:
        return self._status.snapshot

    @property
    def status(self) -> PollerStatus:
        return self._status

    def subscribe(self, listener: StatusListener) -> Callable[[], None]:
        handle = next(self._handles)
        self._listeners[handle] = listener

        def unsubscribe() -> None:
            self._listeners.pop(handle, None)

        return unsubscribe

    # ------------------------------------------------------------------
    # Cycle
    # ------------------------------------------------------------------
    async def _run(self, generation: int) -> None:
        while generation == self._generation:
            await self._cycle(generation)
            await asyncio.sleep(self._interval)

    async def _cycle(self, generation: int) -> None:
        account = self._account
        reader = self._reader
        if not account or reader is None:
            self._apply(generation, account, LedgerSnapshot.empty(account, self._clock()))
            return

        try:
            balance, deposits = await self._fetch(account, reader)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            if not self._is_current(generation, account):
                logger.debug(f"POLLER | stale failure discarded | account={account} gen={generation}")
                return
            now = self._clock()
            logger.warning(f"POLLER | cycle failed | account={account} | {type(exc).__name__}: {exc}")
            self._replace_status(
                PollerStatus(
                    snapshot=self._status.snapshot,
                    last_error=exc,
                    last_error_at=now,
                    is_stale=True,
                )
            )
            return

        snapshot = LedgerSnapshot(
            account=account,
            balance=balance,
            deposits=tuple(deposits),
            fetched_at=self._clock(),
            from_ledger=True,
        )
        self._apply(generation, account, snapshot)

    async def _fetch(self, account: str, reader: LedgerReaderPort) -> Tuple[Amount, List[Deposit]]:
        balance, count = await _gather_all(
            reader.get_balance(account, self._token_address),
            reader.get_deposit_count(account),
        )
        deposits = await _gather_all(*(reader.get_deposit(account, i) for i in range(int(count))))
        return balance, list(deposits)

    def _apply(self, generation: int, account: Optional[str], snapshot: LedgerSnapshot) -> None:
        if not self._is_current(generation, account):
            logger.debug(f"POLLER | stale response discarded | account={account} gen={generation}")
            return
        self._check_regressions(self._status.snapshot, snapshot)
        self._replace_status(
            PollerStatus(
                snapshot=snapshot,
                last_error=self._status.last_error,
                last_error_at=self._status.last_error_at,
                is_stale=False,
            )
        )

    def _is_current(self, generation: int, account: Optional[str]) -> bool:
        return generation == self._generation and account == self._account

    def _replace_status(self, status: PollerStatus) -> None:
        self._status = status
        for listener in list(self._listeners.values()):
            try:
                listener(status)
            except Exception as exc:
                logger.warning(f"POLLER | listener error | {type(exc).__name__}: {exc}")

    def _check_regressions(self, previous: LedgerSnapshot, current: LedgerSnapshot) -> None:
        if previous.account != current.account:
            return
        known = previous.by_id()
        for deposit in current.deposits:
            before = known.get(deposit.deposit_id)
            if before is None:
                continue
            if before.deposit_time != deposit.deposit_time:
                logger.warning(
                    f"POLLER | deposit_time changed | id={deposit.deposit_id} "
                    f"{before.deposit_time} -> {deposit.deposit_time}"
                )
            if before.is_emergency and not deposit.is_emergency:
                logger.warning(f"POLLER | is_emergency reverted | id={deposit.deposit_id}")

    def _cancel_tasks(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None
        for task in list(self._oob_tasks):
            task.cancel()
        self._oob_tasks.clear()


async def _gather_all(*aws):
    """Run all reads concurrently; fail with the first error once all have settled."""
    results = await asyncio.gather(*aws, return_exceptions=True)
    for result in results:
        if isinstance(result, BaseException):
            raise result
    return results
