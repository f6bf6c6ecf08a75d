import asyncio
from typing import Callable, List, Optional

from loguru import logger

from ...domain.models.record import ReconciledRecord
from .reconciled_view import ReconciledView


class CountdownTicker:
    """Re-ticks the view every ``tick_seconds`` while any deposit is still locked."""

    def __init__(self, view: ReconciledView, tick_seconds: float = 1.0):
        if tick_seconds <= 0:
            raise ValueError("tick_seconds must be > 0")
        self._view = view
        self._tick_seconds = tick_seconds
        self._task: Optional[asyncio.Task] = None
        self._wake: Optional[asyncio.Event] = None
        self._unsubscribe: Optional[Callable[[], None]] = None
        self.ticks = 0

    def start(self) -> "CountdownTicker":
        if self.running:
            return self
        self._wake = asyncio.Event()
        self._unsubscribe = self._view.subscribe(self._on_view_change)
        self._task = asyncio.create_task(self._run())
        return self

    def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        if self._task is not None:
            self._task.cancel()
            self._task = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def _run(self) -> None:
        while True:
            if not self._view.has_active_countdowns():
                self._wake.clear()
                logger.debug("COUNTDOWN | idle | all deposits unlocked")
                await self._wake.wait()
            await asyncio.sleep(self._tick_seconds)
            self.ticks += 1
            self._view.tick()

    def _on_view_change(self, records: List[ReconciledRecord]) -> None:
        if self._wake is not None and self._view.has_active_countdowns():
            self._wake.set()
