import itertools
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from loguru import logger

from ...domain.models.operation import Compensation, SpeculativeEntry

FailureChannel = Callable[[str, BaseException], None]


class StoreAction(Enum):
    ADDED = "ADDED"
    CONFIRMED = "CONFIRMED"
    REVERTED = "REVERTED"
    CLEARED = "CLEARED"


@dataclass(frozen=True)
class StoreEvent:
    action: StoreAction
    entry_id: Optional[str]
    entry: Optional[SpeculativeEntry]  # None when the call found nothing to act on


StoreListener = Callable[[StoreEvent], None]


class SpeculativeStore:
    """Pending speculative entries keyed by operation id.

    Owned per session: construct at session start, ``clear()`` on account
    switch. Mutations notify subscribers synchronously, in call order.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.time,
        on_failure: Optional[FailureChannel] = None,
    ):
        self._clock = clock
        self._on_failure = on_failure
        self._entries: Dict[str, SpeculativeEntry] = {}
        self._listeners: Dict[int, StoreListener] = {}
        self._handles = itertools.count(1)

    def add(self, entry_id: str, payload: Any, compensate: Optional[Compensation] = None) -> SpeculativeEntry:
        if entry_id in self._entries:
            # Old compensation is dropped; callers must not reuse a pending id.
            logger.warning(f"SPECULATIVE | overwrite pending entry | id={entry_id}")
        entry = SpeculativeEntry(
            id=entry_id,
            payload=payload,
            created_at=self._clock(),
            compensate=compensate,
        )
        self._entries[entry_id] = entry
        self._notify(StoreEvent(StoreAction.ADDED, entry_id, entry))
        return entry

    def confirm(self, entry_id: str) -> None:
        entry = self._entries.pop(entry_id, None)
        self._notify(StoreEvent(StoreAction.CONFIRMED, entry_id, entry))

    def revert(self, entry_id: str) -> None:
        entry = self._entries.get(entry_id)
        if entry is not None and entry.compensate is not None:
            try:
                entry.compensate()
            except Exception as exc:
                logger.warning(f"SPECULATIVE | compensation failed | id={entry_id} | {type(exc).__name__}: {exc}")
                self._report_failure(entry_id, exc)
        # Removal is unconditional once revert is decided.
        self._entries.pop(entry_id, None)
        self._notify(StoreEvent(StoreAction.REVERTED, entry_id, entry))

    def get(self, entry_id: str) -> Optional[SpeculativeEntry]:
        return self._entries.get(entry_id)

    def has(self, entry_id: str) -> bool:
        return entry_id in self._entries

    def entries(self) -> List[SpeculativeEntry]:
        return list(self._entries.values())

    def clear(self) -> None:
        self._entries.clear()
        self._notify(StoreEvent(StoreAction.CLEARED, None, None))

    def subscribe(self, listener: StoreListener) -> Callable[[], None]:
        handle = next(self._handles)
        self._listeners[handle] = listener

        def unsubscribe() -> None:
            self._listeners.pop(handle, None)

        return unsubscribe

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, entry_id: str) -> bool:
        return self.has(entry_id)

    def _notify(self, event: StoreEvent) -> None:
        for listener in list(self._listeners.values()):
            try:
                listener(event)
            except Exception as exc:
                logger.warning(f"SPECULATIVE | listener error | action={event.action.value} | {type(exc).__name__}: {exc}")
                self._report_failure(event.entry_id or "", exc)

    def _report_failure(self, entry_id: str, exc: BaseException) -> None:
        if self._on_failure is None:
            return
        try:
            self._on_failure(entry_id, exc)
        except Exception as channel_exc:
            logger.error(f"SPECULATIVE | failure channel error | {type(channel_exc).__name__}: {channel_exc}")
