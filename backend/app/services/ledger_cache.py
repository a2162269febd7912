"""Short-lived in-memory snapshot of the roster and the event lookups.

The cache has no locking. Two requests may repopulate it at the same time;
the worst outcome is an extra read, never a corrupt snapshot, because every
reload replaces the whole list and bumps ``generation``.
"""
import time
from typing import Callable, Optional

from app.core.config import EVENT_CACHE_TTL_SECONDS, ROSTER_CACHE_TTL_SECONDS
from app.schemas.machine import EventInfo, MachineRecord

RosterLoader = Callable[[], list[MachineRecord]]
IndexBuilder = Callable[[list[MachineRecord]], dict[str, MachineRecord]]
EventLoader = Callable[[str], Optional[EventInfo]]


class LedgerCache:
    def __init__(
        self,
        roster_ttl: float = ROSTER_CACHE_TTL_SECONDS,
        event_ttl: float = EVENT_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.roster_ttl = roster_ttl
        self.event_ttl = event_ttl
        self._clock = clock
        self.generation = 0
        self._roster: list[MachineRecord] = []
        self._roster_ts = 0.0
        self._index: dict[str, MachineRecord] = {}
        self._index_ts = 0.0
        self._index_generation = -1
        self._events: dict[str, tuple[float, Optional[EventInfo]]] = {}

    def _is_fresh(self, ts: float, ttl: float) -> bool:
        return bool(ts) and (self._clock() - ts) < ttl

    def get_roster(self, loader: RosterLoader, force_refresh: bool = False) -> list[MachineRecord]:
        if not force_refresh and self._is_fresh(self._roster_ts, self.roster_ttl):
            return self._roster

        records = loader()
        self._roster = records
        self._roster_ts = self._clock()
        self.generation += 1
        # o indice sempre acompanha o snapshot atual
        self._index = {}
        self._index_ts = 0.0
        return records

    def get_index(
        self,
        loader: RosterLoader,
        build: IndexBuilder,
        force_refresh: bool = False,
    ) -> dict[str, MachineRecord]:
        roster = self.get_roster(loader, force_refresh=force_refresh)
        if self._index_generation == self.generation and self._is_fresh(self._index_ts, self.roster_ttl):
            return self._index

        self._index = build(roster)
        self._index_ts = self._clock()
        self._index_generation = self.generation
        return self._index

    def get_event(self, event_id: str, loader: EventLoader) -> Optional[EventInfo]:
        cached = self._events.get(event_id)
        if cached and self._is_fresh(cached[0], self.event_ttl):
            return cached[1]

        data = loader(event_id)
        self._events[event_id] = (self._clock(), data)
        return data

    def invalidate(self) -> None:
        self._roster_ts = 0.0
        self._index_ts = 0.0

    def clear_events(self) -> None:
        self._events.clear()
