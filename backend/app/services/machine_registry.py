import logging
from typing import Optional

from app.core.config import EVENTS_SHEET, HISTORY_SHEET, ROSTER_SHEET
from app.schemas.machine import EventInfo, MachineRecord, MovementRecord
from app.services.ledger_cache import LedgerCache
from app.services.sheet_layout import (
    EVENT_COLUMNS,
    FIRST_DATA_ROW,
    HISTORY_COLUMNS,
    ROSTER_COLUMNS,
    events_range,
    history_range,
    is_blank_row,
    roster_range,
    row_to_fields,
)
from app.services.sheets_client import RangeStore, RangeStoreError
from app.services.text_utils import normalize_spaces

logger = logging.getLogger("uvicorn.error")


def build_serial_index(records: list[MachineRecord]) -> dict[str, MachineRecord]:
    index: dict[str, MachineRecord] = {}
    for record in records:
        serial = normalize_spaces(record.serial)
        if serial:
            index[serial] = record
    return index


class MachineRegistry:
    """Read side of the ledger.

    Every read failure degrades to an empty result. An empty roster therefore
    means "unknown", not "no machines".
    """

    def __init__(
        self,
        store: RangeStore,
        cache: LedgerCache,
        roster_sheet: str = ROSTER_SHEET,
        history_sheet: str = HISTORY_SHEET,
        events_sheet: str = EVENTS_SHEET,
    ):
        self.store = store
        self.cache = cache
        self.roster_sheet = roster_sheet
        self.history_sheet = history_sheet
        self.events_sheet = events_sheet

    def _load_roster(self) -> list[MachineRecord]:
        try:
            rows = self.store.get_values(roster_range(self.roster_sheet))
        except RangeStoreError:
            logger.exception("Falha ao carregar maquinas da planilha.")
            return []

        records: list[MachineRecord] = []
        for offset, row in enumerate(rows):
            if is_blank_row(row):
                continue
            records.append(MachineRecord(row=FIRST_DATA_ROW + offset, **row_to_fields(row, ROSTER_COLUMNS)))
        return records

    def _load_event(self, event_id: str) -> Optional[EventInfo]:
        rows = self.store.get_values(events_range(self.events_sheet))
        for row in rows:
            if not row or normalize_spaces(row[0]) != event_id:
                continue
            fields = row_to_fields(row, EVENT_COLUMNS)
            fields["event_id"] = event_id
            return EventInfo(**fields)
        return None

    def get_roster(self, force_refresh: bool = False) -> list[MachineRecord]:
        return self.cache.get_roster(self._load_roster, force_refresh=force_refresh)

    def get_index(self, force_refresh: bool = False) -> dict[str, MachineRecord]:
        return self.cache.get_index(self._load_roster, build_serial_index, force_refresh=force_refresh)

    def get_event_info(self, event_id: Optional[str]) -> Optional[EventInfo]:
        target = normalize_spaces(event_id)
        if not target:
            return None
        try:
            return self.cache.get_event(target, self._load_event)
        except RangeStoreError:
            logger.exception("Falha ao buscar dados do evento %s.", target)
            return None

    def get_history(self) -> list[MovementRecord]:
        try:
            rows = self.store.get_values(history_range(self.history_sheet))
        except RangeStoreError:
            logger.exception("Falha ao carregar historico da planilha.")
            return []

        history: list[MovementRecord] = []
        for row in rows:
            if is_blank_row(row):
                continue
            fields = row_to_fields(row, HISTORY_COLUMNS)
            fields["serial"] = fields["serial"] or ""
            fields["action"] = fields["action"] or ""
            history.append(MovementRecord(**fields))
        return history

    def invalidate(self) -> None:
        self.cache.invalidate()
