import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Iterable, Optional, Union

from app.core.config import HISTORY_SHEET, ROSTER_SHEET
from app.schemas.machine import MovementRecord
from app.services.dates import SHEET_TIMESTAMP_FORMAT, now_local
from app.services.sheet_layout import (
    HISTORY_COLUMNS,
    fields_to_row,
    history_append_range,
    roster_cell,
    write_cell,
)
from app.services.sheets_client import CellUpdate, RangeStore, RangeStoreError

logger = logging.getLogger("uvicorn.error")


@dataclass
class RosterPatch:
    serial: str
    row: int
    fields: dict[str, Optional[str]] = field(default_factory=dict)


class MovementRecorder:
    def __init__(
        self,
        store: RangeStore,
        roster_sheet: str = ROSTER_SHEET,
        history_sheet: str = HISTORY_SHEET,
        clock: Callable[[], datetime] = now_local,
    ):
        self.store = store
        self.roster_sheet = roster_sheet
        self.history_sheet = history_sheet
        self._clock = clock

    def append_movements(self, movements: Union[MovementRecord, Iterable[MovementRecord]]) -> bool:
        if isinstance(movements, MovementRecord):
            movements = [movements]
        rows = [fields_to_row(movement.model_dump(), HISTORY_COLUMNS) for movement in movements]
        if not rows:
            return True
        try:
            self.store.append_rows(history_append_range(self.history_sheet), rows)
        except RangeStoreError:
            logger.exception("Falha ao registrar %s linha(s) no historico.", len(rows))
            return False
        return True

    def build_updates(self, patches: Iterable[RosterPatch], actor: Optional[str] = None) -> list[CellUpdate]:
        stamp = self._clock().strftime(SHEET_TIMESTAMP_FORMAT)
        updates: list[CellUpdate] = []
        for patch in patches:
            values = dict(patch.fields)
            values.setdefault("updated_at", stamp)
            if actor:
                values.setdefault("updated_by", actor)
            for field_name, value in values.items():
                updates.append(CellUpdate(roster_cell(self.roster_sheet, field_name, patch.row), write_cell(value)))
        return updates

    def apply_patches(self, patches: Iterable[RosterPatch], actor: Optional[str] = None) -> bool:
        updates = self.build_updates(patches, actor=actor)
        if not updates:
            return True
        try:
            self.store.batch_update(updates)
        except RangeStoreError:
            logger.exception("Falha no batch update de %s celula(s) da planilha de maquinas.", len(updates))
            return False
        return True
