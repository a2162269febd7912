"""Status rules for check-out, check-in, maintenance and manual adjustments.

Every request is handled as one batch: the roster patches of all accepted
machines go in a single batch update and their history rows in a single
append. Serials that cannot be located are reported per item and never
abort the rest of the batch.
"""
import logging
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Callable, Iterable, Optional, Union

from app.core.config import DEFAULT_ACTOR
from app.schemas.machine import (
    EventInfo,
    MachineRecord,
    MovementRecord,
    MovementRequest,
    SerialRef,
    StatusAdjustRequest,
)
from app.services.dates import format_sheet_date, normalize_sheet_date, parse_date, today_local
from app.services.machine_registry import MachineRegistry
from app.services.movement_recorder import MovementRecorder, RosterPatch
from app.services.sheet_layout import FIRST_DATA_ROW
from app.services.text_utils import clean_optional_text, normalize_lookup_text, normalize_spaces

logger = logging.getLogger("uvicorn.error")

STATUS_IN_USE = "Em Uso"
STATUS_FIXED = "Fixo"
STATUS_STOCK = "Estoque"
STATUS_MAINTENANCE = "Manutenção"
STOCK_LOCATIONS = ("SP", "RJ", "URA")
PLACEHOLDER_EVENT_IDS = {"-", "n/a", "na", "null", "none", "sem evento"}
EVENT_FIELDS = ("event_id", "event_name", "producer", "commercial")

STEP_NOT_FOUND = "not-found"
STEP_ROW_NOT_FOUND = "row-not-found"
STEP_ROSTER_UPDATE = "roster-update"
STEP_HISTORY_APPEND = "history-append"


class MovementAction(str, Enum):
    SEND = "ENVIO"
    SEND_FIXED = "ENVIO_FIXO"
    RETURN = "RETORNO"
    MAINTENANCE = "MANUTENCAO"
    STATUS_ADJUST = "AJUSTE_STATUS"


OUTBOUND_ACTIONS = {MovementAction.SEND, MovementAction.SEND_FIXED}
ACTION_KEYWORDS = (
    ({"envio", "send"}, MovementAction.SEND),
    ({"retorno", "return"}, MovementAction.RETURN),
    ({"manutencao", "maintenance"}, MovementAction.MAINTENANCE),
    ({"ajuste", "adjust"}, MovementAction.STATUS_ADJUST),
)


class MovementValidationError(Exception):
    pass


@dataclass(frozen=True)
class ParsedAction:
    action: MovementAction
    location: Optional[str] = None


@dataclass(frozen=True)
class SerialTarget:
    serial: str
    row_hint: Optional[int] = None


@dataclass(frozen=True)
class Origin:
    source: str
    event_id: Optional[str] = None
    event_name: Optional[str] = None
    producer: Optional[str] = None
    commercial: Optional[str] = None
    departure_date: Optional[str] = None


@dataclass
class MovementError:
    serial: Optional[str]
    step: str
    msg: str = ""


@dataclass
class TransitionOutcome:
    applied: list[str] = field(default_factory=list)
    errors: list[MovementError] = field(default_factory=list)
    needs_origin: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors and not self.needs_origin


def location_qualifier(value: object) -> Optional[str]:
    words = normalize_lookup_text(value).upper().split()
    for location in STOCK_LOCATIONS:
        if location in words:
            return location
    return None


def parse_action(value: object) -> ParsedAction:
    text = normalize_lookup_text(value)
    if not text:
        raise MovementValidationError("Selecione a ação.")

    location = location_qualifier(text)
    compact = text.replace(" ", "_").upper()
    for action in MovementAction:
        if compact in (action.name, action.value):
            return ParsedAction(action, location)

    # rotulos antigos: "Envio SP", "Envio Fixo", "Retorno RJ"
    words = set(text.split())
    for keywords, action in ACTION_KEYWORDS:
        if words & keywords:
            if action is MovementAction.SEND and words & {"fixo", "fixed"}:
                return ParsedAction(MovementAction.SEND_FIXED, location)
            return ParsedAction(action, location)
    raise MovementValidationError("Ação inválida.")


def parse_history_action(value: object) -> Optional[MovementAction]:
    try:
        return parse_action(value).action
    except MovementValidationError:
        return None


def is_stock_status(status: object) -> bool:
    return normalize_lookup_text(status).startswith("estoque")


def is_fixed_status(status: object) -> bool:
    return normalize_lookup_text(status) == "fixo"


def is_in_use_status(status: object) -> bool:
    return "em uso" in normalize_lookup_text(status)


def is_maintenance_status(status: object) -> bool:
    return normalize_lookup_text(status).startswith("manutencao")


def stock_status(location: Optional[str]) -> str:
    return f"{STATUS_STOCK} {location}" if location else STATUS_STOCK


def stock_location_from_status(status: object) -> Optional[str]:
    text = normalize_spaces(status)
    _, _, remainder = text.partition(" ")
    return remainder.strip() or None


def has_usable_event_id(value: object) -> bool:
    text = normalize_spaces(value)
    if not text or not text.strip("0"):
        return False
    return normalize_lookup_text(text) not in PLACEHOLDER_EVENT_IDS


def parse_serials(items: Iterable[Union[str, int, SerialRef, dict]]) -> list[SerialTarget]:
    targets: list[SerialTarget] = []
    seen: set[str] = set()
    for item in items or []:
        if isinstance(item, SerialRef):
            serial, row_hint = item.serial, item.row_hint
        elif isinstance(item, dict):
            serial, row_hint = item.get("serial"), item.get("rowHint", item.get("row_hint"))
        elif isinstance(item, (str, int)) and not isinstance(item, bool):
            serial, row_hint = item, None
        else:
            continue
        serial = normalize_spaces(serial)
        if not serial or serial in seen:
            continue
        seen.add(serial)
        try:
            hint = int(row_hint) if row_hint is not None else None
        except (TypeError, ValueError):
            hint = None
        targets.append(SerialTarget(serial, hint))
    return targets


def latest_outbound_movement(history: Iterable[MovementRecord], serial: str) -> Optional[MovementRecord]:
    """Most recent send for ``serial`` by departure date; ties keep the first row seen."""
    best: Optional[MovementRecord] = None
    best_date = date.min
    for movement in history:
        if normalize_spaces(movement.serial) != serial:
            continue
        if parse_history_action(movement.action) not in OUTBOUND_ACTIONS:
            continue
        departure = parse_date(movement.departure_date) or date.min
        if best is None or departure > best_date:
            best, best_date = movement, departure
    return best


def resolve_origin(record: MachineRecord, history: Optional[Iterable[MovementRecord]]) -> Optional[Origin]:
    if has_usable_event_id(record.event_id):
        return Origin(
            source="roster",
            event_id=record.event_id,
            event_name=record.event_name,
            producer=record.producer,
            commercial=record.commercial,
            departure_date=record.departure_date,
        )
    movement = latest_outbound_movement(history or [], normalize_spaces(record.serial))
    if movement is None:
        return None
    return Origin(
        source="history",
        event_id=movement.event_id,
        event_name=movement.event_name,
        producer=movement.producer,
        commercial=movement.commercial,
        departure_date=movement.departure_date,
    )


def join_notes(*notes: Optional[str]) -> Optional[str]:
    parts = [note for note in (clean_optional_text(item) for item in notes) if note]
    return " | ".join(parts) or None


def event_fields(event: Optional[EventInfo]) -> dict[str, Optional[str]]:
    if event is None:
        return {name: None for name in EVENT_FIELDS}
    return {name: getattr(event, name) for name in EVENT_FIELDS}


def _input_date(value: Optional[str], label: str) -> Optional[str]:
    if not normalize_spaces(value):
        return None
    normalized = normalize_sheet_date(value)
    if not normalized:
        raise MovementValidationError(f"Data de {label} inválida.")
    return normalized


class TransitionEngine:
    def __init__(
        self,
        registry: MachineRegistry,
        recorder: MovementRecorder,
        today: Callable[[], date] = today_local,
    ):
        self.registry = registry
        self.recorder = recorder
        self._today = today

    def register_movements(self, request: MovementRequest, actor: Optional[str] = None) -> TransitionOutcome:
        parsed = parse_action(request.action)
        if parsed.action is MovementAction.STATUS_ADJUST:
            raise MovementValidationError("Use o ajuste de status para alterar o status manualmente.")

        targets = parse_serials(request.serials)
        if not targets:
            raise MovementValidationError("Nenhuma máquina selecionada.")

        departure_date = _input_date(request.departure_date, "saída")
        return_date = _input_date(request.return_date, "retorno")
        event = self._resolve_event(parsed.action, request.event_id, departure_date, return_date)

        outcome = TransitionOutcome()
        located = self._locate(targets, outcome)
        actor = clean_optional_text(actor) or DEFAULT_ACTOR
        today = format_sheet_date(self._today())
        location = clean_optional_text(request.location) or parsed.location
        note = clean_optional_text(request.note)

        patches: list[RosterPatch] = []
        movements: list[MovementRecord] = []

        if parsed.action is MovementAction.RETURN:
            origins = self._resolve_origins([record for record, _ in located])
            unresolved = [record.serial for record, _ in located if origins.get(record.serial) is None]
            origin_note = clean_optional_text(request.origin_note)
            if unresolved and not origin_note:
                outcome.needs_origin = unresolved
                return outcome
            for record, row in located:
                origin = origins.get(record.serial)
                patch, movement = self._plan_return(record, row, origin, location, today, actor, note, origin_note)
                patches.append(patch)
                movements.append(movement)
        else:
            for record, row in located:
                if parsed.action in OUTBOUND_ACTIONS:
                    fields = self._send_fields(parsed.action, event, departure_date, return_date, location)
                else:
                    fields = self._maintenance_fields(event, location)
                patch = RosterPatch(record.serial, row, fields)
                patches.append(patch)
                movements.append(self._movement_after(record, patch, parsed.action, today, actor, note))

        self._commit(patches, movements, outcome, actor)
        return outcome

    def adjust_status(self, request: StatusAdjustRequest, actor: Optional[str] = None) -> TransitionOutcome:
        serial = normalize_spaces(request.serial)
        if not serial:
            raise MovementValidationError("Serial obrigatório.")
        status = normalize_spaces(request.status)
        if not status:
            raise MovementValidationError("Status obrigatório.")

        event_id = clean_optional_text(request.event_id)
        event = (self.registry.get_event_info(event_id) or EventInfo(event_id=event_id)) if event_id else None

        outcome = TransitionOutcome()
        located = self._locate([SerialTarget(serial)], outcome)
        if not located:
            return outcome

        record, row = located[0]
        location = clean_optional_text(request.location)
        fields: dict[str, Optional[str]] = {"status": status}
        if event is not None:
            fields.update(event_fields(event))
        if location:
            fields["location"] = location
        if is_fixed_status(status):
            fields["return_date"] = None
        if is_stock_status(status):
            fields.update(event_fields(None))
            fields["return_date"] = None
            fields["location"] = location or stock_location_from_status(status)

        patch = RosterPatch(record.serial, row, fields)
        actor = clean_optional_text(actor) or DEFAULT_ACTOR
        movement = self._movement_after(
            record,
            patch,
            MovementAction.STATUS_ADJUST,
            format_sheet_date(self._today()),
            actor,
            clean_optional_text(request.note),
        )
        self._commit([patch], [movement], outcome, actor)
        return outcome

    def _resolve_event(
        self,
        action: MovementAction,
        raw_event_id: Optional[str],
        departure_date: Optional[str],
        return_date: Optional[str],
    ) -> Optional[EventInfo]:
        event_id = clean_optional_text(raw_event_id)
        if action in OUTBOUND_ACTIONS:
            if not event_id:
                raise MovementValidationError("Informe o ID do evento.")
            if not departure_date:
                raise MovementValidationError("Informe a data de saída.")
            if action is MovementAction.SEND and not return_date:
                raise MovementValidationError("Informe a data de retorno.")
            event = self.registry.get_event_info(event_id)
            if event is None:
                raise MovementValidationError(f"Evento {event_id} não encontrado.")
            return event
        if action is MovementAction.MAINTENANCE and event_id:
            return self.registry.get_event_info(event_id) or EventInfo(event_id=event_id)
        return None

    def _locate(
        self,
        targets: list[SerialTarget],
        outcome: TransitionOutcome,
    ) -> list[tuple[MachineRecord, int]]:
        index = self.registry.get_index(force_refresh=True)
        located: list[tuple[MachineRecord, int]] = []
        for target in targets:
            record = index.get(target.serial)
            if record is None:
                outcome.errors.append(
                    MovementError(target.serial, STEP_NOT_FOUND, "Serial não encontrado na planilha.")
                )
                continue
            row = record.row
            if not row and target.row_hint and target.row_hint >= FIRST_DATA_ROW:
                row = target.row_hint
            if not row:
                outcome.errors.append(
                    MovementError(target.serial, STEP_ROW_NOT_FOUND, "Linha da máquina não localizada.")
                )
                continue
            located.append((record, row))
        return located

    def _resolve_origins(self, records: list[MachineRecord]) -> dict[str, Optional[Origin]]:
        history: Optional[list[MovementRecord]] = None
        if any(not has_usable_event_id(record.event_id) for record in records):
            history = self.registry.get_history()
        return {record.serial: resolve_origin(record, history) for record in records}

    def _send_fields(
        self,
        action: MovementAction,
        event: Optional[EventInfo],
        departure_date: Optional[str],
        return_date: Optional[str],
        location: Optional[str],
    ) -> dict[str, Optional[str]]:
        fixed = action is MovementAction.SEND_FIXED
        fields: dict[str, Optional[str]] = {"status": STATUS_FIXED if fixed else STATUS_IN_USE}
        fields.update(event_fields(event))
        fields["departure_date"] = departure_date
        fields["return_date"] = None if fixed else return_date
        if location:
            fields["location"] = location
        return fields

    def _maintenance_fields(self, event: Optional[EventInfo], location: Optional[str]) -> dict[str, Optional[str]]:
        fields: dict[str, Optional[str]] = {"status": STATUS_MAINTENANCE}
        if event is not None:
            fields.update(event_fields(event))
        if location:
            fields["location"] = location
        return fields

    def _plan_return(
        self,
        record: MachineRecord,
        row: int,
        origin: Optional[Origin],
        location: Optional[str],
        today: str,
        actor: str,
        note: Optional[str],
        origin_note: Optional[str],
    ) -> tuple[RosterPatch, MovementRecord]:
        status = stock_status(location)
        fields: dict[str, Optional[str]] = {"status": status, "location": location}
        fields.update(event_fields(None))
        fields["departure_date"] = None
        fields["return_date"] = None

        if origin is None:
            origin = Origin(source="note")
            note = join_notes(note, f"Origem informada: {origin_note}")

        movement = MovementRecord(
            date=today,
            serial=record.serial,
            action=MovementAction.RETURN.value,
            event_id=origin.event_id,
            departure_date=origin.departure_date,
            return_date=today,
            status_after=status,
            actor=actor,
            event_name=origin.event_name,
            producer=origin.producer,
            commercial=origin.commercial,
            location=location,
            note=note,
        )
        return RosterPatch(record.serial, row, fields), movement

    def _movement_after(
        self,
        record: MachineRecord,
        patch: RosterPatch,
        action: MovementAction,
        today: str,
        actor: str,
        note: Optional[str],
    ) -> MovementRecord:
        after = record.model_copy(update=patch.fields)
        return MovementRecord(
            date=today,
            serial=record.serial,
            action=action.value,
            event_id=after.event_id,
            departure_date=after.departure_date,
            return_date=after.return_date,
            status_after=after.status,
            actor=actor,
            event_name=after.event_name,
            producer=after.producer,
            commercial=after.commercial,
            location=after.location,
            note=note,
        )

    def _commit(
        self,
        patches: list[RosterPatch],
        movements: list[MovementRecord],
        outcome: TransitionOutcome,
        actor: str,
    ) -> None:
        if not patches:
            return

        generation = self.registry.cache.generation
        try:
            if not self.recorder.apply_patches(patches, actor=actor):
                for patch in patches:
                    outcome.errors.append(
                        MovementError(patch.serial, STEP_ROSTER_UPDATE, "Falha ao atualizar a planilha de máquinas.")
                    )
                return

            outcome.applied.extend(patch.serial for patch in patches)
            if not self.recorder.append_movements(movements):
                outcome.errors.append(
                    MovementError(None, STEP_HISTORY_APPEND, "Máquinas atualizadas, mas o histórico não foi registrado.")
                )
        finally:
            self.registry.invalidate()
            logger.info(
                "Lote de movimentacao: %s aplicada(s), %s erro(s) (snapshot %s).",
                len(outcome.applied),
                len(outcome.errors),
                generation,
            )
