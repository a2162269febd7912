from collections import Counter
from datetime import date, timedelta
from typing import Iterable

from app.schemas.machine import MachineRecord, MovementRecord
from app.services.dates import format_sheet_date, parse_date
from app.services.transitions import (
    OUTBOUND_ACTIONS,
    STOCK_LOCATIONS,
    MovementAction,
    has_usable_event_id,
    is_fixed_status,
    is_in_use_status,
    is_maintenance_status,
    is_stock_status,
    location_qualifier,
    parse_history_action,
)

NO_VALUE = "-"


def build_summary(roster: list[MachineRecord], today: date) -> dict[str, int]:
    available = {location: 0 for location in STOCK_LOCATIONS}
    total_available = 0
    in_use = 0
    fixed = 0
    maintenance = 0
    overdue = 0

    for machine in roster:
        if is_stock_status(machine.status):
            total_available += 1
            location = location_qualifier(machine.status) or location_qualifier(machine.location)
            if location:
                available[location] += 1
            continue
        if is_fixed_status(machine.status):
            fixed += 1
            in_use += 1
            continue
        if is_in_use_status(machine.status):
            in_use += 1
            returns_on = parse_date(machine.return_date)
            if returns_on and returns_on < today:
                overdue += 1
            continue
        if is_maintenance_status(machine.status):
            maintenance += 1

    return {
        "total": len(roster),
        "available": total_available,
        "available_sp": available["SP"],
        "available_rj": available["RJ"],
        "available_ura": available["URA"],
        "in_use": in_use,
        "fixed": fixed,
        "maintenance": maintenance,
        "overdue": overdue,
    }


def _as_items(counter: Counter) -> list[dict]:
    return [{"name": name, "qty": qty} for name, qty in counter.most_common()]


def count_by_status(roster: Iterable[MachineRecord]) -> list[dict]:
    return _as_items(Counter(machine.status or NO_VALUE for machine in roster))


def count_by_location(roster: Iterable[MachineRecord]) -> list[dict]:
    counter: Counter = Counter()
    for machine in roster:
        counter[location_qualifier(machine.status) or location_qualifier(machine.location) or NO_VALUE] += 1
    return _as_items(counter)


def count_by_company(roster: Iterable[MachineRecord]) -> list[dict]:
    return _as_items(Counter(machine.company or NO_VALUE for machine in roster))


def top_events(roster: Iterable[MachineRecord], limit: int = 10) -> list[dict]:
    counter: Counter = Counter()
    names: dict[str, str] = {}
    for machine in roster:
        if not has_usable_event_id(machine.event_id):
            continue
        counter[machine.event_id] += 1
        names.setdefault(machine.event_id, machine.event_name or NO_VALUE)
    return [
        {"id": event_id, "name": names[event_id], "qty": qty}
        for event_id, qty in counter.most_common(limit)
    ]


def sends_and_returns(history: Iterable[MovementRecord], today: date, days: int = 30) -> dict:
    labels = [format_sheet_date(today - timedelta(days=offset)) for offset in range(days - 1, -1, -1)]
    sends = dict.fromkeys(labels, 0)
    returns = dict.fromkeys(labels, 0)

    for movement in history:
        action = parse_history_action(movement.action)
        if action in OUTBOUND_ACTIONS:
            moved_on = parse_date(movement.departure_date)
            key = format_sheet_date(moved_on) if moved_on else ""
            if key in sends:
                sends[key] += 1
        elif action is MovementAction.RETURN:
            moved_on = parse_date(movement.return_date)
            key = format_sheet_date(moved_on) if moved_on else ""
            if key in returns:
                returns[key] += 1

    return {
        "labels": labels,
        "sends": [sends[label] for label in labels],
        "returns": [returns[label] for label in labels],
    }
