"""Positional layout of the spreadsheet tabs.

Column order is a contract with the spreadsheet: reads and writes are both
positional, so a field must never move to another letter.
"""
from typing import Optional, Sequence

SENTINEL = "-"
FIRST_DATA_ROW = 2
ROSTER_LAST_ROW = 2000
HISTORY_LAST_ROW = 20000

ROSTER_COLUMNS = (
    "code",
    "model",
    "serial",
    "operator",
    "chip",
    "acquirer",
    "status",
    "location",
    "company",
    "event_id",
    "event_name",
    "producer",
    "commercial",
    "departure_date",
    "return_date",
    "updated_at",
    "updated_by",
)
HISTORY_COLUMNS = (
    "date",
    "serial",
    "action",
    "event_id",
    "departure_date",
    "return_date",
    "status_after",
    "actor",
    "event_name",
    "producer",
    "commercial",
    "location",
    "note",
)
EVENT_COLUMNS = ("event_id", "event_name", "producer", "commercial")


def column_letter(index: int) -> str:
    letters = ""
    number = index + 1
    while number > 0:
        number, remainder = divmod(number - 1, 26)
        letters = chr(65 + remainder) + letters
    return letters


def quote_sheet(sheet_name: str) -> str:
    return "'" + sheet_name.replace("'", "''") + "'"


def roster_range(sheet_name: str) -> str:
    last = column_letter(len(ROSTER_COLUMNS) - 1)
    return f"{quote_sheet(sheet_name)}!A{FIRST_DATA_ROW}:{last}{ROSTER_LAST_ROW}"


def roster_cell(sheet_name: str, field: str, row: int) -> str:
    return f"{quote_sheet(sheet_name)}!{column_letter(ROSTER_COLUMNS.index(field))}{row}"


def history_range(sheet_name: str) -> str:
    last = column_letter(len(HISTORY_COLUMNS) - 1)
    return f"{quote_sheet(sheet_name)}!A{FIRST_DATA_ROW}:{last}{HISTORY_LAST_ROW}"


def history_append_range(sheet_name: str) -> str:
    return f"{quote_sheet(sheet_name)}!A:{column_letter(len(HISTORY_COLUMNS) - 1)}"


def events_range(sheet_name: str) -> str:
    return f"{quote_sheet(sheet_name)}!A{FIRST_DATA_ROW}:{column_letter(len(EVENT_COLUMNS) - 1)}"


def read_cell(value: object) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    if not text or text == SENTINEL:
        return None
    return text


def write_cell(value: object) -> str:
    if value is None:
        return SENTINEL
    text = str(value).strip()
    return text or SENTINEL


def row_to_fields(row: Sequence[object], columns: Sequence[str]) -> dict[str, Optional[str]]:
    return {
        field: read_cell(row[position]) if position < len(row) else None
        for position, field in enumerate(columns)
    }


def fields_to_row(values: dict, columns: Sequence[str]) -> list[str]:
    return [write_cell(values.get(field)) for field in columns]


def is_blank_row(row: Sequence[object]) -> bool:
    return all(read_cell(cell) is None for cell in row)
