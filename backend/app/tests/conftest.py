import os
import re
import tempfile
from datetime import date, datetime
from pathlib import Path
from uuid import uuid4

import pytest

TEST_DB_FILE = Path(tempfile.gettempdir()) / f"test_maquininhas_{uuid4().hex}.db"
os.environ["DATABASE_URL"] = f"sqlite:///{TEST_DB_FILE.as_posix()}"
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("ALGORITHM", "HS256")
os.environ.setdefault("ACCESS_TOKEN_EXPIRE_MINUTES", "60")
os.environ.setdefault("DB_BOOTSTRAP_MODE", "off")
os.environ.setdefault("APP_TIMEZONE", "America/Sao_Paulo")

from app.core.config import EVENTS_SHEET, HISTORY_SHEET, ROSTER_SHEET  # noqa: E402
from app.database.base import Base  # noqa: E402
from app.database.session import SessionLocal, engine  # noqa: E402
from app.services.ledger_cache import LedgerCache  # noqa: E402
from app.services.machine_registry import MachineRegistry  # noqa: E402
from app.services.movement_recorder import MovementRecorder  # noqa: E402
from app.services.sheet_layout import ROSTER_COLUMNS  # noqa: E402
from app.services.sheets_client import RangeStoreError  # noqa: E402
from app.services.transitions import TransitionEngine  # noqa: E402

TODAY = date(2024, 3, 10)
CELL_PATTERN = re.compile(r"^([A-Z]+)(\d+)$")


def column_index(letters: str) -> int:
    index = 0
    for letter in letters:
        index = index * 26 + (ord(letter) - 64)
    return index - 1


def split_range(range_name: str) -> tuple[str, str]:
    sheet, _, cells = range_name.rpartition("!")
    if sheet.startswith("'") and sheet.endswith("'"):
        sheet = sheet[1:-1].replace("''", "'")
    return sheet, cells


class FakeRangeStore:
    """In-memory spreadsheet. Each tab keeps its rows starting at row 1 (header)."""

    def __init__(self):
        self.sheets: dict[str, list[list[str]]] = {
            ROSTER_SHEET: [list(ROSTER_COLUMNS)],
            HISTORY_SHEET: [["data", "serial", "acao"]],
            EVENTS_SHEET: [["id", "nome", "produtora", "comercial"]],
        }
        self.reads: list[str] = []
        self.appends: list[tuple[str, list[list[str]]]] = []
        self.batches: list[list] = []
        self.fail_reads = False
        self.fail_append = False
        self.fail_batch = False

    def get_values(self, range_name: str) -> list[list[str]]:
        self.reads.append(range_name)
        if self.fail_reads:
            raise RangeStoreError("leitura indisponivel")
        sheet, _ = split_range(range_name)
        return [list(row) for row in self.sheets.get(sheet, [])[1:]]

    def append_rows(self, range_name: str, rows) -> None:
        if self.fail_append:
            raise RangeStoreError("append indisponivel")
        sheet, _ = split_range(range_name)
        copied = [list(row) for row in rows]
        self.appends.append((sheet, copied))
        self.sheets.setdefault(sheet, [[]]).extend(copied)

    def batch_update(self, updates) -> None:
        if self.fail_batch:
            raise RangeStoreError("batch indisponivel")
        self.batches.append(list(updates))
        for update in updates:
            sheet, cell = split_range(update.range)
            match = CELL_PATTERN.match(cell)
            col, row = column_index(match.group(1)), int(match.group(2))
            rows = self.sheets[sheet]
            while len(rows) < row:
                rows.append([])
            target = rows[row - 1]
            while len(target) <= col:
                target.append("")
            target[col] = update.value

    def add_machine(self, serial: str, **fields) -> int:
        values = {"code": f"C-{serial}", "model": "Moderninha Pro", "serial": serial, "status": "Estoque SP"}
        values.update(fields)
        self.sheets[ROSTER_SHEET].append([values.get(name, "") for name in ROSTER_COLUMNS])
        return len(self.sheets[ROSTER_SHEET])

    def add_event(self, event_id: str, name: str, producer: str = "Produtora X", commercial: str = "Ana") -> None:
        self.sheets[EVENTS_SHEET].append([event_id, name, producer, commercial])

    def add_history(self, *rows: list[str]) -> None:
        self.sheets[HISTORY_SHEET].extend(list(row) for row in rows)

    def roster_value(self, row: int, field: str) -> str:
        values = self.sheets[ROSTER_SHEET][row - 1]
        position = ROSTER_COLUMNS.index(field)
        return values[position] if position < len(values) else ""

    def history_rows(self) -> list[list[str]]:
        return self.sheets[HISTORY_SHEET][1:]

    def roster_reads(self) -> int:
        return sum(1 for item in self.reads if split_range(item)[0] == ROSTER_SHEET)


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def store():
    return FakeRangeStore()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return LedgerCache(roster_ttl=15, event_ttl=300, clock=clock)


@pytest.fixture
def registry(store, cache):
    return MachineRegistry(store, cache)


@pytest.fixture
def recorder(store):
    return MovementRecorder(store, clock=lambda: datetime(2024, 3, 10, 14, 30, 0))


@pytest.fixture
def engine_under_test(registry, recorder):
    return TransitionEngine(registry, recorder, today=lambda: TODAY)


@pytest.fixture
def reset_database():
    engine.dispose()
    Base.metadata.create_all(bind=engine)
    try:
        yield
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()
        if TEST_DB_FILE.exists():
            TEST_DB_FILE.unlink()


@pytest.fixture
def db_session(reset_database):
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
