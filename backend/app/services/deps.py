from functools import lru_cache

from app.core.config import SPREADSHEET_ID
from app.services.ledger_cache import LedgerCache
from app.services.machine_registry import MachineRegistry
from app.services.movement_recorder import MovementRecorder
from app.services.sheets_client import SheetsRangeStore
from app.services.transitions import TransitionEngine


@lru_cache(maxsize=None)
def get_range_store() -> SheetsRangeStore:
    return SheetsRangeStore(SPREADSHEET_ID)


@lru_cache(maxsize=None)
def get_ledger_cache() -> LedgerCache:
    return LedgerCache()


def get_registry() -> MachineRegistry:
    return MachineRegistry(get_range_store(), get_ledger_cache())


def get_recorder() -> MovementRecorder:
    return MovementRecorder(get_range_store())


def get_transition_engine() -> TransitionEngine:
    return TransitionEngine(get_registry(), get_recorder())
