import logging
import time
from typing import Optional

from fastapi import APIRouter, Depends, Query

from app.core.auth import require_permission
from app.models.user import User
from app.schemas.machine import (
    DashboardOut,
    MachineListOut,
    MachineOut,
    MachineRecord,
)
from app.services import dashboard
from app.services.dates import today_local
from app.services.deps import get_registry
from app.services.machine_registry import MachineRegistry
from app.services.sheet_layout import SENTINEL

logger = logging.getLogger("uvicorn.error")
router = APIRouter(prefix="/machines", tags=["Machines"])
get_machines_viewer = require_permission("machines.view")


def _text(value: Optional[str]) -> str:
    return value or SENTINEL


def build_machine_out(record: MachineRecord) -> MachineOut:
    values = record.model_dump()
    row = values.pop("row")
    return MachineOut(row=row, **{key: _text(value) for key, value in values.items()})


@router.get("", response_model=MachineListOut)
def list_machines(
    refresh: bool = Query(default=True),
    registry: MachineRegistry = Depends(get_registry),
    current_user: User = Depends(get_machines_viewer),
):
    started = time.monotonic()
    machines = registry.get_roster(force_refresh=refresh)
    logger.info(
        "/machines carregado: %s maquinas (em %.0fms)",
        len(machines),
        (time.monotonic() - started) * 1000,
    )
    return MachineListOut(ok=True, machines=[build_machine_out(item) for item in machines])


@router.get("/summary", response_model=DashboardOut)
def machines_summary(
    days: int = Query(default=30, ge=1, le=180),
    registry: MachineRegistry = Depends(get_registry),
    current_user: User = Depends(get_machines_viewer),
):
    roster = registry.get_roster()
    history = registry.get_history()
    today = today_local()
    return DashboardOut(
        ok=True,
        summary=dashboard.build_summary(roster, today),
        by_status=dashboard.count_by_status(roster),
        by_location=dashboard.count_by_location(roster),
        by_company=dashboard.count_by_company(roster),
        top_events=dashboard.top_events(roster),
        series=dashboard.sends_and_returns(history, today, days=days),
    )
